import asyncio

import structlog

from cashflow.config import Settings
from cashflow.container import Container, build_container
from cashflow.event_store.projections import RebuildReport
from cashflow.logging_config import setup_logging

logger = structlog.get_logger()


async def rebuild_projections(container: Container, clear: bool = True) -> RebuildReport:
    """Drop the read model and replay the full event log into it."""
    logger.info("projection_rebuild_started", clear=clear)
    report = await container.projection_engine.rebuild_from_log(container.event_store, clear=clear)

    movements, total = await container.projection_store.list_movements()
    categories = await container.projection_store.list_categories()
    logger.info(
        "projection_rebuild_finished",
        processed=report.processed,
        failed=report.failed,
        movements=total,
        incomes=sum(1 for m in movements if m.type == "income"),
        expenses=sum(1 for m in movements if m.type == "expense"),
        categories=len(categories),
    )
    return report


async def _run(settings: Settings) -> int:
    container = await build_container(settings)
    try:
        report = await rebuild_projections(container)
    finally:
        await container.close()
    return 1 if report.failed else 0


def main() -> None:
    settings = Settings()
    setup_logging(settings.log_level, settings.log_json)
    raise SystemExit(asyncio.run(_run(settings)))


if __name__ == "__main__":
    main()
