import pytest

from cashflow.commands.schemas import CreateCategory, CreateExpense, DeleteExpense
from cashflow.config import Settings
from cashflow.container import build_container
from cashflow.maintenance import rebuild_projections


@pytest.mark.asyncio
async def test_rebuild_from_sqlite_log(tmp_path):
    settings = Settings(_env_file=None, store_backend="sqlite", db_path=str(tmp_path / "cf.db"))

    container = await build_container(settings)
    try:
        bus = container.command_bus
        await bus.dispatch(CreateCategory(id="cat-1", name="Food"))
        kept = await bus.dispatch(CreateExpense(category_id="cat-1", amount=20, date="2025-07-02"))
        dropped = await bus.dispatch(
            CreateExpense(category_id="cat-1", amount=5, date="2025-07-03")
        )
        await bus.dispatch(DeleteExpense(id=dropped))
        await container.projection_store.clear()
    finally:
        await container.close()

    reopened = await build_container(settings)
    try:
        report = await rebuild_projections(reopened)
        rows, total = await reopened.projection_store.list_movements()
    finally:
        await reopened.close()

    assert (report.processed, report.failed) == (4, 0)
    assert total == 1
    assert rows[0].id == kept
    assert rows[0].category_name == "Food"
