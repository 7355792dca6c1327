from dataclasses import dataclass

import structlog

from cashflow.commands.handlers import CommandBus, CommandHandlers, build_command_bus
from cashflow.config import Settings
from cashflow.database import Database
from cashflow.domain.repository import CategoryRepository, ExpenseRepository, IncomeRepository
from cashflow.event_store.projections import ProjectionEngine
from cashflow.event_store.publisher import EventPublisher, LoggingSubscriber, ProjectionSubscriber
from cashflow.event_store.repository import EventStore, InMemoryEventStore, SqliteEventStore
from cashflow.projections.repository import (
    InMemoryProjectionStore,
    ProjectionStore,
    SqliteProjectionStore,
)
from cashflow.queries.service import EventLogQueryService, ProjectionQueryService

logger = structlog.get_logger()


@dataclass
class Container:
    """Every long-lived component, wired once at startup and passed explicitly."""

    settings: Settings
    event_store: EventStore
    projection_store: ProjectionStore
    projection_engine: ProjectionEngine
    publisher: EventPublisher
    command_bus: CommandBus
    projection_queries: ProjectionQueryService
    event_log_queries: EventLogQueryService
    database: Database | None = None

    async def close(self) -> None:
        if self.database is not None:
            await self.database.close()
            self.database = None


def wire(
    settings: Settings,
    event_store: EventStore,
    projection_store: ProjectionStore,
    database: Database | None = None,
) -> Container:
    label = settings.uncategorized_label
    engine = ProjectionEngine(projection_store, uncategorized_label=label)
    publisher = EventPublisher([ProjectionSubscriber(engine), LoggingSubscriber()])
    handlers = CommandHandlers(
        categories=CategoryRepository(event_store),
        expenses=ExpenseRepository(event_store),
        incomes=IncomeRepository(event_store),
    )

    return Container(
        settings=settings,
        event_store=event_store,
        projection_store=projection_store,
        projection_engine=engine,
        publisher=publisher,
        command_bus=build_command_bus(
            handlers, publisher, default_timeout=settings.command_timeout_seconds
        ),
        projection_queries=ProjectionQueryService(projection_store, uncategorized_label=label),
        event_log_queries=EventLogQueryService(event_store, uncategorized_label=label),
        database=database,
    )


async def build_container(settings: Settings) -> Container:
    if settings.store_backend == "memory":
        logger.info("container_built", store_backend="memory")
        return wire(settings, InMemoryEventStore(), InMemoryProjectionStore())

    database = await Database.connect(settings.db_path)
    logger.info("container_built", store_backend="sqlite", path=settings.db_path)
    return wire(
        settings,
        SqliteEventStore(database),
        SqliteProjectionStore(database),
        database=database,
    )
