import asyncio
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from cashflow.event_store.codec import decode_event
from cashflow.event_store.models import (
    CategoryCreated,
    ExpenseCreated,
    ExpenseDeleted,
    ExpenseUpdated,
    IncomeCreated,
    IncomeDeleted,
    IncomeUpdated,
    MovementCreated,
    MovementDeleted,
    MovementUpdated,
    StoredEvent,
)
from cashflow.event_store.repository import EventStore
from cashflow.exceptions import AppError, ProjectionDivergenceError, UnknownEventKindError
from cashflow.projections.models import MovementType
from cashflow.projections.repository import ProjectionStore
from cashflow.projections.schemas import CategoryProjection, MovementChanges, MovementProjection

logger = structlog.get_logger()

DEFAULT_UNCATEGORIZED_LABEL = "Uncategorized"


@dataclass
class RebuildReport:
    processed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.processed + self.failed


class ProjectionEngine:
    """Keeps the read model in step with the event log.

    Created events are upserts and can be replayed safely. Updated and
    Deleted events modify an existing row and fail with
    ProjectionDivergenceError when that row is missing. A rebuild holds the
    engine lock from clearing the store to its last event, so live events
    wait for it instead of landing on an empty store.
    """

    def __init__(
        self,
        store: ProjectionStore,
        uncategorized_label: str = DEFAULT_UNCATEGORIZED_LABEL,
    ) -> None:
        self._store = store
        self._uncategorized_label = uncategorized_label
        self._lock = asyncio.Lock()

    @property
    def store(self) -> ProjectionStore:
        return self._store

    async def process_event(self, stored: StoredEvent) -> None:
        async with self._lock:
            await self._apply(stored)

    async def _apply(self, stored: StoredEvent) -> None:
        try:
            event = decode_event(stored)
        except UnknownEventKindError:
            logger.warning(
                "projection_event_skipped",
                event_type=stored.event_type,
                aggregate_id=stored.aggregate_id,
            )
            return

        match event:
            case CategoryCreated():
                await self._handle_category_created(event)
            case ExpenseCreated():
                await self._handle_movement_created(event, MovementType.expense)
            case IncomeCreated():
                await self._handle_movement_created(event, MovementType.income)
            case ExpenseUpdated() | IncomeUpdated():
                await self._handle_movement_updated(event)
            case ExpenseDeleted() | IncomeDeleted():
                await self._handle_movement_deleted(event)

        logger.info(
            "projection_applied",
            event_type=stored.event_type,
            aggregate_id=event.aggregate_id,
        )

    async def rebuild(self, events: Iterable[StoredEvent], clear: bool = True) -> RebuildReport:
        async with self._lock:
            return await self._replay(events, clear)

    async def rebuild_from_log(self, event_store: EventStore, clear: bool = True) -> RebuildReport:
        """Read the whole log and replay it without letting live events interleave."""
        async with self._lock:
            return await self._replay(await event_store.query_all(), clear)

    async def _replay(self, events: Iterable[StoredEvent], clear: bool) -> RebuildReport:
        if clear:
            await self._store.clear()

        report = RebuildReport()
        for stored in events:
            try:
                await self._apply(stored)
            except AppError as exc:
                report.failed += 1
                logger.warning(
                    "projection_rebuild_event_failed",
                    event_id=stored.event_id,
                    event_type=stored.event_type,
                    error=exc.message,
                )
            else:
                report.processed += 1

        logger.info("projection_rebuilt", processed=report.processed, failed=report.failed)
        return report

    async def _resolve_category_name(self, category_id: str) -> str:
        if not category_id:
            return self._uncategorized_label
        category = await self._store.get_category(category_id, include_deleted=True)
        if category is None:
            return self._uncategorized_label
        return category.name

    async def _handle_category_created(self, event: CategoryCreated) -> None:
        await self._store.upsert_category(
            CategoryProjection(
                id=event.category_id,
                name=event.name,
                created_at=event.occurred_at,
                updated_at=event.occurred_at,
                is_deleted=False,
            )
        )

    async def _handle_movement_created(
        self, event: MovementCreated, movement_type: MovementType
    ) -> None:
        await self._store.upsert_movement(
            MovementProjection(
                id=event.aggregate_id,
                type=movement_type,
                category_id=event.category_id,
                category_name=await self._resolve_category_name(event.category_id),
                amount=event.amount,
                description=event.description,
                date=event.date,
                created_at=event.occurred_at,
                updated_at=event.occurred_at,
                is_deleted=False,
            )
        )

    async def _handle_movement_updated(self, event: MovementUpdated) -> None:
        changes = MovementChanges(
            category_id=event.category_id,
            category_name=await self._resolve_category_name(event.category_id),
            amount=event.amount,
            description=event.description,
            date=event.date,
            updated_at=event.occurred_at,
        )
        if not await self._store.update_movement(event.aggregate_id, changes):
            raise ProjectionDivergenceError(event.aggregate_id, event.event_type)

    async def _handle_movement_deleted(self, event: MovementDeleted) -> None:
        if not await self._store.mark_movement_deleted(event.aggregate_id, event.occurred_at):
            raise ProjectionDivergenceError(event.aggregate_id, event.event_type)
