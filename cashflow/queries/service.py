from datetime import UTC, date, datetime, time, timedelta

import structlog

from cashflow.event_store.projections import DEFAULT_UNCATEGORIZED_LABEL, ProjectionEngine
from cashflow.event_store.repository import EventStore
from cashflow.projections.models import MovementType
from cashflow.projections.repository import InMemoryProjectionStore, ProjectionStore
from cashflow.projections.schemas import CategoryProjection, MovementProjection
from cashflow.queries.schemas import (
    Balance,
    Category,
    CategoryExpense,
    Movement,
    PaginatedMovements,
)

logger = structlog.get_logger()

DEFAULT_PER_PAGE = 10


def start_of_day(day: date | None) -> datetime | None:
    if day is None:
        return None
    return datetime.combine(day, time.min, tzinfo=UTC)


def end_of_day(day: date | None) -> datetime | None:
    if day is None:
        return None
    return datetime.combine(day + timedelta(days=1), time.min, tzinfo=UTC) - timedelta(
        microseconds=1
    )


def _to_movement(row: MovementProjection) -> Movement:
    return Movement(
        id=row.id,
        type=row.type,
        category_id=row.category_id,
        category_name=row.category_name,
        amount=row.amount,
        description=row.description,
        date=row.date,
        created_at=row.created_at,
    )


def _to_category(row: CategoryProjection) -> Category:
    return Category(id=row.id, name=row.name, created_at=row.created_at)


class _QueryService:
    def __init__(self, uncategorized_label: str = DEFAULT_UNCATEGORIZED_LABEL) -> None:
        self._uncategorized_label = uncategorized_label

    async def _read_store(self) -> ProjectionStore:
        raise NotImplementedError

    async def get_movements(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int = 0,
        offset: int = 0,
    ) -> PaginatedMovements:
        store = await self._read_store()
        rows, total = await store.list_movements(
            start_of_day(start_date), end_of_day(end_date), limit, offset
        )

        per_page = limit if limit > 0 else DEFAULT_PER_PAGE
        offset = max(offset, 0)
        return PaginatedMovements(
            movements=[_to_movement(row) for row in rows],
            total=total,
            page=offset // per_page + 1,
            per_page=per_page,
            has_next=offset + per_page < total,
            has_prev=offset > 0,
        )

    async def get_balance(self, start_date: date, end_date: date) -> Balance:
        store = await self._read_store()
        rows, _ = await store.list_movements(start_of_day(start_date), end_of_day(end_date))

        total_income = sum(row.amount for row in rows if row.type == MovementType.income)
        total_expense = sum(row.amount for row in rows if row.type == MovementType.expense)

        return Balance(
            total_income=total_income,
            total_expense=total_expense,
            net_balance=total_income - total_expense,
            period=f"{start_date.isoformat()} - {end_date.isoformat()}",
        )

    async def get_expenses_by_category(
        self, start_date: date | None = None, end_date: date | None = None
    ) -> list[CategoryExpense]:
        store = await self._read_store()
        rows, _ = await store.list_movements(start_of_day(start_date), end_of_day(end_date))

        totals: dict[str, CategoryExpense] = {}
        for row in rows:
            if row.type != MovementType.expense:
                continue

            category_id = row.category_id or self._uncategorized_label
            category_name = row.category_name if row.category_id else self._uncategorized_label

            existing = totals.get(category_id)
            if existing is None:
                totals[category_id] = CategoryExpense(
                    category_id=category_id,
                    category_name=category_name,
                    total=row.amount,
                    count=1,
                )
            else:
                existing.total += row.amount
                existing.count += 1

        return sorted(totals.values(), key=lambda item: item.total, reverse=True)

    async def get_categories(self) -> list[Category]:
        store = await self._read_store()
        return [_to_category(row) for row in await store.list_categories()]

    async def get_movement(self, movement_id: str) -> Movement | None:
        store = await self._read_store()
        row = await store.get_movement(movement_id)
        return _to_movement(row) if row is not None else None

    async def get_category(self, category_id: str) -> Category | None:
        store = await self._read_store()
        row = await store.get_category(category_id)
        return _to_category(row) if row is not None else None


class ProjectionQueryService(_QueryService):
    """Reads the maintained projection. Fast, may lag the log."""

    def __init__(
        self,
        store: ProjectionStore,
        uncategorized_label: str = DEFAULT_UNCATEGORIZED_LABEL,
    ) -> None:
        super().__init__(uncategorized_label)
        self._store = store

    async def _read_store(self) -> ProjectionStore:
        return self._store


class EventLogQueryService(_QueryService):
    """Answers every query by replaying the whole log into a scratch projection."""

    def __init__(
        self,
        event_store: EventStore,
        uncategorized_label: str = DEFAULT_UNCATEGORIZED_LABEL,
    ) -> None:
        super().__init__(uncategorized_label)
        self._event_store = event_store

    async def _read_store(self) -> ProjectionStore:
        store = InMemoryProjectionStore()
        engine = ProjectionEngine(store, uncategorized_label=self._uncategorized_label)
        report = await engine.rebuild(await self._event_store.query_all(), clear=False)
        if report.failed:
            logger.warning("replay_query_incomplete", failed=report.failed, total=report.total)
        return store
