from typing import Generic, TypeVar

import structlog

from cashflow.domain.aggregates import Aggregate, Category, Expense, Income
from cashflow.event_store.codec import decode_event
from cashflow.event_store.models import Lifecycle
from cashflow.event_store.repository import EventStore
from cashflow.exceptions import OutOfOrderEventError, UnknownEventKindError

logger = structlog.get_logger()

TAggregate = TypeVar("TAggregate", bound=Aggregate)


class AggregateRepository(Generic[TAggregate]):
    """Persists aggregates as event streams and rebuilds them by replay."""

    aggregate_cls: type[TAggregate]

    def __init__(self, event_store: EventStore) -> None:
        self._event_store = event_store

    async def save(self, aggregate: TAggregate) -> None:
        events = aggregate.uncommitted_events
        if not events:
            return

        await self._event_store.append(aggregate.id, aggregate.aggregate_type, events)
        aggregate.clear_uncommitted_events()

    async def get_by_id(self, aggregate_id: str) -> TAggregate | None:
        stream = await self._event_store.load(aggregate_id)
        if not stream:
            return None

        aggregate: TAggregate | None = None
        for stored in stream:
            try:
                event = decode_event(stored)
            except UnknownEventKindError:
                logger.warning(
                    "replay_event_skipped",
                    aggregate_id=aggregate_id,
                    event_type=stored.event_type,
                )
                continue

            if event.aggregate_type != self.aggregate_cls.aggregate_type:
                logger.warning(
                    "replay_foreign_event_skipped",
                    aggregate_id=aggregate_id,
                    event_type=stored.event_type,
                    expected_aggregate_type=str(self.aggregate_cls.aggregate_type),
                )
                continue

            match event.lifecycle:
                case Lifecycle.created:
                    if aggregate is None:
                        aggregate = self.aggregate_cls(aggregate_id)
                case Lifecycle.updated:
                    if aggregate is None:
                        raise OutOfOrderEventError(aggregate_id, stored.event_type)
                case Lifecycle.deleted:
                    if aggregate is None:
                        continue

            aggregate.apply(event)

        return aggregate


class CategoryRepository(AggregateRepository[Category]):
    aggregate_cls = Category


class ExpenseRepository(AggregateRepository[Expense]):
    aggregate_cls = Expense


class IncomeRepository(AggregateRepository[Income]):
    aggregate_cls = Income
