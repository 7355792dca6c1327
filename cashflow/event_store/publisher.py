from collections.abc import Sequence
from typing import Protocol

import structlog

from cashflow.event_store.codec import to_stored_event
from cashflow.event_store.models import DomainEvent
from cashflow.event_store.projections import ProjectionEngine

logger = structlog.get_logger()


class Subscriber(Protocol):
    name: str

    async def handle(self, events: Sequence[DomainEvent]) -> None: ...


class EventPublisher:
    """Fans committed events out to subscribers.

    Publishing happens after the log accepted the batch, so a failing
    subscriber is logged and never reported back to the command.
    """

    def __init__(self, subscribers: Sequence[Subscriber] = ()) -> None:
        self._subscribers: list[Subscriber] = list(subscribers)

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    async def publish(self, events: Sequence[DomainEvent]) -> None:
        if not events:
            return

        for subscriber in self._subscribers:
            try:
                await subscriber.handle(events)
            except Exception:
                logger.exception(
                    "subscriber_failed",
                    subscriber=subscriber.name,
                    event_types=[str(event.event_type) for event in events],
                )


class ProjectionSubscriber:
    name = "projections"

    def __init__(self, engine: ProjectionEngine) -> None:
        self._engine = engine

    async def handle(self, events: Sequence[DomainEvent]) -> None:
        for event in events:
            try:
                await self._engine.process_event(to_stored_event(event))
            except Exception:
                logger.exception(
                    "projection_update_failed",
                    event_type=str(event.event_type),
                    aggregate_id=event.aggregate_id,
                )


class LoggingSubscriber:
    name = "audit_log"

    async def handle(self, events: Sequence[DomainEvent]) -> None:
        for event in events:
            logger.info(
                "event_published",
                event_type=str(event.event_type),
                aggregate_type=str(event.aggregate_type),
                aggregate_id=event.aggregate_id,
                occurred_at=event.occurred_at.isoformat(),
            )
