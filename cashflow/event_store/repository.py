import sqlite3
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol
from uuid import uuid4

import structlog

from cashflow.database import Database
from cashflow.event_store.codec import (
    deserialize_payload,
    encode_payload,
    format_timestamp,
    parse_timestamp,
    serialize_payload,
    to_utc,
)
from cashflow.event_store.models import DomainEvent, StoredEvent
from cashflow.exceptions import SerializationError, StorageUnavailableError

logger = structlog.get_logger()


class EventStore(Protocol):
    async def append(
        self, aggregate_id: str, aggregate_type: str, events: Sequence[DomainEvent]
    ) -> None: ...

    async def load(self, aggregate_id: str) -> list[StoredEvent]: ...

    async def query_all(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[StoredEvent]: ...


def _within(occurred_at: datetime, start: datetime | None, end: datetime | None) -> bool:
    if start is not None and occurred_at < to_utc(start):
        return False
    if end is not None and occurred_at > to_utc(end):
        return False
    return True


class InMemoryEventStore:
    """Event store kept in process memory.

    Appends encode the whole batch before touching any state and then mutate
    without awaiting, so concurrent coroutines never observe half a batch.
    """

    def __init__(self) -> None:
        self._streams: dict[str, list[StoredEvent]] = {}
        self._all: list[StoredEvent] = []

    def __len__(self) -> int:
        return len(self._all)

    async def append(
        self, aggregate_id: str, aggregate_type: str, events: Sequence[DomainEvent]
    ) -> None:
        if not events:
            return

        stream_length = len(self._streams.get(aggregate_id, []))
        batch: list[StoredEvent] = []
        for offset, event in enumerate(events):
            payload = deserialize_payload(serialize_payload(encode_payload(event)))
            batch.append(
                StoredEvent(
                    event_id=f"{aggregate_id}-{stream_length + offset}",
                    aggregate_id=aggregate_id,
                    aggregate_type=aggregate_type,
                    event_type=event.event_type,
                    payload=payload,
                    occurred_at=to_utc(event.occurred_at),
                )
            )

        self._streams.setdefault(aggregate_id, []).extend(batch)
        self._all.extend(batch)

        for stored in batch:
            logger.info(
                "event_appended",
                event_id=stored.event_id,
                aggregate_type=aggregate_type,
                aggregate_id=aggregate_id,
                event_type=stored.event_type,
            )

    async def load(self, aggregate_id: str) -> list[StoredEvent]:
        return list(self._streams.get(aggregate_id, []))

    async def query_all(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[StoredEvent]:
        return [stored for stored in self._all if _within(stored.occurred_at, start, end)]


class SqliteEventStore:
    """Event store persisted in the ``events`` table.

    ``load`` follows the append sequence. ``query_all`` orders by
    ``occurred_at`` and then by sequence, so across streams it can differ
    from append order when producers' clocks disagree.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    async def append(
        self, aggregate_id: str, aggregate_type: str, events: Sequence[DomainEvent]
    ) -> None:
        if not events:
            return

        rows = [
            (
                str(uuid4()),
                aggregate_id,
                str(aggregate_type),
                str(event.event_type),
                serialize_payload(encode_payload(event)),
                format_timestamp(event.occurred_at),
            )
            for event in events
        ]

        try:
            async with self._database.transaction() as db:
                await db.executemany(
                    """
                    INSERT INTO events (
                        event_id, aggregate_id, aggregate_type, event_type,
                        payload, occurred_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"Failed to append events: {exc}") from exc

        for event_id, _, _, event_type, _, _ in rows:
            logger.info(
                "event_appended",
                event_id=event_id,
                aggregate_type=aggregate_type,
                aggregate_id=aggregate_id,
                event_type=event_type,
            )

    async def load(self, aggregate_id: str) -> list[StoredEvent]:
        try:
            async with self._database.reading() as db:
                cursor = await db.execute(
                    """
                    SELECT event_id, aggregate_id, aggregate_type, event_type,
                           payload, occurred_at
                    FROM events
                    WHERE aggregate_id = ?
                    ORDER BY seq ASC
                    """,
                    (aggregate_id,),
                )
                rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"Failed to load events: {exc}") from exc
        return [self._to_stored(row) for row in rows]

    async def query_all(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[StoredEvent]:
        conditions: list[str] = []
        params: list = []

        if start is not None:
            conditions.append("occurred_at >= ?")
            params.append(format_timestamp(start))
        if end is not None:
            conditions.append("occurred_at <= ?")
            params.append(format_timestamp(end))

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        try:
            async with self._database.reading() as db:
                cursor = await db.execute(
                    f"""
                    SELECT event_id, aggregate_id, aggregate_type, event_type,
                           payload, occurred_at
                    FROM events
                    {where_clause}
                    ORDER BY occurred_at ASC, seq ASC
                    """,
                    params,
                )
                rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"Failed to query events: {exc}") from exc
        return [self._to_stored(row) for row in rows]

    def _to_stored(self, row) -> StoredEvent:
        occurred_at = parse_timestamp(row["occurred_at"])
        if occurred_at is None:
            raise SerializationError(f"Event '{row['event_id']}' has an unreadable timestamp")
        return StoredEvent(
            event_id=row["event_id"],
            aggregate_id=row["aggregate_id"],
            aggregate_type=row["aggregate_type"],
            event_type=row["event_type"],
            payload=deserialize_payload(row["payload"]),
            occurred_at=occurred_at,
        )
