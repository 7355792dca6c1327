from datetime import UTC, datetime, timedelta

import pytest

from cashflow.event_store.models import (
    AggregateType,
    CategoryCreated,
    ExpenseCreated,
    ExpenseDeleted,
    ExpenseUpdated,
)
from cashflow.event_store.repository import SqliteEventStore
from cashflow.exceptions import SerializationError, StorageUnavailableError

BASE = datetime(2025, 7, 1, 12, 0, tzinfo=UTC)


def _expense_stream(expense_id: str = "exp-1", start: datetime = BASE) -> list:
    return [
        ExpenseCreated(expense_id, "cat-1", 100.0, "rent", start, occurred_at=start),
        ExpenseUpdated(
            expense_id, "cat-1", 120.0, "rent", start, occurred_at=start + timedelta(minutes=1)
        ),
        ExpenseDeleted(expense_id, occurred_at=start + timedelta(minutes=2)),
    ]


@pytest.mark.asyncio
async def test_load_returns_stream_in_append_order(event_store):
    await event_store.append("exp-1", AggregateType.expense, _expense_stream())

    stream = await event_store.load("exp-1")

    assert [s.event_type for s in stream] == ["ExpenseCreated", "ExpenseUpdated", "ExpenseDeleted"]
    assert all(s.aggregate_id == "exp-1" for s in stream)
    assert all(s.aggregate_type == "Expense" for s in stream)
    assert len({s.event_id for s in stream}) == 3


@pytest.mark.asyncio
async def test_stored_payload_carries_both_key_conventions(event_store):
    await event_store.append("exp-1", AggregateType.expense, _expense_stream()[:1])

    (stored,) = await event_store.load("exp-1")

    assert stored.payload["ExpenseID"] == stored.payload["expense_id"] == "exp-1"
    assert stored.payload["Amount"] == 100.0
    assert stored.occurred_at == BASE


@pytest.mark.asyncio
async def test_unknown_aggregate_loads_empty(event_store):
    assert await event_store.load("missing") == []


@pytest.mark.asyncio
async def test_appending_nothing_is_a_no_op(event_store):
    await event_store.append("exp-1", AggregateType.expense, [])

    assert await event_store.query_all() == []


@pytest.mark.asyncio
async def test_unserializable_batch_appends_nothing(event_store):
    events = [
        ExpenseCreated("exp-1", "cat-1", 10.0, None, BASE, occurred_at=BASE),
        ExpenseUpdated("exp-1", "cat-1", float("nan"), None, BASE, occurred_at=BASE),
    ]

    with pytest.raises(SerializationError):
        await event_store.append("exp-1", AggregateType.expense, events)

    assert await event_store.load("exp-1") == []
    assert await event_store.query_all() == []


@pytest.mark.asyncio
async def test_query_all_spans_every_stream(event_store):
    await event_store.append(
        "cat-1", AggregateType.category, [CategoryCreated("cat-1", "Food", occurred_at=BASE)]
    )
    await event_store.append(
        "exp-1", AggregateType.expense, _expense_stream(start=BASE + timedelta(hours=1))
    )

    events = await event_store.query_all()

    assert [e.aggregate_id for e in events] == ["cat-1", "exp-1", "exp-1", "exp-1"]


@pytest.mark.asyncio
async def test_query_all_bounds_are_inclusive(event_store):
    await event_store.append("exp-1", AggregateType.expense, _expense_stream())

    events = await event_store.query_all(
        start=BASE + timedelta(minutes=1), end=BASE + timedelta(minutes=2)
    )

    assert [e.event_type for e in events] == ["ExpenseUpdated", "ExpenseDeleted"]


@pytest.mark.asyncio
async def test_query_all_with_empty_window(event_store):
    await event_store.append("exp-1", AggregateType.expense, _expense_stream())

    events = await event_store.query_all(
        start=BASE + timedelta(days=1), end=BASE + timedelta(days=2)
    )

    assert events == []


@pytest.mark.asyncio
async def test_streams_are_isolated(event_store):
    await event_store.append("exp-1", AggregateType.expense, _expense_stream("exp-1"))
    await event_store.append("exp-2", AggregateType.expense, _expense_stream("exp-2")[:1])

    assert len(await event_store.load("exp-1")) == 3
    assert len(await event_store.load("exp-2")) == 1


@pytest.mark.asyncio
async def test_sqlite_batch_failing_midway_is_rolled_back(database):
    async with database.transaction() as db:
        await db.execute(
            """
            CREATE TRIGGER reject_updates BEFORE INSERT ON events
            WHEN NEW.event_type = 'ExpenseUpdated'
            BEGIN
                SELECT RAISE(ABORT, 'updates rejected');
            END
            """
        )
    store = SqliteEventStore(database)

    with pytest.raises(StorageUnavailableError):
        await store.append("exp-1", AggregateType.expense, _expense_stream()[:2])

    assert await store.load("exp-1") == []
    assert await store.query_all() == []


@pytest.mark.asyncio
async def test_sqlite_store_stays_usable_after_a_failed_batch(database):
    store = SqliteEventStore(database)
    await store.append("exp-1", AggregateType.expense, _expense_stream()[:1])

    with pytest.raises(SerializationError):
        await store.append(
            "exp-2",
            AggregateType.expense,
            [ExpenseCreated("exp-2", "cat-1", float("inf"), None, BASE, occurred_at=BASE)],
        )
    await store.append("exp-3", AggregateType.expense, _expense_stream("exp-3")[:1])

    assert [e.aggregate_id for e in await store.query_all()] == ["exp-1", "exp-3"]
