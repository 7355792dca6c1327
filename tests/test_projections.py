import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from cashflow.event_store.codec import to_stored_event
from cashflow.event_store.models import (
    AggregateType,
    CategoryCreated,
    ExpenseCreated,
    ExpenseDeleted,
    ExpenseUpdated,
    IncomeCreated,
    StoredEvent,
)
from cashflow.event_store.projections import ProjectionEngine
from cashflow.event_store.repository import InMemoryEventStore
from cashflow.exceptions import ProjectionDivergenceError
from cashflow.projections.repository import InMemoryProjectionStore, SqliteProjectionStore

JULY_1 = datetime(2025, 7, 1, tzinfo=UTC)


def _stored(event) -> StoredEvent:
    return to_stored_event(event, event_id=f"{event.aggregate_id}-{event.event_type}")


@pytest.fixture
def engine(projection_store) -> ProjectionEngine:
    return ProjectionEngine(projection_store, uncategorized_label="Sin categoría")


@pytest.mark.asyncio
async def test_movement_takes_category_name(engine, projection_store):
    await engine.process_event(_stored(CategoryCreated("cat-1", "Food", occurred_at=JULY_1)))
    await engine.process_event(
        _stored(ExpenseCreated("exp-1", "cat-1", 12.5, "pizza", JULY_1, occurred_at=JULY_1))
    )

    movement = await projection_store.get_movement("exp-1")

    assert movement.type == "expense"
    assert movement.category_name == "Food"
    assert movement.amount == 12.5
    assert movement.created_at == movement.updated_at == JULY_1


@pytest.mark.asyncio
async def test_unknown_category_gets_uncategorized_label(engine, projection_store):
    await engine.process_event(
        _stored(IncomeCreated("inc-1", "missing", 100.0, None, JULY_1, occurred_at=JULY_1))
    )

    movement = await projection_store.get_movement("inc-1")

    assert movement.type == "income"
    assert movement.category_name == "Sin categoría"


@pytest.mark.asyncio
async def test_created_events_are_idempotent(engine, projection_store):
    event = _stored(ExpenseCreated("exp-1", "", 10.0, None, JULY_1, occurred_at=JULY_1))

    await engine.process_event(event)
    await engine.process_event(event)

    rows, total = await projection_store.list_movements()
    assert total == 1
    assert rows[0].amount == 10.0


@pytest.mark.asyncio
async def test_update_rewrites_fields_and_keeps_created_at(engine, projection_store):
    later = JULY_1 + timedelta(days=2)
    await engine.process_event(_stored(CategoryCreated("cat-2", "Travel", occurred_at=JULY_1)))
    await engine.process_event(
        _stored(ExpenseCreated("exp-1", "", 10.0, None, JULY_1, occurred_at=JULY_1))
    )
    await engine.process_event(
        _stored(ExpenseUpdated("exp-1", "cat-2", 99.0, "train", later, occurred_at=later))
    )

    movement = await projection_store.get_movement("exp-1")

    assert movement.amount == 99.0
    assert movement.category_name == "Travel"
    assert movement.description == "train"
    assert movement.created_at == JULY_1
    assert movement.updated_at == later


@pytest.mark.asyncio
async def test_update_without_row_diverges(engine):
    with pytest.raises(ProjectionDivergenceError):
        await engine.process_event(
            _stored(ExpenseUpdated("ghost", "", 1.0, None, JULY_1, occurred_at=JULY_1))
        )


@pytest.mark.asyncio
async def test_delete_without_row_diverges(engine):
    with pytest.raises(ProjectionDivergenceError):
        await engine.process_event(_stored(ExpenseDeleted("ghost", occurred_at=JULY_1)))


@pytest.mark.asyncio
async def test_deleted_movement_is_hidden(engine, projection_store):
    await engine.process_event(
        _stored(ExpenseCreated("exp-1", "", 10.0, None, JULY_1, occurred_at=JULY_1))
    )
    await engine.process_event(_stored(ExpenseDeleted("exp-1", occurred_at=JULY_1)))

    assert await projection_store.get_movement("exp-1") is None
    assert await projection_store.list_movements() == ([], 0)


@pytest.mark.asyncio
async def test_unknown_kind_is_skipped(engine, projection_store):
    await engine.process_event(
        StoredEvent(
            event_id="x",
            aggregate_id="b-1",
            aggregate_type="Budget",
            event_type="BudgetCreated",
            payload={},
            occurred_at=JULY_1,
        )
    )

    assert await projection_store.list_movements() == ([], 0)
    assert await projection_store.list_categories() == []


@pytest.mark.asyncio
async def test_rebuild_counts_failures_and_continues(engine, projection_store):
    events = [
        _stored(ExpenseUpdated("ghost", "", 1.0, None, JULY_1, occurred_at=JULY_1)),
        _stored(ExpenseCreated("exp-1", "", 10.0, None, JULY_1, occurred_at=JULY_1)),
    ]

    report = await engine.rebuild(events)

    assert (report.processed, report.failed, report.total) == (1, 1, 2)
    assert (await projection_store.list_movements())[1] == 1


@pytest.mark.asyncio
async def test_rebuild_clears_previous_rows(engine, projection_store):
    await engine.process_event(
        _stored(ExpenseCreated("stale", "", 10.0, None, JULY_1, occurred_at=JULY_1))
    )

    await engine.rebuild([_stored(CategoryCreated("cat-1", "Food", occurred_at=JULY_1))])

    assert await projection_store.list_movements() == ([], 0)
    assert [c.name for c in await projection_store.list_categories()] == ["Food"]


@pytest.mark.asyncio
async def test_movements_sorted_newest_first_with_pagination(engine, projection_store):
    for day in range(1, 6):
        date = datetime(2025, 7, day, tzinfo=UTC)
        await engine.process_event(
            _stored(ExpenseCreated(f"exp-{day}", "", float(day), None, date, occurred_at=date))
        )

    rows, total = await projection_store.list_movements(limit=2, offset=1)

    assert total == 5
    assert [r.id for r in rows] == ["exp-4", "exp-3"]


@pytest.mark.asyncio
async def test_list_movements_date_window_is_inclusive(engine, projection_store):
    for day in (1, 15, 31):
        date = datetime(2025, 7, day, tzinfo=UTC)
        await engine.process_event(
            _stored(ExpenseCreated(f"exp-{day}", "", 1.0, None, date, occurred_at=date))
        )

    rows, total = await projection_store.list_movements(
        start=datetime(2025, 7, 1, tzinfo=UTC), end=datetime(2025, 7, 15, tzinfo=UTC)
    )

    assert total == 2
    assert {r.id for r in rows} == {"exp-1", "exp-15"}


@pytest.mark.asyncio
async def test_categories_sorted_by_name(engine, projection_store):
    for category_id, name in (("c-1", "Travel"), ("c-2", "Food"), ("c-3", "Salary")):
        await engine.process_event(_stored(CategoryCreated(category_id, name, occurred_at=JULY_1)))

    assert [c.name for c in await projection_store.list_categories()] == [
        "Food",
        "Salary",
        "Travel",
    ]


@pytest.mark.asyncio
async def test_category_created_is_idempotent(engine, projection_store):
    event = _stored(CategoryCreated("cat-1", "Food", occurred_at=JULY_1))

    await engine.process_event(event)
    await engine.process_event(event)

    categories = await projection_store.list_categories()
    assert [(c.id, c.name, c.created_at) for c in categories] == [("cat-1", "Food", JULY_1)]


@pytest.mark.asyncio
async def test_only_created_events_can_be_replayed_onto_an_empty_store(engine, projection_store):
    later = JULY_1 + timedelta(days=1)
    created = _stored(ExpenseCreated("exp-1", "", 10.0, None, JULY_1, occurred_at=JULY_1))
    updated = _stored(ExpenseUpdated("exp-1", "", 20.0, None, JULY_1, occurred_at=later))
    deleted = _stored(ExpenseDeleted("exp-1", occurred_at=later))

    # Created is an upsert: replaying it needs no prior state.
    await engine.process_event(created)
    await engine.process_event(updated)
    await engine.process_event(updated)
    assert (await projection_store.get_movement("exp-1")).amount == 20.0

    # Updated and Deleted modify an existing row and diverge once it is gone.
    await projection_store.clear()
    with pytest.raises(ProjectionDivergenceError):
        await engine.process_event(updated)
    with pytest.raises(ProjectionDivergenceError):
        await engine.process_event(deleted)

    await engine.process_event(created)
    assert (await projection_store.get_movement("exp-1")).amount == 10.0


class SlowClearProjectionStore(InMemoryProjectionStore):
    async def clear(self) -> None:
        await super().clear()
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_live_events_wait_for_a_running_rebuild():
    store = SlowClearProjectionStore()
    engine = ProjectionEngine(store)
    created = _stored(ExpenseCreated("exp-1", "", 10.0, None, JULY_1, occurred_at=JULY_1))
    updated = _stored(ExpenseUpdated("exp-1", "", 20.0, None, JULY_1, occurred_at=JULY_1))
    await engine.process_event(created)

    report, _ = await asyncio.gather(engine.rebuild([created]), engine.process_event(updated))

    assert report.failed == 0
    assert (await store.get_movement("exp-1")).amount == 20.0


@pytest.mark.asyncio
async def test_rebuild_from_log_replays_every_stream():
    event_store = InMemoryEventStore()
    await event_store.append(
        "cat-1", AggregateType.category, [CategoryCreated("cat-1", "Food", occurred_at=JULY_1)]
    )
    await event_store.append(
        "exp-1",
        AggregateType.expense,
        [ExpenseCreated("exp-1", "cat-1", 10.0, None, JULY_1, occurred_at=JULY_1)],
    )
    store = InMemoryProjectionStore()

    report = await ProjectionEngine(store).rebuild_from_log(event_store)

    assert (report.processed, report.failed) == (2, 0)
    assert (await store.get_movement("exp-1")).category_name == "Food"


@pytest.mark.asyncio
async def test_sqlite_page_and_total_agree_under_concurrent_writes(database):
    store = SqliteProjectionStore(database)
    engine = ProjectionEngine(store)

    async def record(hour: int) -> None:
        date = JULY_1 + timedelta(hours=hour)
        await engine.process_event(
            _stored(ExpenseCreated(f"exp-{hour}", "", 1.0, None, date, occurred_at=date))
        )

    results = await asyncio.gather(
        *(store.list_movements() for _ in range(10)),
        *(record(hour) for hour in range(20)),
    )

    for rows, total in results[:10]:
        assert len(rows) == total
    assert (await store.list_movements())[1] == 20
