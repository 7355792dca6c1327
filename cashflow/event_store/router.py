from datetime import datetime

from fastapi import APIRouter

from cashflow.dependencies import EventStoreDep, ProjectionEngineDep
from cashflow.event_store.schemas import EventResponse, RebuildResponse

router = APIRouter()


@router.get("/events", response_model=list[EventResponse])
async def list_events(
    event_store: EventStoreDep,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[EventResponse]:
    return [EventResponse.from_stored(stored) for stored in await event_store.query_all(start, end)]


@router.get("/events/{aggregate_id}", response_model=list[EventResponse])
async def get_stream(aggregate_id: str, event_store: EventStoreDep) -> list[EventResponse]:
    return [EventResponse.from_stored(stored) for stored in await event_store.load(aggregate_id)]


@router.post("/admin/projections/rebuild", response_model=RebuildResponse)
async def rebuild_projections(
    event_store: EventStoreDep,
    engine: ProjectionEngineDep,
) -> RebuildResponse:
    report = await engine.rebuild_from_log(event_store)
    return RebuildResponse(processed=report.processed, failed=report.failed, total=report.total)
