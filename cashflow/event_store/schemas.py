from datetime import datetime
from typing import Any

from pydantic import BaseModel

from cashflow.event_store.models import StoredEvent


class EventResponse(BaseModel):
    event_id: str
    aggregate_id: str
    aggregate_type: str
    event_type: str
    payload: dict[str, Any]
    occurred_at: datetime

    @classmethod
    def from_stored(cls, stored: StoredEvent) -> "EventResponse":
        return cls(
            event_id=stored.event_id,
            aggregate_id=stored.aggregate_id,
            aggregate_type=stored.aggregate_type,
            event_type=stored.event_type,
            payload=stored.payload,
            occurred_at=stored.occurred_at,
        )


class RebuildResponse(BaseModel):
    processed: int
    failed: int
    total: int
