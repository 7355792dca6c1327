"""Conversion between typed domain events and the stored payload document.

Payloads cross a serialization boundary, so every field is written under two
key conventions (``CategoryID`` and ``category_id``) and read back from
whichever one a producer used. All tolerance for loosely-typed values lives
here; the rest of the code only sees typed events.
"""

import json
from datetime import UTC, date, datetime
from typing import Any

from cashflow.event_store.models import (
    CategoryCreated,
    DomainEvent,
    EventType,
    ExpenseCreated,
    ExpenseDeleted,
    ExpenseUpdated,
    IncomeCreated,
    IncomeDeleted,
    IncomeUpdated,
    StoredEvent,
)
from cashflow.exceptions import SerializationError, UnknownEventKindError

FIELD_ALIASES: dict[str, str] = {
    "category_id": "CategoryID",
    "expense_id": "ExpenseID",
    "income_id": "IncomeID",
    "name": "Name",
    "amount": "Amount",
    "description": "Description",
    "date": "Date",
}

_FALLBACK_FORMATS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_timestamp(value: datetime) -> str:
    return to_utc(value).isoformat(timespec="microseconds")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a payload date, returning None when nothing usable is found.

    Strings are tried as ISO-8601 first and then against the fallback
    formats. Values the serializer kept as ``datetime`` or ``date`` are
    accepted as they are. Naive results are taken to be UTC.
    """
    if isinstance(value, str):
        text = value.strip()
        try:
            return to_utc(datetime.fromisoformat(text))
        except ValueError:
            pass
        for fmt in _FALLBACK_FORMATS:
            try:
                return to_utc(datetime.strptime(text, fmt))
            except ValueError:
                continue
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    return None


class PayloadReader:
    def __init__(self, payload: dict[str, Any]) -> None:
        self._payload = payload

    def _candidates(self, field: str) -> list[Any]:
        keys = [FIELD_ALIASES.get(field, field), field]
        return [self._payload[key] for key in keys if key in self._payload]

    def string(self, field: str) -> str:
        for value in self._candidates(field):
            if isinstance(value, str):
                return value
        return ""

    def optional_string(self, field: str) -> str | None:
        for value in self._candidates(field):
            if isinstance(value, str) and value != "":
                return value
        return None

    def number(self, field: str) -> float:
        for value in self._candidates(field):
            if isinstance(value, bool):
                continue
            if isinstance(value, int | float):
                return float(value)
        return 0.0

    def timestamp(self, field: str) -> datetime | None:
        for value in self._candidates(field):
            parsed = parse_timestamp(value)
            if parsed is not None:
                return parsed
        return None

    def identifier(self, field: str, fallback: str = "") -> str:
        value = self.string(field) or fallback
        if not value:
            raise SerializationError(f"Payload is missing '{field}'")
        return value


def _movement_payload(event: ExpenseCreated | ExpenseUpdated | IncomeCreated | IncomeUpdated) -> dict:
    return {
        "category_id": event.category_id,
        "amount": event.amount,
        "description": event.description,
        "date": format_timestamp(event.date),
    }


def encode_payload(event: DomainEvent) -> dict[str, Any]:
    match event:
        case CategoryCreated(category_id=category_id, name=name):
            fields = {"category_id": category_id, "name": name}
        case ExpenseCreated() | ExpenseUpdated():
            fields = {"expense_id": event.expense_id, **_movement_payload(event)}
        case IncomeCreated() | IncomeUpdated():
            fields = {"income_id": event.income_id, **_movement_payload(event)}
        case ExpenseDeleted(expense_id=expense_id):
            fields = {"expense_id": expense_id}
        case IncomeDeleted(income_id=income_id):
            fields = {"income_id": income_id}
        case _:
            raise SerializationError(f"Cannot encode {type(event).__name__}")

    payload: dict[str, Any] = {}
    for key, value in fields.items():
        payload[FIELD_ALIASES[key]] = value
        payload[key] = value
    return payload


def serialize_payload(payload: dict[str, Any]) -> str:
    try:
        return json.dumps(payload, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Payload is not serializable: {exc}") from exc


def deserialize_payload(document: str) -> dict[str, Any]:
    try:
        payload = json.loads(document)
    except json.JSONDecodeError as exc:
        raise SerializationError(f"Stored payload is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise SerializationError("Stored payload is not a mapping")
    return payload


def to_stored_event(event: DomainEvent, event_id: str = "") -> StoredEvent:
    return StoredEvent(
        event_id=event_id,
        aggregate_id=event.aggregate_id,
        aggregate_type=event.aggregate_type,
        event_type=event.event_type,
        payload=encode_payload(event),
        occurred_at=to_utc(event.occurred_at),
    )


def _movement_fields(reader: PayloadReader, occurred_at: datetime) -> tuple:
    return (
        reader.string("category_id"),
        reader.number("amount"),
        reader.optional_string("description"),
        reader.timestamp("date") or occurred_at,
    )


def decode_event(stored: StoredEvent) -> DomainEvent:
    """Rebuild the typed event for a stored record.

    Raises UnknownEventKindError for tags this reader does not understand and
    SerializationError when a required identifier is missing.
    """
    reader = PayloadReader(stored.payload)
    occurred_at = to_utc(stored.occurred_at)
    fallback_id = stored.aggregate_id

    match stored.event_type:
        case EventType.category_created:
            name = reader.string("name")
            if not name:
                raise SerializationError("CategoryCreated payload is missing 'name'")
            return CategoryCreated(
                reader.identifier("category_id", fallback_id), name, occurred_at=occurred_at
            )
        case EventType.expense_created:
            return ExpenseCreated(
                reader.identifier("expense_id", fallback_id),
                *_movement_fields(reader, occurred_at),
                occurred_at=occurred_at,
            )
        case EventType.expense_updated:
            return ExpenseUpdated(
                reader.identifier("expense_id", fallback_id),
                *_movement_fields(reader, occurred_at),
                occurred_at=occurred_at,
            )
        case EventType.expense_deleted:
            return ExpenseDeleted(
                reader.identifier("expense_id", fallback_id), occurred_at=occurred_at
            )
        case EventType.income_created:
            return IncomeCreated(
                reader.identifier("income_id", fallback_id),
                *_movement_fields(reader, occurred_at),
                occurred_at=occurred_at,
            )
        case EventType.income_updated:
            return IncomeUpdated(
                reader.identifier("income_id", fallback_id),
                *_movement_fields(reader, occurred_at),
                occurred_at=occurred_at,
            )
        case EventType.income_deleted:
            return IncomeDeleted(
                reader.identifier("income_id", fallback_id), occurred_at=occurred_at
            )
        case _:
            raise UnknownEventKindError(stored.event_type)
