from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, ClassVar


class AggregateType(StrEnum):
    category = "Category"
    expense = "Expense"
    income = "Income"


class EventType(StrEnum):
    category_created = "CategoryCreated"
    expense_created = "ExpenseCreated"
    expense_updated = "ExpenseUpdated"
    expense_deleted = "ExpenseDeleted"
    income_created = "IncomeCreated"
    income_updated = "IncomeUpdated"
    income_deleted = "IncomeDeleted"


class Lifecycle(StrEnum):
    created = "created"
    updated = "updated"
    deleted = "deleted"


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class CategoryCreated:
    event_type: ClassVar[EventType] = EventType.category_created
    aggregate_type: ClassVar[AggregateType] = AggregateType.category
    lifecycle: ClassVar[Lifecycle] = Lifecycle.created

    category_id: str
    name: str
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def aggregate_id(self) -> str:
        return self.category_id


@dataclass(frozen=True)
class ExpenseCreated:
    event_type: ClassVar[EventType] = EventType.expense_created
    aggregate_type: ClassVar[AggregateType] = AggregateType.expense
    lifecycle: ClassVar[Lifecycle] = Lifecycle.created

    expense_id: str
    category_id: str
    amount: float
    description: str | None
    date: datetime
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def aggregate_id(self) -> str:
        return self.expense_id


@dataclass(frozen=True)
class ExpenseUpdated:
    event_type: ClassVar[EventType] = EventType.expense_updated
    aggregate_type: ClassVar[AggregateType] = AggregateType.expense
    lifecycle: ClassVar[Lifecycle] = Lifecycle.updated

    expense_id: str
    category_id: str
    amount: float
    description: str | None
    date: datetime
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def aggregate_id(self) -> str:
        return self.expense_id


@dataclass(frozen=True)
class ExpenseDeleted:
    event_type: ClassVar[EventType] = EventType.expense_deleted
    aggregate_type: ClassVar[AggregateType] = AggregateType.expense
    lifecycle: ClassVar[Lifecycle] = Lifecycle.deleted

    expense_id: str
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def aggregate_id(self) -> str:
        return self.expense_id


@dataclass(frozen=True)
class IncomeCreated:
    event_type: ClassVar[EventType] = EventType.income_created
    aggregate_type: ClassVar[AggregateType] = AggregateType.income
    lifecycle: ClassVar[Lifecycle] = Lifecycle.created

    income_id: str
    category_id: str
    amount: float
    description: str | None
    date: datetime
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def aggregate_id(self) -> str:
        return self.income_id


@dataclass(frozen=True)
class IncomeUpdated:
    event_type: ClassVar[EventType] = EventType.income_updated
    aggregate_type: ClassVar[AggregateType] = AggregateType.income
    lifecycle: ClassVar[Lifecycle] = Lifecycle.updated

    income_id: str
    category_id: str
    amount: float
    description: str | None
    date: datetime
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def aggregate_id(self) -> str:
        return self.income_id


@dataclass(frozen=True)
class IncomeDeleted:
    event_type: ClassVar[EventType] = EventType.income_deleted
    aggregate_type: ClassVar[AggregateType] = AggregateType.income
    lifecycle: ClassVar[Lifecycle] = Lifecycle.deleted

    income_id: str
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def aggregate_id(self) -> str:
        return self.income_id


DomainEvent = (
    CategoryCreated
    | ExpenseCreated
    | ExpenseUpdated
    | ExpenseDeleted
    | IncomeCreated
    | IncomeUpdated
    | IncomeDeleted
)

MovementCreated = ExpenseCreated | IncomeCreated
MovementUpdated = ExpenseUpdated | IncomeUpdated
MovementDeleted = ExpenseDeleted | IncomeDeleted


@dataclass(frozen=True)
class StoredEvent:
    event_id: str
    aggregate_id: str
    aggregate_type: str
    event_type: str
    payload: dict[str, Any]
    occurred_at: datetime
