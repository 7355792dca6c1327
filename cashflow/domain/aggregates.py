"""Write-side aggregates.

State changes go through ``apply``, which is also what replay uses, so an
aggregate mutated in memory and one rebuilt from its stream end up equal.
"""

from datetime import datetime
from typing import ClassVar

from cashflow.event_store.codec import to_utc
from cashflow.event_store.models import (
    AggregateType,
    CategoryCreated,
    DomainEvent,
    ExpenseCreated,
    ExpenseDeleted,
    ExpenseUpdated,
    IncomeCreated,
    IncomeDeleted,
    IncomeUpdated,
)


class Aggregate:
    aggregate_type: ClassVar[AggregateType]

    def __init__(self, aggregate_id: str) -> None:
        self.id = aggregate_id
        self._uncommitted: list[DomainEvent] = []

    @property
    def uncommitted_events(self) -> list[DomainEvent]:
        return list(self._uncommitted)

    def clear_uncommitted_events(self) -> None:
        self._uncommitted = []

    def apply(self, event: DomainEvent) -> None:
        raise NotImplementedError

    def _record(self, event: DomainEvent) -> None:
        self.apply(event)
        self._uncommitted.append(event)


class Category(Aggregate):
    aggregate_type = AggregateType.category

    def __init__(self, aggregate_id: str) -> None:
        super().__init__(aggregate_id)
        self.name = ""

    @classmethod
    def create(cls, category_id: str, name: str) -> "Category":
        category = cls(category_id)
        category._record(CategoryCreated(category_id, name))
        return category

    def apply(self, event: DomainEvent) -> None:
        match event:
            case CategoryCreated(name=name):
                self.name = name


class _Movement(Aggregate):
    created_event: ClassVar[type[ExpenseCreated] | type[IncomeCreated]]
    updated_event: ClassVar[type[ExpenseUpdated] | type[IncomeUpdated]]
    deleted_event: ClassVar[type[ExpenseDeleted] | type[IncomeDeleted]]

    def __init__(self, aggregate_id: str) -> None:
        super().__init__(aggregate_id)
        self.category_id = ""
        self.amount = 0.0
        self.description: str | None = None
        self.date: datetime | None = None

    @classmethod
    def create(
        cls,
        movement_id: str,
        category_id: str,
        amount: float,
        description: str | None,
        date: datetime,
    ):
        movement = cls(movement_id)
        movement._record(
            cls.created_event(movement_id, category_id, amount, description, to_utc(date))
        )
        return movement

    def update(
        self,
        category_id: str,
        amount: float,
        description: str | None,
        date: datetime,
    ) -> None:
        self._record(self.updated_event(self.id, category_id, amount, description, to_utc(date)))

    def delete(self) -> None:
        self._record(self.deleted_event(self.id))

    def apply(self, event: DomainEvent) -> None:
        match event:
            case (
                ExpenseCreated(category_id=category_id, amount=amount, description=description, date=date)
                | ExpenseUpdated(category_id=category_id, amount=amount, description=description, date=date)
                | IncomeCreated(category_id=category_id, amount=amount, description=description, date=date)
                | IncomeUpdated(category_id=category_id, amount=amount, description=description, date=date)
            ):
                self.category_id = category_id
                self.amount = amount
                self.description = description
                self.date = date
            case ExpenseDeleted() | IncomeDeleted():
                # Deletion only affects the read model; the aggregate stays for audit.
                pass


class Expense(_Movement):
    aggregate_type = AggregateType.expense
    created_event = ExpenseCreated
    updated_event = ExpenseUpdated
    deleted_event = ExpenseDeleted


class Income(_Movement):
    aggregate_type = AggregateType.income
    created_event = IncomeCreated
    updated_event = IncomeUpdated
    deleted_event = IncomeDeleted
