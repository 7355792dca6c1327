import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from uuid import uuid4

import structlog

from cashflow.commands.schemas import (
    Command,
    CreateCategory,
    CreateExpense,
    CreateIncome,
    DeleteExpense,
    DeleteIncome,
    UpdateExpense,
    UpdateIncome,
)
from cashflow.domain.aggregates import Aggregate, Category, Expense, Income
from cashflow.domain.repository import (
    AggregateRepository,
    CategoryRepository,
    ExpenseRepository,
    IncomeRepository,
)
from cashflow.event_store.models import DomainEvent
from cashflow.event_store.publisher import EventPublisher
from cashflow.exceptions import NotFoundError, OperationTimeoutError, ValidationError

logger = structlog.get_logger()


@dataclass
class CommandResult:
    aggregate_id: str
    events: list[DomainEvent] = field(default_factory=list)


@dataclass
class PendingChange:
    """An aggregate mutated in memory whose events are not yet in the log."""

    repository: AggregateRepository
    aggregate: Aggregate

    async def commit(self) -> CommandResult:
        events = self.aggregate.uncommitted_events
        await self.repository.save(self.aggregate)
        return CommandResult(aggregate_id=self.aggregate.id, events=events)


class CommandHandlers:
    """Write-path handlers: load or construct, then mutate.

    Handlers return the pending change without saving it. The CommandBus
    commits it and publishes the events once the append succeeded.
    """

    def __init__(
        self,
        categories: CategoryRepository,
        expenses: ExpenseRepository,
        incomes: IncomeRepository,
    ) -> None:
        self._categories = categories
        self._expenses = expenses
        self._incomes = incomes

    async def create_category(self, command: CreateCategory) -> PendingChange:
        category = Category.create(command.id or str(uuid4()), command.name)
        return PendingChange(self._categories, category)

    async def create_expense(self, command: CreateExpense) -> PendingChange:
        expense = Expense.create(
            command.id or str(uuid4()),
            command.category_id,
            command.amount,
            command.description,
            command.date,
        )
        return PendingChange(self._expenses, expense)

    async def create_income(self, command: CreateIncome) -> PendingChange:
        income = Income.create(
            command.id or str(uuid4()),
            command.category_id,
            command.amount,
            command.description,
            command.date,
        )
        return PendingChange(self._incomes, income)

    async def update_expense(self, command: UpdateExpense) -> PendingChange:
        expense = await self._expenses.get_by_id(command.id)
        if expense is None:
            raise NotFoundError("Expense", command.id)

        expense.update(command.category_id, command.amount, command.description, command.date)
        return PendingChange(self._expenses, expense)

    async def update_income(self, command: UpdateIncome) -> PendingChange:
        income = await self._incomes.get_by_id(command.id)
        if income is None:
            raise NotFoundError("Income", command.id)

        income.update(command.category_id, command.amount, command.description, command.date)
        return PendingChange(self._incomes, income)

    async def delete_expense(self, command: DeleteExpense) -> PendingChange:
        expense = await self._expenses.get_by_id(command.id)
        if expense is None:
            raise NotFoundError("Expense", command.id)

        expense.delete()
        return PendingChange(self._expenses, expense)

    async def delete_income(self, command: DeleteIncome) -> PendingChange:
        income = await self._incomes.get_by_id(command.id)
        if income is None:
            raise NotFoundError("Income", command.id)

        income.delete()
        return PendingChange(self._incomes, income)


Handler = Callable[[Command], Awaitable[PendingChange]]


class CommandBus:
    def __init__(self, publisher: EventPublisher, default_timeout: float | None = None) -> None:
        self._publisher = publisher
        self._default_timeout = default_timeout
        self._handlers: dict[type, Handler] = {}

    def register(self, command_type: type, handler: Handler) -> None:
        self._handlers[command_type] = handler

    async def dispatch(self, command: Command, timeout: float | None = None) -> str:
        """Prepare the change under a deadline, then commit and publish.

        The deadline covers loading and mutating the aggregate. The append is
        never cut short by it: a commit that reached the database is always
        followed by publishing its events.
        """
        command_type = type(command)
        handler = self._handlers.get(command_type)
        if handler is None:
            raise ValidationError(f"No command handler registered for {command_type.__name__}")

        timeout = timeout if timeout is not None else self._default_timeout
        try:
            async with asyncio.timeout(timeout):
                pending = await handler(command)
        except TimeoutError:
            raise OperationTimeoutError(command_type.__name__, timeout) from None

        result = await pending.commit()
        logger.info(
            "command_committed",
            command=command_type.__name__,
            aggregate_id=result.aggregate_id,
            event_types=[str(event.event_type) for event in result.events],
        )

        await self._publisher.publish(result.events)
        return result.aggregate_id


def build_command_bus(
    handlers: CommandHandlers,
    publisher: EventPublisher,
    default_timeout: float | None = None,
) -> CommandBus:
    bus = CommandBus(publisher, default_timeout=default_timeout)
    bus.register(CreateCategory, handlers.create_category)
    bus.register(CreateExpense, handlers.create_expense)
    bus.register(CreateIncome, handlers.create_income)
    bus.register(UpdateExpense, handlers.update_expense)
    bus.register(UpdateIncome, handlers.update_income)
    bus.register(DeleteExpense, handlers.delete_expense)
    bus.register(DeleteIncome, handlers.delete_income)
    return bus
