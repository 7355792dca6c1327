from fastapi import APIRouter

from cashflow.commands.schemas import (
    CommandAccepted,
    CreateCategory,
    CreateExpense,
    CreateIncome,
    DeleteExpense,
    DeleteIncome,
    MovementFields,
    UpdateExpense,
    UpdateIncome,
)
from cashflow.dependencies import CommandBusDep

router = APIRouter()


@router.post("/categories", status_code=201, response_model=CommandAccepted)
async def create_category(data: CreateCategory, bus: CommandBusDep) -> CommandAccepted:
    return CommandAccepted(id=await bus.dispatch(data))


@router.post("/expenses", status_code=201, response_model=CommandAccepted)
async def create_expense(data: CreateExpense, bus: CommandBusDep) -> CommandAccepted:
    return CommandAccepted(id=await bus.dispatch(data))


@router.put("/expenses/{expense_id}", response_model=CommandAccepted)
async def update_expense(
    expense_id: str,
    data: MovementFields,
    bus: CommandBusDep,
) -> CommandAccepted:
    command = UpdateExpense(id=expense_id, **data.model_dump())
    return CommandAccepted(id=await bus.dispatch(command))


@router.delete("/expenses/{expense_id}", status_code=204)
async def delete_expense(expense_id: str, bus: CommandBusDep) -> None:
    await bus.dispatch(DeleteExpense(id=expense_id))


@router.post("/incomes", status_code=201, response_model=CommandAccepted)
async def create_income(data: CreateIncome, bus: CommandBusDep) -> CommandAccepted:
    return CommandAccepted(id=await bus.dispatch(data))


@router.put("/incomes/{income_id}", response_model=CommandAccepted)
async def update_income(
    income_id: str,
    data: MovementFields,
    bus: CommandBusDep,
) -> CommandAccepted:
    command = UpdateIncome(id=income_id, **data.model_dump())
    return CommandAccepted(id=await bus.dispatch(command))


@router.delete("/incomes/{income_id}", status_code=204)
async def delete_income(income_id: str, bus: CommandBusDep) -> None:
    await bus.dispatch(DeleteIncome(id=income_id))
