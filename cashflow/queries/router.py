from datetime import date

from fastapi import APIRouter

from cashflow.dependencies import QueryServiceDep
from cashflow.exceptions import NotFoundError, ValidationError
from cashflow.queries.schemas import (
    Balance,
    Category,
    CategoryExpense,
    Movement,
    PaginatedMovements,
)

router = APIRouter()


@router.get("/movements", response_model=PaginatedMovements)
async def list_movements(
    service: QueryServiceDep,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 10,
    offset: int = 0,
) -> PaginatedMovements:
    return await service.get_movements(start_date, end_date, limit, offset)


@router.get("/movements/{movement_id}", response_model=Movement)
async def get_movement(movement_id: str, service: QueryServiceDep) -> Movement:
    movement = await service.get_movement(movement_id)
    if movement is None:
        raise NotFoundError("Movement", movement_id)
    return movement


@router.get("/balance", response_model=Balance)
async def get_balance(
    service: QueryServiceDep,
    start_date: date,
    end_date: date,
) -> Balance:
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date")
    return await service.get_balance(start_date, end_date)


@router.get("/expenses-by-category", response_model=list[CategoryExpense])
async def get_expenses_by_category(
    service: QueryServiceDep,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[CategoryExpense]:
    return await service.get_expenses_by_category(start_date, end_date)


@router.get("/categories", response_model=list[Category])
async def list_categories(service: QueryServiceDep) -> list[Category]:
    return await service.get_categories()


@router.get("/categories/{category_id}", response_model=Category)
async def get_category(category_id: str, service: QueryServiceDep) -> Category:
    category = await service.get_category(category_id)
    if category is None:
        raise NotFoundError("Category", category_id)
    return category
