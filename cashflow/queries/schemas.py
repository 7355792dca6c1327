from datetime import datetime

from pydantic import BaseModel


class Movement(BaseModel):
    id: str
    type: str
    category_id: str
    category_name: str
    amount: float
    description: str | None
    date: datetime
    created_at: datetime


class PaginatedMovements(BaseModel):
    movements: list[Movement]
    total: int
    page: int
    per_page: int
    has_next: bool
    has_prev: bool


class Balance(BaseModel):
    total_income: float
    total_expense: float
    net_balance: float
    period: str


class CategoryExpense(BaseModel):
    category_id: str
    category_name: str
    total: float
    count: int


class Category(BaseModel):
    id: str
    name: str
    created_at: datetime
