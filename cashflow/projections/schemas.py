from datetime import datetime

from pydantic import BaseModel

from cashflow.projections.models import MovementType


class MovementProjection(BaseModel):
    id: str
    type: MovementType
    category_id: str
    category_name: str
    amount: float
    description: str | None = None
    date: datetime
    created_at: datetime
    updated_at: datetime
    is_deleted: bool = False


class CategoryProjection(BaseModel):
    id: str
    name: str
    created_at: datetime
    updated_at: datetime
    is_deleted: bool = False


class MovementChanges(BaseModel):
    category_id: str
    category_name: str
    amount: float
    description: str | None
    date: datetime
    updated_at: datetime
