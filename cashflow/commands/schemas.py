from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from cashflow.event_store.codec import parse_timestamp


class CreateCategory(BaseModel):
    name: str = Field(min_length=1)
    id: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class MovementFields(BaseModel):
    category_id: str
    amount: float = Field(gt=0, allow_inf_nan=False)
    description: str | None = None
    date: datetime

    @field_validator("description", mode="before")
    @classmethod
    def blank_description_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, value: Any) -> datetime:
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError(f"unparsable date: {value!r}")
        return parsed


class CreateExpense(MovementFields):
    id: str | None = None


class CreateIncome(MovementFields):
    id: str | None = None


class UpdateExpense(MovementFields):
    id: str


class UpdateIncome(MovementFields):
    id: str


class DeleteExpense(BaseModel):
    id: str


class DeleteIncome(BaseModel):
    id: str


Command = (
    CreateCategory
    | CreateExpense
    | CreateIncome
    | UpdateExpense
    | UpdateIncome
    | DeleteExpense
    | DeleteIncome
)


class CommandAccepted(BaseModel):
    id: str
