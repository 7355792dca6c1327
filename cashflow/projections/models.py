from enum import StrEnum


class MovementType(StrEnum):
    income = "income"
    expense = "expense"
