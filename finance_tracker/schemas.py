import datetime as dt
from decimal import Decimal
from typing import ClassVar, Literal

from pydantic import BaseModel, Field, model_validator

TransactionType = Literal["income", "expense"]
BudgetPeriod = Literal["monthly", "yearly"]


class PatchModel(BaseModel):
    """
    Partial update payload. A field left out of the request is unset and stays
    untouched; a field sent as null is set to None. Fields listed in
    `not_nullable` may be omitted but never nulled.
    """
    not_nullable: ClassVar[frozenset[str]] = frozenset()

    user_id: int

    @model_validator(mode="after")
    def reject_nulls(self):
        for name in self.not_nullable & self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"user_id"})


# --- Users ---

class SignupIn(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=8)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)


class LoginIn(BaseModel):
    email: str
    password: str


class PasswordResetIn(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class UserOut(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


# --- Categories ---

class CategoryCreate(BaseModel):
    user_id: int
    name: str = Field(min_length=1)
    color: str | None = None
    icon: str | None = None


class CategoryUpdate(PatchModel):
    not_nullable: ClassVar[frozenset[str]] = frozenset({"name"})

    name: str | None = Field(default=None, min_length=1)
    color: str | None = None
    icon: str | None = None


class CategoryOut(BaseModel):
    id: int
    user_id: int
    name: str
    color: str | None = None
    icon: str | None = None
    created_at: dt.datetime

    class Config:
        from_attributes = True


# --- Transactions ---

class TransactionCreate(BaseModel):
    user_id: int
    category_id: int | None = None
    type: TransactionType
    amount: Decimal = Field(gt=0)
    description: str = Field(min_length=1)
    date: dt.date


class TransactionUpdate(PatchModel):
    not_nullable: ClassVar[frozenset[str]] = frozenset({"type", "amount", "description", "date"})

    category_id: int | None = None
    type: TransactionType | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    description: str | None = Field(default=None, min_length=1)
    date: dt.date | None = None


class TransactionOut(BaseModel):
    id: int
    user_id: int
    category_id: int | None = None
    type: TransactionType
    amount: float
    description: str
    date: dt.date
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


# --- Budgets ---

class BudgetCreate(BaseModel):
    user_id: int
    category_id: int | None = None   # None = overall budget
    amount: Decimal = Field(gt=0)
    period: BudgetPeriod


class BudgetUpdate(PatchModel):
    not_nullable: ClassVar[frozenset[str]] = frozenset({"amount", "period"})

    category_id: int | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    period: BudgetPeriod | None = None


class BudgetOut(BaseModel):
    id: int
    user_id: int
    category_id: int | None = None
    category_name: str | None = None
    amount: float
    period: BudgetPeriod
    created_at: dt.datetime
    updated_at: dt.datetime


# --- Analytics ---

class CategoryBreakdownOut(BaseModel):
    category_id: int | None
    category_name: str | None
    total_amount: float
    transaction_count: int


class MonthlyPointOut(BaseModel):
    month: int
    income: float
    expenses: float


class SummaryOut(BaseModel):
    total_income: float
    total_expenses: float
    net_income: float
    categories: list[CategoryBreakdownOut]
    monthly_data: list[MonthlyPointOut] | None = None


class BudgetAlertOut(BaseModel):
    budget_id: int
    category_name: str | None
    budget_amount: float
    spent_amount: float
    percentage_used: float
    period: BudgetPeriod


class ImportResult(BaseModel):
    inserted: int
    categories_created: int
