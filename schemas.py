# schemas.py
from pydantic import BaseModel, ConfigDict, constr, condecimal, conint, field_validator
from datetime import date
from decimal import Decimal
from typing import Optional

from recurrence import Category, PaymentMethod

Amount = condecimal(ge=0, max_digits=12, decimal_places=2)
MAX_PASSWORD_BYTES = 72


class UserBase(BaseModel):
    username: constr(min_length=3, max_length=50)


class UserCreate(UserBase):
    password: constr(min_length=6)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        # bcrypt only hashes the first 72 bytes and newer releases reject more
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
        return value


class UserLogin(UserBase):
    password: str


class UserResponse(UserBase):
    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class Expense(BaseModel):
    title: constr(strip_whitespace=True, min_length=1)
    category: Category
    amount: Amount
    date: date
    description: constr(max_length=500) = ""
    payment_method: PaymentMethod = PaymentMethod.cash

    model_config = ConfigDict(from_attributes=True)


class ExpenseResponse(Expense):
    id: int
    user_id: str
    is_recurring: bool
    recurring_expense_id: Optional[int] = None
    description: Optional[str] = ""

    model_config = ConfigDict(from_attributes=True)


class RecurringExpenseSchema(BaseModel):
    title: constr(strip_whitespace=True, min_length=1)
    category: Category
    amount: Amount
    frequency: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    next_due_date: Optional[date] = None
    description: constr(max_length=500) = ""
    payment_method: PaymentMethod = PaymentMethod.cash
    is_active: bool = True
    auto_create: bool = True
    reminder_days: conint(ge=0) = 3

    model_config = ConfigDict(from_attributes=True)


class RecurringExpenseUpdate(BaseModel):
    title: Optional[constr(strip_whitespace=True, min_length=1)] = None
    category: Optional[Category] = None
    amount: Optional[Amount] = None
    frequency: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    next_due_date: Optional[date] = None
    description: Optional[constr(max_length=500)] = None
    payment_method: Optional[PaymentMethod] = None
    is_active: Optional[bool] = None
    auto_create: Optional[bool] = None
    reminder_days: Optional[conint(ge=0)] = None


class RecurringExpenseResponse(BaseModel):
    id: int
    user_id: str
    title: str
    category: str
    amount: Decimal
    frequency: str
    start_date: date
    end_date: Optional[date] = None
    next_due_date: date
    description: Optional[str] = ""
    payment_method: str
    is_active: bool
    auto_create: bool
    reminder_days: int

    model_config = ConfigDict(from_attributes=True)


class MaterializedEntryResponse(BaseModel):
    owner: str
    title: str
    amount: Decimal
    category: str
    date: date
    payment_method: str
    description: str
    recurring_expense_id: Optional[int] = None
    is_recurring: bool

    model_config = ConfigDict(from_attributes=True)


class ProcessResponse(BaseModel):
    message: str
    data: list[MaterializedEntryResponse]
    failed: list[int] = []
