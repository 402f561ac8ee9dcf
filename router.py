from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from database import get_db, Transaction, RecurringExpense, User
from schemas import (
    Expense,
    ExpenseResponse,
    ProcessResponse,
    RecurringExpenseSchema,
    RecurringExpenseUpdate,
    RecurringExpenseResponse,
)
from auth import get_current_user
from recurrence import InvalidFrequency, RecurrenceEngine, parse_frequency, upcoming
from store import RecurringExpenseStore
from datetime import date
from typing import Optional


router = APIRouter()

MAX_UPCOMING_DAYS = 3660


def get_today() -> date:
    return date.today()


def _enum_value(value):
    return getattr(value, "value", value)


def _validated_frequency(frequency: str) -> str:
    try:
        return parse_frequency(frequency.strip().lower()).value
    except InvalidFrequency as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _check_schedule(start_date: date, end_date: Optional[date], next_due_date: date):
    if next_due_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="next_due_date cannot be before start_date",
        )
    if end_date and end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date cannot be before start_date",
        )


def _get_owned_recurring(db: Session, expense_id: int, user: User) -> RecurringExpense:
    recurring = (
        db.query(RecurringExpense)
        .filter(
            RecurringExpense.id == expense_id,
            RecurringExpense.user_id == user.username,
        )
        .first()
    )
    if not recurring:
        raise HTTPException(status_code=404, detail="Recurring expense not found")
    return recurring


@router.post(
    "/expenses", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED
)
async def create_expense(
    expense: Expense,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    db_expense = Transaction(
        title=expense.title,
        category=expense.category.value,
        amount=expense.amount,
        date=expense.date,
        description=expense.description,
        payment_method=expense.payment_method.value,
        is_recurring=False,
        user_id=current_user.username,
    )
    db.add(db_expense)
    db.commit()
    db.refresh(db_expense)
    return db_expense


@router.get("/expenses", response_model=list[ExpenseResponse])
async def get_expenses(
    is_recurring: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Transaction).filter(Transaction.user_id == current_user.username)
    if is_recurring is not None:
        query = query.filter(Transaction.is_recurring == is_recurring)
    return query.order_by(Transaction.date.desc(), Transaction.id.desc()).all()


@router.get("/expenses/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense = (
        db.query(Transaction)
        .filter(
            Transaction.id == expense_id, Transaction.user_id == current_user.username
        )
        .first()
    )
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense


@router.delete("/expenses/{expense_id}")
async def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense = (
        db.query(Transaction)
        .filter(
            Transaction.id == expense_id, Transaction.user_id == current_user.username
        )
        .first()
    )
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    db.delete(expense)
    db.commit()
    return {"message": "Expense deleted successfully"}


# endpoints for recurring expenses
@router.post(
    "/recurring-expenses",
    response_model=RecurringExpenseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_recurring_expense(
    expense: RecurringExpenseSchema,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
):
    frequency = _validated_frequency(expense.frequency)
    start_date = expense.start_date or today
    next_due_date = expense.next_due_date or start_date
    _check_schedule(start_date, expense.end_date, next_due_date)

    db_recurring_expense = RecurringExpense(
        user_id=current_user.username,
        title=expense.title,
        description=expense.description,
        category=expense.category.value,
        amount=expense.amount,
        payment_method=expense.payment_method.value,
        frequency=frequency,
        start_date=start_date,
        end_date=expense.end_date,
        next_due_date=next_due_date,
        is_active=expense.is_active,
        auto_create=expense.auto_create,
        reminder_days=expense.reminder_days,
    )

    db.add(db_recurring_expense)
    db.commit()
    db.refresh(db_recurring_expense)

    return db_recurring_expense


@router.get("/recurring-expenses", response_model=list[RecurringExpenseResponse])
async def get_recurring_expenses(
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(RecurringExpense).filter(
        RecurringExpense.user_id == current_user.username
    )
    if is_active is not None:
        query = query.filter(RecurringExpense.is_active == is_active)
    return query.order_by(RecurringExpense.next_due_date).all()


@router.get(
    "/recurring-expenses/upcoming", response_model=list[RecurringExpenseResponse]
)
async def get_upcoming_recurring_expenses(
    days: int = Query(7, ge=0, le=MAX_UPCOMING_DAYS),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
):
    active = (
        db.query(RecurringExpense)
        .filter(
            RecurringExpense.user_id == current_user.username,
            RecurringExpense.is_active.is_(True),
        )
        .all()
    )
    return upcoming(active, today, days)


@router.post("/recurring-expenses/process", response_model=ProcessResponse)
async def process_due_recurring_expenses(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
):
    store = RecurringExpenseStore(db)
    due = store.find(
        current_user.username, active=True, auto_create=True, due_on_or_before=today
    )
    errors = []
    entries = RecurrenceEngine(store).process_due(due, today, errors=errors)

    return {
        "message": f"Processed {len(entries)} recurring expenses",
        "data": entries,
        "failed": [obligation.id for obligation, _ in errors],
    }


@router.get(
    "/recurring-expenses/{expense_id}", response_model=RecurringExpenseResponse
)
async def get_recurring_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_owned_recurring(db, expense_id, current_user)


@router.put(
    "/recurring-expenses/{expense_id}", response_model=RecurringExpenseResponse
)
async def update_recurring_expense(
    expense_id: int,
    changes: RecurringExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    recurring = _get_owned_recurring(db, expense_id, current_user)
    updates = changes.model_dump(exclude_unset=True)

    if updates.get("frequency") is not None:
        updates["frequency"] = _validated_frequency(updates["frequency"])
    for field in ("category", "payment_method"):
        if field in updates:
            updates[field] = _enum_value(updates[field])
    # columns that cannot be cleared
    for field in ("title", "category", "amount", "frequency", "start_date",
                  "next_due_date", "payment_method", "is_active", "auto_create",
                  "reminder_days"):
        if field in updates and updates[field] is None:
            del updates[field]

    _check_schedule(
        updates.get("start_date", recurring.start_date),
        updates.get("end_date", recurring.end_date),
        updates.get("next_due_date", recurring.next_due_date),
    )

    for field, value in updates.items():
        setattr(recurring, field, value)
    db.commit()
    db.refresh(recurring)
    return recurring


@router.delete("/recurring-expenses/{expense_id}")
async def delete_recurring_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    recurring = _get_owned_recurring(db, expense_id, current_user)
    db.delete(recurring)
    db.commit()
    return {"message": "Recurring expense deleted successfully"}
