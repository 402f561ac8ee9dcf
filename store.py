"""SQLAlchemy persistence for recurring expenses and the entries they create."""

from contextlib import contextmanager
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import RecurringExpense, Transaction
from recurrence import (
    MaterializedEntry,
    PersistenceError,
    RecurringObligation,
    StaleObligationError,
)


def to_obligation(row: RecurringExpense) -> RecurringObligation:
    return RecurringObligation(
        id=row.id,
        owner=row.user_id,
        title=row.title,
        amount=row.amount,
        category=row.category,
        frequency=row.frequency,
        start_date=row.start_date,
        next_due_date=row.next_due_date,
        payment_method=row.payment_method,
        description=row.description or "",
        end_date=row.end_date,
        is_active=row.is_active,
        auto_create=row.auto_create,
        reminder_days=row.reminder_days,
    )


class RecurringExpenseStore:
    def __init__(self, db: Session):
        self._db = db

    def find(
        self,
        owner: str,
        *,
        active: Optional[bool] = None,
        auto_create: Optional[bool] = None,
        due_on_or_before: Optional[date] = None,
    ) -> list[RecurringObligation]:
        query = self._db.query(RecurringExpense).filter(
            RecurringExpense.user_id == owner
        )
        if active is not None:
            query = query.filter(RecurringExpense.is_active == active)
        if auto_create is not None:
            query = query.filter(RecurringExpense.auto_create == auto_create)
        if due_on_or_before is not None:
            query = query.filter(RecurringExpense.next_due_date <= due_on_or_before)
        rows = query.order_by(RecurringExpense.next_due_date, RecurringExpense.id).all()
        return [to_obligation(row) for row in rows]

    def owners_with_due(self, as_of: date) -> list[str]:
        rows = (
            self._db.query(RecurringExpense.user_id)
            .filter(
                RecurringExpense.is_active.is_(True),
                RecurringExpense.auto_create.is_(True),
                RecurringExpense.next_due_date <= as_of,
            )
            .distinct()
            .order_by(RecurringExpense.user_id)
            .all()
        )
        return [row.user_id for row in rows]

    def create_entry(self, entry: MaterializedEntry) -> Transaction:
        transaction = Transaction(
            user_id=entry.owner,
            title=entry.title,
            amount=entry.amount,
            category=entry.category,
            date=entry.date,
            description=entry.description,
            payment_method=entry.payment_method,
            is_recurring=entry.is_recurring,
            recurring_expense_id=entry.recurring_expense_id,
        )
        try:
            self._db.add(transaction)
            self._db.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not create entry: {exc}") from exc
        return transaction

    def save(self, obligation: RecurringObligation, expected_next_due_date: date):
        """Write the rolled-over schedule only if nobody else rolled it first."""
        try:
            updated = (
                self._db.query(RecurringExpense)
                .filter(
                    RecurringExpense.id == obligation.id,
                    RecurringExpense.next_due_date == expected_next_due_date,
                )
                .update(
                    {
                        RecurringExpense.next_due_date: obligation.next_due_date,
                        RecurringExpense.is_active: obligation.is_active,
                    },
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not save recurring expense {obligation.id}: {exc}"
            ) from exc
        if updated == 0:
            raise StaleObligationError(
                f"Recurring expense {obligation.id} is no longer due on "
                f"{expected_next_due_date}"
            )

    @contextmanager
    def unit(self):
        try:
            yield
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise PersistenceError(str(exc)) from exc
        except Exception:
            self._db.rollback()
            raise
