"""Recurring expense scheduling.

Computes next due dates for recurring obligations and turns due obligations
into ledger entries. Nothing here reads the wall clock: callers pass the
reference date explicitly.

Month and year offsets clamp to the last day of the target month, so a
monthly obligation due on January 31st rolls to February 28th/29th and then
to March 28th/29th. The day-of-month is not restored after a clamp.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Protocol

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from logging_setup import get_logger

logger = get_logger("budget_tracker.recurrence")

RECURRING_NOTE = "(Auto-created from recurring expense)"


class Frequency(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    biweekly = "bi-weekly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


class Category(str, enum.Enum):
    food_dining = "Food & Dining"
    transportation = "Transportation"
    shopping = "Shopping"
    entertainment = "Entertainment"
    bills_utilities = "Bills & Utilities"
    healthcare = "Healthcare"
    education = "Education"
    travel = "Travel"
    personal_care = "Personal Care"
    groceries = "Groceries"
    housing = "Housing"
    insurance = "Insurance"
    investments = "Investments"
    other = "Other"


class PaymentMethod(str, enum.Enum):
    cash = "Cash"
    credit_card = "Credit Card"
    debit_card = "Debit Card"
    bank_transfer = "Bank Transfer"
    digital_wallet = "Digital Wallet"
    other = "Other"


ALLOWED_FREQUENCIES = [f.value for f in Frequency]

_OFFSETS = {
    Frequency.daily: relativedelta(days=+1),
    Frequency.weekly: relativedelta(weeks=+1),
    Frequency.biweekly: relativedelta(weeks=+2),
    Frequency.monthly: relativedelta(months=+1),
    Frequency.quarterly: relativedelta(months=+3),
    Frequency.yearly: relativedelta(years=+1),
}


class RecurrenceError(Exception):
    """Base class for recurring expense errors."""


class InvalidFrequency(RecurrenceError, ValueError):
    def __init__(self, frequency):
        super().__init__(
            f"Invalid frequency {frequency!r}. Allowed values: {ALLOWED_FREQUENCIES}"
        )
        self.frequency = frequency


class PersistenceError(RecurrenceError):
    """Raised when an obligation or ledger entry cannot be written."""


class StaleObligationError(PersistenceError):
    """The obligation was rolled over by someone else since it was read."""


@dataclass(frozen=True)
class RecurringObligation:
    id: Optional[int]
    owner: str
    title: str
    amount: Decimal
    category: str
    frequency: str
    start_date: date
    next_due_date: object  # date, or whatever a malformed record holds
    payment_method: str = PaymentMethod.cash.value
    description: str = ""
    end_date: Optional[date] = None
    is_active: bool = True
    auto_create: bool = True
    reminder_days: int = 3


@dataclass(frozen=True)
class MaterializedEntry:
    owner: str
    title: str
    amount: Decimal
    category: str
    date: date
    payment_method: str
    description: str
    recurring_expense_id: Optional[int] = None
    is_recurring: bool = True


class ObligationStore(Protocol):
    def create_entry(self, entry: MaterializedEntry): ...

    def save(self, obligation: RecurringObligation, expected_next_due_date: date): ...

    def unit(self): ...


def parse_frequency(value) -> Frequency:
    try:
        return Frequency(value)
    except ValueError:
        raise InvalidFrequency(value) from None


def as_date(value) -> Optional[date]:
    """Coerce a stored date value to a ``date``; ``None`` if it can't be read."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date_parser.isoparse(value.strip()).date()
        except (ValueError, OverflowError):
            return None
    return None


def compute_next_due_date(current, frequency) -> date:
    """Return the due date one period after ``current``."""
    offset = _OFFSETS[parse_frequency(frequency)]
    day = as_date(current)
    if day is None:
        raise ValueError(f"Not a date: {current!r}")
    return day + offset


def advance(obligation: RecurringObligation) -> RecurringObligation:
    """Roll an obligation over by one period, deactivating it past its end date."""
    next_due = compute_next_due_date(obligation.next_due_date, obligation.frequency)
    is_active = obligation.is_active
    end = as_date(obligation.end_date)
    if end is not None and next_due > end:
        is_active = False
    return replace(obligation, next_due_date=next_due, is_active=is_active)


def materialize(obligation: RecurringObligation) -> MaterializedEntry:
    description = f"{obligation.description or ''} {RECURRING_NOTE}".strip()
    return MaterializedEntry(
        owner=obligation.owner,
        title=obligation.title,
        amount=obligation.amount,
        category=obligation.category,
        date=as_date(obligation.next_due_date),
        payment_method=obligation.payment_method,
        description=description,
        recurring_expense_id=obligation.id,
    )


def is_due(obligation: RecurringObligation, as_of) -> bool:
    due = as_date(obligation.next_due_date)
    if due is None or not obligation.is_active or not obligation.auto_create:
        return False
    return due <= as_date(as_of)


def upcoming(
    obligations: Iterable[RecurringObligation], from_date, horizon_days: int
) -> list[RecurringObligation]:
    """Active obligations due within ``[from_date, from_date + horizon_days]``."""
    start = as_date(from_date)
    try:
        end = start + timedelta(days=horizon_days)
    except OverflowError:
        end = date.max
    found = []
    for obligation in obligations:
        if not obligation.is_active:
            continue
        due = as_date(obligation.next_due_date)
        if due is not None and start <= due <= end:
            found.append((due, obligation))
    found.sort(key=lambda pair: pair[0])
    return [obligation for _, obligation in found]


class RecurrenceEngine:
    def __init__(self, store: ObligationStore):
        self._store = store

    def process_due(
        self,
        obligations: Iterable[RecurringObligation],
        as_of,
        errors: Optional[list] = None,
    ) -> list[MaterializedEntry]:
        """
        Materialize one entry for every due obligation and roll each one over.

        Obligations several periods overdue still produce a single entry.
        Failures are per obligation: they are logged, appended to ``errors``
        as ``(obligation, exc)`` when a list is given, and do not stop the
        rest of the batch.
        """
        cutoff = as_date(as_of)
        entries: list[MaterializedEntry] = []

        for obligation in obligations:
            if not is_due(obligation, cutoff):
                continue
            try:
                entries.append(self._process_one(obligation))
            except StaleObligationError:
                logger.info(
                    "Recurring expense %s already processed for %s",
                    obligation.id,
                    obligation.next_due_date,
                )
            except RecurrenceError as exc:
                # persistence failures and unreadable schedules alike
                logger.warning(
                    "Failed to process recurring expense %s: %s", obligation.id, exc
                )
                if errors is not None:
                    errors.append((obligation, exc))

        return entries

    def _process_one(self, obligation: RecurringObligation) -> MaterializedEntry:
        entry = materialize(obligation)
        rolled = advance(obligation)

        # Entry and rollover commit together or not at all
        with self._store.unit():
            self._store.create_entry(entry)
            self._store.save(rolled, expected_next_due_date=entry.date)

        logger.info(
            "Created entry for recurring expense %s dated %s; next due %s%s",
            obligation.id,
            entry.date,
            rolled.next_due_date,
            "" if rolled.is_active else " (deactivated)",
        )
        return entry
