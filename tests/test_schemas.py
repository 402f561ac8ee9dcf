from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from schemas import ExpenseResponse, RecurringExpenseResponse


def test_responses_read_orm_style_attributes():
    row = SimpleNamespace(
        id=7, user_id="alice", title="Rent", category="Housing", amount=Decimal("900.00"),
        frequency="monthly", start_date=date(2024, 1, 1), end_date=None,
        next_due_date=date(2024, 2, 1), description="", payment_method="Cash",
        is_active=True, auto_create=True, reminder_days=3,
    )
    parsed = RecurringExpenseResponse.model_validate(row)
    assert parsed.next_due_date == date(2024, 2, 1)
    assert RecurringExpenseResponse.model_config["from_attributes"] is True
    assert ExpenseResponse.model_config["from_attributes"] is True
