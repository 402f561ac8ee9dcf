from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from database import RecurringExpense, Transaction, User
from recurrence import RecurrenceEngine, StaleObligationError, advance
from store import RecurringExpenseStore


def add_user(db, username="alice"):
    db.add(User(username=username, password_hash="x"))
    db.commit()


def add_recurring(db, owner="alice", **overrides):
    fields = dict(
        user_id=owner,
        title="Gym",
        category="Healthcare",
        amount=Decimal("45.00"),
        payment_method="Debit Card",
        frequency="monthly",
        start_date=date(2024, 1, 1),
        next_due_date=date(2024, 1, 1),
    )
    fields.update(overrides)
    row = RecurringExpense(**fields)
    db.add(row)
    db.commit()
    return row.id


@pytest.fixture
def store(db_session):
    add_user(db_session)
    return RecurringExpenseStore(db_session)


def test_find_filters_by_owner_and_state(db_session, store):
    add_user(db_session, "bob")
    due = add_recurring(db_session)
    add_recurring(db_session, next_due_date=date(2024, 2, 1))
    add_recurring(db_session, is_active=False)
    add_recurring(db_session, auto_create=False)
    add_recurring(db_session, owner="bob")

    found = store.find(
        "alice", active=True, auto_create=True, due_on_or_before=date(2024, 1, 15)
    )

    assert [o.id for o in found] == [due]
    assert found[0].owner == "alice"
    assert found[0].amount == Decimal("45.00")
    assert len(store.find("alice")) == 4


def test_owners_with_due(db_session, store):
    add_user(db_session, "bob")
    add_user(db_session, "carol")
    add_recurring(db_session)
    add_recurring(db_session)
    add_recurring(db_session, owner="bob", next_due_date=date(2024, 3, 1))
    add_recurring(db_session, owner="carol", next_due_date=date(2024, 1, 10))

    assert store.owners_with_due(date(2024, 1, 15)) == ["alice", "carol"]


def test_save_is_conditional_on_read_due_date(db_session, store):
    expense_id = add_recurring(db_session)
    obligation = store.find("alice")[0]

    with store.unit():
        store.save(advance(obligation), expected_next_due_date=date(2024, 1, 1))

    with pytest.raises(StaleObligationError):
        with store.unit():
            store.save(advance(obligation), expected_next_due_date=date(2024, 1, 1))

    row = db_session.get(RecurringExpense, expense_id)
    assert row.next_due_date == date(2024, 2, 1)


def test_engine_writes_entry_and_rollover_together(db_session, store):
    expense_id = add_recurring(db_session, end_date=date(2024, 1, 20))
    due = store.find("alice", active=True, auto_create=True, due_on_or_before=date(2024, 1, 15))

    entries = RecurrenceEngine(store).process_due(due, date(2024, 1, 15))

    assert len(entries) == 1
    tx = db_session.query(Transaction).one()
    assert tx.user_id == "alice"
    assert tx.date == date(2024, 1, 1)
    assert tx.is_recurring is True
    assert tx.recurring_expense_id == expense_id
    assert tx.payment_method == "Debit Card"
    row = db_session.get(RecurringExpense, expense_id)
    assert row.next_due_date == date(2024, 2, 1)
    assert row.is_active is False


def test_failed_entry_leaves_schedule_untouched(db_session, store):
    broken_id = add_recurring(db_session)
    ok_id = add_recurring(db_session, title="Netflix")
    broken, ok = store.find("alice")
    # transactions.user_id is NOT NULL, so this entry cannot be written
    broken = replace(broken, owner=None)

    errors = []
    entries = RecurrenceEngine(store).process_due(
        [broken, ok], date(2024, 1, 15), errors=errors
    )

    assert [e.recurring_expense_id for e in entries] == [ok_id]
    assert [o.id for o, _ in errors] == [broken_id]
    assert db_session.get(RecurringExpense, broken_id).next_due_date == date(2024, 1, 1)
    assert db_session.get(RecurringExpense, ok_id).next_due_date == date(2024, 2, 1)
    assert db_session.query(Transaction).count() == 1


def test_stale_read_does_not_materialize_twice(db_session, store):
    add_recurring(db_session)
    first_read = store.find("alice", active=True, auto_create=True)
    second_read = store.find("alice", active=True, auto_create=True)

    engine = RecurrenceEngine(store)
    errors = []
    assert len(engine.process_due(first_read, date(2024, 1, 15))) == 1
    assert engine.process_due(second_read, date(2024, 1, 15), errors=errors) == []
    assert errors == []
    assert db_session.query(Transaction).count() == 1
