# database.py
from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    Numeric,
    Date,
    DateTime,
    ForeignKey,
    Boolean,
    Index,
    event,
)
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from datetime import date, datetime

from config import settings

engine_kwargs = {}
if settings.database_url.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    if settings.database_url in ("sqlite://", "sqlite:///:memory:"):
        # in-memory databases live as long as their single connection
        engine_kwargs["poolclass"] = StaticPool

engine = create_engine(settings.database_url, **engine_kwargs)

if settings.database_url.startswith("sqlite"):

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        # SQLite ignores ON DELETE rules unless asked per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


class User(Base):
    __tablename__ = "users"
    username = Column(String, primary_key=True, unique=True, index=True)
    password_hash = Column(String, nullable=False)


class Transaction(Base):
    __tablename__ = "transactions"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.username"), nullable=False)
    title = Column(String, nullable=False)
    category = Column(String, index=True)
    amount = Column(Numeric(12, 2))
    date = Column(Date, default=date.today)
    description = Column(String(500), default="")
    payment_method = Column(String, default="Cash")
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurring_expense_id = Column(
        Integer, ForeignKey("recurring_expenses.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(DateTime, default=datetime.utcnow)


class RecurringExpense(Base):
    __tablename__ = "recurring_expenses"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.username"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(String(500), default="")
    category = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String, default="Cash", nullable=False)
    frequency = Column(String, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    next_due_date = Column(Date, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    auto_create = Column(Boolean, default=True, nullable=False)
    reminder_days = Column(Integer, default=3, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_recurring_owner_due", "user_id", "next_due_date", "is_active"),
    )


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
