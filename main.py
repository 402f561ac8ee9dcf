# main.py
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn
from apscheduler.schedulers.background import BackgroundScheduler

from router import router
from auth import auth_router
from config import settings
from database import Base, engine, SessionLocal
from logging_setup import configure_logging, get_logger
from recurrence import PersistenceError, RecurrenceEngine
from store import RecurringExpenseStore

configure_logging()
logger = get_logger("budget_tracker.main")

Base.metadata.create_all(bind=engine)


def process_all_due(as_of: Optional[date] = None) -> int:
    """Create entries for every owner's due recurring expenses."""
    as_of = as_of or date.today()
    created = 0
    failed = 0
    with SessionLocal() as db:
        store = RecurringExpenseStore(db)
        recurrence = RecurrenceEngine(store)
        for owner in store.owners_with_due(as_of):
            errors = []
            due = store.find(owner, active=True, auto_create=True, due_on_or_before=as_of)
            created += len(recurrence.process_due(due, as_of, errors=errors))
            failed += len(errors)

    logger.info(
        "Recurring run for %s: %d entries created, %d failed", as_of, created, failed
    )
    return created


def create_scheduler() -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        process_all_due,
        "cron",
        hour=settings.process_hour,
        minute=settings.process_minute,
        id="process_recurring_expenses",
    )
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = create_scheduler()
        scheduler.start()
        logger.info(
            "Recurring expense job scheduled daily at %02d:%02d",
            settings.process_hour,
            settings.process_minute,
        )
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)


app = FastAPI(title="Personal Budget Tracker API", lifespan=lifespan)

app.include_router(router, prefix="/api", tags=["expenses"])
app.include_router(auth_router, prefix="/auth", tags=["authentication"])


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Persistence failure on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=503, content={"detail": "Storage temporarily unavailable"}
    )


@app.get("/")
def home():
    return {"message": "Welcome to Personal Budget Tracker API"}


@app.get("/api/health")
def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
