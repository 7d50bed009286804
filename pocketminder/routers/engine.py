# pocketminder/routers/engine.py
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from pocketminder import db
from pocketminder.engine import RecurringEngine, build_engine
from pocketminder.errors import (
    ConstraintViolation,
    EngineError,
    InvalidDefinition,
    PermissionDenied,
)
from pocketminder.formatting import to_money
from pocketminder.models import Bill, BillFrequency, Transaction

router = APIRouter(prefix="/users/{user_id}", tags=["engine"])


def get_recurring_engine() -> RecurringEngine:
    """FastAPI dependency: an engine over the app database (tests override it)."""
    return build_engine(db.engine)


def raise_for_error(error: EngineError) -> None:
    if isinstance(error, InvalidDefinition):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(error, PermissionDenied):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, ConstraintViolation):
        code = status.HTTP_409_CONFLICT
    elif error.retryable:
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    raise HTTPException(status_code=code, detail=error.to_dict()) from error


@contextmanager
def engine_errors() -> Iterator[None]:
    """Turn EngineError raised by direct store calls into HTTP errors."""
    try:
        yield
    except EngineError as exc:
        raise_for_error(exc)


def transaction_out(txn: Transaction) -> dict:
    return {
        "id": txn.id,
        "user_id": txn.user_id,
        "amount": str(to_money(txn.amount)),
        "category": txn.category,
        "type": txn.type.value,
        "date": txn.date.isoformat(),
        "note": txn.note,
        "recurring_id": txn.recurring_id,
        "instance_index": txn.instance_index,
    }


def bill_out(bill: Bill) -> dict:
    return {
        "id": bill.id,
        "name": bill.name,
        "amount": str(to_money(bill.amount)),
        "due_date": bill.due_date.isoformat(),
        "frequency": bill.frequency.value,
        "category": bill.category,
        "recurring": bill.frequency != BillFrequency.once,
    }


@router.post("/engine/materialize")
def materialize(
    user_id: str,
    as_of: Optional[datetime] = None,
    rengine: RecurringEngine = Depends(get_recurring_engine),
):
    result = rengine.materialize_due(user_id, as_of)
    if result.error is not None:
        raise_for_error(result.error)
    return {
        "count": result.count,
        "instances": [transaction_out(t) for t in result.instances],
    }


@router.post("/engine/budget-check")
def budget_check(
    user_id: str,
    as_of: Optional[datetime] = None,
    rengine: RecurringEngine = Depends(get_recurring_engine),
):
    result = rengine.check_budget_thresholds(user_id, as_of)
    if result.error is not None:
        raise_for_error(result.error)

    event = None
    if result.event is not None:
        event = {
            "percent": result.event.percent,
            "title": result.event.title,
            "message": result.event.message,
            "body": result.event.body,
            "total_spent": str(result.event.total_spent),
            "monthly_budget": str(result.event.monthly_budget),
        }
    return {
        "event": event,
        "notifier_error": result.notifier_error.to_dict() if result.notifier_error else None,
    }


@router.post("/engine/bill-reminders")
def bill_reminders(
    user_id: str,
    as_of: Optional[datetime] = None,
    rengine: RecurringEngine = Depends(get_recurring_engine),
):
    result = rengine.rebuild_bill_reminders(user_id, as_of)
    if not result.ok:
        raise_for_error(result.error)
    # a notifier outage comes back as 200 with the error in the body
    return {
        "scheduled_count": result.scheduled_count,
        "error": result.error.to_dict() if result.error else None,
    }


@router.get("/bills/upcoming")
def upcoming_bills(
    user_id: str, rengine: RecurringEngine = Depends(get_recurring_engine)
):
    result = rengine.upcoming_bills(user_id)
    if result.error is not None:
        raise_for_error(result.error)
    return {"bills": [bill_out(b) for b in result.bills]}
