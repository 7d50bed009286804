# pocketminder/routers/users.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlmodel import Session

from pocketminder.clock import to_local
from pocketminder.config import Settings, get_settings
from pocketminder.db import get_session
from pocketminder.formatting import to_money
from pocketminder.models import Bill, BillFrequency, TxnType, User
from pocketminder.routers.engine import bill_out, transaction_out
from pocketminder.services.transactions import KEEP, create_transaction, ensure_user

router = APIRouter(prefix="/users", tags=["users"])


class UserIn(BaseModel):
    currency_code: Optional[str] = None
    monthly_budget: Optional[Decimal] = None


class TransactionIn(BaseModel):
    type: TxnType
    amount: Decimal  # magnitude; the sign comes from type
    date: datetime
    category: Optional[str] = None  # inferred from the note when omitted
    note: Optional[str] = None


class BillIn(BaseModel):
    name: str
    amount: Decimal
    due_date: datetime
    frequency: BillFrequency = BillFrequency.once
    category: str = "bills"


def _require_user(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return user


def _owned_bill(session: Session, user_id: str, bill_id: str) -> Bill:
    _require_user(session, user_id)
    bill = session.get(Bill, bill_id)
    if bill is None or bill.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return bill


def _apply_bill(bill: Bill, payload: BillIn, tz: str) -> Bill:
    bill.name = payload.name
    bill.amount = abs(to_money(payload.amount))
    bill.due_date = to_local(payload.due_date, tz)
    bill.frequency = payload.frequency
    bill.category = payload.category or "bills"
    return bill


@router.put("/{user_id}")
def upsert_user(
    user_id: str,
    payload: UserIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    # only fields present in the body change; "monthly_budget": null clears it
    sent = payload.model_fields_set
    user = ensure_user(
        session,
        user_id,
        currency_code=payload.currency_code,
        monthly_budget=payload.monthly_budget if "monthly_budget" in sent else KEEP,
        default_currency=settings.default_currency,
    )
    return {
        "id": user.id,
        "currency_code": user.currency_code,
        "monthly_budget": (
            str(to_money(user.monthly_budget)) if user.monthly_budget is not None else None
        ),
    }


@router.post("/{user_id}/transactions", status_code=status.HTTP_201_CREATED)
def add_transaction(
    user_id: str,
    payload: TransactionIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    _require_user(session, user_id)
    txn = create_transaction(
        session,
        user_id=user_id,
        type=payload.type,
        amount=payload.amount,
        date=to_local(payload.date, settings.local_timezone),
        category=payload.category,
        note=payload.note,
    )
    return transaction_out(txn)


@router.post("/{user_id}/bills", status_code=status.HTTP_201_CREATED)
def add_bill(
    user_id: str,
    payload: BillIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    _require_user(session, user_id)
    bill = Bill(id=f"bill_{uuid.uuid4().hex[:16]}", user_id=user_id)
    session.add(_apply_bill(bill, payload, settings.local_timezone))
    session.commit()
    session.refresh(bill)
    return bill_out(bill)


@router.put("/{user_id}/bills/{bill_id}")
def update_bill(
    user_id: str,
    bill_id: str,
    payload: BillIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    bill = _apply_bill(_owned_bill(session, user_id, bill_id), payload, settings.local_timezone)
    session.add(bill)
    session.commit()
    session.refresh(bill)
    return bill_out(bill)


@router.delete("/{user_id}/bills/{bill_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_bill(user_id: str, bill_id: str, session: Session = Depends(get_session)):
    # reminders already scheduled for it go away on the next rebuild
    session.delete(_owned_bill(session, user_id, bill_id))
    session.commit()
