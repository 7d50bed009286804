# pocketminder/services/transactions.py
"""
Small service helpers for manual Transactions and user rows.

Why:
- Keep router code thin.
- Centralize logic like sign-by-type and category inference.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from sqlmodel import Session

from pocketminder.categorize import categorize
from pocketminder.formatting import signed_amount, to_money
from pocketminder.models import Transaction, TxnType, User


def create_transaction(
    session: Session,
    *,
    user_id: str,
    type: Union[TxnType, str],
    amount: Union[Decimal, float, int, str],
    date: datetime,
    category: Optional[str] = None,
    note: Optional[str] = None,
) -> Transaction:
    """
    Create a Transaction row and commit it.

    Plain words:
    - We accept either a TxnType enum ('income'/'expense') OR a string.
    - The amount is stored signed: expenses negative, income positive.
    - No category given -> we guess one from the note.
    """

    if isinstance(type, str):
        type = TxnType(type)

    if not category:
        category = categorize(note, amount, is_income=type == TxnType.income)

    txn = Transaction(
        id=f"txn_{uuid.uuid4().hex[:16]}",
        user_id=user_id,
        type=type,
        category=category,
        amount=signed_amount(amount, type),
        date=date,
        note=note or None,
    )
    session.add(txn)
    session.commit()
    session.refresh(txn)
    return txn


# marks "leave the stored budget alone"; None means "clear it"
KEEP = object()


def ensure_user(
    session: Session,
    user_id: str,
    *,
    currency_code: Optional[str] = None,
    monthly_budget: Union[Decimal, float, int, str, None, object] = KEEP,
    default_currency: str = "USD",
) -> User:
    """
    Return the user row, creating it when missing.

    Plain words:
    - currency_code=None keeps the stored currency (new users get default_currency)
    - monthly_budget=KEEP keeps the stored budget; None clears it
    """
    user = session.get(User, user_id)
    if user is None:
        user = User(id=user_id, currency_code=currency_code or default_currency)
    elif currency_code:
        user.currency_code = currency_code
    if monthly_budget is not KEEP:
        user.monthly_budget = None if monthly_budget is None else to_money(monthly_budget)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user
