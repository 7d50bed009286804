# pocketminder/services/store.py
"""
SQLModel-backed TransactionStore.

- one keyed table per entity; instances are upserted by id
- the definition cursor is guarded by a single conditional UPDATE
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from pocketminder.clock import Deadline
from pocketminder.db import session_scope
from pocketminder.errors import PermissionDenied
from pocketminder.interfaces import CursorSnapshot, StoreOp
from pocketminder.models import Bill, RecurringDefinition, Transaction, TxnType, User

logger = logging.getLogger("pm.store")


def _cas_definition(
    session: Session, definition: RecurringDefinition, expected: CursorSnapshot
) -> bool:
    """
    Write the cursor fields only if the row still holds `expected`.
    One UPDATE ... WHERE, so two writers can never both win.
    """
    table = RecurringDefinition.__table__
    last_created, created = expected

    stmt = update(table).where(
        table.c.id == definition.id, table.c.created_instances == created
    )
    if last_created is None:
        stmt = stmt.where(table.c.last_created_date.is_(None))
    else:
        stmt = stmt.where(table.c.last_created_date == last_created)

    stmt = stmt.values(
        created_instances=definition.created_instances,
        last_created_date=definition.last_created_date,
        active=definition.active,
    )
    result = session.connection().execute(stmt)
    return result.rowcount == 1


class SqlTransactionStore:
    def __init__(self, bind: Engine):
        self.bind = bind

    # ---------- users ----------

    def get_user(self, user_id: str, deadline: Optional[Deadline] = None) -> User:
        with session_scope(self.bind, what="get_user", deadline=deadline) as session:
            user = session.get(User, user_id)
        if user is None:
            # same answer for "missing" and "not yours": do not leak which
            raise PermissionDenied(f"no access to user {user_id}")
        return user

    def save_user(self, user: User, deadline: Optional[Deadline] = None) -> None:
        with session_scope(self.bind, what="save_user", deadline=deadline) as session:
            session.merge(user)
            session.commit()

    # ---------- recurring definitions ----------

    def list_recurring_definitions(
        self, user_id: str, only_active: bool, deadline: Optional[Deadline] = None
    ) -> List[RecurringDefinition]:
        stmt = select(RecurringDefinition).where(RecurringDefinition.user_id == user_id)
        if only_active:
            stmt = stmt.where(RecurringDefinition.active)
        stmt = stmt.order_by(RecurringDefinition.start_date, RecurringDefinition.id)
        with session_scope(
            self.bind, what="list_recurring_definitions", deadline=deadline
        ) as session:
            return list(session.exec(stmt).all())

    def get_definition(
        self, definition_id: str, deadline: Optional[Deadline] = None
    ) -> Optional[RecurringDefinition]:
        with session_scope(self.bind, what="get_definition", deadline=deadline) as session:
            return session.get(RecurringDefinition, definition_id)

    def write_definition(
        self,
        definition: RecurringDefinition,
        expected: Optional[CursorSnapshot] = None,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        """
        Upsert by id. With `expected`, only the cursor fields are written and only
        if the stored cursor still equals `expected`; returns False when it lost.
        """
        with session_scope(self.bind, what="write_definition", deadline=deadline) as session:
            if expected is None:
                session.merge(definition)
                session.commit()
                return True
            won = _cas_definition(session, definition, expected)
            session.commit()
        if not won:
            logger.info("cursor CAS lost for definition %s", definition.id)
        return won

    def delete_definition(
        self, definition_id: str, deadline: Optional[Deadline] = None
    ) -> bool:
        with session_scope(self.bind, what="delete_definition", deadline=deadline) as session:
            definition = session.get(RecurringDefinition, definition_id)
            if definition is None:
                return False
            session.delete(definition)
            session.commit()
            return True

    # ---------- bills ----------

    def list_bills(self, user_id: str, deadline: Optional[Deadline] = None) -> List[Bill]:
        stmt = (
            select(Bill)
            .where(Bill.user_id == user_id)
            .order_by(Bill.due_date, Bill.id)
        )
        with session_scope(self.bind, what="list_bills", deadline=deadline) as session:
            return list(session.exec(stmt).all())

    def save_bill(self, bill: Bill, deadline: Optional[Deadline] = None) -> None:
        with session_scope(self.bind, what="save_bill", deadline=deadline) as session:
            session.merge(bill)
            session.commit()

    # ---------- transactions ----------

    def list_expenses(
        self,
        user_id: str,
        month_start: datetime,
        month_end: datetime,
        deadline: Optional[Deadline] = None,
    ) -> List[Transaction]:
        """Expenses dated in [month_start, month_end)."""
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == user_id,
                Transaction.type == TxnType.expense,
                Transaction.date >= month_start,
                Transaction.date < month_end,
            )
            .order_by(Transaction.date, Transaction.id)
        )
        with session_scope(self.bind, what="list_expenses", deadline=deadline) as session:
            return list(session.exec(stmt).all())

    def list_instances(
        self, recurring_id: str, deadline: Optional[Deadline] = None
    ) -> List[Transaction]:
        """Every persisted instance of one definition, in stream order."""
        stmt = (
            select(Transaction)
            .where(Transaction.recurring_id == recurring_id)
            .order_by(Transaction.instance_index)
        )
        with session_scope(self.bind, what="list_instances", deadline=deadline) as session:
            return list(session.exec(stmt).all())

    def upsert_transaction(
        self, txn: Transaction, deadline: Optional[Deadline] = None
    ) -> None:
        with session_scope(self.bind, what="upsert_transaction", deadline=deadline) as session:
            session.merge(txn)
            session.commit()

    def delete_transaction(
        self, txn_id: str, deadline: Optional[Deadline] = None
    ) -> bool:
        with session_scope(self.bind, what="delete_transaction", deadline=deadline) as session:
            txn = session.get(Transaction, txn_id)
            if txn is None:
                return False
            session.delete(txn)
            session.commit()
            return True

    # ---------- batch ----------

    def batch(self, ops: Sequence[StoreOp], deadline: Optional[Deadline] = None) -> bool:
        """
        Apply all ops in one DB transaction.
        A failed cursor CAS rolls everything back and returns False.
        """
        with session_scope(self.bind, what="batch", deadline=deadline) as session:
            for op in ops:
                if op.kind == "upsert_transaction":
                    session.merge(op.obj)
                elif op.kind == "write_definition":
                    if op.expected is None:
                        session.merge(op.obj)
                    elif not _cas_definition(session, op.obj, op.expected):
                        session.rollback()
                        logger.info("batch rolled back: cursor CAS lost for %s", op.obj.id)
                        return False
                else:
                    raise ValueError(f"unknown store op: {op.kind}")
            session.commit()
        return True
