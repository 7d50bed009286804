# pocketminder/interfaces.py
"""
The three collaborators the engine consumes.

The SQL adapters in pocketminder.services implement them; tests and the mobile
client may plug in their own. Every I/O method takes an optional Deadline.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Protocol, Tuple

from pocketminder.clock import Deadline
from pocketminder.models import Bill, RecurringDefinition, Transaction, User

# (last_created_date, created_instances) as read before a write
CursorSnapshot = Tuple[Optional[datetime], int]


def cursor_of(definition: RecurringDefinition) -> CursorSnapshot:
    return (definition.last_created_date, definition.created_instances)


@dataclass(frozen=True)
class StoreOp:
    """One write inside TransactionStore.batch()."""

    kind: str  # "upsert_transaction" | "write_definition"
    obj: Any
    expected: Optional[CursorSnapshot] = None  # CAS guard for write_definition

    @classmethod
    def upsert_transaction(cls, txn: Transaction) -> "StoreOp":
        return cls("upsert_transaction", txn)

    @classmethod
    def write_definition(
        cls, definition: RecurringDefinition, expected: Optional[CursorSnapshot] = None
    ) -> "StoreOp":
        return cls("write_definition", definition, expected)


class TransactionStore(Protocol):
    """
    Stores may also offer batch(ops: Sequence[StoreOp], deadline) -> bool, applying
    every op atomically; the materializer uses it when present.
    """

    def get_user(self, user_id: str, deadline: Optional[Deadline] = None) -> User: ...

    def list_recurring_definitions(
        self, user_id: str, only_active: bool, deadline: Optional[Deadline] = None
    ) -> List[RecurringDefinition]: ...

    def get_definition(
        self, definition_id: str, deadline: Optional[Deadline] = None
    ) -> Optional[RecurringDefinition]: ...

    def write_definition(
        self,
        definition: RecurringDefinition,
        expected: Optional[CursorSnapshot] = None,
        deadline: Optional[Deadline] = None,
    ) -> bool: ...

    def delete_definition(
        self, definition_id: str, deadline: Optional[Deadline] = None
    ) -> bool: ...

    def list_bills(self, user_id: str, deadline: Optional[Deadline] = None) -> List[Bill]: ...

    def list_expenses(
        self,
        user_id: str,
        month_start: datetime,
        month_end: datetime,
        deadline: Optional[Deadline] = None,
    ) -> List[Transaction]: ...

    def upsert_transaction(
        self, txn: Transaction, deadline: Optional[Deadline] = None
    ) -> None: ...


class Notifier(Protocol):
    def cancel_all_for_user(self, user_id: str, deadline: Optional[Deadline] = None) -> int: ...

    def schedule(
        self,
        user_id: str,
        at: datetime,
        title: str,
        body: str,
        payload: dict,
        deadline: Optional[Deadline] = None,
    ) -> bool: ...

    def send(
        self,
        user_id: str,
        title: str,
        body: str,
        payload: dict,
        deadline: Optional[Deadline] = None,
    ) -> None: ...


class StateCache(Protocol):
    def get(self, key: str, deadline: Optional[Deadline] = None) -> Optional[dict]: ...

    def compare_and_set(
        self,
        key: str,
        expected: Optional[dict],
        new: dict,
        deadline: Optional[Deadline] = None,
    ) -> bool: ...
