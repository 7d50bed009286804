# pocketminder/services/state_cache.py
"""
SQL-backed StateCache: small JSON values under string keys.

Values are stored as canonical JSON text (sorted keys, no spaces) so that
compare-and-set can compare the stored text with the expected value directly.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from pocketminder.clock import Deadline
from pocketminder.db import session_scope
from pocketminder.models import StateEntry


def _dump(value: dict) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def budget_state_key(user_id: str, year: int, month: int) -> str:
    """
    Idempotency key of the budget ladder.
    `month` is 1-based; the key stores it 0-based (June -> "_5") so it lines up
    with keys already written by the mobile app.
    """
    return f"budget_notification_{user_id}_{year}_{month - 1}"


class SqlStateCache:
    def __init__(self, bind: Engine):
        self.bind = bind

    def get(self, key: str, deadline: Optional[Deadline] = None) -> Optional[dict]:
        with session_scope(self.bind, what="state_cache.get", deadline=deadline) as session:
            entry = session.get(StateEntry, key)
        return json.loads(entry.value) if entry is not None else None

    def compare_and_set(
        self,
        key: str,
        expected: Optional[dict],
        new: dict,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        """
        Store `new` only if the current value equals `expected`.
        expected=None means "key must be absent" (first write wins via the primary key).
        """
        with session_scope(
            self.bind, what="state_cache.compare_and_set", deadline=deadline
        ) as session:
            if expected is None:
                session.add(StateEntry(key=key, value=_dump(new), updated_at=datetime.utcnow()))
                try:
                    session.commit()
                except IntegrityError:
                    session.rollback()
                    return False
                return True

            table = StateEntry.__table__
            result = session.connection().execute(
                update(table)
                .where(table.c.key == key, table.c.value == _dump(expected))
                .values(value=_dump(new), updated_at=datetime.utcnow())
            )
            session.commit()
            return result.rowcount == 1
