# pocketminder/services/notifier.py
"""
Outbox Notifier: rows in scheduled_notification that the on-device dispatcher
turns into local notifications.

- schedule(): pending row delivered at `deliver_at` (past instants are ignored)
- send():     immediate alert, stored as already sent (never cancelled)
- cancel_all_for_user(): drops the user's pending rows; the bill rebuild is its only caller
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlmodel import select

from pocketminder.clock import Clock, Deadline
from pocketminder.db import session_scope
from pocketminder.errors import NotifierUnavailable
from pocketminder.models import NotificationStatus, ScheduledNotification

logger = logging.getLogger("pm.notifier")


class SqlNotifier:
    def __init__(self, bind: Engine, clock: Clock):
        self.bind = bind
        self.clock = clock

    def _scope(self, what: str, deadline: Optional[Deadline]):
        return session_scope(
            self.bind, what=what, error_cls=NotifierUnavailable, deadline=deadline
        )

    def cancel_all_for_user(self, user_id: str, deadline: Optional[Deadline] = None) -> int:
        table = ScheduledNotification.__table__
        with self._scope("notifier.cancel_all_for_user", deadline) as session:
            result = session.connection().execute(
                delete(table).where(
                    table.c.user_id == user_id,
                    table.c.status == NotificationStatus.pending,
                )
            )
            session.commit()
        logger.debug("cancelled %s pending notification(s) for %s", result.rowcount, user_id)
        return result.rowcount

    def schedule(
        self,
        user_id: str,
        at: datetime,
        title: str,
        body: str,
        payload: dict,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        """Queue a notification for `at`; returns False (no-op) when `at` is not in the future."""
        if at <= self.clock.now():
            return False
        with self._scope("notifier.schedule", deadline) as session:
            session.add(
                ScheduledNotification(
                    user_id=user_id,
                    deliver_at=at,
                    title=title,
                    body=body,
                    payload=payload,
                    status=NotificationStatus.pending,
                )
            )
            session.commit()
        return True

    def send(
        self,
        user_id: str,
        title: str,
        body: str,
        payload: dict,
        deadline: Optional[Deadline] = None,
    ) -> None:
        with self._scope("notifier.send", deadline) as session:
            session.add(
                ScheduledNotification(
                    user_id=user_id,
                    deliver_at=self.clock.now(),
                    title=title,
                    body=body,
                    payload=payload,
                    status=NotificationStatus.sent,
                )
            )
            session.commit()

    # ---------- dispatcher side ----------

    def pending_for_user(self, user_id: str) -> List[ScheduledNotification]:
        stmt = (
            select(ScheduledNotification)
            .where(
                ScheduledNotification.user_id == user_id,
                ScheduledNotification.status == NotificationStatus.pending,
            )
            .order_by(ScheduledNotification.deliver_at, ScheduledNotification.id)
        )
        with self._scope("notifier.pending_for_user", None) as session:
            return list(session.exec(stmt).all())

    def sent_for_user(self, user_id: str) -> List[ScheduledNotification]:
        stmt = (
            select(ScheduledNotification)
            .where(
                ScheduledNotification.user_id == user_id,
                ScheduledNotification.status == NotificationStatus.sent,
            )
            .order_by(ScheduledNotification.id)
        )
        with self._scope("notifier.sent_for_user", None) as session:
            return list(session.exec(stmt).all())
