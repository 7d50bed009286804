# pocketminder/services/bill_scheduler.py
"""
Bill reminders: one "T-3 days" reminder and one "due today" alert per
day-of-month on which the user has bills.

The rebuild is the only writer of the user's scheduled notifications:
cancel everything pending, then schedule the fresh set. Running it twice on
the same data gives the same schedule.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from pocketminder.clock import Deadline
from pocketminder.errors import NotifierUnavailable
from pocketminder.formatting import format_amount, to_money
from pocketminder.interfaces import Notifier, TransactionStore
from pocketminder.models import Bill, BillFrequency, TxnType
from pocketminder.periods import day_suffix, next_day_of_month

logger = logging.getLogger("pm.bills")

REMINDER_TITLE = "Upcoming Bills Reminder"
DUE_TODAY_TITLE = "Bills Due Today"
BILLS_CATEGORY = "bills"
UNNAMED_BILL = "Unnamed bill"


@dataclass(frozen=True)
class BillEntry:
    """One bill as seen by the scheduler: where it came from, what to call it."""

    source_id: str
    name: str
    amount: Decimal  # magnitude
    day: int
    recurring: bool = False


@dataclass(frozen=True)
class PlannedNotification:
    at: datetime
    title: str
    body: str
    payload: dict = field(default_factory=dict)


def reminder_body(day: int, names: str, total: Decimal) -> str:
    return (
        f"You have bills due on the {day}{day_suffix(day)}: {names} "
        f"(Total: ${format_amount(total)})"
    )


def due_today_body(names: str, total: Decimal) -> str:
    return f"Don't forget to pay today's bills: {names} (Total: ${format_amount(total)})"


def plan_bill_notifications(
    entries: List[BillEntry], as_of: datetime, lead_days: int = 3
) -> List[PlannedNotification]:
    """
    Pure planning step: group by day-of-month and compute the instants.
    - due instant: next local midnight on that day (this month, else next; clamped)
    - reminder: `lead_days` before, skipped if not after as_of
    - due alert: skipped if not after as_of
    """
    by_day: Dict[int, List[BillEntry]] = defaultdict(list)
    for entry in entries:
        by_day[entry.day].append(entry)

    planned: List[PlannedNotification] = []
    for day in sorted(by_day):
        group = by_day[day]
        due_at = next_day_of_month(day, as_of)
        remind_at = due_at - timedelta(days=lead_days)

        names = ", ".join(e.name for e in group)
        total = sum((e.amount for e in group), Decimal("0.00"))
        payload = {
            "type": "bill_reminder",
            "day": day,
            "due_date": due_at.isoformat(),
            "bills": [e.source_id for e in group],
            "total": str(to_money(total)),
        }

        if remind_at > as_of:
            planned.append(
                PlannedNotification(
                    remind_at,
                    REMINDER_TITLE,
                    reminder_body(day, names, total),
                    {**payload, "kind": "reminder"},
                )
            )
        if due_at > as_of:
            planned.append(
                PlannedNotification(
                    due_at,
                    DUE_TODAY_TITLE,
                    due_today_body(names, total),
                    {**payload, "kind": "due_today"},
                )
            )
    return planned


class BillScheduler:
    def __init__(self, store: TransactionStore, notifier: Notifier, lead_days: int = 3):
        self.store = store
        self.notifier = notifier
        self.lead_days = lead_days

    def collect_entries(
        self, user_id: str, deadline: Optional[Deadline] = None
    ) -> List[BillEntry]:
        """Bills by due day, then active recurring bill expenses by start day."""
        entries = [
            BillEntry(
                source_id=bill.id,
                name=bill.name or UNNAMED_BILL,
                amount=abs(to_money(bill.amount)),
                day=bill.due_date.day,
                recurring=bill.frequency != BillFrequency.once,
            )
            for bill in self.store.list_bills(user_id, deadline=deadline)
        ]

        for definition in self.store.list_recurring_definitions(
            user_id, only_active=True, deadline=deadline
        ):
            base = definition.base_transaction or {}
            if base.get("category") != BILLS_CATEGORY:
                continue
            if (base.get("type") or TxnType.expense.value) != TxnType.expense.value:
                continue
            entries.append(
                BillEntry(
                    source_id=definition.id,
                    name=base.get("note") or base.get("description") or UNNAMED_BILL,
                    amount=abs(to_money(base.get("amount", "0"))),
                    day=definition.start_date.day,
                    recurring=True,
                )
            )
        return entries

    def rebuild_bill_reminders(
        self, user_id: str, as_of: datetime, deadline: Optional[Deadline] = None
    ) -> int:
        """Cancel the user's pending notifications and schedule the new plan; returns how many were scheduled."""
        self.store.get_user(user_id, deadline=deadline)  # raises PermissionDenied
        planned = plan_bill_notifications(
            self.collect_entries(user_id, deadline=deadline), as_of, self.lead_days
        )

        self.notifier.cancel_all_for_user(user_id, deadline=deadline)
        scheduled = 0
        try:
            for item in planned:
                if self.notifier.schedule(
                    user_id, item.at, item.title, item.body, item.payload, deadline=deadline
                ):
                    scheduled += 1
        except NotifierUnavailable:
            # leave nothing half-built behind
            self._clear_after_failure(user_id)
            raise

        logger.info("scheduled %s bill notification(s) for user %s", scheduled, user_id)
        return scheduled

    def _clear_after_failure(self, user_id: str) -> None:
        try:
            self.notifier.cancel_all_for_user(user_id)
        except NotifierUnavailable as exc:
            logger.error("could not clear partial bill schedule for %s: %s", user_id, exc)

    def upcoming_bills(self, user_id: str, deadline: Optional[Deadline] = None) -> List[Bill]:
        """The user's bills by due date (earliest first)."""
        self.store.get_user(user_id, deadline=deadline)
        return sorted(
            self.store.list_bills(user_id, deadline=deadline),
            key=lambda b: (b.due_date, b.id),
        )
