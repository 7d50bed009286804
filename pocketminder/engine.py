# pocketminder/engine.py
"""
RecurringEngine: the one object the app (routers, jobs, the mobile client
bridge) talks to.

Dependencies come in through the constructor: store, notifier, clock, cache.
Side-effecting operations never raise EngineError to the caller; they return a
result object whose `error` tells what went wrong and whether to retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.engine import Engine

from pocketminder.clock import Clock, Deadline, SystemClock, to_local
from pocketminder.config import Settings, get_settings
from pocketminder.errors import EngineError, NotifierUnavailable
from pocketminder.interfaces import Notifier, StateCache, TransactionStore
from pocketminder.models import Bill, RecurringDefinition, Transaction
from pocketminder.recurrence import RecurrenceAnchor, expand
from pocketminder.services.bill_scheduler import BillScheduler
from pocketminder.services.budget_monitor import BudgetMonitor, ThresholdEvent
from pocketminder.services.materializer import Materializer
from pocketminder.services.notifier import SqlNotifier
from pocketminder.services.state_cache import SqlStateCache
from pocketminder.services.store import SqlTransactionStore

logger = logging.getLogger("pm.engine")

ErrorListener = Callable[[str, str, EngineError], None]  # (operation, user_id, error)


@dataclass
class MaterializeResult:
    instances: List[Transaction] = field(default_factory=list)
    error: Optional[EngineError] = None

    @property
    def count(self) -> int:
        return len(self.instances)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BudgetCheckResult:
    event: Optional[ThresholdEvent] = None
    error: Optional[EngineError] = None
    notifier_error: Optional[EngineError] = None  # threshold stored, alert not delivered

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ReminderResult:
    scheduled_count: int = 0
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        # a notifier outage is not a failure of the rebuild contract
        return self.error is None or isinstance(self.error, NotifierUnavailable)


@dataclass
class UpcomingBillsResult:
    bills: List[Bill] = field(default_factory=list)
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RecurringEngine:
    def __init__(
        self,
        store: TransactionStore,
        notifier: Notifier,
        clock: Clock,
        cache: StateCache,
        settings: Optional[Settings] = None,
        error_listener: Optional[ErrorListener] = None,
    ):
        settings = settings or get_settings()
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.cache = cache
        self.tz = settings.local_timezone
        self.deadline_seconds = settings.io_deadline_seconds
        self.anchor = RecurrenceAnchor(settings.recurrence_anchor)
        self.error_listener = error_listener

        self.materializer = Materializer(store, self.anchor, settings.cas_retries)
        self.budget_monitor = BudgetMonitor(store, cache, clock, settings.cas_retries)
        self.bill_scheduler = BillScheduler(
            store, notifier, settings.bill_reminder_lead_days
        )

    # ---------- helpers ----------

    def _as_of(self, as_of: Optional[datetime]) -> datetime:
        return self.clock.now() if as_of is None else to_local(as_of, self.tz)

    def _deadline(self) -> Deadline:
        return Deadline(self.deadline_seconds)

    def _report(self, operation: str, user_id: str, error: EngineError) -> None:
        log = logger.warning if error.retryable else logger.error
        log("%s for user %s failed: %s (%s)", operation, user_id, error, error.kind)
        if self.error_listener is not None:
            self.error_listener(operation, user_id, error)

    # ---------- pure ----------

    def expand(
        self, definition: RecurringDefinition, start: datetime, end: datetime
    ) -> List[Transaction]:
        """Instances of `definition` within [start, end]; raises InvalidDefinition."""
        return expand(
            definition, to_local(start, self.tz), to_local(end, self.tz), self.anchor
        )

    # ---------- operations ----------

    def materialize_due(
        self, user_id: str, as_of: Optional[datetime] = None
    ) -> MaterializeResult:
        try:
            instances = self.materializer.materialize_due(
                user_id, self._as_of(as_of), deadline=self._deadline()
            )
        except EngineError as exc:
            self._report("materialize_due", user_id, exc)
            return MaterializeResult(error=exc)
        return MaterializeResult(instances=instances)

    def check_budget_thresholds(
        self, user_id: str, as_of: Optional[datetime] = None
    ) -> BudgetCheckResult:
        deadline = self._deadline()
        try:
            event = self.budget_monitor.check_budget_thresholds(
                user_id, self._as_of(as_of), deadline=deadline
            )
        except EngineError as exc:
            self._report("check_budget_thresholds", user_id, exc)
            return BudgetCheckResult(error=exc)

        result = BudgetCheckResult(event=event)
        if event is not None:
            try:
                self.notifier.send(
                    user_id, event.title, event.body, event.payload, deadline=deadline
                )
            except EngineError as exc:
                # the step is already stored; the user just misses this one alert
                self._report("budget_alert_delivery", user_id, exc)
                result.notifier_error = exc
        return result

    def rebuild_bill_reminders(
        self, user_id: str, as_of: Optional[datetime] = None
    ) -> ReminderResult:
        try:
            count = self.bill_scheduler.rebuild_bill_reminders(
                user_id, self._as_of(as_of), deadline=self._deadline()
            )
        except EngineError as exc:
            self._report("rebuild_bill_reminders", user_id, exc)
            return ReminderResult(scheduled_count=0, error=exc)
        return ReminderResult(scheduled_count=count)

    def upcoming_bills(self, user_id: str) -> UpcomingBillsResult:
        try:
            bills = self.bill_scheduler.upcoming_bills(user_id, deadline=self._deadline())
        except EngineError as exc:
            self._report("upcoming_bills", user_id, exc)
            return UpcomingBillsResult(error=exc)
        return UpcomingBillsResult(bills=bills)


def build_engine(
    bind: Engine,
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
) -> RecurringEngine:
    """Wire the SQL adapters around one database."""
    settings = settings or get_settings()
    clock = clock or SystemClock(settings.local_timezone)
    return RecurringEngine(
        store=SqlTransactionStore(bind),
        notifier=SqlNotifier(bind, clock),
        clock=clock,
        cache=SqlStateCache(bind),
        settings=settings,
    )
