# pocketminder/services/budget_monitor.py
"""
Budget threshold ladder: warn at 80 / 90 / 100 / 110 % of the monthly budget,
each step at most once per calendar month.

The fired step is remembered in the StateCache under
budget_notification_{user}_{year}_{month}; a new month means a new key, so
the ladder starts over without any reset job. The stored step never goes
down inside a month, even if expenses are deleted or the budget is lowered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pocketminder.clock import Clock, Deadline
from pocketminder.formatting import format_currency, to_money
from pocketminder.interfaces import StateCache, TransactionStore
from pocketminder.models import TxnType
from pocketminder.periods import month_bounds
from pocketminder.services.state_cache import budget_state_key

logger = logging.getLogger("pm.budget")

THRESHOLD_MESSAGES = {
    80: "You have used 80% of your monthly budget.",
    90: "You have used 90% of your monthly budget! Be careful with additional expenses.",
    100: "You have reached your monthly budget limit!",
    110: "Warning: You have exceeded your monthly budget by 10%!",
}
THRESHOLD_LADDER = tuple(sorted(THRESHOLD_MESSAGES))

BUDGET_ALERT_TITLE = "Budget Alert"


@dataclass(frozen=True)
class ThresholdEvent:
    percent: int
    total_spent: Decimal
    monthly_budget: Decimal
    currency_code: str

    @property
    def message(self) -> str:
        return THRESHOLD_MESSAGES[self.percent]

    @property
    def title(self) -> str:
        return BUDGET_ALERT_TITLE

    @property
    def body(self) -> str:
        spent = format_currency(self.total_spent, self.currency_code)
        budget = format_currency(self.monthly_budget, self.currency_code)
        return f"{self.message} ({spent} of {budget})"

    @property
    def payload(self) -> dict:
        return {
            "type": "budget_alert",
            "percent": self.percent,
            "spent": str(self.total_spent),
            "budget": str(self.monthly_budget),
        }


def highest_new_threshold(used_percent: Decimal, last_threshold: int) -> Optional[int]:
    """Highest ladder step reached by used_percent and above last_threshold."""
    crossed = [t for t in THRESHOLD_LADDER if t <= used_percent and t > last_threshold]
    return max(crossed) if crossed else None


class BudgetMonitor:
    def __init__(
        self,
        store: TransactionStore,
        cache: StateCache,
        clock: Clock,
        cas_retries: int = 3,
    ):
        self.store = store
        self.cache = cache
        self.clock = clock
        self.cas_retries = max(1, cas_retries)

    def month_spending(
        self, user_id: str, as_of: datetime, deadline: Optional[Deadline] = None
    ) -> Decimal:
        """Sum of expense magnitudes dated in the calendar month of as_of."""
        start, end = month_bounds(as_of)
        expenses = self.store.list_expenses(user_id, start, end, deadline=deadline)
        return sum(
            (abs(to_money(t.amount)) for t in expenses if t.type == TxnType.expense),
            Decimal("0.00"),
        )

    def check_budget_thresholds(
        self, user_id: str, as_of: datetime, deadline: Optional[Deadline] = None
    ) -> Optional[ThresholdEvent]:
        """
        Return the newly crossed threshold (highest one only) or None.
        The event is returned only after its step is persisted.
        """
        user = self.store.get_user(user_id, deadline=deadline)
        if user.monthly_budget is None or user.monthly_budget <= 0:
            return None
        budget = to_money(user.monthly_budget)

        total_spent = self.month_spending(user_id, as_of, deadline=deadline)
        used = total_spent / budget * 100
        key = budget_state_key(user_id, as_of.year, as_of.month)

        for _attempt in range(self.cas_retries):
            state = self.cache.get(key, deadline=deadline)
            last = int(state.get("lastThreshold", 0)) if state else 0

            percent = highest_new_threshold(used, last)
            if percent is None:
                return None

            new_state = {"lastThreshold": percent, "updatedAt": self.clock.now().isoformat()}
            if self.cache.compare_and_set(key, state, new_state, deadline=deadline):
                logger.info(
                    "budget threshold %s%% crossed for user %s (%s of %s)",
                    percent,
                    user_id,
                    total_spent,
                    budget,
                )
                return ThresholdEvent(
                    percent=percent,
                    total_spent=total_spent,
                    monthly_budget=budget,
                    currency_code=user.currency_code or "USD",
                )
            # lost the race: re-read, the winner may already cover our step

        logger.warning("budget state %s stayed contended; no event emitted", key)
        return None
