# pocketminder/recurrence.py
"""
Recurrence math: turn a RecurringDefinition into dated Transaction instances.

Everything here is pure. The only failure is InvalidDefinition, raised up front
when the definition's fields do not make sense together.

Instance ids are deterministic ("{base_id}_{index}") so the materializer can
upsert them and never store the same occurrence twice.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from decimal import InvalidOperation
from enum import Enum
from typing import Any, List, Mapping, Optional, Union

from pocketminder.errors import InvalidDefinition
from pocketminder.formatting import signed_amount, to_money
from pocketminder.models import Frequency, RecurringDefinition, Transaction, TxnType
from pocketminder.periods import add_months, add_years

__all__ = [
    "RecurrenceAnchor",
    "expand",
    "validate_definition",
    "next_occurrence",
    "build_instance",
    "create_recurring_definition",
    "update_recurring_definition",
    "frequency_label",
]


class RecurrenceAnchor(str, Enum):
    """
    How month-based steps treat a clamped day.

    calendar: occurrence n = start + n steps, so Jan 31 gives 31, 29, 31, 30, ...
    rebase:   occurrence n = occurrence n-1 + 1 step, so Jan 31 gives 31, 29, 29, ...
    """

    calendar = "calendar"
    rebase = "rebase"


_DAY_STEPS = {
    Frequency.daily: 1,
    Frequency.weekly: 7,
    Frequency.biweekly: 14,
}

_MONTH_STEPS = {
    Frequency.monthly: 1,
    Frequency.quarterly: 3,
}

_LABELS = {
    Frequency.daily: "Daily",
    Frequency.weekly: "Weekly",
    Frequency.biweekly: "Every 2 weeks",
    Frequency.monthly: "Monthly",
    Frequency.quarterly: "Every 3 months",
    Frequency.yearly: "Yearly",
}


def _coerce_frequency(value: Union[Frequency, str, None]) -> Frequency:
    try:
        return Frequency(value)
    except ValueError:
        raise InvalidDefinition(f"Invalid frequency: {value}") from None


def _step(moment: datetime, frequency: Frequency, count: int = 1) -> datetime:
    if frequency in _DAY_STEPS:
        return moment + timedelta(days=_DAY_STEPS[frequency] * count)
    if frequency is Frequency.yearly:
        return add_years(moment, count)
    return add_months(moment, _MONTH_STEPS[frequency] * count)


def next_occurrence(previous: datetime, frequency: Union[Frequency, str]) -> datetime:
    """One frequency step after `previous` (month steps clamp to the month end)."""
    return _step(previous, _coerce_frequency(frequency))


def validate_definition(definition: RecurringDefinition) -> Frequency:
    """
    Check field combos and return the parsed frequency.
    - frequency must be known
    - end_date and occurrences are mutually exclusive
    - start_date <= end_date
    - occurrences, when given, is a positive integer
    """
    frequency = _coerce_frequency(definition.frequency)

    if definition.start_date is None:
        raise InvalidDefinition("start_date is required")
    if definition.end_date is not None and definition.occurrences is not None:
        raise InvalidDefinition("Cannot specify both end_date and occurrences")
    if definition.end_date is not None and definition.start_date > definition.end_date:
        raise InvalidDefinition("start_date must be on or before end_date")
    base_type = (definition.base_transaction or {}).get("type") or "expense"
    if base_type not in {t.value for t in TxnType}:
        raise InvalidDefinition(f"Invalid transaction type: {base_type}")
    if definition.occurrences is not None:
        if isinstance(definition.occurrences, bool) or not isinstance(
            definition.occurrences, int
        ):
            raise InvalidDefinition("occurrences must be an integer")
        if definition.occurrences < 1:
            raise InvalidDefinition("occurrences must be positive")
    return frequency


def build_instance(
    definition: RecurringDefinition, when: datetime, index: int
) -> Transaction:
    """Concrete Transaction for occurrence `index` of `definition`, dated `when`."""
    base: Mapping[str, Any] = definition.base_transaction or {}
    base_id = base.get("id") or definition.id
    txn_type = TxnType(base.get("type") or TxnType.expense)
    return Transaction(
        id=f"{base_id}_{index}",
        user_id=definition.user_id,
        amount=signed_amount(base.get("amount", "0"), txn_type),
        category=base.get("category") or "other",
        type=txn_type,
        date=when,
        note=base.get("note") or base.get("description"),
        recurring_id=definition.id,
        instance_index=index,
    )


def expand(
    definition: RecurringDefinition,
    start: datetime,
    end: datetime,
    anchor: Union[RecurrenceAnchor, str] = RecurrenceAnchor.calendar,
) -> List[Transaction]:
    """
    All instances of `definition` dated within [start, end], ascending.

    The stream always starts counting at definition.start_date so that an
    instance keeps the same index (and id) whatever window asked for it.
    """
    frequency = validate_definition(definition)
    anchor = RecurrenceAnchor(anchor)

    if start < definition.start_date:
        start = definition.start_date

    instances: List[Transaction] = []
    cursor = definition.start_date
    index = 0
    while True:
        if definition.end_date is not None and cursor > definition.end_date:
            break
        if definition.occurrences is not None and index >= definition.occurrences:
            break
        if cursor > end:
            break

        if cursor >= start:
            instances.append(build_instance(definition, cursor, index))

        index += 1
        if anchor is RecurrenceAnchor.calendar:
            cursor = _step(definition.start_date, frequency, index)
        else:
            cursor = _step(cursor, frequency)
    return instances


def _template(base_transaction: Mapping[str, Any], base_id: str) -> dict:
    base = dict(base_transaction)
    base.setdefault("id", base_id)
    try:
        base["amount"] = str(to_money(base.get("amount", "0")))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidDefinition("amount must be a number") from None
    try:
        base["type"] = TxnType(base.get("type") or TxnType.expense).value
    except ValueError:
        raise InvalidDefinition(f"Invalid transaction type: {base.get('type')}") from None
    return base


def create_recurring_definition(
    *,
    user_id: str,
    base_transaction: Mapping[str, Any],
    frequency: Union[Frequency, str],
    start_date: datetime,
    end_date: Optional[datetime] = None,
    occurrences: Optional[int] = None,
) -> RecurringDefinition:
    """
    Build a new, active definition with a fresh "rec_" id.

    Plain words:
    - the template is copied (we never keep the caller's dict)
    - amount is stored as a 2-place decimal string so the JSON column stays exact
    - the template id defaults to the definition id, giving instance ids "rec_x_0", "rec_x_1", ...
    """
    if not base_transaction or not frequency or start_date is None:
        raise InvalidDefinition("Missing required parameters for recurring transaction")

    rec_id = f"rec_{uuid.uuid4().hex[:16]}"
    definition = RecurringDefinition(
        id=rec_id,
        user_id=user_id,
        base_transaction=_template(base_transaction, rec_id),
        frequency=_coerce_frequency(frequency),
        start_date=start_date,
        end_date=end_date,
        occurrences=occurrences,
        created_instances=0,
        last_created_date=None,
        active=True,
    )
    validate_definition(definition)
    return definition


def update_recurring_definition(
    definition: RecurringDefinition,
    *,
    base_transaction: Mapping[str, Any],
    frequency: Union[Frequency, str],
    start_date: datetime,
    end_date: Optional[datetime] = None,
    occurrences: Optional[int] = None,
) -> RecurringDefinition:
    """
    New terms for an existing definition; id, owner and cursor stay as stored.
    The template keeps its id, so future instances continue the same id series.
    """
    if not base_transaction or not frequency or start_date is None:
        raise InvalidDefinition("Missing required parameters for recurring transaction")

    base_id = (definition.base_transaction or {}).get("id") or definition.id
    updated = RecurringDefinition(
        id=definition.id,
        user_id=definition.user_id,
        base_transaction=_template({**base_transaction, "id": base_id}, base_id),
        frequency=_coerce_frequency(frequency),
        start_date=start_date,
        end_date=end_date,
        occurrences=occurrences,
        created_instances=definition.created_instances,
        last_created_date=definition.last_created_date,
        active=definition.active,
    )
    validate_definition(updated)
    return updated


def frequency_label(frequency: Union[Frequency, str]) -> str:
    """Human-readable frequency; unknown values read as "Custom"."""
    try:
        return _LABELS[Frequency(frequency)]
    except ValueError:
        return "Custom"
