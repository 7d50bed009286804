# pocketminder/services/materializer.py
"""
Turn due occurrences of recurring definitions into stored Transactions.

Plain words:
- window per definition: (last_created_date, as_of]; while nothing was ever
  created the window starts at start_date inclusive
- instances are written by deterministic id (upsert), so a retry or a
  concurrent run cannot produce a second copy
- the cursor write is a compare-and-set; the loser re-reads and usually
  finds nothing left to do
- a stored definition that no longer validates is logged and skipped
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from pocketminder.clock import Deadline
from pocketminder.errors import InvalidDefinition, StoreUnavailable
from pocketminder.interfaces import StoreOp, TransactionStore, cursor_of
from pocketminder.models import RecurringDefinition, Transaction
from pocketminder.recurrence import RecurrenceAnchor, expand

logger = logging.getLogger("pm.materializer")


def due_instances(
    definition: RecurringDefinition,
    as_of: datetime,
    anchor: RecurrenceAnchor = RecurrenceAnchor.calendar,
) -> List[Transaction]:
    """Instances of `definition` not yet materialized and dated on or before as_of."""
    if not definition.active:
        return []

    lower = definition.last_created_date or definition.start_date
    if as_of < lower:
        return []

    instances = expand(definition, lower, as_of, anchor)
    if definition.last_created_date is not None:
        # the cursor is an exclusive bound
        instances = [t for t in instances if t.date > definition.last_created_date]
    # never re-emit an index the definition already counted
    return [t for t in instances if t.instance_index >= definition.created_instances]


def advance_cursor(
    definition: RecurringDefinition, emitted: List[Transaction], as_of: datetime
) -> RecurringDefinition:
    """Copy of `definition` with its cursor moved past `emitted` (non-empty, ascending)."""
    created = emitted[-1].instance_index + 1
    previous = definition.last_created_date
    # a fresh object: table models must not share ORM state with the one we read
    return RecurringDefinition(
        id=definition.id,
        user_id=definition.user_id,
        base_transaction=dict(definition.base_transaction or {}),
        frequency=definition.frequency,
        start_date=definition.start_date,
        end_date=definition.end_date,
        occurrences=definition.occurrences,
        created_instances=created,
        last_created_date=as_of if previous is None else max(previous, as_of),
        active=not (
            definition.occurrences is not None and created >= definition.occurrences
        ),
    )


class Materializer:
    def __init__(
        self,
        store: TransactionStore,
        anchor: RecurrenceAnchor = RecurrenceAnchor.calendar,
        cas_retries: int = 3,
    ):
        self.store = store
        self.anchor = RecurrenceAnchor(anchor)
        self.cas_retries = max(1, cas_retries)

    def materialize_due(
        self, user_id: str, as_of: datetime, deadline: Optional[Deadline] = None
    ) -> List[Transaction]:
        """
        Persist every due instance for the user's active definitions.
        Returns what this call wrote, ordered by (date, recurring_id, instance_index).
        """
        self.store.get_user(user_id, deadline=deadline)  # raises PermissionDenied
        definitions = self.store.list_recurring_definitions(
            user_id, only_active=True, deadline=deadline
        )

        emitted: List[Transaction] = []
        for definition in definitions:
            try:
                emitted.extend(self._materialize_one(definition, as_of, deadline))
            except InvalidDefinition as exc:
                logger.warning("skipping definition %s: %s", definition.id, exc)

        emitted.sort(key=lambda t: (t.date, t.recurring_id, t.instance_index))
        if emitted:
            logger.info(
                "materialized %s instance(s) for user %s as of %s",
                len(emitted),
                user_id,
                as_of.isoformat(),
            )
        return emitted

    def _materialize_one(
        self,
        definition: RecurringDefinition,
        as_of: datetime,
        deadline: Optional[Deadline],
    ) -> List[Transaction]:
        for _attempt in range(self.cas_retries):
            instances = due_instances(definition, as_of, self.anchor)
            if not instances:
                return []

            updated = advance_cursor(definition, instances, as_of)
            if self._write(definition, updated, instances, deadline):
                if not updated.active:
                    logger.info("definition %s reached its occurrences; deactivated", definition.id)
                return instances

            # someone else moved the cursor; start over from what they stored
            definition = self.store.get_definition(definition.id, deadline=deadline)
            if definition is None:
                return []

        raise StoreUnavailable(
            f"cursor for definition {definition.id} kept changing; gave up after "
            f"{self.cas_retries} attempt(s)"
        )

    def _write(
        self,
        before: RecurringDefinition,
        after: RecurringDefinition,
        instances: List[Transaction],
        deadline: Optional[Deadline],
    ) -> bool:
        expected = cursor_of(before)
        batch = getattr(self.store, "batch", None)
        if batch is not None:
            ops = [StoreOp.upsert_transaction(t) for t in instances]
            ops.append(StoreOp.write_definition(after, expected))
            return batch(ops, deadline=deadline)

        # no atomic batch: ids are deterministic, so instances first is safe
        for txn in instances:
            self.store.upsert_transaction(txn, deadline=deadline)
        return self.store.write_definition(after, expected=expected, deadline=deadline)
