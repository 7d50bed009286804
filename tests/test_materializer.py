# tests/test_materializer.py
"""
Materializer against a real SQLite store: windows, cursor, idempotence, races.
"""

from __future__ import annotations

from datetime import datetime

import pytest

from pocketminder.errors import PermissionDenied, StoreUnavailable
from pocketminder.interfaces import StoreOp
from pocketminder.models import Frequency
from pocketminder.services.materializer import Materializer, advance_cursor, due_instances


def _dates(instances):
    return [t.date for t in instances]


def test_open_ended_monthly_catch_up(store, make_user, make_definition):
    make_user("u1")
    store.write_definition(make_definition())

    emitted = Materializer(store).materialize_due("u1", datetime(2024, 4, 20))

    assert _dates(emitted) == [
        datetime(2024, 1, 15),
        datetime(2024, 2, 15),
        datetime(2024, 3, 15),
        datetime(2024, 4, 15),
    ]
    stored = store.get_definition("rent")
    assert stored.created_instances == 4
    assert stored.last_created_date == datetime(2024, 4, 20)
    assert stored.active is True
    assert [t.id for t in store.list_instances("rent")] == [
        "rent_0",
        "rent_1",
        "rent_2",
        "rent_3",
    ]


def test_biweekly_definition_deactivates_after_last_occurrence(
    store, make_user, make_definition
):
    make_user("u1")
    store.write_definition(
        make_definition(
            def_id="gym",
            frequency=Frequency.biweekly,
            start_date=datetime(2024, 3, 1),
            occurrences=6,
        )
    )

    emitted = Materializer(store).materialize_due("u1", datetime(2024, 6, 1))

    assert [(d.month, d.day) for d in _dates(emitted)] == [
        (3, 1),
        (3, 15),
        (3, 29),
        (4, 12),
        (4, 26),
        (5, 10),
    ]
    stored = store.get_definition("gym")
    assert stored.active is False
    assert stored.created_instances == 6
    # inactive definitions are skipped from now on
    assert Materializer(store).materialize_due("u1", datetime(2025, 1, 1)) == []


def test_second_run_with_same_as_of_writes_nothing(store, make_user, make_definition):
    make_user("u1")
    store.write_definition(make_definition())
    materializer = Materializer(store)

    first = materializer.materialize_due("u1", datetime(2024, 2, 20))
    second = materializer.materialize_due("u1", datetime(2024, 2, 20))

    assert len(first) == 2
    assert second == []
    assert len(store.list_instances("rent")) == 2


def test_cursor_only_moves_forward(store, make_user, make_definition):
    make_user("u1")
    store.write_definition(make_definition(frequency=Frequency.weekly))
    materializer = Materializer(store)

    seen = []
    for as_of in (
        datetime(2024, 1, 20),
        datetime(2024, 1, 20),
        datetime(2024, 2, 3),
        datetime(2024, 3, 1),
    ):
        materializer.materialize_due("u1", as_of)
        seen.append(store.get_definition("rent").last_created_date)

    assert seen == sorted(seen)
    ids = [t.id for t in store.list_instances("rent")]
    assert len(ids) == len(set(ids))
    # Jan 15 .. Feb 26 weekly
    assert len(ids) == 7


def test_as_of_before_start_emits_nothing(store, make_user, make_definition):
    make_user("u1")
    store.write_definition(make_definition())

    assert Materializer(store).materialize_due("u1", datetime(2024, 1, 1)) == []
    assert store.get_definition("rent").created_instances == 0


def test_output_is_ordered_across_definitions(store, make_user, make_definition):
    make_user("u1")
    store.write_definition(make_definition(def_id="b_rent", start_date=datetime(2024, 1, 10)))
    store.write_definition(make_definition(def_id="a_gym", start_date=datetime(2024, 1, 10)))
    store.write_definition(make_definition(def_id="phone", start_date=datetime(2024, 1, 5)))

    emitted = Materializer(store).materialize_due("u1", datetime(2024, 1, 31))

    assert [t.id for t in emitted] == ["phone_0", "a_gym_0", "b_rent_0"]


def test_unknown_user_is_denied(store):
    with pytest.raises(PermissionDenied):
        Materializer(store).materialize_due("ghost", datetime(2024, 1, 1))


def test_due_instances_respects_cursor(make_definition):
    definition = make_definition(
        created_instances=2, last_created_date=datetime(2024, 2, 20)
    )

    due = due_instances(definition, datetime(2024, 4, 20))

    assert [t.id for t in due] == ["rent_2", "rent_3"]


def test_advance_cursor_returns_a_new_definition(make_definition):
    definition = make_definition(occurrences=2)
    emitted = due_instances(definition, datetime(2024, 3, 1))

    updated = advance_cursor(definition, emitted, datetime(2024, 3, 1))

    assert updated is not definition
    assert updated.created_instances == 2
    assert updated.active is False
    assert definition.created_instances == 0
    assert definition.active is True


# ---------- failure and concurrency ----------


class StoreWithoutBatch:
    """Delegates everything but batch(); optionally fails the next cursor write."""

    def __init__(self, inner, fail_cursor_writes=0):
        self.inner = inner
        self.fail_cursor_writes = fail_cursor_writes

    def __getattr__(self, name):
        if name == "batch":
            raise AttributeError(name)
        return getattr(self.inner, name)

    def write_definition(self, definition, expected=None, deadline=None):
        if expected is not None and self.fail_cursor_writes:
            self.fail_cursor_writes -= 1
            raise StoreUnavailable("connection dropped")
        return self.inner.write_definition(definition, expected=expected, deadline=deadline)


def test_retry_after_failed_cursor_write_has_no_duplicates(
    store, make_user, make_definition
):
    make_user("u1")
    store.write_definition(make_definition())
    flaky = StoreWithoutBatch(store, fail_cursor_writes=1)
    materializer = Materializer(flaky)

    with pytest.raises(StoreUnavailable):
        materializer.materialize_due("u1", datetime(2024, 3, 20))

    # instances landed, the cursor did not
    assert len(store.list_instances("rent")) == 3
    assert store.get_definition("rent").created_instances == 0

    emitted = materializer.materialize_due("u1", datetime(2024, 3, 20))

    assert [t.id for t in emitted] == ["rent_0", "rent_1", "rent_2"]
    assert [t.id for t in store.list_instances("rent")] == ["rent_0", "rent_1", "rent_2"]
    assert store.get_definition("rent").created_instances == 3


class RacingStore:
    """Runs a competing materialization right before the first batch commits."""

    def __init__(self, inner, as_of):
        self.inner = inner
        self.as_of = as_of
        self.raced = False
        self.rival_emitted = []

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def batch(self, ops, deadline=None):
        if not self.raced:
            self.raced = True
            self.rival_emitted = Materializer(self.inner).materialize_due("u1", self.as_of)
        return self.inner.batch(ops, deadline=deadline)


def test_concurrent_runs_emit_each_instance_once(store, make_user, make_definition):
    make_user("u1")
    store.write_definition(make_definition())
    as_of = datetime(2024, 4, 20)
    racing = RacingStore(store, as_of)

    emitted = Materializer(racing).materialize_due("u1", as_of)

    # the rival won the cursor; this run re-read it and found nothing left
    assert [t.id for t in racing.rival_emitted] == ["rent_0", "rent_1", "rent_2", "rent_3"]
    assert emitted == []
    assert len(store.list_instances("rent")) == 4
    assert store.get_definition("rent").created_instances == 4


def test_batch_rolls_back_instances_when_cursor_is_stale(store, make_user, make_definition):
    make_user("u1")
    definition = make_definition()
    store.write_definition(definition)
    instances = due_instances(definition, datetime(2024, 2, 20))
    updated = advance_cursor(definition, instances, datetime(2024, 2, 20))

    ok = store.batch(
        [StoreOp.upsert_transaction(t) for t in instances]
        + [StoreOp.write_definition(updated, (datetime(2024, 1, 1), 7))]
    )

    assert ok is False
    assert store.list_instances("rent") == []


def test_broken_definition_does_not_block_the_others(store, make_user, make_definition):
    make_user("u1")
    # stored without validation: ends before it starts
    store.write_definition(
        make_definition(
            def_id="broken",
            start_date=datetime(2024, 1, 10),
            end_date=datetime(2023, 12, 1),
        )
    )
    store.write_definition(make_definition())

    emitted = Materializer(store).materialize_due("u1", datetime(2024, 2, 20))

    assert [t.id for t in emitted] == ["rent_0", "rent_1"]
    assert store.list_instances("broken") == []
    assert store.get_definition("broken").created_instances == 0
