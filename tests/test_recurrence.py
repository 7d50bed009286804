# tests/test_recurrence.py
"""
Pure recurrence math: no database needed.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from pocketminder.errors import InvalidDefinition
from pocketminder.models import Frequency, TxnType
from pocketminder.recurrence import (
    RecurrenceAnchor,
    create_recurring_definition,
    expand,
    frequency_label,
    next_occurrence,
    update_recurring_definition,
)


def _dates(instances):
    return [t.date for t in instances]


def test_monthly_rent_with_three_occurrences(make_definition):
    rent = make_definition(occurrences=3)

    instances = expand(rent, datetime(2024, 1, 1), datetime(2024, 12, 31))

    assert _dates(instances) == [
        datetime(2024, 1, 15),
        datetime(2024, 2, 15),
        datetime(2024, 3, 15),
    ]
    assert [t.id for t in instances] == ["rent_0", "rent_1", "rent_2"]
    assert all(t.amount == Decimal("-1200.00") for t in instances)
    assert all(t.type == TxnType.expense for t in instances)
    assert all(t.category == "housing" for t in instances)
    assert all(t.recurring_id == "rent" for t in instances)


def test_window_inside_bounded_daily_stream(make_definition):
    daily = make_definition(
        def_id="d",
        frequency=Frequency.daily,
        start_date=datetime(2024, 3, 1),
        end_date=datetime(2024, 3, 5),
    )

    instances = expand(daily, datetime(2024, 3, 3), datetime(2024, 3, 10))

    assert _dates(instances) == [
        datetime(2024, 3, 3),
        datetime(2024, 3, 4),
        datetime(2024, 3, 5),
    ]
    # indices count from start_date, not from the window
    assert [t.instance_index for t in instances] == [2, 3, 4]
    assert [t.id for t in instances] == ["d_2", "d_3", "d_4"]


def test_month_end_start_keeps_calendar_day(make_definition):
    definition = make_definition(start_date=datetime(2024, 1, 31), occurrences=4)

    instances = expand(definition, datetime(2024, 1, 1), datetime(2024, 12, 31))

    assert _dates(instances) == [
        datetime(2024, 1, 31),
        datetime(2024, 2, 29),
        datetime(2024, 3, 31),
        datetime(2024, 4, 30),
    ]


def test_rebase_anchor_steps_from_clamped_day(make_definition):
    definition = make_definition(start_date=datetime(2024, 1, 31), occurrences=4)

    instances = expand(
        definition, datetime(2024, 1, 1), datetime(2024, 12, 31), RecurrenceAnchor.rebase
    )

    assert _dates(instances) == [
        datetime(2024, 1, 31),
        datetime(2024, 2, 29),
        datetime(2024, 3, 29),
        datetime(2024, 4, 29),
    ]


def test_yearly_leap_day(make_definition):
    definition = make_definition(
        frequency=Frequency.yearly, start_date=datetime(2024, 2, 29), occurrences=5
    )

    dates = _dates(expand(definition, datetime(2024, 1, 1), datetime(2030, 1, 1)))

    assert dates == [
        datetime(2024, 2, 29),
        datetime(2025, 2, 28),
        datetime(2026, 2, 28),
        datetime(2027, 2, 28),
        datetime(2028, 2, 29),
    ]


@pytest.mark.parametrize(
    "frequency, second",
    [
        (Frequency.weekly, datetime(2024, 1, 22)),
        (Frequency.biweekly, datetime(2024, 1, 29)),
        (Frequency.quarterly, datetime(2024, 4, 15)),
        (Frequency.yearly, datetime(2025, 1, 15)),
    ],
)
def test_second_occurrence_per_frequency(make_definition, frequency, second):
    definition = make_definition(frequency=frequency, occurrences=2)

    dates = _dates(expand(definition, datetime(2024, 1, 1), datetime(2026, 1, 1)))

    assert dates == [datetime(2024, 1, 15), second]


def test_expand_is_deterministic(make_definition):
    definition = make_definition(frequency=Frequency.weekly, end_date=datetime(2024, 6, 1))
    window = (datetime(2024, 2, 1), datetime(2024, 5, 1))

    first = [t.model_dump() for t in expand(definition, *window)]
    second = [t.model_dump() for t in expand(definition, *window)]

    assert first == second
    assert first


def test_window_before_start_is_empty(make_definition):
    definition = make_definition()

    assert expand(definition, datetime(2023, 1, 1), datetime(2023, 12, 31)) == []


def test_open_ended_definition_stops_at_window_end(make_definition):
    definition = make_definition()

    instances = expand(definition, datetime(2024, 1, 1), datetime(2024, 6, 30))

    assert len(instances) == 6
    assert instances[-1].date == datetime(2024, 6, 15)


def test_income_definition_stays_positive(make_definition):
    salary = make_definition(def_id="pay", amount="-3000", txn_type="income", category="income")

    instances = expand(salary, datetime(2024, 1, 1), datetime(2024, 1, 31))

    assert instances[0].amount == Decimal("3000.00")
    assert instances[0].type == TxnType.income


@pytest.mark.parametrize(
    "overrides",
    [
        {"frequency": "fortnightly"},
        {"end_date": datetime(2024, 6, 1), "occurrences": 3},
        {"end_date": datetime(2023, 6, 1)},
        {"occurrences": 0},
        {"txn_type": "transfer"},
    ],
)
def test_invalid_definitions_are_rejected(make_definition, overrides):
    definition = make_definition(**overrides)

    with pytest.raises(InvalidDefinition):
        expand(definition, datetime(2024, 1, 1), datetime(2024, 12, 31))


def test_invalid_definition_is_a_value_error(make_definition):
    definition = make_definition(occurrences=-1)

    with pytest.raises(ValueError):
        expand(definition, datetime(2024, 1, 1), datetime(2024, 12, 31))


# ---------- helpers ----------


def test_create_recurring_definition_fills_defaults():
    definition = create_recurring_definition(
        user_id="u1",
        base_transaction={"amount": 9.99, "category": "entertainment", "note": "Netflix"},
        frequency="monthly",
        start_date=datetime(2024, 2, 3),
    )

    assert definition.id.startswith("rec_")
    assert definition.base_transaction["id"] == definition.id
    assert definition.base_transaction["amount"] == "9.99"
    assert definition.base_transaction["type"] == "expense"
    assert definition.frequency == Frequency.monthly
    assert definition.created_instances == 0
    assert definition.last_created_date is None
    assert definition.active is True


def test_create_recurring_definition_copies_template():
    base = {"amount": "10", "type": "income"}

    definition = create_recurring_definition(
        user_id="u1", base_transaction=base, frequency="weekly", start_date=datetime(2024, 1, 1)
    )

    assert "id" not in base
    assert definition.base_transaction is not base


@pytest.mark.parametrize(
    "kwargs",
    [
        {"base_transaction": {}},
        {"frequency": "hourly"},
        {"base_transaction": {"amount": "ten"}},
        {"base_transaction": {"amount": "5", "type": "refund"}},
        {"end_date": datetime(2024, 3, 1), "occurrences": 2},
    ],
)
def test_create_recurring_definition_rejects_bad_input(kwargs):
    params = {
        "user_id": "u1",
        "base_transaction": {"amount": "5"},
        "frequency": "monthly",
        "start_date": datetime(2024, 1, 1),
    }
    params.update(kwargs)

    with pytest.raises(InvalidDefinition):
        create_recurring_definition(**params)


def test_next_occurrence_clamps_month_end():
    assert next_occurrence(datetime(2023, 1, 31), "monthly") == datetime(2023, 2, 28)
    assert next_occurrence(datetime(2024, 1, 1), Frequency.biweekly) == datetime(2024, 1, 15)


def test_next_occurrence_unknown_frequency():
    with pytest.raises(InvalidDefinition):
        next_occurrence(datetime(2024, 1, 1), "hourly")


def test_frequency_label():
    assert frequency_label("biweekly") == "Every 2 weeks"
    assert frequency_label(Frequency.quarterly) == "Every 3 months"
    assert frequency_label("sometimes") == "Custom"


def test_update_recurring_definition_keeps_id_series_and_cursor(make_definition):
    current = make_definition(
        created_instances=4, last_created_date=datetime(2024, 4, 20), active=True
    )

    updated = update_recurring_definition(
        current,
        base_transaction={"amount": "1300", "category": "housing", "note": "New lease"},
        frequency="monthly",
        start_date=datetime(2024, 1, 15),
        occurrences=12,
    )

    assert updated.id == "rent"
    assert updated.base_transaction["id"] == "rent"
    assert updated.base_transaction["amount"] == "1300.00"
    assert (updated.created_instances, updated.last_created_date, updated.active) == (
        4,
        datetime(2024, 4, 20),
        True,
    )
    assert expand(updated, datetime(2024, 5, 1), datetime(2024, 5, 31))[0].id == "rent_4"


def test_update_recurring_definition_is_validated(make_definition):
    with pytest.raises(InvalidDefinition):
        update_recurring_definition(
            make_definition(),
            base_transaction={"amount": "5"},
            frequency="monthly",
            start_date=datetime(2024, 5, 1),
            end_date=datetime(2024, 4, 1),
        )
