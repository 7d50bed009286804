# pocketminder/routers/recurring.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from pocketminder.categorize import categorize
from pocketminder.clock import to_local
from pocketminder.engine import RecurringEngine
from pocketminder.models import RecurringDefinition, TxnType
from pocketminder.recurrence import (
    create_recurring_definition,
    frequency_label,
    update_recurring_definition,
)
from pocketminder.routers.engine import (
    engine_errors,
    get_recurring_engine,
    transaction_out,
)

router = APIRouter(prefix="/users/{user_id}/recurring", tags=["recurring"])


class RecurringIn(BaseModel):
    amount: Decimal
    type: str = TxnType.expense.value  # validated by the engine, not here
    category: Optional[str] = None  # inferred from the note when omitted
    note: Optional[str] = None
    frequency: str
    start_date: datetime
    end_date: Optional[datetime] = None
    occurrences: Optional[int] = None

    def template(self) -> dict:
        category = self.category or categorize(
            self.note, self.amount, is_income=self.type == TxnType.income.value
        )
        return {
            "amount": self.amount,
            "type": self.type,
            "category": category,
            "note": self.note,
        }

    def terms(self, tz: str) -> dict:
        """Frequency and bounds, with aware datetimes turned into local wall time."""
        return {
            "frequency": self.frequency,
            "start_date": to_local(self.start_date, tz),
            "end_date": to_local(self.end_date, tz) if self.end_date else None,
            "occurrences": self.occurrences,
        }


def definition_out(definition: RecurringDefinition) -> dict:
    return {
        "id": definition.id,
        "user_id": definition.user_id,
        "base_transaction": dict(definition.base_transaction or {}),
        "frequency": definition.frequency.value,
        "frequency_label": frequency_label(definition.frequency),
        "start_date": definition.start_date.isoformat(),
        "end_date": definition.end_date.isoformat() if definition.end_date else None,
        "occurrences": definition.occurrences,
        "created_instances": definition.created_instances,
        "last_created_date": (
            definition.last_created_date.isoformat()
            if definition.last_created_date
            else None
        ),
        "active": definition.active,
    }


def _owned_definition(
    rengine: RecurringEngine, user_id: str, definition_id: str
) -> RecurringDefinition:
    definition = rengine.store.get_definition(definition_id)
    if definition is None or definition.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return definition


@router.post("", status_code=status.HTTP_201_CREATED)
def create_definition(
    user_id: str,
    payload: RecurringIn,
    rengine: RecurringEngine = Depends(get_recurring_engine),
):
    with engine_errors():
        rengine.store.get_user(user_id)
        definition = create_recurring_definition(
            user_id=user_id,
            base_transaction=payload.template(),
            **payload.terms(rengine.tz),
        )
        rengine.store.write_definition(definition)
    return definition_out(definition)


@router.get("")
def list_definitions(
    user_id: str,
    active_only: bool = False,
    rengine: RecurringEngine = Depends(get_recurring_engine),
):
    with engine_errors():
        rengine.store.get_user(user_id)
        definitions = rengine.store.list_recurring_definitions(
            user_id, only_active=active_only
        )
    return {"definitions": [definition_out(d) for d in definitions]}


@router.put("/{definition_id}")
def update_definition(
    user_id: str,
    definition_id: str,
    payload: RecurringIn,
    rengine: RecurringEngine = Depends(get_recurring_engine),
):
    # instances already materialized keep their old terms
    with engine_errors():
        current = _owned_definition(rengine, user_id, definition_id)
        definition = update_recurring_definition(
            current, base_transaction=payload.template(), **payload.terms(rengine.tz)
        )
        rengine.store.write_definition(definition)
    return definition_out(definition)


@router.delete("/{definition_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_definition(
    user_id: str,
    definition_id: str,
    rengine: RecurringEngine = Depends(get_recurring_engine),
):
    # materialized instances stay; they are ordinary transactions now
    with engine_errors():
        _owned_definition(rengine, user_id, definition_id)
        rengine.store.delete_definition(definition_id)


@router.get("/{definition_id}/preview")
def preview(
    user_id: str,
    definition_id: str,
    start: datetime,
    end: datetime,
    rengine: RecurringEngine = Depends(get_recurring_engine),
):
    with engine_errors():
        definition = _owned_definition(rengine, user_id, definition_id)
        instances = rengine.expand(
            definition, to_local(start, rengine.tz), to_local(end, rengine.tz)
        )
    return {"instances": [transaction_out(t) for t in instances]}
