# pocketminder/models.py
from datetime import datetime  # all instants: naive local wall-clock time
from decimal import Decimal  # money: fixed scale 2, never float
from enum import Enum  # small enums for clarity
from typing import Optional  # nullable fields

from sqlalchemy import JSON, Column, Text
from sqlmodel import Field, SQLModel


class TxnType(str, Enum):
    income = "income"  # stored as TEXT
    expense = "expense"


class Frequency(str, Enum):
    """How often a recurring definition produces an instance."""

    daily = "daily"
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


class BillFrequency(str, Enum):
    once = "once"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


class NotificationStatus(str, Enum):
    pending = "pending"  # waiting for deliver_at; cancellable
    sent = "sent"  # immediate alerts; never cancelled


class User(SQLModel, table=True):
    __tablename__ = "user"
    id: str = Field(primary_key=True)  # id from the identity provider
    currency_code: str = Field(default="USD")  # ISO 4217
    monthly_budget: Optional[Decimal] = Field(
        default=None, max_digits=12, decimal_places=2
    )  # null = no budget alerts
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Transaction(SQLModel, table=True):
    """
    A single real-life entry of money moving in/out.
    Materialized instances keep a back-reference to their definition.
    """

    __tablename__ = "transaction"
    id: str = Field(primary_key=True)  # "{base_id}_{index}" for instances
    user_id: str = Field(index=True, foreign_key="user.id")  # owner

    amount: Decimal = Field(max_digits=12, decimal_places=2)  # expense < 0 < income
    category: str = Field(default="other", index=True)
    type: TxnType = Field(index=True)  # income | expense
    date: datetime = Field(index=True)
    note: Optional[str] = None

    recurring_id: Optional[str] = Field(default=None, index=True)  # definition id
    instance_index: Optional[int] = None  # 0-based position in the definition's stream


class Bill(SQLModel, table=True):
    __tablename__ = "bill"
    id: str = Field(primary_key=True)
    user_id: str = Field(index=True, foreign_key="user.id")
    name: str
    amount: Decimal = Field(max_digits=12, decimal_places=2)  # positive magnitude
    due_date: datetime
    frequency: BillFrequency = Field(default=BillFrequency.once)
    category: str = Field(default="bills")


class RecurringDefinition(SQLModel, table=True):
    """
    A rule producing dated Transaction instances.

    base_transaction is the template copied into every instance:
    {"id", "amount" (decimal string), "category", "type", "note"}.
    The cursor fields (created_instances, last_created_date, active) are
    written only by the materializer.
    """

    __tablename__ = "recurring_definition"
    id: str = Field(primary_key=True)
    user_id: str = Field(index=True, foreign_key="user.id")
    base_transaction: dict = Field(default_factory=dict, sa_column=Column(JSON))

    frequency: Frequency = Field(index=True)
    start_date: datetime
    end_date: Optional[datetime] = None  # exclusive with occurrences
    occurrences: Optional[int] = None  # null + null end_date = open-ended

    created_instances: int = Field(default=0)
    last_created_date: Optional[datetime] = None  # exclusive lower bound of next window
    active: bool = Field(default=True, index=True)


class StateEntry(SQLModel, table=True):
    """Rows behind the SQL StateCache (idempotency keys)."""

    __tablename__ = "state_entry"
    key: str = Field(primary_key=True)
    value: str = Field(sa_column=Column(Text, nullable=False))  # canonical JSON text
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ScheduledNotification(SQLModel, table=True):
    """Outbox read by the on-device dispatcher."""

    __tablename__ = "scheduled_notification"
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)  # also the cancel tag
    deliver_at: datetime = Field(index=True)
    title: str
    body: str
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    status: NotificationStatus = Field(default=NotificationStatus.pending, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
