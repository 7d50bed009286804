# tests/conftest.py
# Test setup: temporary SQLite DB, SQL adapters, a pinned clock and app overrides.

import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, create_engine

# Ensure repo root on sys.path so "import pocketminder" works
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pocketminder.models as _models  # noqa: F401,E402  # registers tables on SQLModel.metadata
from pocketminder.clock import FixedClock  # noqa: E402
from pocketminder.config import Settings, get_settings  # noqa: E402
from pocketminder.db import create_db_and_tables, get_session  # noqa: E402
from pocketminder.engine import RecurringEngine  # noqa: E402
from pocketminder.main import app as fastapi_app  # noqa: E402
from pocketminder.models import (  # noqa: E402
    Bill,
    BillFrequency,
    Frequency,
    RecurringDefinition,
    Transaction,
    TxnType,
    User,
)
from pocketminder.routers.engine import get_recurring_engine  # noqa: E402
from pocketminder.services.notifier import SqlNotifier  # noqa: E402
from pocketminder.services.state_cache import SqlStateCache  # noqa: E402
from pocketminder.services.store import SqlTransactionStore  # noqa: E402


@pytest.fixture()
def tmp_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test_pocketminder.db"


@pytest.fixture()
def test_engine(tmp_db_path: Path):
    # File-based SQLite so multiple connections share the same DB
    url = f"sqlite:///{tmp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False})
    create_db_and_tables(engine)  # tables from pocketminder.models
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        local_timezone="UTC",
        io_deadline_seconds=30,
        bill_reminder_lead_days=3,
        cas_retries=3,
        recurrence_anchor="calendar",
    )


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 1, 9, 0))


@pytest.fixture()
def store(test_engine) -> SqlTransactionStore:
    return SqlTransactionStore(test_engine)


@pytest.fixture()
def notifier(test_engine, clock) -> SqlNotifier:
    return SqlNotifier(test_engine, clock)


@pytest.fixture()
def cache(test_engine) -> SqlStateCache:
    return SqlStateCache(test_engine)


@pytest.fixture()
def rengine(store, notifier, clock, cache, settings) -> RecurringEngine:
    return RecurringEngine(store, notifier, clock, cache, settings)


@pytest.fixture()
def make_user(store):
    def _make(user_id="u1", monthly_budget=None, currency_code="USD"):
        user = User(
            id=user_id,
            currency_code=currency_code,
            monthly_budget=Decimal(monthly_budget) if monthly_budget is not None else None,
        )
        store.save_user(user)
        return user

    return _make


@pytest.fixture()
def make_definition():
    def _make(
        def_id="rent",
        user_id="u1",
        amount="1200",
        frequency=Frequency.monthly,
        start_date=datetime(2024, 1, 15),
        end_date=None,
        occurrences=None,
        category="housing",
        txn_type="expense",
        note=None,
        **cursor,
    ):
        return RecurringDefinition(
            id=def_id,
            user_id=user_id,
            base_transaction={
                "id": def_id,
                "amount": amount,
                "category": category,
                "type": txn_type,
                "note": note,
            },
            frequency=frequency,
            start_date=start_date,
            end_date=end_date,
            occurrences=occurrences,
            **cursor,
        )

    return _make


@pytest.fixture()
def add_expense(store):
    counter = {"n": 0}

    def _add(user_id, amount, when, category="food"):
        counter["n"] += 1
        store.upsert_transaction(
            Transaction(
                id=f"exp_{counter['n']}",
                user_id=user_id,
                amount=-abs(Decimal(amount)),
                category=category,
                type=TxnType.expense,
                date=when,
            )
        )
        return f"exp_{counter['n']}"

    return _add


@pytest.fixture()
def add_bill(store):
    def _add(bill_id, user_id, name, amount, due_date, frequency=BillFrequency.monthly):
        bill = Bill(
            id=bill_id,
            user_id=user_id,
            name=name,
            amount=Decimal(amount),
            due_date=due_date,
            frequency=frequency,
        )
        store.save_bill(bill)
        return bill

    return _add


@pytest.fixture()
def client(test_engine, rengine, settings):
    # Override the app's DB session and engine to use our test database
    def _get_test_session():
        with Session(test_engine) as s:
            yield s

    fastapi_app.dependency_overrides[get_session] = _get_test_session
    fastapi_app.dependency_overrides[get_recurring_engine] = lambda: rengine
    fastapi_app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()
