"""
Shared fixtures for the Khata tests.

Async code is driven through run(); no event-loop plugin is needed.
Everything runs against in-memory storage with a fixed clock.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from khata.config import StoreProfileSettings
from khata.ledger import LedgerEngine, SnapshotCodec, TransactionLifecycleManager
from khata.models.ledger import Customer
from khata.services.storage import InMemoryKeyValueStore, RecordStore
from khata.validation import LedgerValidator

NOW = datetime(2024, 6, 15, 10, 30, tzinfo=timezone.utc)


def run(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


def fixed_clock():
    return NOW


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv):
    return RecordStore(
        kv,
        default_profile=StoreProfileSettings(
            name="Sharma General Store",
            address="MG Road",
            phone="9000000000",
            owner_name="Ravi",
        ),
    )


@pytest.fixture
def engine(store):
    return LedgerEngine(store)


@pytest.fixture
def events():
    """Events published by the ledger and codec, in order."""
    return []


@pytest.fixture
def ledger(store, engine, events):
    manager = TransactionLifecycleManager(
        store,
        engine=engine,
        validator=LedgerValidator(future_date_tolerance_days=7),
        opening_balance_label="Opening Balance",
        clock=fixed_clock,
    )

    async def collect(event):
        events.append(event)

    manager.subscribe(collect)
    return manager


@pytest.fixture
def codec(store, engine, events):
    async def collect(event):
        events.append(event)

    return SnapshotCodec(
        store,
        engine=engine,
        recompute_on_import=True,
        listeners=[collect],
        clock=fixed_clock,
    )


def make_customer(customer_id: str = "c1", name: str = "Ramesh Gupta", **kwargs) -> Customer:
    return Customer(id=customer_id, name=name, phone=kwargs.pop("phone", "9876543210"), **kwargs)
