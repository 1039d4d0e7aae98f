"""
Shared fixtures: a temporary database, a settable clock and an
initialized store with one row of each reference entity.
"""

import sys
import os
from datetime import datetime, timedelta

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from inventory.services.store import InventoryStore
from inventory.utils.config import Settings


NOW = datetime(2026, 10, 19, 10, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime):
        self.now = now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "inventory.db")


@pytest.fixture
def settings(db_path):
    return Settings(DB_PATH=db_path)


@pytest.fixture
def store(settings, clock):
    store = InventoryStore(settings=settings, clock=clock)
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def refs(store):
    """One person, item type and PCB model"""
    return {
        "person_id": store.add_person("Asha", "9876543210", priority=3),
        "item_type_id": store.add_item_type("AC"),
        "pcb_model_id": store.add_pcb_model("Samsung"),
    }


def add_item(store, refs, days=2, **overrides):
    """Add an item using the seeded references unless overridden"""
    ids = dict(refs, **overrides)
    return store.add_item(ids["item_type_id"], ids["person_id"], ids["pcb_model_id"], days)
