"""Shared fixtures: seeded in-memory store and a registered citizen.

All tests run WITHOUT network access; email and WhatsApp run in mock
mode and push uses an in-memory runtime.
"""

from __future__ import annotations

import pytest

from src.data.seed import seed_reference_data
from src.services.store import InMemoryObjectStorage, InMemoryRecordStore
from tests.helpers import CITIZEN_ID


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
async def seeded_store(store: InMemoryRecordStore) -> InMemoryRecordStore:
    """Store with reference data and one citizen profile with full contact details."""
    await seed_reference_data(store)
    await store.insert(
        "profiles",
        {"id": CITIZEN_ID, "name": "Asha Verma", "email": "asha@example.in", "phone": "9876543210"},
    )
    return store
