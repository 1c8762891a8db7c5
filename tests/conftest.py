"""Shared test fixtures for the IronBot test suite."""

from __future__ import annotations

import os
import random

import pytest

from src.services.slot_store import Slot, SlotStore


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any test module imports ``src.config``.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("FITNESS_API_KEY", "test-fitness-key-456")
    os.environ.setdefault("FITNESS_API_BASE_URL", "https://api.fitness.test/v1")
    os.environ.setdefault("SCHEDULE_BACKEND", "local")
    os.environ.setdefault("SEED_RANDOM_SEED", "1234")
    os.environ["METRICS_ENABLED"] = "false"


@pytest.fixture
def make_slot():
    """Factory fixture for slots with sensible defaults."""

    def _make(slot_id: str = "2026-10-20-0900", **overrides) -> Slot:
        date, _, hhmm = slot_id.rpartition("-")
        fields = {
            "id": slot_id,
            "date": date or "2026-10-20",
            "time": f"{hhmm[:2]}:{hhmm[2:]}" if len(hhmm) == 4 else "09:00",
            "type": "Yoga",
            "trainer": "Sarah Connor",
            "capacity": 10,
            "booked_count": 0,
        }
        fields.update(overrides)
        return Slot(**fields)

    return _make


@pytest.fixture
def store(make_slot) -> SlotStore:
    return SlotStore([
        make_slot("2026-10-20-0900", booked_count=3),
        make_slot("2026-10-20-1100", type="CrossFit", trainer="Rocky Balboa",
                  capacity=1, booked_count=0),
        make_slot("2026-10-20-1400", type="Boxing", capacity=5, booked_count=5),
        make_slot("2026-10-21-0900", type="Pilates", trainer="Bruce Lee"),
    ])


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)
