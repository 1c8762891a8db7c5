"""Tests for the SlotStore booking transition and slot seeding."""

from __future__ import annotations

import random
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest
from pydantic import ValidationError

from src.services.slot_store import (
    CLASS_TIMES,
    DomainError,
    Slot,
    SlotAtCapacityError,
    SlotNotFoundError,
    SlotStatus,
    SlotStore,
    seed_slots,
)


# ── Tests: Slot model ────────────────────────────────────────────────


class TestSlot:
    def test_status_derived_from_counts(self, make_slot):
        assert make_slot(capacity=2, booked_count=1).status is SlotStatus.AVAILABLE
        assert make_slot(capacity=2, booked_count=2).status is SlotStatus.FULL

    def test_overbooked_slot_is_rejected(self, make_slot):
        with pytest.raises(ValidationError):
            make_slot(capacity=2, booked_count=3)

    def test_capacity_must_be_positive(self, make_slot):
        with pytest.raises(ValidationError):
            make_slot(capacity=0)

    def test_slots_are_immutable(self, make_slot):
        slot = make_slot()
        with pytest.raises(ValidationError):
            slot.booked_count = 5

    def test_payload_uses_camel_case_and_status(self, make_slot):
        payload = make_slot(capacity=1, booked_count=1).to_payload()
        assert payload["bookedCount"] == 1
        assert payload["status"] == "FULL"
        assert "booked_count" not in payload

    def test_parses_camel_case_input(self):
        slot = Slot.model_validate({
            "id": "x", "date": "2026-10-20", "time": "09:00", "type": "Boxing",
            "trainer": "Bruce Lee", "capacity": 3, "bookedCount": 2,
        })
        assert slot.booked_count == 2


# ── Tests: book ──────────────────────────────────────────────────────


class TestBook:
    def test_successful_booking_increments_by_one(self, store):
        before = store.get("2026-10-20-0900")
        outcome = store.book("2026-10-20-0900", "Ada")
        assert outcome.slot.booked_count == before.booked_count + 1
        assert outcome.client_name == "Ada"
        assert outcome.message == "Booking confirmed"
        assert store.get("2026-10-20-0900").booked_count == before.booked_count + 1

    def test_last_seat_marks_slot_full(self, store):
        outcome = store.book("2026-10-20-1100", "Ada")
        assert outcome.slot.booked_count == 1
        assert outcome.slot.status is SlotStatus.FULL

    def test_full_slot_rejected_and_unchanged(self, store):
        before = store.get("2026-10-20-1400")
        with pytest.raises(SlotAtCapacityError) as exc_info:
            store.book("2026-10-20-1400", "Ada")
        assert exc_info.value.slot_id == "2026-10-20-1400"
        assert store.get("2026-10-20-1400") == before

    def test_unknown_slot_rejected(self, store):
        with pytest.raises(SlotNotFoundError):
            store.book("1999-01-01-0000", "Ada")

    def test_domain_errors_share_base_class(self):
        assert issubclass(SlotNotFoundError, DomainError)
        assert issubclass(SlotAtCapacityError, DomainError)

    def test_status_consistent_after_every_booking(self, make_slot):
        store = SlotStore([make_slot(capacity=3, booked_count=0)])
        for _ in range(3):
            slot = store.book("2026-10-20-0900", "Ada").slot
            assert (slot.status is SlotStatus.FULL) == (slot.booked_count >= slot.capacity)
        with pytest.raises(SlotAtCapacityError):
            store.book("2026-10-20-0900", "Ada")


class TestConcurrentBooking:
    def test_two_racers_for_last_seat(self, make_slot):
        store = SlotStore([make_slot(capacity=1, booked_count=0)])
        barrier = threading.Barrier(2)

        def attempt(name):
            barrier.wait()
            try:
                store.book("2026-10-20-0900", name)
                return "ok"
            except SlotAtCapacityError:
                return "full"

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(attempt, ["Ada", "Grace"]))

        assert sorted(results) == ["full", "ok"]
        assert store.get("2026-10-20-0900").booked_count == 1

    def test_many_racers_never_exceed_capacity(self, make_slot):
        store = SlotStore([make_slot(capacity=5, booked_count=0)])
        barrier = threading.Barrier(20)

        def attempt(i):
            barrier.wait()
            try:
                store.book("2026-10-20-0900", f"client-{i}")
                return True
            except SlotAtCapacityError:
                return False

        with ThreadPoolExecutor(max_workers=20) as pool:
            results = list(pool.map(attempt, range(20)))

        assert sum(results) == 5
        slot = store.get("2026-10-20-0900")
        assert slot.booked_count == 5
        assert slot.status is SlotStatus.FULL


# ── Tests: query ─────────────────────────────────────────────────────


class TestQuery:
    def test_exact_date_match_sorted_by_time(self, store):
        slots = store.query("2026-10-20")
        assert [s.time for s in slots] == ["09:00", "11:00", "14:00"]

    def test_no_match_returns_empty(self, store):
        assert store.query("2030-01-01") == []

    def test_query_has_no_side_effects(self, store):
        before = store.all()
        store.query("2026-10-20")
        assert store.all() == before


# ── Tests: seeding ───────────────────────────────────────────────────


class TestSeedSlots:
    def test_five_classes_per_day(self):
        slots = seed_slots(date(2026, 10, 19), days=3, rng=random.Random(1))
        assert len(slots) == 3 * len(CLASS_TIMES)
        assert slots[0].id == "2026-10-19-0900"
        assert slots[-1].id == "2026-10-21-1930"

    def test_seeded_rng_is_reproducible(self):
        first = seed_slots(date(2026, 10, 19), rng=random.Random(5))
        second = seed_slots(date(2026, 10, 19), rng=random.Random(5))
        assert first == second

    def test_seeded_slots_have_seats_left(self):
        slots = seed_slots(date(2026, 10, 19), days=2, rng=random.Random(3))
        assert all(0 <= s.booked_count < 8 for s in slots)
        assert all(s.status is SlotStatus.AVAILABLE for s in slots)
