"""In-memory, capacity-bounded collection of bookable class slots.

Slots are immutable; a booking replaces the stored slot with an updated
copy.  The read-check-replace sequence runs under a single lock, so two
concurrent bookings of the last seat produce exactly one success and one
:class:`SlotAtCapacityError`.
"""

from __future__ import annotations

import logging
import random
import threading
from datetime import date, timedelta
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

ClassType = Literal["Yoga", "CrossFit", "Boxing", "Pilates"]


class SlotStatus(StrEnum):
    AVAILABLE = "AVAILABLE"
    FULL = "FULL"


class Slot(BaseModel):
    """A bookable class slot.  ``status`` is derived, never stored."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    date: str
    time: str
    type: ClassType
    trainer: str
    capacity: int = Field(gt=0)
    booked_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_occupancy(self) -> Slot:
        if self.booked_count > self.capacity:
            raise ValueError(
                f"bookedCount {self.booked_count} exceeds capacity {self.capacity}"
            )
        return self

    @computed_field
    @property
    def status(self) -> SlotStatus:
        return SlotStatus.FULL if self.booked_count >= self.capacity else SlotStatus.AVAILABLE

    @property
    def seats_left(self) -> int:
        return self.capacity - self.booked_count

    def to_payload(self) -> dict:
        """JSON-ready dict using the camelCase field names the model sees."""
        return self.model_dump(mode="json", by_alias=True)


class BookingOutcome(BaseModel):
    slot: Slot
    client_name: str
    client_email: str | None = None
    message: str = "Booking confirmed"


# ── Domain errors ───────────────────────────────────────────────────


class DomainError(Exception):
    """A non-retryable, user-visible booking failure.  State is unchanged."""

    def __init__(self, slot_id: str, message: str):
        self.slot_id = slot_id
        super().__init__(message)


class SlotNotFoundError(DomainError):
    def __init__(self, slot_id: str):
        super().__init__(slot_id, "Slot not found")


class SlotAtCapacityError(DomainError):
    def __init__(self, slot_id: str):
        super().__init__(slot_id, "Slot is fully booked")


# ── Store ───────────────────────────────────────────────────────────


class SlotStore:
    """Thread-safe slot collection with an atomic booking transition."""

    def __init__(self, slots: list[Slot] | None = None) -> None:
        self._slots: dict[str, Slot] = {s.id: s for s in slots or []}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._slots)

    def all(self) -> list[Slot]:
        with self._lock:
            return list(self._slots.values())

    def get(self, slot_id: str) -> Slot | None:
        with self._lock:
            return self._slots.get(slot_id)

    def query(self, date: str) -> list[Slot]:
        """Return the slots on *date* (exact ``YYYY-MM-DD`` match), by time."""
        with self._lock:
            matches = [s for s in self._slots.values() if s.date == date]
        return sorted(matches, key=lambda s: s.time)

    def book(
        self,
        slot_id: str,
        client_name: str,
        client_email: str | None = None,
    ) -> BookingOutcome:
        """Take one seat in *slot_id* for *client_name*.

        Raises:
            SlotNotFoundError: no slot has that id.
            SlotAtCapacityError: the slot is already full.
        """
        with self._lock:
            slot = self._slots.get(slot_id)
            if slot is None:
                logger.info("Booking rejected: slot %s not found", slot_id)
                raise SlotNotFoundError(slot_id)
            if slot.booked_count >= slot.capacity:
                logger.info("Booking rejected: slot %s is full (%d/%d)",
                            slot_id, slot.booked_count, slot.capacity)
                raise SlotAtCapacityError(slot_id)

            updated = slot.model_copy(update={"booked_count": slot.booked_count + 1})
            self._slots[slot_id] = updated

        logger.info(
            "Booked slot %s for %s (%d/%d, %s)",
            slot_id, client_name, updated.booked_count, updated.capacity, updated.status,
        )
        return BookingOutcome(slot=updated, client_name=client_name, client_email=client_email)


# ── Seeding ─────────────────────────────────────────────────────────

CLASS_TIMES = ("09:00", "11:00", "14:00", "18:00", "19:30")
CLASS_TYPES: tuple[ClassType, ...] = ("Yoga", "CrossFit", "Boxing", "Pilates")
TRAINERS = ("Sarah Connor", "Rocky Balboa", "Mr. Miyagi", "Bruce Lee")
DEFAULT_CAPACITY = 10


def seed_slots(
    start: date,
    days: int = 3,
    rng: random.Random | None = None,
    *,
    capacity: int = DEFAULT_CAPACITY,
) -> list[Slot]:
    """Build the initial schedule: five classes a day starting at *start*."""
    rng = rng or random.Random()
    slots: list[Slot] = []
    for offset in range(days):
        day = (start + timedelta(days=offset)).isoformat()
        for index, time_str in enumerate(CLASS_TIMES):
            slots.append(
                Slot(
                    id=f"{day}-{time_str.replace(':', '')}",
                    date=day,
                    time=time_str,
                    type=CLASS_TYPES[index % len(CLASS_TYPES)],
                    trainer=TRAINERS[index % len(TRAINERS)],
                    capacity=capacity,
                    booked_count=rng.randrange(0, min(8, capacity)),
                )
            )
    return slots
