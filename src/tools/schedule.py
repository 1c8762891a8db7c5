"""Schedule tools exposed to the model: ``get_schedule`` and ``book_slot``.

Each tool has its own pydantic argument model; the dispatcher validates
raw model output against it before the implementation runs.
"""

from __future__ import annotations

import logging
import random
from datetime import date
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src import config
from src.config import ConfigurationError
from src.services.fitness_client import FitnessApiClient, RemoteScheduleBackend, validate_date
from src.services.slot_store import BookingOutcome, Slot, SlotStatus, SlotStore, seed_slots
from src.tools.dispatcher import ToolDispatcher, ToolResult, ToolSpec

logger = logging.getLogger(__name__)


class ScheduleBackend(Protocol):
    def query(self, date: str) -> list[Slot]: ...

    def book(
        self,
        slot_id: str,
        client_name: str,
        client_email: str | None = None,
    ) -> BookingOutcome: ...


# ── Argument models ─────────────────────────────────────────────────


class GetScheduleArgs(BaseModel):
    model_config = ConfigDict(strict=True)

    date: str = Field(
        description='Date in YYYY-MM-DD format. If the user says "tomorrow", calculate the date.',
    )

    @field_validator("date")
    @classmethod
    def check_date(cls, value: str) -> str:
        return validate_date(value)


class BookSlotArgs(BaseModel):
    model_config = ConfigDict(strict=True, alias_generator=to_camel, populate_by_name=True)

    slot_id: str = Field(
        min_length=1,
        description='The ID of the slot to book (e.g. "2026-10-20-0900").',
    )
    client_name: str = Field(min_length=1, description="Name of the client booking the class.")

    @field_validator("slot_id", "client_name")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


# ── Implementations ─────────────────────────────────────────────────


def make_schedule_tools(backend: ScheduleBackend) -> list[ToolSpec]:
    """Bind the schedule tools to *backend* (a SlotStore or remote backend)."""

    def get_schedule(args: GetScheduleArgs) -> ToolResult:
        slots = backend.query(args.date)
        result: ToolResult = {
            "date": args.date,
            "slots": [s.to_payload() for s in slots],
        }
        if not slots:
            result["message"] = f"No classes scheduled on {args.date}."
        else:
            available = sum(1 for s in slots if s.status is SlotStatus.AVAILABLE)
            result["message"] = f"{available} of {len(slots)} classes have seats left."
        return result

    def book_slot(args: BookSlotArgs) -> ToolResult:
        outcome = backend.book(args.slot_id, args.client_name)
        return {
            "success": True,
            "message": outcome.message,
            "clientName": outcome.client_name,
            "slot": outcome.slot.to_payload(),
        }

    return [
        ToolSpec(
            name="get_schedule",
            description=(
                "Get the fitness class schedule for a specific date. "
                "Always ask for the date if not provided."
            ),
            args_model=GetScheduleArgs,
            handler=get_schedule,
        ),
        ToolSpec(
            name="book_slot",
            description=(
                "Book a specific training slot by ID. "
                "Must be called after checking availability."
            ),
            args_model=BookSlotArgs,
            handler=book_slot,
        ),
    ]


def build_dispatcher(backend: ScheduleBackend) -> ToolDispatcher:
    return ToolDispatcher(make_schedule_tools(backend))


def create_backend(*, today: date | None = None) -> ScheduleBackend:
    """Build the backend selected by ``SCHEDULE_BACKEND``.

    ``local`` seeds an in-memory :class:`SlotStore`; ``remote`` talks to the
    booking service through :class:`FitnessApiClient`.
    """
    if config.SCHEDULE_BACKEND == "remote":
        logger.info("Using remote schedule backend at %s", config.FITNESS_API_BASE_URL)
        return RemoteScheduleBackend(FitnessApiClient())
    if config.SCHEDULE_BACKEND != "local":
        raise ConfigurationError(
            f"Unknown SCHEDULE_BACKEND {config.SCHEDULE_BACKEND!r} (expected 'local' or 'remote')"
        )

    rng = random.Random(config.SEED_RANDOM_SEED)
    slots = seed_slots(today or date.today(), config.SEED_DAYS, rng)
    logger.info("Seeded %d slots over %d days", len(slots), config.SEED_DAYS)
    return SlotStore(slots)
