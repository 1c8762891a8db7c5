"""HTTP client for the fitness club booking service.

All requests go through :class:`~src.services.invoker.Invoker`, so every
endpoint gets the same timeout, classification and retry behaviour.
Requests carry a bearer token and ``Content-Type: application/json``.

Endpoints::

    GET    /schedule?date=YYYY-MM-DD
    POST   /slots/availability   {"slotIds": [...]}
    POST   /bookings             {"slotId", "clientName", "clientEmail"?}
    DELETE /bookings/{id}
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError

from src import config
from src.config import ConfigurationError, require_setting
from src.services.invoker import (
    FitnessAPIError,
    InvalidRequestError,
    Invoker,
    PermanentClientError,
    RetryPolicy,
)
from src.services.slot_store import (
    BookingOutcome,
    Slot,
    SlotAtCapacityError,
    SlotNotFoundError,
)

logger = logging.getLogger(__name__)

USER_AGENT = "IronBot/1.0 (python-httpx)"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_date(value: str) -> str:
    """Return *value* if it is a real ``YYYY-MM-DD`` date, else raise."""
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise InvalidRequestError(f"Invalid date format {value!r}. Use YYYY-MM-DD")
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise InvalidRequestError(f"Invalid date {value!r}: {exc}") from exc
    return value


class FitnessApiClient:
    """Typed wrapper around the booking service REST API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        *,
        policy: RetryPolicy | None = None,
        invoker: Invoker | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        try:
            self._api_key = require_setting("FITNESS_API_KEY", api_key)
        except ConfigurationError:
            logger.error("FitnessApiClient created without an API key")
            raise
        self._base_url = (base_url or config.FITNESS_API_BASE_URL).rstrip("/")
        self._policy = policy or RetryPolicy.from_config()
        self._client = httpx.Client(
            base_url=self._base_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
                "User-Agent": USER_AGENT,
            },
            timeout=self._policy.per_attempt_timeout,
            transport=transport,
        )
        self._invoker = invoker or Invoker(self._client, self._policy)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> FitnessApiClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── Endpoints ────────────────────────────────────────────────────

    def get_schedule(self, date: str) -> Any:
        """Fetch the class schedule for *date* (``YYYY-MM-DD``)."""
        validate_date(date)
        return self._invoker.invoke("GET", "/schedule", params={"date": date})

    def check_availability(self, slot_ids: list[str]) -> Any:
        """Batch availability check for several slots at once."""
        if not slot_ids:
            raise InvalidRequestError("slot_ids must not be empty")
        return self._invoker.invoke(
            "POST", "/slots/availability", json_body={"slotIds": list(slot_ids)},
        )

    def create_booking(
        self,
        slot_id: str,
        client_name: str,
        client_email: str | None = None,
    ) -> Any:
        """Book one seat in *slot_id*."""
        if not slot_id or not client_name:
            raise InvalidRequestError("Missing required booking fields")
        payload: dict[str, Any] = {"slotId": slot_id, "clientName": client_name}
        if client_email:
            payload["clientEmail"] = client_email
        return self._invoker.invoke("POST", "/bookings", json_body=payload)

    def cancel_booking(self, booking_id: str) -> Any:
        if not booking_id:
            raise InvalidRequestError("booking_id must not be empty")
        return self._invoker.invoke("DELETE", f"/bookings/{booking_id}")


class RemoteScheduleBackend:
    """Schedule backend that reads and books through the remote service.

    Maps the service's 404 / 409 responses onto the same domain errors the
    in-memory :class:`~src.services.slot_store.SlotStore` raises, so tools
    behave identically against either backend.
    """

    def __init__(self, client: FitnessApiClient):
        self._client = client

    def close(self) -> None:
        self._client.close()

    def query(self, date: str) -> list[Slot]:
        data = self._client.get_schedule(date)
        items = data.get("slots", []) if isinstance(data, dict) else data or []
        return [Slot.model_validate(item) for item in items]

    def book(
        self,
        slot_id: str,
        client_name: str,
        client_email: str | None = None,
    ) -> BookingOutcome:
        try:
            data = self._client.create_booking(slot_id, client_name, client_email)
        except PermanentClientError as exc:
            if exc.status_code == 404:
                raise SlotNotFoundError(slot_id) from exc
            if exc.status_code == 409:
                raise SlotAtCapacityError(slot_id) from exc
            raise

        if not isinstance(data, dict):
            logger.error("Booking %s returned a non-JSON body: %r", slot_id, data)
            raise FitnessAPIError("Unexpected booking response")
        try:
            slot = Slot.model_validate(data.get("slot", data))
        except ValidationError as exc:
            logger.error("Booking %s returned an unreadable slot: %s", slot_id, exc)
            raise FitnessAPIError("Unexpected booking response") from exc
        return BookingOutcome(
            slot=slot,
            client_name=client_name,
            client_email=client_email,
            message=data.get("message") or "Booking confirmed",
        )
