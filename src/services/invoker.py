"""Resilient remote invocation: one HTTP call with per-attempt timeouts,
response classification and retries with backoff + jitter.

Classification
--------------
* ``2xx``             → success (JSON parsed when the content-type says so)
* ``429``             → retryable; waits ``Retry-After`` if present, else backoff
* ``5xx``             → retryable; waits backoff
* other ``4xx``       → :class:`PermanentClientError`, raised immediately
* timeout / connect   → retryable

Once ``max_attempts`` retryable failures have been observed the call fails
with :class:`ExhaustedRetriesError`, which wraps the last cause.  All attempt
bookkeeping lives inside a single :meth:`Invoker.invoke` call; the instance
only holds configuration and injected collaborators.
"""

from __future__ import annotations

import enum
import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from src.services.metrics import metrics

logger = logging.getLogger(__name__)

SERVICE_NAME = "fitness_api"


# ── Error taxonomy ──────────────────────────────────────────────────


class FitnessAPIError(Exception):
    """Base class for failures talking to the fitness booking service."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class TransientNetworkError(FitnessAPIError):
    """A timeout, 429 or 5xx: worth another attempt."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, status_code)


class PermanentClientError(FitnessAPIError):
    """A 4xx other than 429.  Retrying cannot repair the request."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        self.body = body
        super().__init__(message, status_code)


class ExhaustedRetriesError(FitnessAPIError):
    """Every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: TransientNetworkError):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"API call failed after {attempts} attempts. Last error: {last_error}",
            status_code=last_error.status_code,
        )


class InvalidRequestError(FitnessAPIError, ValueError):
    """The request was rejected locally, before any network attempt."""


# ── Retry policy ────────────────────────────────────────────────────


class BackoffStrategy(enum.StrEnum):
    EXPONENTIAL = "exponential"
    LINEAR = "linear"


class AttemptOutcome(enum.StrEnum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    PERMANENT_FAILURE = "permanent_failure"


@dataclass(frozen=True)
class RetryAttempt:
    """Ephemeral record of one attempt, used for logging and metrics."""

    attempt: int
    delay: float
    outcome: AttemptOutcome
    detail: str = ""


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts to make and how long to wait between them.

    ``strategy`` selects between the exponential formula
    ``base_delay * 2**(attempt-1) + U(0, jitter_ceiling)`` and the linear
    ``base_delay * attempt + U(0, jitter_ceiling)``.  Under either formula
    consecutive deterministic delays differ by at least ``base_delay``, so
    ``jitter_ceiling`` may not exceed it; delays never shrink between
    attempts.  A server-supplied ``Retry-After`` is capped at
    ``max_retry_after``.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    jitter_ceiling: float = 0.2
    per_attempt_timeout: float = 8.0
    strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    max_retry_after: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.jitter_ceiling < 0:
            raise ValueError("delays must be non-negative")
        if self.jitter_ceiling > self.base_delay:
            raise ValueError("jitter_ceiling must not exceed base_delay")
        if self.per_attempt_timeout <= 0:
            raise ValueError("per_attempt_timeout must be positive")
        if self.max_retry_after < 0:
            raise ValueError("max_retry_after must be non-negative")

    @classmethod
    def from_config(cls) -> RetryPolicy:
        from src import config

        return cls(
            max_attempts=config.RETRY_MAX_ATTEMPTS,
            base_delay=config.RETRY_BASE_DELAY_SECONDS,
            jitter_ceiling=config.RETRY_JITTER_SECONDS,
            per_attempt_timeout=config.REQUEST_TIMEOUT_SECONDS,
            strategy=BackoffStrategy(config.RETRY_BACKOFF_STRATEGY),
            max_retry_after=config.RETRY_MAX_RETRY_AFTER_SECONDS,
        )

    def base_backoff(self, attempt: int) -> float:
        """The deterministic part of the delay after *attempt* (1-based)."""
        if self.strategy is BackoffStrategy.LINEAR:
            return self.base_delay * attempt
        return self.base_delay * (2 ** (attempt - 1))

    def backoff(self, attempt: int, rng: random.Random) -> float:
        return self.base_backoff(attempt) + rng.uniform(0, self.jitter_ceiling)

    def max_delay(self, max_attempts: int | None = None) -> float:
        """Upper bound on any single backoff delay for this policy."""
        n = self.max_attempts if max_attempts is None else max_attempts
        return self.base_delay * (2 ** (n - 1)) + self.jitter_ceiling


def parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header (delta-seconds or HTTP-date)."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug("Ignoring unparsable Retry-After header: %r", value)
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0.0, (when - datetime.now(UTC)).total_seconds())


# ── Invoker ─────────────────────────────────────────────────────────


class Invoker:
    """Issue HTTP calls through *client* with the configured retry policy.

    ``rng`` and ``sleep`` are injectable so backoff timing is reproducible
    in tests.
    """

    def __init__(
        self,
        client: httpx.Client,
        policy: RetryPolicy | None = None,
        *,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._client = client
        self._policy = policy or RetryPolicy()
        self._rng = rng or random.Random()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def invoke(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        max_attempts: int | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Execute *method* *url*, retrying transient failures.

        Returns the parsed JSON body, the raw text for non-JSON responses,
        or ``None`` for an empty body.
        """
        attempts = self._policy.max_attempts if max_attempts is None else max_attempts
        per_attempt_timeout = self._policy.per_attempt_timeout if timeout is None else timeout
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if per_attempt_timeout <= 0:
            raise ValueError("timeout must be positive")
        operation = f"{method.upper()} {url}"
        last_error: TransientNetworkError | None = None

        for attempt in range(1, attempts + 1):
            logger.info("[API] %s | Attempt %d/%d", operation, attempt, attempts)
            t0 = time.perf_counter()
            try:
                response = self._client.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    timeout=per_attempt_timeout,
                )
                result = self._classify(response)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                reason = (
                    f"Timeout after {per_attempt_timeout:g}s"
                    if isinstance(exc, httpx.TimeoutException)
                    else f"{type(exc).__name__}: {exc}"
                )
                last_error = TransientNetworkError(reason)
            except TransientNetworkError as exc:
                last_error = exc
            except PermanentClientError as exc:
                elapsed = (time.perf_counter() - t0) * 1000
                self._record(RetryAttempt(attempt, 0.0, AttemptOutcome.PERMANENT_FAILURE,
                                          str(exc.status_code)), operation, elapsed)
                logger.error("[API] %s failed permanently: %s", operation, exc)
                raise
            else:
                elapsed = (time.perf_counter() - t0) * 1000
                self._record(RetryAttempt(attempt, 0.0, AttemptOutcome.SUCCESS), operation, elapsed)
                return result

            elapsed = (time.perf_counter() - t0) * 1000
            if attempt == attempts:
                self._record(RetryAttempt(attempt, 0.0, AttemptOutcome.RETRYABLE_FAILURE,
                                          str(last_error)), operation, elapsed)
                break

            if last_error.retry_after is not None:
                delay = min(last_error.retry_after, self._policy.max_retry_after)
            else:
                delay = self._policy.backoff(attempt, self._rng)
            self._record(RetryAttempt(attempt, delay, AttemptOutcome.RETRYABLE_FAILURE,
                                      str(last_error)), operation, elapsed)
            logger.warning(
                "[API] Error on attempt %d/%d: %s. Retrying in %.2fs…",
                attempt, attempts, last_error, delay,
            )
            self._sleep(delay)

        logger.error("[API] %s: all %d attempts failed", operation, attempts)
        raise ExhaustedRetriesError(attempts, last_error) from last_error

    @staticmethod
    def _classify(response: httpx.Response) -> Any:
        status = response.status_code
        if status == 429:
            raise TransientNetworkError(
                "Rate limited (429)",
                status_code=status,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        if 500 <= status <= 599:
            raise TransientNetworkError(f"Server error {status}", status_code=status)
        if 400 <= status <= 499:
            raise PermanentClientError(
                f"Client error {status}: {response.text}",
                status_code=status,
                body=response.text,
            )

        if not response.content:
            return None
        content_type = response.headers.get("content-type", "")
        if "json" in content_type.lower():
            return response.json()
        return response.text

    @staticmethod
    def _record(attempt: RetryAttempt, operation: str, latency_ms: float) -> None:
        logger.debug("Attempt record: %s", attempt)
        if attempt.outcome is AttemptOutcome.SUCCESS:
            metrics.record_success(SERVICE_NAME, operation, latency_ms=latency_ms)
        else:
            metrics.record_failure(
                SERVICE_NAME, operation,
                error_type=attempt.outcome.value, latency_ms=latency_ms,
            )
