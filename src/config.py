"""Centralized configuration for the IronBot fitness booking agent.

Values are read from environment variables (or a local ``.env`` file) once
at import time.  Nothing here is *required* at import: credentials are
checked where they are used, so that a missing key fails the session
with a :class:`ConfigurationError` before any network call is made.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class ConfigurationError(OSError):
    """Raised when a required setting (usually a credential) is missing."""


def _optional_env(name: str) -> str | None:
    """Return *name* from the environment, ignoring ``your_...`` placeholders."""
    value = os.getenv(name)
    if value and value.strip() and not value.startswith("your_"):
        return value.strip()
    return None


def require_setting(name: str, value: str | None = None) -> str:
    """Return *value* (or the env var *name*), or raise a clear error."""
    resolved = value.strip() if value and value.strip() else _optional_env(name)
    if resolved:
        return resolved
    raise ConfigurationError(
        f"Missing required configuration: {name}. Set it in .env or the environment."
    )


# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str | None = _optional_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-sonnet-4-5")
MODEL_TEMPERATURE: float = float(os.getenv("MODEL_TEMPERATURE", "0.2"))
MODEL_MAX_TOKENS: int = int(os.getenv("MODEL_MAX_TOKENS", "1024"))

# ── Fitness booking service ─────────────────────────────────────────
FITNESS_API_BASE_URL: str = os.getenv(
    "FITNESS_API_BASE_URL", "https://api.fitness-club.example.com/v1",
)
FITNESS_API_KEY: str | None = _optional_env("FITNESS_API_KEY")

# "local" books against the in-memory SlotStore, "remote" against the API
SCHEDULE_BACKEND: str = os.getenv("SCHEDULE_BACKEND", "local").lower()

# ── Retry policy ────────────────────────────────────────────────────
RETRY_MAX_ATTEMPTS: int = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
RETRY_BASE_DELAY_SECONDS: float = float(os.getenv("RETRY_BASE_DELAY_SECONDS", "1.0"))
RETRY_JITTER_SECONDS: float = float(os.getenv("RETRY_JITTER_SECONDS", "0.2"))
RETRY_BACKOFF_STRATEGY: str = os.getenv("RETRY_BACKOFF_STRATEGY", "exponential").lower()
RETRY_MAX_RETRY_AFTER_SECONDS: float = float(os.getenv("RETRY_MAX_RETRY_AFTER_SECONDS", "30.0"))
REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "8.0"))

# ── Slot seeding ────────────────────────────────────────────────────
SEED_DAYS: int = int(os.getenv("SEED_DAYS", "3"))
_seed = os.getenv("SEED_RANDOM_SEED")
SEED_RANDOM_SEED: int | None = int(_seed) if _seed else None

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
