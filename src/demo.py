"""Manual demonstration of the booking service client.

Calls each endpoint once and logs the outcome.  Against the default
example URL every call is expected to fail, which shows the retry and
error classification behaviour in the log output.

Usage:
    uv run python -m src.demo
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from src import config
from src.services.fitness_client import FitnessApiClient
from src.services.invoker import FitnessAPIError, RetryPolicy

logger = logging.getLogger("src.demo")


def run_demo(client: FitnessApiClient, day: str) -> dict[str, bool]:
    """Exercise every endpoint; returns which calls succeeded."""
    steps = {
        "get_schedule": lambda: client.get_schedule(day),
        "check_availability": lambda: client.check_availability([f"{day}-0900", f"{day}-1100"]),
        "create_booking": lambda: client.create_booking(f"{day}-0900", "Demo Client"),
        "cancel_booking": lambda: client.cancel_booking("demo-booking-1"),
    }
    outcomes: dict[str, bool] = {}
    for name, call in steps.items():
        logger.info("── %s", name)
        try:
            result = call()
        except FitnessAPIError as e:
            logger.warning("%s failed (%s): %s", name, type(e).__name__, e)
            outcomes[name] = False
        else:
            logger.info("%s succeeded: %s", name, result)
            outcomes[name] = True
    return outcomes


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    policy = RetryPolicy(max_attempts=3, base_delay=0.5, per_attempt_timeout=3.0)
    api_key = config.FITNESS_API_KEY or "demo-secret-key"
    tomorrow = (date.today() + timedelta(days=1)).isoformat()

    logger.info("Starting booking client demo against %s", config.FITNESS_API_BASE_URL)
    with FitnessApiClient(api_key, policy=policy) as client:
        outcomes = run_demo(client, tomorrow)
    logger.info("Demo completed: %d/%d calls succeeded",
                sum(outcomes.values()), len(outcomes))


if __name__ == "__main__":
    main()
