"""Per-session reasoning model client.

The credential is supplied once, when the session is created, and the
session is passed explicitly to whoever needs the model.  There is no
module-level client.
"""

from __future__ import annotations

import logging
import threading

from langchain_anthropic import ChatAnthropic

from src import config
from src.config import ConfigurationError

logger = logging.getLogger(__name__)


class AgentSession:
    """Holds the model credential and lazily builds the chat model."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model_name: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ):
        self._api_key = api_key.strip() if api_key else None
        self.model_name = model_name or config.MODEL_NAME
        self.temperature = config.MODEL_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or config.MODEL_MAX_TOKENS
        self._llm: ChatAnthropic | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls) -> AgentSession:
        return cls(config.ANTHROPIC_API_KEY)

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def require_credentials(self) -> None:
        """Raise :class:`ConfigurationError` unless a credential was supplied."""
        if not self._api_key:
            raise ConfigurationError(
                "API key not set: create the session with an Anthropic API key "
                "(ANTHROPIC_API_KEY) before sending messages."
            )

    def chat_model(self) -> ChatAnthropic:
        """Return the session's chat model, building it on first use."""
        self.require_credentials()
        if self._llm is None:
            with self._lock:
                if self._llm is None:
                    logger.debug("Building chat model %s", self.model_name)
                    self._llm = ChatAnthropic(
                        model=self.model_name,
                        api_key=self._api_key,
                        temperature=self.temperature,
                        max_tokens=self.max_tokens,
                    )
        return self._llm
