"""Conversation history: immutable messages in insertion order."""

from __future__ import annotations

import threading
import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(StrEnum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"  # internal visualisation only, never sent to the model


class ToolCallRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None


class ConversationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: MessageRole
    text: str
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    tool_call: ToolCallRecord | None = None


class Conversation:
    """Append-only message history for one chat session."""

    def __init__(self, messages: list[ConversationMessage] | None = None) -> None:
        self._messages: list[ConversationMessage] = list(messages or [])
        self._lock = threading.Lock()

    def append(self, message: ConversationMessage) -> ConversationMessage:
        with self._lock:
            self._messages.append(message)
        return message

    @property
    def messages(self) -> list[ConversationMessage]:
        """A snapshot; later appends do not show up in it."""
        with self._lock:
            return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)


class ConversationStore:
    """Conversations keyed by session id, created on first use."""

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}
        self._lock = threading.Lock()

    def get_or_create(self, session_id: str) -> Conversation:
        with self._lock:
            conversation = self._conversations.get(session_id)
            if conversation is None:
                conversation = self._conversations[session_id] = Conversation()
            return conversation

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._conversations
