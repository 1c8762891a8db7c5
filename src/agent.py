"""LangGraph orchestrator for one IronBot conversational turn.

Architecture:
  Each turn is a small LangGraph StateGraph with three nodes:

    1. **reasoning**       — tool-bound model call with the system
                             instruction, the history and the tool schemas
    2. **tool_execution**  — dispatches the (single) requested tool call
    3. **responding**      — second model call, *without* tools, that turns
                             the tool output into the final reply

  Routing:
    reasoning → (tool call?)    → tool_execution → responding → END
              → (plain text?)   → responding → END

  The responding model has no tools bound, so a turn executes at most one
  tool call.  Tool failures arrive as data from the dispatcher and are
  forwarded to the model like any other tool output.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from langchain_core.messages import AIMessage, AnyMessage, HumanMessage, SystemMessage
from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from src.conversation import (
    Conversation,
    ConversationMessage,
    MessageRole,
    ToolCallRecord,
)
from src.prompts import TOOL_RESULT_TEMPLATE, get_system_prompt
from src.services.metrics import metrics
from src.session import AgentSession
from src.tools.dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Action completed."
NO_RESPONSE_REPLY = "Error: No response from model."
TURN_FAILED_REPLY = "System Error: Unable to process request. Please try again."


# ── State schema ─────────────────────────────────────────────────────


class TurnState(TypedDict, total=False):
    """The state that flows through one turn.

    ``messages`` is the model-facing history (system instruction excluded).
    ``draft`` is the first model response, ``tool_call`` the executed call
    (if any) and ``reply`` the final user-facing text.
    """

    messages: list[AnyMessage]
    draft: AIMessage | None
    tool_call: ToolCallRecord | None
    reply: str


# ── Helpers ──────────────────────────────────────────────────────────


def to_model_messages(history: list[ConversationMessage]) -> list[AnyMessage]:
    """Map conversation history onto chat-model messages.

    ``system`` messages are UI-only and dropped.  Leading model messages
    (e.g. a greeting) are dropped too, as the model API expects the
    conversation to open with a user message.
    """
    messages: list[AnyMessage] = []
    for msg in history:
        if msg.role is MessageRole.USER:
            messages.append(HumanMessage(content=msg.text))
        elif msg.role is MessageRole.MODEL and messages and msg.text:
            messages.append(AIMessage(content=msg.text))
    return messages


def _text_of(message: AIMessage | None) -> str:
    """Extract plain text from a model response (string or content blocks)."""
    if message is None:
        return ""
    content = message.content
    if isinstance(content, str):
        return content.strip()
    parts = [
        block.get("text", "") if isinstance(block, dict) else str(block)
        for block in content
        if not isinstance(block, dict) or block.get("type") == "text"
    ]
    return "".join(parts).strip()


def _timed_invoke(llm: Any, messages: list[AnyMessage], operation: str) -> AIMessage:
    t0 = time.perf_counter()
    try:
        response = llm.invoke(messages)
    except Exception as exc:
        elapsed = (time.perf_counter() - t0) * 1000
        metrics.record_failure(
            "anthropic", operation, error_type=type(exc).__name__, latency_ms=elapsed,
        )
        raise
    elapsed = (time.perf_counter() - t0) * 1000
    metrics.record_success("anthropic", operation, latency_ms=elapsed)
    logger.debug("%s responded in %.0fms", operation, elapsed)
    return response


# ── Nodes ────────────────────────────────────────────────────────────


def _make_reasoning_node(session: AgentSession, dispatcher: ToolDispatcher):
    """First model call, with the tool schemas bound."""
    llm_with_tools = session.chat_model().bind_tools(dispatcher.schemas())

    def reasoning_node(state: TurnState) -> dict:
        system = SystemMessage(content=get_system_prompt())
        response = _timed_invoke(llm_with_tools, [system] + state["messages"], "reasoning")
        return {"draft": response}

    return reasoning_node


def _make_tool_node(dispatcher: ToolDispatcher):
    def tool_node(state: TurnState) -> dict:
        calls = state["draft"].tool_calls
        if len(calls) > 1:
            logger.warning(
                "Model requested %d tool calls; executing only %s",
                len(calls), calls[0]["name"],
            )
        call = calls[0]
        args = call.get("args") or {}
        result = dispatcher.dispatch(call["name"], args)
        logger.info("Tool %s returned: %s", call["name"], result)
        return {"tool_call": ToolCallRecord(name=call["name"], args=args, result=result)}

    return tool_node


def _make_responding_node(session: AgentSession):
    """Second model call, without tools: at most one tool call per turn."""
    llm = session.chat_model()

    def responding_node(state: TurnState) -> dict:
        record = state.get("tool_call")
        if record is None:
            text = _text_of(state.get("draft"))
            return {"reply": text or NO_RESPONSE_REPLY}

        prompt = TOOL_RESULT_TEMPLATE.format(
            name=record.name,
            args=json.dumps(record.args, default=str),
            result=json.dumps(record.result, default=str),
        )
        system = SystemMessage(content=get_system_prompt())
        response = _timed_invoke(
            llm, [system] + state["messages"] + [HumanMessage(content=prompt)], "responding",
        )
        return {"reply": _text_of(response) or FALLBACK_REPLY}

    return responding_node


# ── Conditional edges ────────────────────────────────────────────────


def should_execute_tool(state: TurnState) -> str:
    """Route to tool_execution if the draft requests a tool call."""
    draft = state.get("draft")
    if draft is not None and getattr(draft, "tool_calls", None):
        return "tool_execution"
    return "responding"


# ── Graph assembly ───────────────────────────────────────────────────


def create_turn_graph(session: AgentSession, dispatcher: ToolDispatcher):
    """Build and compile the per-turn graph for *session*.

    Fails with :class:`~src.config.ConfigurationError` if the session has
    no credential, before anything touches the network.
    """
    session.require_credentials()

    graph = StateGraph(TurnState)
    graph.add_node("reasoning", _make_reasoning_node(session, dispatcher))
    graph.add_node("tool_execution", _make_tool_node(dispatcher))
    graph.add_node("responding", _make_responding_node(session))

    graph.set_entry_point("reasoning")
    graph.add_conditional_edges(
        "reasoning",
        should_execute_tool,
        {"tool_execution": "tool_execution", "responding": "responding"},
    )
    graph.add_edge("tool_execution", "responding")
    graph.add_edge("responding", END)

    compiled = graph.compile()
    logger.debug("Turn graph compiled — model: %s, tools: %s",
                 session.model_name, dispatcher.names)
    return compiled


class Orchestrator:
    """Drives conversational turns for one session.

    ``run_turn`` is safe to call from several threads at once; each call
    runs its own graph invocation and only shares the conversation
    (append-only) and whatever the tools touch.
    """

    def __init__(self, session: AgentSession, dispatcher: ToolDispatcher):
        self._session = session
        self._dispatcher = dispatcher
        self._graph = None

    @property
    def graph(self):
        if self._graph is None:
            self._graph = create_turn_graph(self._session, self._dispatcher)
        return self._graph

    def run_turn(self, conversation: Conversation, text: str) -> ConversationMessage:
        """Process one user message and return the model's reply message.

        If the turn fails, an error reply is recorded before the exception
        propagates, so every user message in the history has a response.
        """
        self._session.require_credentials()

        history = conversation.messages
        conversation.append(ConversationMessage(role=MessageRole.USER, text=text))
        messages = to_model_messages(history) + [HumanMessage(content=text)]

        try:
            state = self.graph.invoke({"messages": messages, "draft": None, "tool_call": None})
        except Exception as exc:
            logger.warning("Turn failed, recording error reply: %s", exc)
            conversation.append(
                ConversationMessage(role=MessageRole.MODEL, text=TURN_FAILED_REPLY),
            )
            raise

        reply = ConversationMessage(
            role=MessageRole.MODEL,
            text=state.get("reply") or FALLBACK_REPLY,
            tool_call=state.get("tool_call"),
        )
        return conversation.append(reply)
