"""FastAPI route definitions for the IronBot agent API."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Query, Request

from src.agent import Orchestrator
from src.api.schemas import ChatRequest, ChatResponse, HealthResponse, SlotsResponse, ToolCallInfo
from src.config import ConfigurationError
from src.services.fitness_client import validate_date
from src.services.invoker import FitnessAPIError

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_orchestrator(request: Request) -> Orchestrator:
    """Retrieve the orchestrator built during the FastAPI lifespan."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=503,
            detail="The agent is still starting up. Please try again in a moment.",
        )
    return orchestrator


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Send a message to the booking agent and get a response.

    ``run_turn`` blocks on model and tool calls, so it runs in a worker
    thread.  Concurrent requests therefore run turns concurrently and
    race on the slot store, which serializes bookings itself.
    """
    orchestrator = _get_orchestrator(http_request)
    conversations = http_request.app.state.conversations
    request_id = getattr(http_request.state, "request_id", "?")
    conversation = conversations.get_or_create(request.session_id)

    try:
        reply = await asyncio.to_thread(orchestrator.run_turn, conversation, request.message)
    except ConfigurationError as e:
        logger.error("[%s] Agent is not configured: %s", request_id, e)
        raise HTTPException(
            status_code=503,
            detail="The agent is not configured with an API key.",
        ) from e
    except Exception as e:
        logger.exception("[%s] Error processing chat request", request_id)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred. Please try again.",
        ) from e

    tool_call = None
    if reply.tool_call is not None:
        tool_call = ToolCallInfo(**reply.tool_call.model_dump())
    return ChatResponse(reply=reply.text, session_id=request.session_id, tool_call=tool_call)


@router.get("/slots", response_model=SlotsResponse)
async def list_slots(http_request: Request, date: str = Query(..., description="YYYY-MM-DD")):
    """List the schedule for *date* straight from the backend (no model call)."""
    try:
        validate_date(date)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    backend = getattr(http_request.app.state, "backend", None)
    if backend is None:
        raise HTTPException(status_code=503, detail="The schedule is not loaded yet.")

    try:
        slots = await asyncio.to_thread(backend.query, date)
    except FitnessAPIError as e:
        logger.error("Schedule lookup for %s failed: %s", date, e)
        raise HTTPException(status_code=502, detail="The booking service is unavailable.") from e
    return SlotsResponse(date=date, slots=[s.to_payload() for s in slots])
