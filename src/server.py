"""FastAPI server for the IronBot fitness booking agent.

Run with:
    uv run uvicorn src.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from src.agent import Orchestrator
from src.api.routes import router
from src.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from src.conversation import ConversationStore
from src.session import AgentSession
from src.tools.schedule import build_dispatcher, create_backend

# ── Logging ──────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: build session, backend and orchestrator ────────────────


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build the session, schedule backend and orchestrator once per process.

    The credential is read here, once; a missing key does not stop the
    server, but every chat turn then fails fast with a 503.
    """
    session = AgentSession.from_env()
    if not session.is_configured:
        logger.error("ANTHROPIC_API_KEY is not set; chat requests will be rejected.")

    backend = create_backend()
    application.state.backend = backend
    application.state.conversations = ConversationStore()
    application.state.orchestrator = Orchestrator(session, build_dispatcher(backend))
    logger.info("Agent ready.")
    yield
    close = getattr(backend, "close", None)
    if close is not None:
        close()


# ── FastAPI application ──────────────────────────────────────────────

app = FastAPI(
    title="IronBot Fitness Booking Agent",
    description="AI-powered fitness class assistant — check schedules and book classes.",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────


@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID (client-supplied or generated) for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Register routes ──────────────────────────────────────────────────

app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "IronBot Fitness Booking Agent",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


# ── CLI entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("Starting IronBot API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "src.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
