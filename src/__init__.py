"""IronBot — an AI fitness class booking assistant.

Architecture Overview
=====================

Each user message is one *turn*, run as a small **LangGraph** state machine:

1. **reasoning** — Claude is called with the history, a system instruction
   (persona, today's date, booking protocol) and two tool schemas,
   ``get_schedule`` and ``book_slot``.
2. **tool_execution** — if the model asked for a tool, the dispatcher
   validates the arguments and runs it once.  Failures come back as data.
3. **responding** — a second model call, without tools, turns the tool
   output into the final reply.

Key Design Decisions
--------------------
- **Explicit session**: the model credential lives on an ``AgentSession``
  created once and passed to the orchestrator.  No module-level client.
- **Capacity invariant**: ``SlotStore.book`` serializes the check-and-
  increment under a lock; concurrent turns can never double-book a seat.
- **Resilience**: every call to the booking service goes through the
  ``Invoker`` (per-attempt timeout, 429/5xx retries with backoff + jitter,
  ``Retry-After`` support, immediate failure on other 4xx).
- **Dual Interface**: FastAPI server (production) + CLI chat loop (development).

Package Structure
-----------------
- ``src/agent.py`` — per-turn LangGraph orchestrator
- ``src/session.py`` — credential-holding model session
- ``src/conversation.py`` — conversation history
- ``src/config.py`` — configuration from environment variables
- ``src/prompts.py`` — system instruction
- ``src/services/`` — invoker, booking service client, slot store, metrics
- ``src/tools/`` — tool argument models, implementations and dispatcher
- ``src/api/`` — FastAPI routes and Pydantic schemas
- ``src/server.py`` / ``src/main.py`` / ``src/demo.py`` — entry points
"""
