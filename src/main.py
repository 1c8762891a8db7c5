"""CLI entry point for the IronBot fitness booking agent.

A terminal chat loop for development.  For production, use the FastAPI
server (src/server.py).

Usage:
    uv run python -m src.main            # normal mode (quiet)
    uv run python -m src.main --debug    # debug mode (shows API calls)
"""

from __future__ import annotations

import argparse
import getpass
import logging

from dotenv import load_dotenv

from src import config
from src.agent import Orchestrator
from src.config import ConfigurationError
from src.conversation import Conversation, ConversationMessage, MessageRole
from src.session import AgentSession
from src.tools.schedule import build_dispatcher, create_backend

logger = logging.getLogger(__name__)

WELCOME = (
    "Hello! I'm your Fitness Booking Agent. I can check schedules and book "
    "classes for you. Try saying 'What's available tomorrow?'"
)


def _configure_logging(debug: bool = False) -> None:
    """WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("src").setLevel(logging.DEBUG if debug else logging.INFO)


def _ask_for_key() -> str | None:
    """Prompt for the model API key when it is not in the environment."""
    if config.ANTHROPIC_API_KEY:
        return config.ANTHROPIC_API_KEY
    try:
        return getpass.getpass("Anthropic API key: ").strip() or None
    except (KeyboardInterrupt, EOFError):
        return None


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="IronBot fitness booking agent CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    session = AgentSession(_ask_for_key())
    try:
        session.require_credentials()
    except ConfigurationError as e:
        print(f"\n{e}\n")
        return

    orchestrator = Orchestrator(session, build_dispatcher(create_backend()))
    conversation = Conversation([ConversationMessage(role=MessageRole.MODEL, text=WELCOME)])

    print("\n" + "=" * 60)
    print("  IronBot - Fitness Booking CLI")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new conversation.")
    print("=" * 60 + "\n")
    print(f"IronBot: {WELCOME}\n")

    while True:
        try:
            user_input = input("You: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nGoodbye!")
            break

        if not user_input:
            continue

        if user_input.lower() in ("exit", "quit", "q"):
            print("\nGoodbye! Keep training!")
            break

        if user_input.lower() == "new":
            conversation = Conversation()
            print("\n>> New conversation started.\n")
            continue

        try:
            reply = orchestrator.run_turn(conversation, user_input)
        except KeyboardInterrupt:
            print("\n\nGoodbye!")
            break
        except Exception as e:
            logger.exception("Error processing message")
            print(f"\nIronBot: Sorry, something went wrong: {e}")
            print("         Please try again or type 'new' to start over.\n")
            continue

        if reply.tool_call is not None:
            print(f"\n  [tool] {reply.tool_call.name}({reply.tool_call.args})")
        print(f"\nIronBot: {reply.text}\n")


if __name__ == "__main__":
    main()
