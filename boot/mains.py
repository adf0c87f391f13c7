"""
boot/mains.py - Entry Point

Interactive console for the engine. It wires a small demo catalog to the
EchoGateway, so no model server is needed, and walks through suspensions
by asking the questions on stdin.

Usage:
    python -m boot.mains
    > /tool find_contact {"name": "Alice"}

Responsibilities:
- Load configuration and set up logging
- Wire a RunConfig (via wires.py)
- Loop: read input, run, answer interruptions, print the outcome

Rules:
- No business logic here
- Just coordination and startup
"""

import sys
import asyncio
from typing import Any, Dict

from core.types import Agent, Message
from core.state import RunState, create_run_state
from core.pauses import ClarificationInterruption, ElicitationInterruption, Interruption
from core.proto import RunResult
from gate.mock import EchoGateway
from tool.bases import FunctionTool, create_json_schema
from tool.index import Catalog
from flow.loops import run
from flow.pause import resolve
from .setup import load_config, setup_logging
from .wires import build_run_config


CONTACTS: Dict[str, list] = {
    "alice": ["Alice (Eng)", "Alice (Sales)"],
    "bob": ["Bob (Finance)"],
}


def find_contact(name: str, context) -> str:
    """Find a contact by first name, asking the user when ambiguous."""
    matches = CONTACTS.get(name.lower(), [])
    if not matches:
        return f"No contact named {name}"
    if len(matches) == 1:
        return matches[0]
    return context.clarify(f"Which {name} do you mean?", matches)


def build_demo_catalog() -> Catalog:
    tool = FunctionTool(
        find_contact,
        parameters=create_json_schema({"name": {"type": "string"}}, ["name"]),
    )
    return Catalog([Agent(name="assistant", instructions="You help find contacts.", tools=[tool])])


def ask_human(interruption: Interruption) -> Any:
    """Collect a resolution on stdin."""
    if isinstance(interruption, ClarificationInterruption):
        print(f"? {interruption.question}")
        for index, option in enumerate(interruption.options, 1):
            print(f"  {index}. {option.label}")
        choice = input("choice> ").strip()
        if choice.isdigit() and 1 <= int(choice) <= len(interruption.options):
            return interruption.options[int(choice) - 1].id
        return choice
    if isinstance(interruption, ElicitationInterruption):
        print(f"? {interruption.request.message}")
        content = {}
        for name in interruption.request.requested_schema.get("properties", {}):
            content[name] = input(f"{name}> ").strip()
        return {"action": "accept", "content": content}
    print(f"? Authorize at {interruption.authorization_url}")
    return input("token> ").strip()


def print_result(result: RunResult) -> None:
    if result.completed:
        print(f"assistant: {result.output}")
    elif result.error is not None:
        print(f"error [{result.error.kind.value}]: {result.error.detail}")


async def main() -> int:
    """Main entry point."""
    config = load_config()
    setup_logging(config["log_level"], config["log_dir"])

    run_config = build_run_config(config, EchoGateway(), build_demo_catalog())
    state: RunState = create_run_state("assistant")

    print("Agent console. Ctrl-D to quit.")
    while True:
        try:
            text = input("> ").strip()
        except EOFError:
            return 0
        if not text:
            continue

        state = state.with_messages(Message.user(text))
        result = await run(state, run_config)
        while result.interrupted:
            interruption = result.interruptions[0]
            try:
                state = resolve(result.final_state, interruption, ask_human(interruption))
            except ValueError as e:
                print(f"invalid answer: {e}")
                continue
            result = await run(state, run_config)

        print_result(result)
        state = result.final_state


def run_console() -> None:
    """Synchronous entry point for CLI."""
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nBye!")
        sys.exit(0)


if __name__ == "__main__":
    run_console()
