"""
examples/hitl_demo.py - Human-in-the-Loop Round Trip

Shows a run suspending twice, being persisted as JSON between answers,
and resuming through the ordinary run() entry point:

1. The model asks to book a meeting with "Alice"
2. The tool needs to know which Alice (clarification)
3. The tool then needs a meeting time (elicitation)
4. The run completes

Run from the project root:
    python -m examples.hitl_demo
"""

import asyncio
import json

from core.types import Agent
from core.state import RunState, create_run_state
from core.pauses import Interruption
from core.elicit import ElicitationResponse
from gate.mock import ScriptedGateway
from tool.bases import function_tool, create_json_schema
from tool.index import Catalog
from flow.loops import run
from flow.pause import load_resolutions, record_interruptions
from flow.emits import CallbackRegistry
from core.events import EventKind
from store.short import InMemoryResolutionStore
from boot.setup import setup_logging
from boot.wires import build_run_config


@function_tool(
    description="Book a meeting with a colleague",
    parameters=create_json_schema({"person": {"type": "string"}}, ["person"]),
)
def book_meeting(person: str, context) -> str:
    who = context.clarify(f"Which {person}?", ["Alice (Eng)", "Alice (Sales)"])
    form = context.elicit(
        f"When should the meeting with {who} happen?",
        {
            "type": "object",
            "properties": {"date": {"type": "string", "format": "date"}},
            "required": ["date"],
        },
    )
    return f"Booked {who} on {form['date']}"


async def main() -> None:
    setup_logging("WARNING")

    gateway = ScriptedGateway()
    gateway.add_response("", [("book_meeting", {"person": "Alice"})])
    gateway.add_response("Your meeting is booked.")

    catalog = Catalog([Agent(name="scheduler", instructions="Schedule meetings.", tools=[book_meeting])])
    events = CallbackRegistry()
    events.on(EventKind.TOOL_CALL_END, lambda e: print(f"  [tool] {e.tool_name} -> {e.status}"))
    config = build_run_config({}, gateway, catalog, on_event=events)
    store = InMemoryResolutionStore()

    state: RunState = create_run_state("scheduler", "Book a meeting with Alice")
    answers = {
        "clarification": "Alice (Eng)",
        "elicitation": ElicitationResponse.accept({"date": "2026-11-02"}).to_dict(),
    }

    while True:
        result = await run(state, config)
        if not result.interrupted:
            break

        await record_interruptions(result, store)
        pending: Interruption = (await store.list_pending(state.run_id))[0]
        print(f"Suspended: {pending.kind.value} ({pending.id})")

        # Persist and reload, as a server would between HTTP requests
        saved = json.dumps(result.final_state.to_dict())
        state = RunState.from_dict(json.loads(saved))

        await store.submit_resolution(pending.id, answers[pending.kind.value])
        state = await load_resolutions(state, store)

    print(f"Status: {result.status.value}")
    print(f"Output: {result.output}")
    print(f"Model calls: {gateway.call_count}")


if __name__ == "__main__":
    asyncio.run(main())
