"""Scripted demo session for exercising viewers without a live agent."""

from __future__ import annotations

import asyncio
import random
import time
from typing import TYPE_CHECKING, Any

from loguru import logger

from synapse.bridge.models.enums import AgentKind, EventType
from synapse.bridge.models.session import Session
from synapse.bridge.normalizer import Normalizer, NormalizerState

if TYPE_CHECKING:
    from synapse.bridge.delivery.channel import DeliveryChannel

DEMO_SESSION_NAME = "Building a REST API"

DEMO_SCRIPT: list[tuple[EventType, str, dict[str, Any] | None]] = [
    (EventType.USER_MESSAGE, "Can you help me build a REST API for a todo app?", None),
    (
        EventType.THOUGHT,
        "User wants a REST API for todos. I should use Express.js with TypeScript for type safety. "
        "Will need routes for CRUD operations.",
        None,
    ),
    (
        EventType.DECISION,
        "I'll create a clean project structure with routes, controllers, and models separated.",
        None,
    ),
    (EventType.TOOL_CALL, "Creating project directory structure", {"tool": "exec"}),
    (EventType.TOOL_RESULT, "Created: src/routes, src/controllers, src/models", {"success": True}),
    (
        EventType.FILE_WRITE,
        "Creating Todo model with TypeScript interface",
        {"file": "src/models/Todo.ts", "tool": "write"},
    ),
    (EventType.TOOL_RESULT, "Successfully wrote Todo.ts", {"success": True}),
    (EventType.FILE_WRITE, "Creating CRUD routes for todos", {"file": "src/routes/todos.ts", "tool": "write"}),
    (EventType.THOUGHT, "Routes created. Now adding input validation with Zod to prevent invalid data.", None),
    (EventType.FILE_WRITE, "Adding Zod schemas for validation", {"file": "src/schemas/todo.ts", "tool": "write"}),
    (
        EventType.TOOL_CALL,
        "Installing dependencies: express, zod, typescript",
        {"tool": "exec", "duration": 2500},
    ),
    (EventType.TOOL_RESULT, "Dependencies installed successfully", {"success": True}),
    (EventType.FILE_WRITE, "Creating main app entry point", {"file": "src/index.ts", "tool": "write"}),
    (
        EventType.TOOL_CALL,
        "Running TypeScript compiler to check for errors",
        {"tool": "exec", "duration": 1200},
    ),
    (EventType.TOOL_RESULT, "No TypeScript errors found", {"success": True}),
    (
        EventType.ASSISTANT_MESSAGE,
        "Done! I've created a REST API for todos with:\n\n"
        "- Express.js + TypeScript\n"
        "- CRUD routes (GET, POST, PUT, DELETE)\n"
        "- Zod validation\n"
        "- Clean project structure\n\n"
        "Run `npm run dev` to start the server on port 3000.",
        None,
    ),
]


class DemoSource:
    """Replays :data:`DEMO_SCRIPT` with randomized pacing."""

    def __init__(
        self,
        channel: DeliveryChannel,
        *,
        min_delay: float = 0.5,
        max_delay: float = 1.5,
        max_content_len: int = 1000,
        rng: random.Random | None = None,
    ) -> None:
        self.channel = channel
        self.min_delay = min_delay
        self.max_delay = max(max_delay, min_delay)
        self.normalizer = Normalizer(max_content_len)
        self.normalizer_state = NormalizerState()
        self.rng = rng or random.Random()  # noqa: S311
        self.session: Session | None = None

    async def run(self, stop: asyncio.Event) -> Session:
        session = Session(id=f"demo-{int(time.time() * 1000)}", name=DEMO_SESSION_NAME, agent=AgentKind.CLAWDBOT)
        self.session = session
        await self.channel.start_session(session.info)

        for index, (event_type, content, metadata) in enumerate(DEMO_SCRIPT, start=1):
            if await _stopped(stop, self.rng.uniform(self.min_delay, self.max_delay)):
                break
            event = self.normalizer.make(
                self.normalizer_state,
                event_type,
                content,
                parent_id=self.normalizer_state.last_event_id,
                metadata=metadata,
            )
            for admitted in self.normalizer.admit(self.normalizer_state, [event]):
                await self.channel.publish_event(admitted)
                session.append(admitted)
            logger.debug("Demo: event {}/{}: {}", index, len(DEMO_SCRIPT), event_type)

        session.end()
        await self.channel.end_session()
        logger.info("Demo: all events sent")
        return session


async def _stopped(stop: asyncio.Event, delay: float) -> bool:
    """Sleep ``delay`` seconds unless ``stop`` fires first."""
    if stop.is_set():
        return True
    try:
        await asyncio.wait_for(stop.wait(), timeout=delay)
    except TimeoutError:
        return False
    return True
