"""Adapter strategy interface and the shared message-expansion rules.

An adapter maps one raw *unit* (a message of a session file, a line of a
JSONL file, a line of piped text) to zero or more normalized events.  It
reads ``state.last_event_id`` as the default parent and mints ids through
the normalizer, but never records delivery itself -- that is
:meth:`Normalizer.admit`'s job, so a suppressed or dropped unit leaves the
chain untouched.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar, Protocol, runtime_checkable

from synapse.bridge.adapters.tools import (
    SPAWN_TASK_KEYS,
    ToolTable,
    describe_tool,
    first_arg,
    result_succeeded,
    stringify_result,
    tool_metadata,
)
from synapse.bridge.models.enums import AgentKind, EventType, SourceFormat
from synapse.bridge.models.events import Event
from synapse.bridge.models.session import AgentInfo
from synapse.bridge.normalizer import Normalizer, NormalizerState

# -- Control-message suppression ---------------------------------------------

SUPPRESSED_PROMPT_MARKERS = ("HEARTBEAT", "Cron:", "[Cron]")
"""User content containing any of these is a synthetic trigger, not a prompt."""

SUPPRESSED_REPLIES = frozenset({"NO_REPLY", "HEARTBEAT_OK"})
"""Assistant text exactly equal to one of these is a no-reply sentinel."""


def is_suppressed_prompt(text: str) -> bool:
    return any(marker in text for marker in SUPPRESSED_PROMPT_MARKERS)


def is_suppressed_reply(text: str) -> bool:
    return text.strip() in SUPPRESSED_REPLIES


# -- Strategy interface -------------------------------------------------------


@runtime_checkable
class Adapter(Protocol):
    """Format strategy, selected once per session."""

    source_format: ClassVar[SourceFormat]
    agent: ClassVar[AgentKind]

    def parse_unit(self, unit: Any, state: NormalizerState) -> list[Event]:
        """Map one raw unit to events.  Unknown shapes yield ``[]``."""
        ...


class MessageAdapter(ABC):
    """Role/content-block expansion shared by the message-based formats.

    Subclasses provide the tool table and :meth:`extract_message`, which
    unwraps a raw unit into an ``{"role", "content"}`` mapping.
    """

    source_format: ClassVar[SourceFormat]
    agent: ClassVar[AgentKind]
    tools: ClassVar[ToolTable] = ToolTable()

    content_limit: ClassVar[int] = 500
    result_limit: ClassVar[int] = 500

    def __init__(self, normalizer: Normalizer, *, suppress_control: bool = True) -> None:
        self.normalizer = normalizer
        self.suppress_control = suppress_control

    # -- Hooks -----------------------------------------------------------------

    @abstractmethod
    def extract_message(self, unit: Any) -> tuple[Mapping[str, Any], str | None] | None:
        """Return ``(message, agent_id)`` or ``None`` for units to skip."""

    # -- Entry point -----------------------------------------------------------

    def parse_unit(self, unit: Any, state: NormalizerState) -> list[Event]:
        extracted = self.extract_message(unit)
        if extracted is None:
            return []
        message, agent_id = extracted
        return self.parse_message(message, state, agent_id=agent_id)

    def parse_message(
        self,
        message: Mapping[str, Any],
        state: NormalizerState,
        *,
        agent_id: str | None = None,
    ) -> list[Event]:
        role = message.get("role")
        if role not in ("user", "assistant"):
            return []

        content = message.get("content")
        if isinstance(content, str):
            blocks: list[Any] = [{"type": "text", "text": content}]
        elif isinstance(content, list):
            blocks = content
        else:
            return []

        events: list[Event] = []
        parent_id = state.last_event_id
        prompt_seen = False
        for block in blocks:
            if not isinstance(block, Mapping):
                continue
            if role == "user" and not self._wanted_user_block(block, prompt_seen):
                continue
            event = self._block_event(block, role, parent_id, state, agent_id)
            if event is None:
                continue
            if event.type == EventType.USER_MESSAGE:
                prompt_seen = True
            events.append(event)
            parent_id = event.id
        return events

    @staticmethod
    def _wanted_user_block(block: Mapping[str, Any], prompt_seen: bool) -> bool:
        # A user turn is one prompt (its first text block) plus any tool results.
        block_type = block.get("type")
        if block_type == "text":
            return not prompt_seen
        return block_type == "tool_result"

    # -- Blocks ----------------------------------------------------------------

    def _block_event(
        self,
        block: Mapping[str, Any],
        role: str,
        parent_id: str | None,
        state: NormalizerState,
        agent_id: str | None,
    ) -> Event | None:
        block_type = block.get("type")

        if block_type == "text":
            text = block.get("text")
            if not isinstance(text, str) or not text.strip():
                return None
            if role == "user":
                if self.suppress_control and is_suppressed_prompt(text):
                    return None
                event_type = EventType.USER_MESSAGE
            else:
                if self.suppress_control and is_suppressed_reply(text):
                    return None
                event_type = EventType.ASSISTANT_MESSAGE
            return self.normalizer.make(
                state, event_type, text, parent_id=parent_id, agent_id=agent_id, limit=self.content_limit
            )

        if block_type == "thinking":
            thinking = block.get("thinking")
            if not isinstance(thinking, str) or not thinking:
                return None
            return self.normalizer.make(
                state, EventType.THOUGHT, thinking, parent_id=parent_id, agent_id=agent_id, limit=self.content_limit
            )

        if block_type == "tool_use":
            return self._tool_use_event(block, parent_id, state, agent_id)

        if block_type == "tool_result":
            return self._tool_result_event(block, parent_id, state, agent_id)

        return None

    def _tool_use_event(
        self,
        block: Mapping[str, Any],
        parent_id: str | None,
        state: NormalizerState,
        agent_id: str | None,
    ) -> Event | None:
        tool_name = block.get("name")
        if not isinstance(tool_name, str) or not tool_name:
            return None
        raw_args = block.get("input")
        args: Mapping[str, Any] = raw_args if isinstance(raw_args, Mapping) else {}
        native_id = block.get("id") if isinstance(block.get("id"), str) else None

        event_type = self.tools.classify(tool_name)
        metadata = tool_metadata(tool_name, args)
        if event_type == EventType.SPAWN_AGENT:
            metadata["spawnedAgent"] = self.spawned_agent(args, native_id, agent_id).model_dump(
                by_alias=True, exclude_none=True
            )

        return self.normalizer.make(
            state,
            event_type,
            describe_tool(tool_name, event_type, args),
            parent_id=parent_id,
            native_id=native_id,
            metadata=metadata,
            agent_id=agent_id,
            limit=self.content_limit,
        )

    def _tool_result_event(
        self,
        block: Mapping[str, Any],
        parent_id: str | None,
        state: NormalizerState,
        agent_id: str | None,
    ) -> Event:
        text = stringify_result(block.get("content"))
        tool_use_id = block.get("tool_use_id")
        causal_parent = tool_use_id if isinstance(tool_use_id, str) and tool_use_id else parent_id
        return self.normalizer.make(
            state,
            EventType.TOOL_RESULT,
            text,
            parent_id=causal_parent,
            metadata={"success": result_succeeded(text, is_error=block.get("is_error") is True)},
            agent_id=agent_id,
            limit=self.result_limit,
        )

    def spawned_agent(
        self,
        args: Mapping[str, Any],
        native_id: str | None,
        agent_id: str | None,
    ) -> AgentInfo:
        """Agent descriptor for a sub-agent spawn."""
        role = first_arg(args, ("subagent_type", "agentId", "role")) or "agent"
        name = first_arg(args, ("label", "name")) or first_arg(args, SPAWN_TASK_KEYS) or role
        return AgentInfo(
            id=native_id or first_arg(args, ("label", "agentId")) or role,
            name=name[:60],
            role=role,
            parent_agent_id=agent_id or "main",
        )
