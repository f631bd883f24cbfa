"""Shared enumerations used across the bridge."""

from __future__ import annotations

from enum import StrEnum

# -- Events ------------------------------------------------------------------


class EventType(StrEnum):
    """Closed set of node types in the event graph."""

    THOUGHT = "thought"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    FILE_READ = "file_read"
    FILE_WRITE = "file_write"
    DECISION = "decision"
    ERROR = "error"
    USER_MESSAGE = "user_message"
    ASSISTANT_MESSAGE = "assistant_message"

    # Multi-agent
    SPAWN_AGENT = "spawn_agent"
    AGENT_COMPLETE = "agent_complete"
    AGENT_HANDOFF = "agent_handoff"


# -- Sources -----------------------------------------------------------------


class SourceFormat(StrEnum):
    """Raw artifact shape; selects the adapter once per session."""

    SESSION_JSON = "session_json"
    JSONL = "jsonl"
    GENERIC = "generic"


class AgentKind(StrEnum):
    """Which agent family produced a session (``SessionInfo.agent``)."""

    CLAWDBOT = "clawdbot"
    CLAUDE = "claude"
    LANGCHAIN = "langchain"
    CREWAI = "crewai"
    GENERIC = "generic"


# -- Driver ------------------------------------------------------------------


class DriverState(StrEnum):
    """Poll loop state machine."""

    IDLE = "idle"
    TRACKING = "tracking"
    ROLLED_OVER = "rolled_over"
    STOPPED = "stopped"


# -- Wire --------------------------------------------------------------------


class WireStyle(StrEnum):
    """Spelling of lifecycle message types.

    Direct observers (SSE, WebSocket) receive ``session_start``; the pub/sub
    relay uses event-name spelling ``session-start``.
    """

    UNDERSCORE = "underscore"
    HYPHEN = "hyphen"


class MessageKind(StrEnum):
    SESSION_START = "session_start"
    EVENT = "event"
    SESSION_END = "session_end"

    def spelled(self, style: WireStyle) -> str:
        if style == WireStyle.HYPHEN:
            return self.value.replace("_", "-")
        return self.value
