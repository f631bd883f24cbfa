"""Whole-message-array session format (Clawdbot).

A session artifact is ``{"messages": [{"role", "content"}, ...]}``; each
message is one unit.  Content is either a string or a list of
``text`` / ``thinking`` / ``tool_use`` / ``tool_result`` blocks.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from synapse.bridge.adapters.base import MessageAdapter
from synapse.bridge.adapters.tools import ToolTable
from synapse.bridge.models.enums import AgentKind, EventType, SourceFormat

CLAWDBOT_TOOLS = ToolTable(
    {
        "read": EventType.FILE_READ,
        "Read": EventType.FILE_READ,
        "memory_get": EventType.FILE_READ,
        "write": EventType.FILE_WRITE,
        "Write": EventType.FILE_WRITE,
        "edit": EventType.FILE_WRITE,
        "Edit": EventType.FILE_WRITE,
        "memory_search": EventType.THOUGHT,
        "sessions_spawn": EventType.SPAWN_AGENT,
        "exec": EventType.TOOL_CALL,
        "process": EventType.TOOL_CALL,
        "web_search": EventType.TOOL_CALL,
        "web_fetch": EventType.TOOL_CALL,
        "browser": EventType.TOOL_CALL,
        "message": EventType.TOOL_CALL,
    }
)


class SessionJsonAdapter(MessageAdapter):
    source_format = SourceFormat.SESSION_JSON
    agent = AgentKind.CLAWDBOT
    tools = CLAWDBOT_TOOLS

    def extract_message(self, unit: Any) -> tuple[Mapping[str, Any], str | None] | None:
        if not isinstance(unit, Mapping):
            return None
        agent_id = unit.get("agentId")
        return unit, agent_id if isinstance(agent_id, str) else None
