"""Line-delimited incremental format.

Each line of the artifact is one JSON record.  Two envelopes are accepted:

- ``{"type": "message", "message": {"role", "content"}}``
- Claude Code transcripts: ``{"type": "user" | "assistant", "message": {...}}``

Claude Code returns tool results inside *user* messages; those become
``tool_result`` events linked to the originating ``tool_use`` id.  Records of
any other type (summaries, system turn markers, snapshots) are skipped.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from synapse.bridge.adapters.base import MessageAdapter
from synapse.bridge.adapters.session_json import CLAWDBOT_TOOLS
from synapse.bridge.adapters.tools import ToolTable
from synapse.bridge.models.enums import AgentKind, EventType, SourceFormat

CLAUDE_CODE_TOOLS = ToolTable(
    {
        **CLAWDBOT_TOOLS.mapping,
        "Glob": EventType.FILE_READ,
        "Grep": EventType.FILE_READ,
        "LS": EventType.FILE_READ,
        "NotebookRead": EventType.FILE_READ,
        "MultiEdit": EventType.FILE_WRITE,
        "NotebookEdit": EventType.FILE_WRITE,
        "Task": EventType.SPAWN_AGENT,
        "Agent": EventType.SPAWN_AGENT,
    }
)

MESSAGE_RECORD_TYPES = frozenset({"message", "user", "assistant"})


def decode_line(unit: Any) -> Mapping[str, Any] | None:
    """Decode one JSONL unit.  Malformed or non-object lines yield ``None``."""
    if isinstance(unit, Mapping):
        return unit
    if isinstance(unit, bytes):
        unit = unit.decode("utf-8", errors="replace")
    if not isinstance(unit, str) or not unit.strip():
        return None
    try:
        record = json.loads(unit)
    except json.JSONDecodeError:
        return None
    return record if isinstance(record, Mapping) else None


class JsonlAdapter(MessageAdapter):
    source_format = SourceFormat.JSONL
    agent = AgentKind.CLAUDE
    tools = CLAUDE_CODE_TOOLS

    def extract_message(self, unit: Any) -> tuple[Mapping[str, Any], str | None] | None:
        record = decode_line(unit)
        if record is None or record.get("type") not in MESSAGE_RECORD_TYPES:
            return None

        message = record.get("message")
        if not isinstance(message, Mapping):
            return None
        if "role" not in message and record.get("type") in ("user", "assistant"):
            message = {**message, "role": record["type"]}

        agent_id = record.get("agentId") if record.get("isSidechain") else None
        return message, agent_id if isinstance(agent_id, str) else None
