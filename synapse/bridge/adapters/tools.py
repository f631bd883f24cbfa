"""Tool-name classification and argument extraction.

Each adapter owns a :class:`ToolTable` mapping its agent's tool names to
event types.  Argument extraction is shared: metadata keys are filled from
a fixed priority list of argument names, first non-empty string wins.
"""

from __future__ import annotations

import json
import posixpath
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from synapse.bridge.models.enums import EventType
from synapse.bridge.normalizer import COMMAND_PREVIEW_LEN, truncate

FILE_KEYS = ("file_path", "path", "filePath", "notebook_path")
COMMAND_KEYS = ("command", "cmd")
QUERY_KEYS = ("query", "pattern")
URL_KEYS = ("url",)
SPAWN_TASK_KEYS = ("task", "description", "prompt")

PREVIEW_LEN = 60
"""Length of argument previews embedded in display content."""


@dataclass(frozen=True)
class ToolTable:
    """Tool name -> event type, with a catch-all default."""

    mapping: Mapping[str, EventType] = field(default_factory=dict)
    default: EventType = EventType.TOOL_CALL

    def classify(self, tool_name: str) -> EventType:
        return self.mapping.get(tool_name, self.default)


def first_arg(args: Mapping[str, Any], keys: tuple[str, ...]) -> str | None:
    """Return the first non-empty string argument among ``keys``."""
    for key in keys:
        value = args.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def tool_metadata(tool_name: str, args: Mapping[str, Any]) -> dict[str, Any]:
    metadata: dict[str, Any] = {"tool": tool_name}
    if file_path := first_arg(args, FILE_KEYS):
        metadata["file"] = file_path
    if command := first_arg(args, COMMAND_KEYS):
        metadata["command"] = truncate(command, COMMAND_PREVIEW_LEN)
    if query := first_arg(args, QUERY_KEYS):
        metadata["query"] = query
    if url := first_arg(args, URL_KEYS):
        metadata["url"] = url
    return metadata


def describe_tool(tool_name: str, event_type: EventType, args: Mapping[str, Any]) -> str:
    """Human-readable summary of a tool invocation.

    Later matches win in the order file -> command -> query -> url -> spawn,
    so the most specific description is shown.
    """
    content = f"Calling {tool_name}"
    if file_path := first_arg(args, FILE_KEYS):
        name = posixpath.basename(file_path.replace("\\", "/")) or file_path
        if event_type == EventType.FILE_WRITE:
            content = f"Writing {name}"
        elif event_type == EventType.FILE_READ:
            content = f"Reading {name}"
        else:
            content = f"{tool_name} {name}"
    if command := first_arg(args, COMMAND_KEYS):
        content = f"Running: {truncate(command, PREVIEW_LEN)}"
    if query := first_arg(args, QUERY_KEYS):
        content = f"Searching: {truncate(query, PREVIEW_LEN)}"
    if url := first_arg(args, URL_KEYS):
        content = f"Fetching: {truncate(url, PREVIEW_LEN)}"
    if event_type == EventType.SPAWN_AGENT:
        task = first_arg(args, SPAWN_TASK_KEYS) or "task"
        content = f"Spawning sub-agent: {truncate(task, PREVIEW_LEN)}"
    return content


def stringify_result(content: Any) -> str:
    """Flatten a tool-result payload to display text.

    Lists of text blocks are joined; anything else that is not already a
    string is JSON-encoded.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list) and content and all(
        isinstance(b, dict) and b.get("type") == "text" for b in content
    ):
        return "\n".join(str(b.get("text", "")) for b in content)
    return json.dumps(content, ensure_ascii=False, default=str)


def result_succeeded(text: str, *, is_error: bool = False) -> bool:
    """Heuristic success flag: no "error" / "failed" in the result text."""
    if is_error:
        return False
    lower = text.lower()
    return "error" not in lower and "failed" not in lower
