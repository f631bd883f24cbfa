"""Generic adapter for arbitrary piped agent output.

Every non-blank line becomes exactly one event parented to the previous one.
Classification is best-effort:

1. JSON objects with an explicit ``type`` field use :data:`EXPLICIT_TYPES`.
2. ``{"type", "name"}`` objects without display text are tool calls.
3. Otherwise the keyword heuristic in :func:`classify_text` applies, checked
   in a fixed priority order.

Text mode (``--text``) skips JSON detection entirely.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, ClassVar

from synapse.bridge.models.enums import AgentKind, EventType, SourceFormat
from synapse.bridge.models.events import Event
from synapse.bridge.normalizer import Normalizer, NormalizerState

EXPLICIT_TYPES: dict[str, EventType] = {
    **{t.value: t for t in EventType},
    "thinking": EventType.THOUGHT,
    "tool_use": EventType.TOOL_CALL,
    "user": EventType.USER_MESSAGE,
    "assistant": EventType.ASSISTANT_MESSAGE,
}

# Ordered: first matching rule wins.
KEYWORD_RULES: tuple[tuple[EventType, tuple[str, ...]], ...] = (
    (EventType.ERROR, ("error", "failed", "exception")),
    (EventType.THOUGHT, ("thinking", "considering", "analyzing")),
    (EventType.FILE_READ, ("reading file", "read:")),
    (EventType.FILE_WRITE, ("writing file", "wrote:", "created:")),
    (EventType.TOOL_CALL, ("running", "executing", "calling")),
    (EventType.TOOL_RESULT, ("result:", "output:", "success")),
)

TEXT_FIELDS = ("content", "text", "message")


def classify_text(text: str) -> EventType:
    """Keyword heuristic over one line of output."""
    lower = text.lower()
    for event_type, keywords in KEYWORD_RULES:
        if any(keyword in lower for keyword in keywords):
            return event_type
    if lower.startswith((">", "user:")):
        return EventType.USER_MESSAGE
    return EventType.ASSISTANT_MESSAGE


def classify_explicit(type_field: Any) -> EventType:
    """Map an explicit ``type`` value; unknown types are tool calls."""
    return EXPLICIT_TYPES.get(str(type_field), EventType.TOOL_CALL)


class GenericAdapter:
    source_format: ClassVar[SourceFormat] = SourceFormat.GENERIC
    agent: ClassVar[AgentKind] = AgentKind.GENERIC

    content_limit: ClassVar[int] = 1000
    unknown_limit: ClassVar[int] = 500

    def __init__(self, normalizer: Normalizer, *, text_mode: bool = False) -> None:
        self.normalizer = normalizer
        self.text_mode = text_mode

    def parse_unit(self, unit: Any, state: NormalizerState) -> list[Event]:
        if isinstance(unit, Mapping):
            return [self._from_json(unit, state)]

        line = unit.decode("utf-8", errors="replace") if isinstance(unit, bytes) else str(unit)
        line = line.rstrip("\r\n")
        if not line.strip():
            return []

        if not self.text_mode:
            data = _try_json(line)
            if isinstance(data, Mapping):
                return [self._from_json(data, state)]

        return [self._make(state, classify_text(line), line)]

    def _from_json(self, data: Mapping[str, Any], state: NormalizerState) -> Event:
        metadata = data.get("metadata") if isinstance(data.get("metadata"), Mapping) else None

        for field in TEXT_FIELDS:
            value = data.get(field)
            if not value:
                continue
            text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)
            event_type = classify_explicit(data["type"]) if data.get("type") else classify_text(text)
            return self._make(state, event_type, text, metadata=dict(metadata) if metadata else None)

        if data.get("type") and data.get("name"):
            tool_name = str(data["name"])
            args = data.get("input") if isinstance(data.get("input"), Mapping) else {}
            return self._make(state, EventType.TOOL_CALL, f"Calling {tool_name}", metadata={"tool": tool_name, **args})

        return self._make(
            state,
            EventType.TOOL_RESULT,
            json.dumps(data, ensure_ascii=False, default=str),
            limit=self.unknown_limit,
        )

    def _make(
        self,
        state: NormalizerState,
        event_type: EventType,
        content: str,
        *,
        metadata: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> Event:
        return self.normalizer.make(
            state,
            event_type,
            content,
            parent_id=state.last_event_id,
            metadata=metadata,
            limit=limit or self.content_limit,
        )


def _try_json(line: str) -> Any:
    stripped = line.strip()
    if not stripped.startswith("{"):
        return None
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        return None
