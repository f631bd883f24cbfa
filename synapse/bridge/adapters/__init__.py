"""Format adapters: raw units -> normalized events.

One strategy per source format, selected once per session:

- **session_json**: whole-message-array session files (Clawdbot)
- **jsonl**: line-delimited message records (Claude Code transcripts)
- **generic**: arbitrary piped text or JSON lines
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from synapse.bridge.adapters.base import Adapter, MessageAdapter
from synapse.bridge.adapters.generic import GenericAdapter
from synapse.bridge.adapters.jsonl import MESSAGE_RECORD_TYPES, JsonlAdapter, decode_line
from synapse.bridge.adapters.session_json import SessionJsonAdapter
from synapse.bridge.models.enums import SourceFormat
from synapse.bridge.normalizer import Normalizer

_ADAPTERS: dict[SourceFormat, type[MessageAdapter] | type[GenericAdapter]] = {
    SourceFormat.SESSION_JSON: SessionJsonAdapter,
    SourceFormat.JSONL: JsonlAdapter,
    SourceFormat.GENERIC: GenericAdapter,
}


def get_adapter(source_format: SourceFormat, normalizer: Normalizer, **options: Any) -> Adapter:
    """Instantiate the adapter for ``source_format``.

    ``options`` are passed through (``text_mode`` for the generic adapter,
    ``suppress_control`` for the message adapters).
    """
    return _ADAPTERS[SourceFormat(source_format)](normalizer, **options)


def _is_message_record(record: Mapping[str, Any] | None) -> bool:
    return (
        record is not None
        and record.get("type") in MESSAGE_RECORD_TYPES
        and isinstance(record.get("message"), Mapping)
    )


def detect_format(data: Any) -> SourceFormat | None:
    """Guess the source format of already-decoded batch input.

    Returns ``None`` when the input cannot be interpreted at all.
    """
    if isinstance(data, Mapping):
        if isinstance(data.get("messages"), list):
            return SourceFormat.SESSION_JSON
        if _is_message_record(data):
            return SourceFormat.JSONL
        return SourceFormat.GENERIC
    if isinstance(data, list):
        if not data:
            return None
        if any(_is_message_record(decode_line(item)) for item in data):
            return SourceFormat.JSONL
        if all(isinstance(item, (str, Mapping)) for item in data):
            return SourceFormat.GENERIC
    return None


__all__ = [
    "Adapter",
    "GenericAdapter",
    "JsonlAdapter",
    "MessageAdapter",
    "SessionJsonAdapter",
    "detect_format",
    "get_adapter",
]
