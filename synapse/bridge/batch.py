"""Batch parsing: a whole uploaded session, materialized at once.

Runs the same adapters and normalizer as the live pipeline, but with a
synthetic clock: event timestamps start at the session's ``createdAt`` (or
now) and advance one second per event so playback has a usable timeline.
"""

from __future__ import annotations

import itertools
import json
import secrets
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from loguru import logger

from synapse.bridge.adapters import detect_format, get_adapter
from synapse.bridge.models.enums import SourceFormat
from synapse.bridge.models.session import Session
from synapse.bridge.normalizer import DEFAULT_MAX_CONTENT_LEN, Normalizer, NormalizerState

_FORMAT_LABELS = {
    SourceFormat.SESSION_JSON: "Clawdbot",
    SourceFormat.JSONL: "JSONL transcript",
    SourceFormat.GENERIC: "Generic",
}


class UnrecognizedFormatError(ValueError):
    """Raised when batch input matches no known session format."""


def _parse_created_at(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _units(data: Any, source_format: SourceFormat) -> list[Any]:
    if source_format == SourceFormat.SESSION_JSON:
        return list(data["messages"])
    if isinstance(data, list):
        return data
    return [data]


def parse_session_data(
    data: Any,
    *,
    max_content_len: int = DEFAULT_MAX_CONTENT_LEN,
    name: str = "Uploaded Session",
) -> Session:
    """Normalize decoded batch input into a complete :class:`Session`.

    Raises :class:`UnrecognizedFormatError` if the format cannot be detected.
    """
    source_format = detect_format(data)
    if source_format is None:
        msg = "Unrecognized session format. Supported formats: Clawdbot session JSON, JSONL transcripts, generic lines"
        raise UnrecognizedFormatError(msg)

    meta: Mapping[str, Any] = data if isinstance(data, Mapping) else {}
    base_time = _parse_created_at(meta.get("createdAt")) or datetime.now(UTC)
    ticks = itertools.count()

    normalizer = Normalizer(max_content_len, clock=lambda: base_time + timedelta(seconds=next(ticks)))
    adapter = get_adapter(source_format, normalizer)
    state = NormalizerState()

    session_id = meta.get("sessionId")
    session = Session(
        id=session_id if isinstance(session_id, str) and session_id else f"upload-{secrets.token_hex(4)}",
        name=name,
        agent=adapter.agent,
        started_at=base_time,
    )

    for index, unit in enumerate(_units(data, source_format)):
        try:
            events = adapter.parse_unit(unit, state)
        except Exception:
            logger.exception("Batch: skipping unit {} after adapter error", index)
            continue
        for event in normalizer.admit(state, events):
            session.append(event)

    session.description = f"{_FORMAT_LABELS[source_format]} session with {len(session.events)} events"
    logger.info("Batch: parsed {} ({}) -> {} events", session.id, source_format, len(session.events))
    return session


def parse_session_text(text: str, **kwargs: Any) -> Session:
    """Parse raw upload text: a JSON document, or JSONL / plain lines."""
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError:
        data = [line for line in text.splitlines() if line.strip()]
    return parse_session_data(data, **kwargs)
