"""Session endpoints: batch parsing of uploaded logs and live driver status.

Thin HTTP adapter -- delegates to :mod:`synapse.bridge.batch`.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, status

from synapse.bridge.batch import UnrecognizedFormatError, parse_session_text
from synapse.bridge.deps import Channel, Settings
from synapse.bridge.models.api import StatusResponse
from synapse.bridge.poller import PollLoop

router = APIRouter(tags=["sessions"])


@router.post("/sessions/parse")
async def handle_parse_session(request: Request, settings: Settings) -> dict[str, Any]:
    """Parse an uploaded session file (whole JSON document or JSONL) into a Session."""
    raw = await request.body()
    try:
        session = parse_session_text(raw.decode("utf-8", errors="replace"), max_content_len=settings.max_content_len)
    except UnrecognizedFormatError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from None
    return session.to_wire()


@router.get("/status", response_model=StatusResponse)
async def handle_status(request: Request, channel: Channel, settings: Settings) -> StatusResponse:
    session = channel.session
    result = StatusResponse(
        source=settings.source,
        session_id=session.id if session is not None else None,
        observers=len(channel.observers),
    )

    driver = getattr(request.app.state, "driver", None)
    if isinstance(driver, PollLoop):
        result.driver_state = driver.state
        result.source_format = driver.watcher.source_format
        result.cursor = driver.cursor
        if driver.tracking is not None:
            result.artifact = driver.tracking.artifact.name
    return result
