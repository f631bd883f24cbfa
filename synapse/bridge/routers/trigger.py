"""Control endpoints: fire a "start a task" signal and subscribe to signals."""

from __future__ import annotations

import json
import math
from collections.abc import AsyncIterator

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError
from sse_starlette.sse import EventSourceResponse

from synapse.bridge.control import ControlChannel, ControlSignal
from synapse.bridge.delivery.observers import Observer
from synapse.bridge.deps import Control, Limiter
from synapse.bridge.models.api import RateLimitedResponse, TriggerRequest, TriggerResponse

router = APIRouter(tags=["control"])


def requester_identity(request: Request) -> str:
    """Best-effort client address, honouring reverse-proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


async def _read_trigger(request: Request) -> TriggerRequest:
    """Parse the optional body.  Anything malformed means "no task index"."""
    raw = await request.body()
    if not raw.strip():
        return TriggerRequest()
    try:
        data = json.loads(raw)
        return TriggerRequest.model_validate(data if isinstance(data, dict) else {})
    except (ValueError, ValidationError):
        return TriggerRequest()


@router.post(
    "/trigger",
    response_model=TriggerResponse,
    responses={status.HTTP_429_TOO_MANY_REQUESTS: {"model": RateLimitedResponse}},
)
async def handle_trigger(request: Request, control: Control, limiter: Limiter) -> TriggerResponse | JSONResponse:
    requester = requester_identity(request)
    wait = limiter.hit(requester)
    if wait is not None:
        retry_after = max(1, math.ceil(wait))
        logger.info("Trigger: rate limited {} (retry in {}s)", requester, retry_after)
        body = RateLimitedResponse(retry_after=retry_after)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body.model_dump(by_alias=True),
            headers={"Retry-After": str(retry_after)},
        )

    trigger = await _read_trigger(request)
    try:
        await control.trigger(trigger.task_index)
    except Exception:
        logger.exception("Trigger: control relay publish failed")
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail="Control channel unavailable.") from None
    return TriggerResponse()


@router.get("/control/stream")
async def handle_control_stream(control: Control) -> EventSourceResponse:
    observer = control.subscribe()
    return EventSourceResponse(_control_signals(control, observer))


async def _control_signals(
    control: ControlChannel, observer: Observer[ControlSignal]
) -> AsyncIterator[dict[str, str]]:
    try:
        async for signal in observer.stream():
            yield {"event": signal.name, "data": json.dumps(signal.to_wire())}
    finally:
        control.unsubscribe(observer)
