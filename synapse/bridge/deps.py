"""FastAPI dependency injection for the delivery and control channels.

Usage in route handlers::

    @router.get("/stream")
    async def stream(channel: Channel) -> EventSourceResponse:
        ...

All objects live on ``app.state`` and are created in the lifespan.  The
dependencies take an ``HTTPConnection`` so they serve WebSocket routes too.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status
from starlette.requests import HTTPConnection

from synapse.bridge.control import ControlChannel
from synapse.bridge.delivery.channel import DeliveryChannel
from synapse.bridge.ratelimit import RateLimiter
from synapse.bridge.settings import SynapseSettings, get_settings


def _require(conn: HTTPConnection, name: str) -> object:
    value = getattr(conn.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialised (server still starting?).",
        )
    return value


def get_channel(conn: HTTPConnection) -> DeliveryChannel:
    return _require(conn, "channel")  # type: ignore[return-value]


def get_control(conn: HTTPConnection) -> ControlChannel:
    return _require(conn, "control")  # type: ignore[return-value]


def get_limiter(conn: HTTPConnection) -> RateLimiter:
    return _require(conn, "limiter")  # type: ignore[return-value]


# -- Annotated type aliases for concise route signatures ---------------------

Channel = Annotated[DeliveryChannel, Depends(get_channel)]
"""Annotated dependency: the live event delivery channel."""

Control = Annotated[ControlChannel, Depends(get_control)]
"""Annotated dependency: the out-of-band control channel."""

Limiter = Annotated[RateLimiter, Depends(get_limiter)]
"""Annotated dependency: per-requester trigger rate limiter."""

Settings = Annotated[SynapseSettings, Depends(get_settings)]
