"""Pub/sub relay -- the managed fan-out channel beyond this process.

The relay is a black box: the bridge publishes JSON payloads to a named
topic and the relay delivers them to whoever is subscribed.  Redis pub/sub
fills that role here; publishing is fire-and-forget.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from loguru import logger

if TYPE_CHECKING:
    import redis.asyncio as aioredis


@runtime_checkable
class Relay(Protocol):
    async def publish(self, topic: str, payload: dict[str, Any]) -> None:
        """Publish one JSON payload to ``topic``."""
        ...

    async def aclose(self) -> None:
        """Release connections."""
        ...


class RedisRelay:
    """Redis pub/sub implementation of :class:`Relay`."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisRelay:
        import redis.asyncio as aioredis

        client = aioredis.from_url(
            url,
            decode_responses=False,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        return cls(client)

    async def publish(self, topic: str, payload: dict[str, Any]) -> None:
        receivers = await self._client.publish(topic, json.dumps(payload, ensure_ascii=False))
        logger.trace("Relay: {} -> {} ({} receivers)", payload.get("type"), topic, receivers)

    async def aclose(self) -> None:
        await self._client.aclose()
