"""Unit tests for the scripted demo source."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import Any

from synapse.bridge.delivery.channel import DeliveryChannel
from synapse.bridge.delivery.observers import Observer
from synapse.bridge.demo import DEMO_SCRIPT, DEMO_SESSION_NAME, DemoSource
from synapse.bridge.models.enums import AgentKind, MessageKind

Drain = Callable[[Observer[Any]], Awaitable[list[Any]]]


async def test_demo_plays_full_script(channel: DeliveryChannel, drain: Drain) -> None:
    demo = DemoSource(channel, min_delay=0, max_delay=0, rng=random.Random(7))
    observer = channel.connect()

    session = await demo.run(asyncio.Event())

    messages = await drain(observer)
    assert messages[0].kind == MessageKind.SESSION_START
    assert messages[0].session.name == DEMO_SESSION_NAME
    assert messages[0].session.agent == AgentKind.CLAWDBOT
    assert messages[-1].kind == MessageKind.SESSION_END
    assert len(session.events) == len(DEMO_SCRIPT) == 16
    assert session.events[0].parent_id is None
    for parent, child in zip(session.events, session.events[1:], strict=False):
        assert child.parent_id == parent.id


async def test_demo_stops_early(channel: DeliveryChannel, drain: Drain) -> None:
    demo = DemoSource(channel, min_delay=0, max_delay=0)
    observer = channel.connect()
    stop = asyncio.Event()
    stop.set()

    session = await demo.run(stop)

    assert session.events == []
    assert [m.kind for m in await drain(observer)] == [MessageKind.SESSION_START, MessageKind.SESSION_END]
