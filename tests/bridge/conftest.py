"""Shared fixtures for bridge tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from synapse.bridge.app import app, create_trigger_limiter
from synapse.bridge.control import ControlChannel
from synapse.bridge.delivery.channel import DeliveryChannel
from synapse.bridge.delivery.observers import Observer
from synapse.bridge.settings import SynapseSettings, get_settings

Drain = Callable[[Observer[Any]], Awaitable[list[Any]]]


async def _drain(observer: Observer[Any]) -> list[Any]:
    items = []
    while observer.pending:
        item = await observer.get()
        if item is None:
            break
        items.append(item)
    return items


@pytest.fixture
def drain() -> Drain:
    """Collect everything queued on an observer right now, without waiting."""
    return _drain


@pytest.fixture
def settings() -> SynapseSettings:
    return SynapseSettings(_env_file=None)


@pytest.fixture
def channel() -> DeliveryChannel:
    return DeliveryChannel(queue_size=100)


@pytest.fixture
async def client(settings: SynapseSettings) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app.

    The app lifespan does NOT run under ``ASGITransport``, so state fields
    are pre-set here.
    """
    app.dependency_overrides[get_settings] = lambda: settings

    # Pre-set state fields (lifespan does not run under ASGITransport).
    app.state.channel = DeliveryChannel()
    app.state.control = ControlChannel()
    app.state.limiter = create_trigger_limiter(settings)
    app.state.driver = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    for name in ("channel", "control", "limiter", "driver"):
        setattr(app.state, name, None)
