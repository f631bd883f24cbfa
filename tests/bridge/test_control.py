"""Unit tests for the control channel."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from synapse.bridge.control import TRIGGER_TASK, ControlChannel


async def test_trigger_reaches_subscribers_and_relay() -> None:
    relay = AsyncMock()
    control = ControlChannel(relay=relay, topic="ctl")
    observer = control.subscribe()

    signal = await control.trigger(2)

    assert await observer.get() == signal
    assert signal.task_index == 2
    relay.publish.assert_awaited_once()
    topic, payload = relay.publish.await_args.args
    assert topic == "ctl"
    assert payload["type"] == TRIGGER_TASK
    assert payload["taskIndex"] == 2
    assert "timestamp" in payload


async def test_trigger_without_index() -> None:
    control = ControlChannel()

    signal = await control.trigger()

    assert "taskIndex" not in signal.to_wire()


async def test_relay_error_propagates() -> None:
    relay = AsyncMock()
    relay.publish.side_effect = ConnectionError("down")
    control = ControlChannel(relay=relay)

    with pytest.raises(ConnectionError):
        await control.trigger(1)


async def test_unsubscribe_closes_observer() -> None:
    control = ControlChannel()
    observer = control.subscribe()

    control.unsubscribe(observer)
    await control.trigger(0)

    assert observer.closed
    assert await observer.get() is None
