"""Unit tests for the stdin pipe reader."""

from __future__ import annotations

import io
from collections.abc import Awaitable, Callable
from typing import Any
from unittest.mock import patch

from synapse.bridge.delivery.channel import DeliveryChannel
from synapse.bridge.delivery.observers import Observer
from synapse.bridge.models.enums import AgentKind, EventType, MessageKind
from synapse.bridge.pipe import PipeReader

Drain = Callable[[Observer[Any]], Awaitable[list[Any]]]


async def test_pipe_session_lifecycle(channel: DeliveryChannel, drain: Drain) -> None:
    stream = io.StringIO('Thinking about the task\n\n{"type": "decision", "content": "use sqlite"}\nAll done\n')
    reader = PipeReader(channel, stream=stream, session_name="Build Bot", grace_period=0)
    observer = channel.connect()

    session = await reader.run()

    messages = await drain(observer)
    assert [m.kind for m in messages] == [
        MessageKind.SESSION_START,
        MessageKind.EVENT,
        MessageKind.EVENT,
        MessageKind.EVENT,
        MessageKind.SESSION_END,
    ]
    assert messages[0].session.id.startswith("pipe-")
    assert messages[0].session.name == "Build Bot"
    assert messages[0].session.agent == AgentKind.GENERIC
    assert [e.type for e in session.events] == [EventType.THOUGHT, EventType.DECISION, EventType.ASSISTANT_MESSAGE]
    assert session.events[2].parent_id == session.events[1].id
    assert session.is_ended
    assert reader.lines_read == 4
    assert not channel.is_active


async def test_pipe_text_mode(channel: DeliveryChannel) -> None:
    reader = PipeReader(channel, stream=io.StringIO('{"content": "hi"}\n'), text_mode=True, grace_period=0)

    session = await reader.run()

    assert session.events[0].content == '{"content": "hi"}'


async def test_pipe_bad_line_is_skipped(channel: DeliveryChannel) -> None:
    reader = PipeReader(channel, stream=io.StringIO("one\ntwo\n"), grace_period=0)
    original = reader.adapter.parse_unit
    calls = {"n": 0}

    def flaky(unit: Any, state: Any) -> Any:
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("boom")
        return original(unit, state)

    with patch.object(reader.adapter, "parse_unit", side_effect=flaky):
        session = await reader.run()

    assert [e.content for e in session.events] == ["two"]


async def test_pipe_content_bound(channel: DeliveryChannel) -> None:
    reader = PipeReader(channel, stream=io.StringIO("x" * 3000 + "\n"), max_content_len=1000, grace_period=0)

    session = await reader.run()

    assert len(session.events[0].content) == 1000
