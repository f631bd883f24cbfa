"""Unit tests for the poll loop state machine."""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest

from synapse.bridge.adapters import SessionJsonAdapter
from synapse.bridge.delivery.channel import DeliveryChannel
from synapse.bridge.delivery.observers import Observer
from synapse.bridge.models.enums import DriverState, EventType, MessageKind, SourceFormat
from synapse.bridge.models.events import Event
from synapse.bridge.normalizer import Normalizer, NormalizerState
from synapse.bridge.poller import PollLoop, create_poll_loop
from synapse.bridge.settings import SynapseSettings
from synapse.bridge.watcher import SourceWatcher

Drain = Callable[[Observer[Any]], Awaitable[list[Any]]]


def _write(path: Path, messages: list[dict[str, Any]], mtime: float | None = None) -> Path:
    path.write_text(json.dumps({"messages": messages}), encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def _loop(directory: Path, channel: DeliveryChannel, adapter_cls: type = SessionJsonAdapter) -> PollLoop:
    normalizer = Normalizer()
    return PollLoop(
        SourceWatcher(directory, SourceFormat.SESSION_JSON),
        adapter_cls(normalizer),
        normalizer,
        channel,
        interval=0.01,
    )


class _ExplodingAdapter(SessionJsonAdapter):
    def parse_unit(self, unit: Any, state: NormalizerState) -> list[Event]:
        if isinstance(unit, dict) and unit.get("explode"):
            raise RuntimeError("adapter bug")
        return super().parse_unit(unit, state)


async def test_idle_until_artifact_appears(tmp_path: Path, channel: DeliveryChannel, drain: Drain) -> None:
    loop = _loop(tmp_path, channel)
    observer = channel.connect()

    assert await loop.tick() == 0
    assert loop.state == DriverState.IDLE
    assert await drain(observer) == []


async def test_tracks_and_delivers_once(tmp_path: Path, channel: DeliveryChannel, drain: Drain) -> None:
    conversation = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "yo"}]
    artifact = _write(tmp_path / "run-1.json", conversation)
    loop = _loop(tmp_path, channel)
    observer = channel.connect()

    assert await loop.tick() == 2
    assert await loop.tick() == 0

    messages = await drain(observer)
    assert [m.kind for m in messages] == [MessageKind.SESSION_START, MessageKind.EVENT, MessageKind.EVENT]
    assert messages[0].session.id == "run-1"
    assert messages[0].session.name == "Clawdbot Live"
    assert loop.state == DriverState.TRACKING
    assert loop.cursor == 2
    assert len(loop.session.events) == 2

    _write(artifact, [*conversation, {"role": "user", "content": "more"}])
    assert await loop.tick() == 1
    (event_message,) = await drain(observer)
    assert event_message.event.content == "more"
    assert event_message.event.parent_id == messages[2].event.id


async def test_rollover_ends_then_starts(tmp_path: Path, channel: DeliveryChannel, drain: Drain) -> None:
    _write(tmp_path / "a.json", [{"role": "user", "content": "first"}], mtime=1_000)
    loop = _loop(tmp_path, channel)
    observer = channel.connect()
    await loop.tick()
    first_session = loop.session
    await drain(observer)

    _write(tmp_path / "b.json", [{"role": "user", "content": "second"}], mtime=2_000)
    assert await loop.tick() == 1

    messages = await drain(observer)
    assert [m.kind for m in messages] == [MessageKind.SESSION_END, MessageKind.SESSION_START, MessageKind.EVENT]
    assert messages[0].session_id == "a"
    assert messages[1].session.id == "b"
    assert messages[2].event.parent_id is None
    assert first_session.is_ended
    assert loop.tracking.artifact.name == "b.json"
    assert loop.cursor == 1


async def test_adapter_error_skips_only_that_unit(tmp_path: Path, channel: DeliveryChannel, drain: Drain) -> None:
    _write(
        tmp_path / "s.json",
        [{"role": "user", "content": "one"}, {"explode": True}, {"role": "assistant", "content": "three"}],
    )
    loop = _loop(tmp_path, channel, _ExplodingAdapter)
    observer = channel.connect()

    assert await loop.tick() == 2
    assert loop.cursor == 3

    events = [m.event for m in await drain(observer) if m.kind == MessageKind.EVENT]
    assert [e.content for e in events] == ["one", "three"]
    assert events[1].parent_id == events[0].id


async def test_unreadable_artifact_keeps_cursor(tmp_path: Path, channel: DeliveryChannel) -> None:
    artifact = _write(tmp_path / "s.json", [{"role": "user", "content": "one"}])
    loop = _loop(tmp_path, channel)
    await loop.tick()

    artifact.write_text('{"messages": [', encoding="utf-8")
    assert await loop.tick() == 0
    assert loop.cursor == 1


async def test_run_until_stopped(tmp_path: Path, channel: DeliveryChannel, drain: Drain) -> None:
    _write(tmp_path / "s.json", [{"role": "assistant", "content": "working"}])
    loop = _loop(tmp_path, channel)
    observer = channel.connect()
    stop = asyncio.Event()

    task = asyncio.create_task(loop.run(stop))
    first = await asyncio.wait_for(observer.get(), timeout=5)
    assert first.kind == MessageKind.SESSION_START

    stop.set()
    await asyncio.wait_for(task, timeout=5)

    rest = await drain(observer)
    assert rest[-1].kind == MessageKind.SESSION_END
    assert [m.event.type for m in rest if m.event] == [EventType.ASSISTANT_MESSAGE]
    assert loop.state == DriverState.STOPPED
    assert loop.session.is_ended
    assert not channel.is_active


async def test_shutdown_is_idempotent(tmp_path: Path, channel: DeliveryChannel, drain: Drain) -> None:
    _write(tmp_path / "s.json", [{"role": "user", "content": "hi"}])
    loop = _loop(tmp_path, channel)
    observer = channel.connect()
    await loop.tick()
    await drain(observer)

    await loop.shutdown()
    await loop.shutdown()

    assert [m.kind for m in await drain(observer)] == [MessageKind.SESSION_END]


def test_create_poll_loop_from_settings(tmp_path: Path, channel: DeliveryChannel) -> None:
    settings = SynapseSettings(
        _env_file=None,
        source="jsonl",
        watch_dir=str(tmp_path),
        poll_interval=0.25,
        session_name="Build Bot",
    )

    loop = create_poll_loop(settings, channel)

    assert loop.watcher.directory == tmp_path
    assert loop.watcher.source_format == SourceFormat.JSONL
    assert loop.interval == 0.25
    assert loop.session_name == "Build Bot"


@pytest.mark.parametrize("source", ["session", "jsonl"])
def test_create_poll_loop_adapter(tmp_path: Path, channel: DeliveryChannel, source: str) -> None:
    settings = SynapseSettings(_env_file=None, source=source, watch_dir=str(tmp_path))

    loop = create_poll_loop(settings, channel)

    assert loop.adapter.source_format == loop.watcher.source_format


async def test_two_message_scenario_delivered_once(tmp_path: Path, channel: DeliveryChannel, drain: Drain) -> None:
    _write(
        tmp_path / "s.json",
        [{"role": "user", "content": "hi"}, {"role": "assistant", "content": [{"type": "text", "text": "hello"}]}],
    )
    loop = _loop(tmp_path, channel)
    observer = channel.connect()

    for _ in range(3):
        await loop.tick()

    events = [m.event for m in await drain(observer) if m.kind == MessageKind.EVENT]
    assert [(e.type, e.content) for e in events] == [
        (EventType.USER_MESSAGE, "hi"),
        (EventType.ASSISTANT_MESSAGE, "hello"),
    ]
    assert events[0].parent_id is None
    assert events[1].parent_id == events[0].id


async def test_heartbeat_scenario_delivers_nothing(tmp_path: Path, channel: DeliveryChannel, drain: Drain) -> None:
    _write(
        tmp_path / "s.json",
        [{"role": "user", "content": "[Cron] HEARTBEAT"}, {"role": "assistant", "content": "HEARTBEAT_OK"}],
    )
    loop = _loop(tmp_path, channel)
    observer = channel.connect()

    assert await loop.tick() == 0

    assert [m.kind for m in await drain(observer)] == [MessageKind.SESSION_START]
    assert loop.cursor == 2


async def test_delivered_events_form_a_forest(tmp_path: Path, channel: DeliveryChannel, drain: Drain) -> None:
    artifact = _write(
        tmp_path / "run-1.json",
        [
            {"role": "user", "content": "Audit the repo"},
            {
                "role": "assistant",
                "content": [
                    {"type": "tool_use", "id": "a", "name": "exec", "input": {"command": "ls"}},
                    {"type": "tool_use", "id": "b", "name": "read", "input": {"path": "README.md"}},
                ],
            },
        ],
    )
    loop = _loop(tmp_path, channel)
    observer = channel.connect()
    await loop.tick()

    _write(
        artifact,
        [
            {"role": "user", "content": "Audit the repo"},
            {
                "role": "assistant",
                "content": [
                    {"type": "tool_use", "id": "a", "name": "exec", "input": {"command": "ls"}},
                    {"type": "tool_use", "id": "b", "name": "read", "input": {"path": "README.md"}},
                ],
            },
            {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "b", "content": "# Readme"}]},
            {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "missing", "content": "?"}]},
            {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "a", "content": "src tests"}]},
            {"role": "assistant", "content": "Looks fine."},
        ],
    )
    await loop.tick()

    events = [m.event for m in await drain(observer) if m.kind == MessageKind.EVENT]
    assert len(events) == 6
    seen: set[str] = set()
    for event in events:
        assert event.parent_id is None or event.parent_id in seen
        seen.add(event.id)
