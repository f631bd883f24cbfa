"""Poll loop -- drives watcher -> adapter -> normalizer -> delivery.

State machine::

    idle --(artifact found)--> tracking --(newer artifact)--> rolled_over --> tracking
      \\________________________________ stop ________________________________/--> stopped

One asyncio task runs :meth:`PollLoop.run`.  Ticks never overlap: the next
tick is scheduled a fixed delay *after* the previous one finished, so a slow
tick pushes the schedule out instead of piling up.

The cursor only advances after every unit of a tick has been broadcast.  A
tick that dies midway is replayed in full on the next poll; duplicate
delivery is acceptable, loss is not.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from synapse.bridge.adapters import get_adapter
from synapse.bridge.models.enums import DriverState, SourceFormat
from synapse.bridge.models.session import Session
from synapse.bridge.normalizer import Normalizer, NormalizerState
from synapse.bridge.watcher import SourceWatcher, resolve_watch_dir

if TYPE_CHECKING:
    from synapse.bridge.adapters.base import Adapter
    from synapse.bridge.delivery.channel import DeliveryChannel
    from synapse.bridge.settings import SynapseSettings


@dataclass
class Tracking:
    """What the loop is currently following."""

    artifact: Path
    session: Session
    cursor: int = 0


class PollLoop:
    """Periodic driver for one watched directory."""

    def __init__(
        self,
        watcher: SourceWatcher,
        adapter: Adapter,
        normalizer: Normalizer,
        channel: DeliveryChannel,
        *,
        interval: float = 0.5,
        session_name: str | None = None,
    ) -> None:
        self.watcher = watcher
        self.adapter = adapter
        self.normalizer = normalizer
        self.channel = channel
        self.interval = interval
        self.session_name = session_name

        self.state = DriverState.IDLE
        self.normalizer_state = NormalizerState()
        self.tracking: Tracking | None = None

    # -- Query -----------------------------------------------------------------

    @property
    def cursor(self) -> int:
        return self.tracking.cursor if self.tracking else 0

    @property
    def session(self) -> Session | None:
        return self.tracking.session if self.tracking else None

    # -- Tick ------------------------------------------------------------------

    async def tick(self) -> int:
        """Run one poll.  Returns the number of events delivered."""
        try:
            artifact = await self.watcher.select_current()
        except OSError:
            logger.opt(exception=True).warning("Poll: cannot list {}", self.watcher.directory)
            return 0
        if artifact is None:
            return 0

        if self.tracking is None or artifact != self.tracking.artifact:
            await self._roll_over(artifact)
        tracking = self.tracking
        assert tracking is not None  # noqa: S101

        try:
            delta = await self.watcher.read_delta(artifact, tracking.cursor)
        except OSError:
            logger.opt(exception=True).warning("Poll: cannot read {}", artifact)
            return 0
        if not delta:
            return 0

        delivered = 0
        for offset, unit in enumerate(delta.units):
            try:
                events = self.adapter.parse_unit(unit, self.normalizer_state)
            except Exception:
                logger.exception("Poll: skipping unit {} of {}", tracking.cursor + offset, artifact.name)
                continue
            for event in self.normalizer.admit(self.normalizer_state, events):
                await self.channel.publish_event(event)
                tracking.session.append(event)
                delivered += 1

        tracking.cursor = delta.cursor
        if delivered:
            logger.debug("Poll: {} events from {} (cursor={})", delivered, artifact.name, tracking.cursor)
        return delivered

    async def _roll_over(self, artifact: Path) -> None:
        """Switch to ``artifact``: end the old session, start a fresh one at cursor 0."""
        if self.tracking is not None:
            self.state = DriverState.ROLLED_OVER
            logger.info("Poll: rollover {} -> {}", self.tracking.artifact.name, artifact.name)
            self.tracking.session.end()
            await self.channel.end_session()
        else:
            logger.info("Poll: watching {}", artifact.name)

        session = Session(
            id=artifact.stem,
            name=self.session_name or f"{self.adapter.agent.value.capitalize()} Live",
            agent=self.adapter.agent,
        )
        self.tracking = Tracking(artifact=artifact, session=session)
        self.normalizer_state = NormalizerState()
        await self.channel.start_session(session.info)
        self.state = DriverState.TRACKING

    # -- Loop ------------------------------------------------------------------

    async def run(self, stop: asyncio.Event) -> None:
        """Tick until ``stop`` is set, then end the session and return.

        A tick in progress when ``stop`` fires is allowed to finish.
        """
        logger.info("Poll: started on {} (interval={}s)", self.watcher.directory, self.interval)
        try:
            while not stop.is_set():
                try:
                    await self.tick()
                except Exception:
                    logger.exception("Poll: tick failed")
                try:
                    await asyncio.wait_for(stop.wait(), timeout=self.interval)
                except TimeoutError:
                    pass
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        if self.state == DriverState.STOPPED:
            return
        self.state = DriverState.STOPPED
        if self.tracking is not None:
            self.tracking.session.end()
        await self.channel.end_session()
        logger.info("Poll: stopped")


def create_poll_loop(settings: SynapseSettings, channel: DeliveryChannel) -> PollLoop:
    """Wire a :class:`PollLoop` for the ``session`` or ``jsonl`` source."""
    source_format = SourceFormat.SESSION_JSON if settings.source == "session" else SourceFormat.JSONL
    directory = resolve_watch_dir(source_format, settings.watch_dir, agent_id=settings.agent_id)
    if not directory.is_dir():
        logger.warning("Poll: {} does not exist yet, waiting for it to appear", directory)
    watcher = SourceWatcher(
        directory,
        source_format,
        target=settings.target_session,
        lock_suffix=settings.lock_suffix,
    )
    normalizer = Normalizer(settings.max_content_len)
    return PollLoop(
        watcher,
        get_adapter(source_format, normalizer),
        normalizer,
        channel,
        interval=settings.poll_interval,
        session_name=settings.session_name,
    )
