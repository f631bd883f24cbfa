"""Stdin pipe -- turn any process's output into a live session.

Usage::

    my-agent --stream | synapse pipe
    my-agent 2>&1 | synapse pipe --text

Each line goes through the generic adapter.  When the input closes the
session is ended and the reader lingers for a grace period so connected
viewers can render the final state before the process exits.
"""

from __future__ import annotations

import asyncio
import sys
import time
from typing import TYPE_CHECKING, TextIO

from anyio import to_thread
from loguru import logger

from synapse.bridge.adapters.generic import GenericAdapter
from synapse.bridge.models.enums import AgentKind
from synapse.bridge.models.session import Session
from synapse.bridge.normalizer import Normalizer, NormalizerState

if TYPE_CHECKING:
    from synapse.bridge.delivery.channel import DeliveryChannel

PIPE_MAX_CONTENT_LEN = 1000


class PipeReader:
    def __init__(
        self,
        channel: DeliveryChannel,
        *,
        stream: TextIO | None = None,
        text_mode: bool = False,
        session_name: str = "Live Agent",
        max_content_len: int = PIPE_MAX_CONTENT_LEN,
        grace_period: float = 5.0,
    ) -> None:
        self.channel = channel
        self.stream = stream if stream is not None else sys.stdin
        self.session_name = session_name
        self.grace_period = grace_period
        self.normalizer = Normalizer(max_content_len)
        self.adapter = GenericAdapter(self.normalizer, text_mode=text_mode)
        self.normalizer_state = NormalizerState()
        self.session: Session | None = None
        self.lines_read = 0

    async def run(self) -> Session:
        """Read until EOF, end the session, wait out the grace period."""
        session = Session(
            id=f"pipe-{int(time.time() * 1000)}",
            name=self.session_name,
            agent=AgentKind.GENERIC,
        )
        self.session = session
        await self.channel.start_session(session.info)
        logger.info("Pipe: reading stdin ({} mode)", "text" if self.adapter.text_mode else "json")

        while True:
            line = await to_thread.run_sync(self.stream.readline, abandon_on_cancel=True)
            if not line:
                break
            self.lines_read += 1
            await self.feed(line)

        logger.info("Pipe: input stream ended after {} lines", self.lines_read)
        session.end()
        await self.channel.end_session()
        if self.grace_period > 0:
            await asyncio.sleep(self.grace_period)
        return session

    async def feed(self, line: str) -> int:
        """Deliver the events of one line.  Returns how many were sent."""
        try:
            events = self.adapter.parse_unit(line, self.normalizer_state)
        except Exception:
            logger.exception("Pipe: skipping line {}", self.lines_read)
            return 0
        admitted = self.normalizer.admit(self.normalizer_state, events)
        for event in admitted:
            await self.channel.publish_event(event)
            if self.session is not None:
                self.session.append(event)
        return len(admitted)
