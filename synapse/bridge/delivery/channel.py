"""Delivery channel -- session lifecycle plus event fan-out.

Guarantees per observer:

- a newly connected observer gets the active session's start marker first
  (no backlog replay; it sees events from its join point onwards),
- events arrive in emission order,
- ``session_end`` for a session precedes the next ``session_start``.

There is no backpressure.  Local observers are fed with non-blocking
offers; the relay publish is awaited, but a failing relay only logs.
"""

from __future__ import annotations

import time

from loguru import logger

from synapse.bridge.delivery.observers import Observer, ObserverRegistry
from synapse.bridge.delivery.relay import Relay
from synapse.bridge.models.enums import AgentKind, WireStyle
from synapse.bridge.models.events import Event
from synapse.bridge.models.session import SessionInfo
from synapse.bridge.models.wire import WireMessage


class DeliveryChannel:
    """Fan-out of wire messages to local observers and an optional relay."""

    def __init__(
        self,
        *,
        queue_size: int = 1000,
        relay: Relay | None = None,
        relay_topic: str = "synapse-live",
    ) -> None:
        self.observers: ObserverRegistry[WireMessage] = ObserverRegistry("DeliveryChannel")
        self.queue_size = queue_size
        self.relay = relay
        self.relay_topic = relay_topic
        self._session: SessionInfo | None = None

    # -- Query -----------------------------------------------------------------

    @property
    def session(self) -> SessionInfo | None:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None

    # -- Observers -------------------------------------------------------------

    def connect(self, label: str = "observer") -> Observer[WireMessage]:
        """Register a new observer; it is primed with the current start marker."""
        observer: Observer[WireMessage] = Observer(self.queue_size, label=label)
        if self._session is not None:
            observer.offer(WireMessage.session_start(self._session))
        self.observers.add(observer)
        return observer

    def disconnect(self, observer: Observer[WireMessage]) -> None:
        self.observers.remove(observer)

    # -- Lifecycle -------------------------------------------------------------

    async def start_session(self, info: SessionInfo) -> None:
        """Open ``info`` as the active session, ending any previous one first."""
        if self._session is not None:
            await self.end_session()
        self._session = info
        logger.info("Session start: {} ({}, agent={})", info.id, info.name, info.agent)
        await self._broadcast(WireMessage.session_start(info))

    async def publish_event(self, event: Event) -> None:
        if self._session is None:
            await self.start_session(synthesize_session())
        logger.debug("Event {}: {} {}", event.type, event.id, event.content[:50].replace("\n", " "))
        await self._broadcast(WireMessage.for_event(event))

    async def end_session(self) -> None:
        """Broadcast ``session_end`` once.  No-op when no session is active."""
        if self._session is None:
            return
        session_id = self._session.id
        self._session = None
        logger.info("Session end: {}", session_id)
        await self._broadcast(WireMessage.session_end(session_id))

    async def aclose(self) -> None:
        """Close every observer so their connection tasks finish."""
        self.observers.clear()

    # -- Fan-out ---------------------------------------------------------------

    async def _broadcast(self, message: WireMessage) -> None:
        self.observers.fan_out(message)
        if self.relay is None:
            return
        try:
            await self.relay.publish(self.relay_topic, message.to_wire(WireStyle.HYPHEN))
        except Exception:
            logger.exception("Relay publish failed for {}", message.wire_type(WireStyle.HYPHEN))


def synthesize_session(agent: AgentKind = AgentKind.GENERIC, name: str = "Live Session") -> SessionInfo:
    """Session opened implicitly by the first event of a run."""
    return SessionInfo(id=f"live-{int(time.time() * 1000)}", name=name, agent=agent)
