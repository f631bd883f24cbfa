"""Event normalizer -- the invariants every adapter relies on.

All adapters build events through :meth:`Normalizer.make` and every batch of
events passes :meth:`Normalizer.admit` before delivery.  Together they
guarantee:

- ``content`` never exceeds the channel's ``max_content_len`` (truncation
  happens at construction, so the wire never carries oversized payloads).
- ids are the source's native tool id when one exists, otherwise a
  ``e<ms>-<counter>-<random>`` composite.
- ``parent_id`` is either unset or an id already delivered in this session
  (the forest property); anything else is dropped.

Mutable bookkeeping lives in :class:`NormalizerState`, threaded explicitly
through the poll loop so a pipeline can be rebuilt or tested in isolation.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from synapse.bridge.models.enums import EventType
from synapse.bridge.models.events import Event

DEFAULT_MAX_CONTENT_LEN = 500
COMMAND_PREVIEW_LEN = 100
"""Shell commands are capped separately in metadata."""


@dataclass
class NormalizerState:
    """Per-session pipeline state.

    Reset on rollover.  ``counter`` only ever grows within a session.
    """

    last_event_id: str | None = None
    counter: int = 0
    delivered: set[str] = field(default_factory=set)

    def seen(self, event_id: str | None) -> bool:
        return event_id is not None and event_id in self.delivered


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to at most ``limit`` characters."""
    if limit <= 0:
        return ""
    return text if len(text) <= limit else text[:limit]


class Normalizer:
    """Builds and admits events for one delivery channel.

    Stateless beyond configuration; all per-session state is passed in.
    """

    def __init__(
        self,
        max_content_len: int = DEFAULT_MAX_CONTENT_LEN,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.max_content_len = max_content_len
        self._clock = clock or (lambda: datetime.now(UTC))

    # -- Construction ----------------------------------------------------------

    def new_id(self, state: NormalizerState) -> str:
        """Mint a time + sequence id.

        Millisecond clock plus a per-session counter plus a short random
        suffix: collisions are negligible at a few thousand events per run.
        """
        state.counter += 1
        millis = time.time_ns() // 1_000_000
        return f"e{millis:x}-{state.counter:04d}-{secrets.token_hex(3)}"

    def make(
        self,
        state: NormalizerState,
        event_type: EventType,
        content: str,
        *,
        parent_id: str | None,
        native_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        agent_id: str | None = None,
        limit: int | None = None,
    ) -> Event:
        """Build a bounded event.  ``limit`` may only tighten the channel bound."""
        bound = self.max_content_len if limit is None else min(limit, self.max_content_len)
        return Event(
            id=native_id or self.new_id(state),
            type=event_type,
            content=truncate(str(content), bound),
            metadata=metadata or None,
            parent_id=parent_id,
            timestamp=self._clock(),
            agent_id=agent_id,
        )

    # -- Admission -------------------------------------------------------------

    def admit(self, state: NormalizerState, events: Iterable[Event]) -> list[Event]:
        """Filter ``events`` down to those that keep the forest valid.

        Admitted events are recorded in ``state`` (``delivered`` and
        ``last_event_id``) in order, so a later event in the same batch may
        reference an earlier one.
        """
        admitted: list[Event] = []
        for event in events:
            if event.id in state.delivered:
                logger.debug("Normalizer: drop duplicate event {}", event.id)
                continue
            if event.parent_id is not None:
                if event.parent_id == event.id:
                    logger.warning("Normalizer: drop self-parented event {}", event.id)
                    continue
                if event.parent_id not in state.delivered:
                    logger.warning(
                        "Normalizer: drop event {} ({}) with unknown parent {}",
                        event.id,
                        event.type,
                        event.parent_id,
                    )
                    continue
            if len(event.content) > self.max_content_len:
                event = event.model_copy(update={"content": truncate(event.content, self.max_content_len)})
            state.delivered.add(event.id)
            state.last_event_id = event.id
            admitted.append(event)
        return admitted
