"""Delivery-channel wire messages.

Three shapes travel to observers::

    {"type": "session_start", "session": {"id", "name", "agent", "startedAt"}}
    {"type": "event", "event": {"id", "type", "content", "metadata"?, "parentId"?, "timestamp"}}
    {"type": "session_end"}

The relay spells lifecycle types with hyphens (``session-start``).
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict

from synapse.bridge.models.enums import MessageKind, WireStyle
from synapse.bridge.models.events import Event
from synapse.bridge.models.session import SessionInfo


class WireMessage(BaseModel):
    """One message on a delivery channel."""

    model_config = ConfigDict(frozen=True)

    kind: MessageKind
    session: SessionInfo | None = None
    event: Event | None = None
    session_id: str | None = None

    @classmethod
    def session_start(cls, info: SessionInfo) -> WireMessage:
        return cls(kind=MessageKind.SESSION_START, session=info)

    @classmethod
    def for_event(cls, event: Event) -> WireMessage:
        return cls(kind=MessageKind.EVENT, event=event)

    @classmethod
    def session_end(cls, session_id: str | None = None) -> WireMessage:
        return cls(kind=MessageKind.SESSION_END, session_id=session_id)

    def wire_type(self, style: WireStyle = WireStyle.UNDERSCORE) -> str:
        return self.kind.spelled(style)

    def to_wire(self, style: WireStyle = WireStyle.UNDERSCORE) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.wire_type(style)}
        if self.session is not None:
            data["session"] = self.session.to_wire()
        if self.event is not None:
            data["event"] = self.event.to_wire()
        if self.session_id is not None:
            data["sessionId"] = self.session_id
        return data

    def dumps(self, style: WireStyle = WireStyle.UNDERSCORE) -> str:
        return json.dumps(self.to_wire(style), ensure_ascii=False)
