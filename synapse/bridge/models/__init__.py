"""Data models for the bridge."""

from synapse.bridge.models.api import (
    RateLimitedResponse,
    StatusResponse,
    TriggerRequest,
    TriggerResponse,
)
from synapse.bridge.models.enums import (
    AgentKind,
    DriverState,
    EventType,
    MessageKind,
    SourceFormat,
    WireStyle,
)
from synapse.bridge.models.events import Event
from synapse.bridge.models.session import AgentInfo, Session, SessionInfo
from synapse.bridge.models.wire import WireMessage

__all__ = [
    # Session
    "AgentInfo",
    # Enums
    "AgentKind",
    "DriverState",
    # Events
    "Event",
    "EventType",
    "MessageKind",
    # API schemas
    "RateLimitedResponse",
    "Session",
    "SessionInfo",
    "SourceFormat",
    "StatusResponse",
    "TriggerRequest",
    "TriggerResponse",
    "WireMessage",
    "WireStyle",
]
