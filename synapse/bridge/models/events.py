"""Event model.

``Event`` is the atomic node of the event forest.  Instances are frozen:
once the normalizer has built one it is shared read-only by every observer.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from synapse.bridge.models.enums import EventType


class Event(BaseModel):
    """Normalized event.  Serialized with camelCase aliases on the wire."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    type: EventType
    content: str
    metadata: dict[str, Any] | None = None
    parent_id: str | None = Field(default=None, alias="parentId")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    agent_id: str | None = Field(default=None, alias="agentId")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
