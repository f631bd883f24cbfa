"""Session and agent descriptor models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from synapse.bridge.models.enums import AgentKind, EventType
from synapse.bridge.models.events import Event


class AgentInfo(BaseModel):
    """Agent descriptor.  ``parent_agent_id`` forms the spawn tree."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    role: str | None = None
    """orchestrator / researcher / writer / reviewer / coder / analyst / ..."""
    color: str | None = None
    parent_agent_id: str | None = Field(default=None, alias="parentAgentId")


class SessionInfo(BaseModel):
    """Start-marker payload broadcast when a session begins."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    agent: AgentKind = AgentKind.GENERIC
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC), alias="startedAt")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Session(BaseModel):
    """A bounded run of one agent.

    Append-only while live; fully materialized for batch uploads.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    agent: AgentKind = AgentKind.GENERIC
    description: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC), alias="startedAt")
    ended_at: datetime | None = Field(default=None, alias="endedAt")
    events: list[Event] = Field(default_factory=list)
    agents: list[AgentInfo] = Field(default_factory=list)
    is_multi_agent: bool = Field(default=False, alias="isMultiAgent")

    @property
    def info(self) -> SessionInfo:
        return SessionInfo(id=self.id, name=self.name, agent=self.agent, started_at=self.started_at)

    @property
    def is_ended(self) -> bool:
        return self.ended_at is not None

    def append(self, event: Event) -> None:
        self.events.append(event)
        if event.type == EventType.SPAWN_AGENT and event.metadata:
            spawned = event.metadata.get("spawnedAgent")
            if isinstance(spawned, dict):
                self.register_agent(AgentInfo.model_validate(spawned))

    def register_agent(self, agent: AgentInfo) -> None:
        if any(a.id == agent.id for a in self.agents):
            return
        self.agents.append(agent)
        self.is_multi_agent = True

    def end(self) -> None:
        if self.ended_at is None:
            self.ended_at = datetime.now(UTC)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
