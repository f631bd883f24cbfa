"""Control channel -- out-of-band "start a task" signals.

Decoupled from event delivery: viewers never see these.  Local consumers
subscribe over SSE; with a relay configured the same signal is published to
the control topic for a remote bridge to pick up.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from synapse.bridge.delivery.observers import Observer, ObserverRegistry
from synapse.bridge.delivery.relay import Relay

TRIGGER_TASK = "trigger-task"


class ControlSignal(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = TRIGGER_TASK
    task_index: int | None = Field(default=None, alias="taskIndex")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"name"})
        return {"type": self.name, **data}


class ControlChannel:
    def __init__(
        self,
        *,
        relay: Relay | None = None,
        topic: str = "synapse-control",
        queue_size: int = 100,
    ) -> None:
        self.observers: ObserverRegistry[ControlSignal] = ObserverRegistry("ControlChannel")
        self.relay = relay
        self.topic = topic
        self.queue_size = queue_size

    def subscribe(self) -> Observer[ControlSignal]:
        observer: Observer[ControlSignal] = Observer(self.queue_size, label="control")
        self.observers.add(observer)
        return observer

    def unsubscribe(self, observer: Observer[ControlSignal]) -> None:
        self.observers.remove(observer)

    async def trigger(self, task_index: int | None = None) -> ControlSignal:
        """Emit exactly one trigger signal.  Relay errors propagate to the caller."""
        signal = ControlSignal(task_index=task_index)
        local = self.observers.fan_out(signal)
        if self.relay is not None:
            await self.relay.publish(self.topic, signal.to_wire())
        logger.info("Control: {} (taskIndex={}, local subscribers={})", signal.name, task_index, local)
        return signal

    async def aclose(self) -> None:
        self.observers.clear()
