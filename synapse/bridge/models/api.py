"""API request / response schemas for the HTTP surface.

Thin schemas between HTTP and the pipeline; the domain models live in
``events.py`` / ``session.py``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from synapse.bridge.models.enums import DriverState, SourceFormat

TASK_INDEX_MAX = 4


class TriggerRequest(BaseModel):
    """Optional body of ``POST /api/trigger``.

    An out-of-range or non-integer ``taskIndex`` is ignored (the consumer
    picks a task itself) rather than rejected.
    """

    model_config = ConfigDict(populate_by_name=True)

    task_index: int | None = Field(default=None, alias="taskIndex")

    @field_validator("task_index", mode="before")
    @classmethod
    def _lenient_index(cls, value: Any) -> int | None:
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        if 0 <= value <= TASK_INDEX_MAX:
            return value
        return None


class TriggerResponse(BaseModel):
    ok: bool = True


class RateLimitedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error: str = "rate_limited"
    retry_after: int = Field(alias="retryAfter")


class StatusResponse(BaseModel):
    """Snapshot of the live pipeline returned by ``GET /api/status``."""

    source: str
    driver_state: DriverState | None = None
    source_format: SourceFormat | None = None
    session_id: str | None = None
    artifact: str | None = None
    cursor: int = 0
    observers: int = 0
