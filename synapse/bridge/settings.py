"""Service configuration loaded from SYNAPSE_* environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised at startup when the delivery path cannot be constructed."""


class SynapseSettings(BaseSettings):
    """Synapse bridge settings.

    All fields are read from environment variables with the ``SYNAPSE_``
    prefix.  For example, ``SYNAPSE_POLL_INTERVAL=0.25`` maps to
    ``poll_interval``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SYNAPSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080

    # -- Source ----------------------------------------------------------------
    source: Literal["session", "jsonl", "pipe", "demo"] = "session"
    """Which driver feeds the delivery channel.

    ``session`` and ``jsonl`` poll a directory of artifacts, ``pipe`` reads
    standard input (started by ``synapse pipe``), ``demo`` replays a
    scripted session.
    """

    watch_dir: str | None = None
    """Artifact directory.  Resolved from ``agent_id`` when unset."""

    agent_id: str = "main"
    target_session: str | None = None
    """Substring filter: watch the newest artifact whose name contains it."""

    lock_suffix: str = ".lock"
    poll_interval: float = 0.5
    """Seconds between the end of one tick and the start of the next."""

    session_name: str | None = None

    # -- Normalization ---------------------------------------------------------
    max_content_len: int = 500
    """Upper bound on ``Event.content`` for this channel's bandwidth budget."""

    # -- Delivery --------------------------------------------------------------
    relay: Literal["local", "redis"] = "local"
    """``redis`` additionally publishes every wire message through pub/sub."""

    redis_url: SecretStr | None = None
    live_channel: str = "synapse-live"
    control_channel: str = "synapse-control"
    observer_queue_size: int = 1000
    """Per-observer backlog; an observer that falls this far behind is evicted."""

    # -- Pipe ------------------------------------------------------------------
    pipe_grace_period: float = 5.0
    """Seconds to keep serving after stdin closes so viewers can render the end."""

    # -- Control trigger -------------------------------------------------------
    trigger_burst_limit: int = 1
    trigger_burst_window: float = 30.0
    trigger_hourly_limit: int = 20
    trigger_hourly_window: float = 3600.0

    # -- Demo ------------------------------------------------------------------
    demo_min_delay: float = 0.5
    demo_max_delay: float = 1.5

    # -- Helpers ---------------------------------------------------------------

    def validate_delivery(self) -> None:
        """Fail fast when the configured relay has no credentials."""
        if self.relay == "redis" and self.redis_url is None:
            msg = "SYNAPSE_RELAY=redis requires SYNAPSE_REDIS_URL"
            raise ConfigurationError(msg)

    @property
    def watches_directory(self) -> bool:
        return self.source in ("session", "jsonl")


def get_settings() -> SynapseSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``_get_settings_cached.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return _get_settings_cached()


def _get_settings_cached() -> SynapseSettings:
    """Inner function wrapped by lru_cache (allows type-safe cache_clear)."""
    return SynapseSettings()


# Apply lru_cache at runtime so the function is only called once.
from functools import lru_cache  # noqa: E402

_get_settings_cached = lru_cache(maxsize=1)(_get_settings_cached)
