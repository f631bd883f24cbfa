"""Unit tests for configuration and startup validation."""

from __future__ import annotations

import pytest

from synapse.bridge.app import _create_relay, create_trigger_limiter
from synapse.bridge.delivery.relay import RedisRelay
from synapse.bridge.settings import ConfigurationError, SynapseSettings, _get_settings_cached, get_settings


def test_defaults() -> None:
    settings = SynapseSettings(_env_file=None)

    assert settings.source == "session"
    assert settings.poll_interval == 0.5
    assert settings.max_content_len == 500
    assert settings.relay == "local"
    assert settings.watches_directory is True


def test_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SYNAPSE_POLL_INTERVAL", "0.25")
    monkeypatch.setenv("SYNAPSE_SOURCE", "pipe")
    _get_settings_cached.cache_clear()

    settings = get_settings()

    assert settings.poll_interval == 0.25
    assert settings.watches_directory is False
    assert get_settings() is settings


def test_redis_relay_requires_url() -> None:
    settings = SynapseSettings(_env_file=None, relay="redis")

    with pytest.raises(ConfigurationError):
        settings.validate_delivery()
    with pytest.raises(ConfigurationError):
        _create_relay(settings)


def test_relay_construction() -> None:
    assert _create_relay(SynapseSettings(_env_file=None)) is None

    relay = _create_relay(SynapseSettings(_env_file=None, relay="redis", redis_url="redis://localhost:6379/0"))

    assert isinstance(relay, RedisRelay)


def test_trigger_limiter_windows() -> None:
    limiter = create_trigger_limiter(SynapseSettings(_env_file=None, trigger_burst_window=5.0))

    assert [(w.limit, w.seconds) for w in limiter.windows] == [(1, 5.0), (20, 3600.0)]
