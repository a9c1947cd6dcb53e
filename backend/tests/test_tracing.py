"""Tests for env-gated Datadog tracing."""

import os

import ddtrace

from oneshot.config import settings
from oneshot.tracing import configure_tracing


def test_tracing_off_by_default(monkeypatch):
    calls = []
    monkeypatch.setattr(ddtrace, "patch", lambda **kwargs: calls.append(kwargs))

    assert configure_tracing() is False
    assert calls == []


def test_api_key_enables_tracing_with_intake_url(monkeypatch):
    calls = []
    monkeypatch.setattr(ddtrace, "patch", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setenv("DD_API_KEY", "dd-test-key")
    monkeypatch.setenv("DD_SITE", "datadoghq.eu")
    monkeypatch.delenv("DD_SERVICE", raising=False)
    monkeypatch.delenv("DD_TRACE_AGENT_URL", raising=False)

    assert configure_tracing() is True

    assert calls == [{"fastapi": True, "httpx": True}]
    assert os.environ["DD_SERVICE"] == "oneshot"
    assert os.environ["DD_TRACE_AGENT_URL"] == "https://trace.agent.datadoghq.eu"


def test_config_flag_uses_local_agent(monkeypatch):
    calls = []
    monkeypatch.setattr(ddtrace, "patch", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setattr(settings.tracing, "enabled", True)
    monkeypatch.delenv("DD_SERVICE", raising=False)
    monkeypatch.delenv("DD_TRACE_AGENT_URL", raising=False)

    assert configure_tracing() is True

    assert len(calls) == 1
    assert os.environ["DD_SERVICE"] == "oneshot"
    assert "DD_TRACE_AGENT_URL" not in os.environ
