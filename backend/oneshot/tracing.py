"""Datadog APM tracing for the API server.

configure_tracing() must run before the FastAPI app is constructed, since
ddtrace instruments FastAPI by wrapping the application class.
"""

import logging
import os

from oneshot.config import settings

logger = logging.getLogger(__name__)

DEFAULT_DD_SITE = "datadoghq.com"


def tracing_enabled() -> bool:
    return settings.tracing.enabled or bool(os.environ.get("DD_API_KEY"))


def configure_tracing() -> bool:
    """Patch FastAPI and httpx with ddtrace when tracing is enabled.

    With DD_API_KEY set, traces go to the Datadog intake for DD_SITE instead
    of a local agent.

    Returns:
        True if instrumentation was installed.
    """
    if not tracing_enabled():
        return False

    # ddtrace reads these at import time
    os.environ.setdefault("DD_SERVICE", settings.tracing.service)
    if os.environ.get("DD_API_KEY"):
        site = os.environ.get("DD_SITE") or DEFAULT_DD_SITE
        os.environ.setdefault("DD_TRACE_AGENT_URL", f"https://trace.agent.{site}")

    from ddtrace import patch

    patch(fastapi=True, httpx=True)
    logger.info(f"Datadog tracing enabled: service={os.environ['DD_SERVICE']}")
    return True
