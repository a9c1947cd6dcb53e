"""Root logger configuration for the CLI and the API server."""

import logging
from typing import Optional

from rich.logging import RichHandler

LOG_FORMAT = "%(name)s: %(message)s"
LOG_DATEFMT = "%H:%M:%S"


def configure_logging(level: Optional[str] = None, force: bool = False) -> logging.Logger:
    """Install a RichHandler on the root logger.

    Args:
        level: Log level name. Defaults to settings.logging.level.
        force: Replace handlers installed by an earlier call.

    Returns:
        The root logger.
    """
    root = logging.getLogger()
    if getattr(root, "_oneshot_logging_configured", False) and not force:
        return root

    if level is None:
        from oneshot.config import settings

        level = settings.logging.level

    if force:
        for handler in list(root.handlers):
            root.removeHandler(handler)

    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    root.addHandler(handler)
    root.setLevel(level.upper())

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    root._oneshot_logging_configured = True
    return root
