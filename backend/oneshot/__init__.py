"""Oneshot - generated continuous-take (plan-sequence) videos from a text prompt.

This module provides startup validation functions to ensure required
dependencies are available before pipeline execution begins.
Call validate_dependencies() during application startup.
"""

import logging
import subprocess

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def validate_dependencies() -> None:
    """Validate required system dependencies are available.

    The stitch step shells out to ffmpeg, so it must be on PATH before a
    project can reach step 6.

    Raises:
        RuntimeError: If ffmpeg is not found or not functional.
    """
    try:
        result = subprocess.run(
            ['ffmpeg', '-version'],
            capture_output=True,
            check=True,
            text=True
        )
        version_line = result.stdout.split('\n')[0]
        logger.info(f"ffmpeg validated: {version_line}")
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        raise RuntimeError(
            "ffmpeg not found on PATH. Install ffmpeg to stitch video segments.\n"
            "Ubuntu/Debian: sudo apt-get install ffmpeg\n"
            "macOS: brew install ffmpeg\n"
            "Windows: https://ffmpeg.org/download.html"
        ) from e


def ffmpeg_available() -> bool:
    """Return True if ffmpeg can be executed, without raising."""
    try:
        validate_dependencies()
    except RuntimeError:
        return False
    return True
