"""Pipeline orchestrator module.

Provides step coordination for the generation pipeline with:
- Step constants and filesystem-derived progress
- Single-flight run registry per project
- Step dispatch and full end-to-end runs
"""

from oneshot.orchestrator.pipeline import create_movie, execute_step, run_step
from oneshot.orchestrator.run_registry import RunRegistry
from oneshot.orchestrator.state import Progress, detect_status

__all__ = [
    "Progress",
    "RunRegistry",
    "create_movie",
    "detect_status",
    "execute_step",
    "run_step",
]
