"""In-process registry of running steps.

At most one step runs per project. A second request while one is in flight
is rejected with StepConflictError rather than queued. Entries are removed
when the step finishes, whether it succeeded or failed, but removing an
entry does not stop work already in flight.

One registry lives on the API application state and is handed to request
handlers; the CLI creates its own.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from oneshot.errors import StepConflictError

logger = logging.getLogger(__name__)


class RunRegistry:
    """Thread-safe map of project id -> step currently executing."""

    def __init__(self) -> None:
        self._running: dict[str, int] = {}
        self._lock = threading.Lock()

    def begin_run(self, project_id: str, step: int) -> None:
        """Record a run.

        Raises:
            StepConflictError: If the project already has a running step.
        """
        with self._lock:
            current = self._running.get(project_id)
            if current is not None:
                raise StepConflictError(project_id, current)
            self._running[project_id] = step
        logger.debug(f"Project {project_id}: step {step} started")

    def end_run(self, project_id: str) -> None:
        with self._lock:
            self._running.pop(project_id, None)

    def running_step_of(self, project_id: str) -> Optional[int]:
        with self._lock:
            return self._running.get(project_id)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._running)

    @contextmanager
    def running(self, project_id: str, step: int) -> Iterator[None]:
        """Hold the project's slot for the duration of the block."""
        self.begin_run(project_id, step)
        try:
            yield
        finally:
            self.end_run(project_id)
