"""Step constants and progress inference for the pipeline orchestrator.

Progress is never stored. It is derived from which artifacts are present in
a project directory: each step has a defining artifact pattern, the six
checks are made independently, and the highest satisfied one wins. A
directory holding only movie.mp4 therefore reports step 6 even though
script.json is missing; callers must not assume intermediate artifacts exist
because completed_step is high.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from oneshot.services.artifact_store import ProjectDir

# Pipeline steps in execution order
STEP_NAMES = {
    1: "input",
    2: "script",
    3: "character",
    4: "keyframes",
    5: "segments",
    6: "stitch",
}

FIRST_STEP = 1
LAST_STEP = 6

# Artifact whose presence marks a step as completed
STEP_DEFINING_PATTERNS: dict[int, re.Pattern] = {
    1: re.compile(r"^input\.txt$"),
    2: re.compile(r"^script\.json$"),
    3: re.compile(r"^character\.jpg$"),
    4: re.compile(r"^keyframe\d+\.jpg$"),
    5: re.compile(r"^segment\d+\.mp4$"),
    6: re.compile(r"^(movie|output)\.mp4$"),
}

_ARTIFACT_SUFFIXES = (".jpg", ".mp4", ".json")


def is_valid_step(step: int) -> bool:
    return FIRST_STEP <= step <= LAST_STEP


def completed_step(filenames: Iterable[str]) -> int:
    """Return the highest step whose defining artifact is among filenames."""
    names = list(filenames)
    best = 0
    for step, pattern in STEP_DEFINING_PATTERNS.items():
        if any(pattern.match(name) for name in names):
            best = max(best, step)
    return best


def list_artifacts(filenames: Iterable[str]) -> list[str]:
    """Filter a listing down to user-facing artifacts, sorted by name."""
    return sorted(
        name for name in filenames
        if name.endswith(_ARTIFACT_SUFFIXES) or name == "input.txt"
    )


@dataclass
class Progress:
    completed_step: int
    artifacts: list[str] = field(default_factory=list)


def infer_progress(filenames: Iterable[str]) -> Progress:
    """Derive progress from a directory listing."""
    names = list(filenames)
    return Progress(completed_step=completed_step(names), artifacts=list_artifacts(names))


class ProgressInspector(ABC):
    """Source of the file listing that progress is inferred from.

    The filesystem implementation is the only one today; an object-store
    backend would implement the same method over its key listing.
    """

    @abstractmethod
    def listing(self, project_dir: Path) -> list[str]:
        ...

    def progress(self, project_dir: Path) -> Progress:
        return infer_progress(self.listing(project_dir))


class FilesystemProgressInspector(ProgressInspector):
    def listing(self, project_dir: Path) -> list[str]:
        return ProjectDir(project_dir).listdir()


def detect_status(project_dir: Path, inspector: Optional[ProgressInspector] = None) -> Progress:
    """Convenience wrapper using the filesystem inspector by default."""
    return (inspector or FilesystemProgressInspector()).progress(project_dir)
