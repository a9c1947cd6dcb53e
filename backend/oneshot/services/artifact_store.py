"""
File management for oneshot projects.

Every project is one flat directory under the projects root, named by its id.
The files in it are the only record of pipeline progress:

- input.txt                          step 1
- script.json                        step 2
- character.jpg, character_url.txt   step 3
- keyframe{i}.jpg, keyframes.json    step 4 (i in 0..N)
- segment{i}.mp4                     step 5 (i in 1..N)
- movie.mp4                          step 6

Implements path traversal protection so an id cannot escape the root.
"""
import json
import logging
import re
import time
from pathlib import Path
from typing import Any

import httpx

from oneshot.config import settings
from oneshot.errors import MissingArtifactError, ProviderError

logger = logging.getLogger(__name__)

INPUT_FILE = "input.txt"
SCRIPT_FILE = "script.json"
CHARACTER_IMAGE = "character.jpg"
CHARACTER_URL_FILE = "character_url.txt"
KEYFRAME_URLS_FILE = "keyframes.json"
MOVIE_FILE = "movie.mp4"
CONCAT_LIST_FILE = "list.txt"

# Everything each step writes, used for downstream invalidation
STEP_OUTPUTS: dict[int, re.Pattern] = {
    1: re.compile(r"^input\.txt$"),
    2: re.compile(r"^script\.json$"),
    3: re.compile(r"^character(\.jpg|_url\.txt)$"),
    4: re.compile(r"^keyframe(\d+\.jpg|s\.json)$"),
    5: re.compile(r"^segment\d+\.mp4$"),
    6: re.compile(r"^(movie|output)\.mp4$"),
}


def keyframe_filename(index: int) -> str:
    return f"keyframe{index}.jpg"


def segment_filename(number: int) -> str:
    """Segment files are 1-indexed: segment1.mp4 .. segmentN.mp4."""
    return f"segment{number}.mp4"


class ProjectDir:
    """Read/write helpers over a single project directory."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"ProjectDir({str(self.path)!r})"

    def file(self, name: str) -> Path:
        return self.path / name

    def has(self, name: str) -> bool:
        return self.file(name).is_file()

    def exists(self) -> bool:
        return self.path.is_dir()

    def listdir(self) -> list[str]:
        """Return file names in the directory, or [] if it does not exist."""
        if not self.path.is_dir():
            return []
        return sorted(p.name for p in self.path.iterdir() if p.is_file())

    def ensure(self) -> Path:
        self.path.mkdir(parents=True, exist_ok=True)
        return self.path

    def read_text(self, name: str, producing_step: int) -> str:
        """Read an upstream artifact.

        Raises:
            MissingArtifactError: If the file is absent.
        """
        try:
            return self.file(name).read_text(encoding="utf-8")
        except FileNotFoundError:
            raise MissingArtifactError(name, producing_step) from None

    def read_json(self, name: str, producing_step: int) -> Any:
        return json.loads(self.read_text(name, producing_step))

    def write_text(self, name: str, content: str) -> Path:
        filepath = self.file(name)
        filepath.write_text(content, encoding="utf-8")
        return filepath

    def write_json(self, name: str, data: Any) -> Path:
        return self.write_text(name, json.dumps(data, indent=2, ensure_ascii=False))

    def clear_after_step(self, step: int) -> list[str]:
        """Delete the artifacts of every step later than `step`.

        Returns:
            Names of the removed files.
        """
        removed = []
        for name in self.listdir():
            for later_step, pattern in STEP_OUTPUTS.items():
                if later_step > step and pattern.match(name):
                    self.file(name).unlink()
                    removed.append(name)
                    break
        if removed:
            logger.info(f"{self.path.name}: removed stale artifacts {removed}")
        return removed


class ArtifactStore:
    """
    Map project ids to directories under a projects root.

    Ids are millisecond timestamps, so sorting them as strings in reverse
    gives newest-first order.
    """

    def __init__(self, base_dir: str | Path | None = None):
        """
        Initialize the store with its root directory.

        Args:
            base_dir: Root directory for all projects.
                     If None, uses settings.storage.projects_dir
        """
        if base_dir is None:
            base_dir = settings.storage.projects_dir

        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def project_path(self, project_id: str) -> Path:
        """
        Resolve the directory of a project without creating it.

        Raises:
            ValueError: If project_id resolves outside base_dir (traversal attack)
        """
        project_dir = (self.base_dir / str(project_id)).resolve()

        if project_dir == self.base_dir or not project_dir.is_relative_to(self.base_dir):
            raise ValueError("Invalid project path")

        return project_dir

    def project(self, project_id: str) -> ProjectDir:
        return ProjectDir(self.project_path(project_id))

    def new_project_id(self) -> str:
        """Allocate a time-derived id whose directory does not exist yet."""
        candidate = int(time.time() * 1000)
        while (self.base_dir / str(candidate)).exists():
            candidate += 1
        return str(candidate)

    def list_project_ids(self) -> list[str]:
        """Return all project ids, newest first."""
        ids = [p.name for p in self.base_dir.iterdir() if p.is_dir()]
        return sorted(ids, reverse=True)


async def download_file(client: httpx.AsyncClient, url: str, dest: Path) -> Path:
    """Stream a generated asset to disk.

    Raises:
        ProviderError: On a non-2xx response.
    """
    async with client.stream("GET", url) as response:
        if response.status_code >= 400:
            raise ProviderError(
                f"Download failed: {response.status_code}",
                status_code=response.status_code,
            )
        with open(dest, "wb") as f:
            async for chunk in response.aiter_bytes():
                f.write(chunk)

    logger.debug(f"Downloaded {url} -> {dest}")
    return dest
