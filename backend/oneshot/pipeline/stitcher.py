"""Video stitching with the ffmpeg concat demuxer (step 6).

Segments already share their boundary frames, so they are joined with hard
cuts and stream copy; no re-encoding or crossfade is needed.
"""

import asyncio
import logging
import subprocess
from pathlib import Path

from oneshot.errors import MissingArtifactError, StitchError
from oneshot.pipeline.script import load_script
from oneshot.services.artifact_store import (
    CONCAT_LIST_FILE,
    MOVIE_FILE,
    ProjectDir,
    segment_filename,
)

logger = logging.getLogger(__name__)


async def stitch_videos(project_dir: Path) -> Path:
    """Concatenate segment1.mp4 .. segmentN.mp4 into movie.mp4.

    The script is read only to recover the segment count. ffmpeg blocks, so
    it runs in a worker thread.

    Returns:
        Path to movie.mp4.

    Raises:
        MissingArtifactError: If a segment file is absent.
        StitchError: If ffmpeg is missing or exits non-zero.
    """
    project = ProjectDir(project_dir)
    script = load_script(project_dir)
    segment_names = [segment_filename(n) for n in range(1, script.segment_count + 1)]

    missing = [name for name in segment_names if not project.has(name)]
    if missing:
        logger.error(f"{project.path.name}: missing segment files: {missing}")
        raise MissingArtifactError(missing[0], producing_step=5)

    logger.info(f"Step 6: stitching {len(segment_names)} segments...")
    output_path = project.file(MOVIE_FILE)
    await asyncio.to_thread(_stitch_concat_demuxer, project.path, segment_names, output_path)
    logger.info(f"  Done: {output_path}")
    return output_path


def _stitch_concat_demuxer(project_path: Path, segment_names: list[str], output_path: Path) -> None:
    """Stitch videos using ffmpeg concat demuxer (hard cuts).

    Entries in the concat list are relative names; ffmpeg resolves them
    against the list file's directory, which is the project directory.
    """
    list_file = project_path / CONCAT_LIST_FILE

    try:
        with open(list_file, "w") as f:
            f.write("\n".join(f"file '{name}'" for name in segment_names))

        subprocess.run(
            [
                "ffmpeg",
                "-y",  # Overwrite output file
                "-f",
                "concat",
                "-safe",
                "0",
                "-i",
                str(list_file),
                "-c",
                "copy",  # Stream copy, no re-encoding
                str(output_path),
            ],
            check=True,
            capture_output=True,
        )

    except FileNotFoundError as e:
        raise StitchError("ffmpeg not found on PATH") from e

    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode(errors="replace") if e.stderr else "No error output"
        logger.error(f"ffmpeg error: {stderr}")
        raise StitchError(f"Video stitching failed: {stderr[:500]}") from e

    finally:
        # Clean up concat list file
        if list_file.exists():
            list_file.unlink()
