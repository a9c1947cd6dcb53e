"""Video segment generation (step 5).

Segment i (0-based) is generated from its script text with keyframe i as
the first frame and keyframe i+1 as the last frame, so neighbouring segments
share a boundary frame and the stitched movie reads as one continuous take.
Each call is a submit/poll/resolve task on the provider side.

Concurrency and failure semantics match step 4.
"""

import asyncio
import logging
from pathlib import Path

import httpx

from oneshot.errors import MissingArtifactError
from oneshot.pipeline.fanout import gather_units
from oneshot.pipeline.keyframes import MAX_CONCURRENT_GENERATIONS
from oneshot.pipeline.script import load_script
from oneshot.schemas.script import SegmentSchema
from oneshot.services.artifact_store import (
    KEYFRAME_URLS_FILE,
    ProjectDir,
    download_file,
    segment_filename,
)
from oneshot.services.providers.base import VideoGenerator

logger = logging.getLogger(__name__)


async def generate_videos(
    project_dir: Path,
    video_generator: VideoGenerator,
    http_client: httpx.AsyncClient,
) -> list[Path]:
    """Generate segment1.mp4 .. segmentN.mp4.

    Returns:
        Paths of the downloaded segments in order.
    """
    project = ProjectDir(project_dir)
    script = load_script(project_dir)
    keyframe_urls: list[str] = project.read_json(KEYFRAME_URLS_FILE, producing_step=4)

    if len(keyframe_urls) < script.segment_count + 1:
        logger.error(
            f"{KEYFRAME_URLS_FILE} has {len(keyframe_urls)} URLs, "
            f"{script.segment_count + 1} needed"
        )
        raise MissingArtifactError(KEYFRAME_URLS_FILE, producing_step=4)

    logger.info(f"Step 5: generating {script.segment_count} video segments...")
    semaphore = asyncio.Semaphore(MAX_CONCURRENT_GENERATIONS)

    async def generate_one(index: int, segment: SegmentSchema) -> Path:
        async with semaphore:
            number = index + 1
            logger.info(f"  Segment {number}...")
            video_url = await video_generator.generate_video(
                segment.script,
                keyframe_urls[index],
                keyframe_urls[index + 1],
            )
            video_path = await download_file(
                http_client, video_url, project.file(segment_filename(number))
            )
            logger.info(f"  Segment {number} done: {video_path}")
            return video_path

    paths = await gather_units(
        (f"Segment {i + 1}", generate_one(i, segment))
        for i, segment in enumerate(script.segments)
    )
    return list(paths)
