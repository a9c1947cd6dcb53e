"""Keyframe image generation (step 4).

One image per keyframe description, each conditioned on the character
reference from step 3. Requests run concurrently, at most
MAX_CONCURRENT_GENERATIONS at a time. Images may finish in any order; the
URL list written to keyframes.json is always in keyframe order because step
5 pairs keyframes i and i+1 by position.

The first failing keyframe aborts the step. Requests already dispatched are
not cancelled and images they download are left on disk.
"""

import asyncio
import logging
from pathlib import Path

import httpx

from oneshot.errors import ScriptValidationError
from oneshot.pipeline.fanout import gather_units
from oneshot.pipeline.script import load_script
from oneshot.services.artifact_store import (
    CHARACTER_URL_FILE,
    KEYFRAME_URLS_FILE,
    ProjectDir,
    download_file,
    keyframe_filename,
)
from oneshot.services.providers.base import ImageGenerator

logger = logging.getLogger(__name__)

# Provider rate limit; shared with video generation
MAX_CONCURRENT_GENERATIONS = 5


async def generate_keyframes(
    project_dir: Path,
    image_generator: ImageGenerator,
    http_client: httpx.AsyncClient,
) -> list[str]:
    """Generate keyframe0.jpg .. keyframeN.jpg and keyframes.json.

    Returns:
        Keyframe image URLs in keyframe order.
    """
    project = ProjectDir(project_dir)
    script = load_script(project_dir)
    character_url = project.read_text(CHARACTER_URL_FILE, producing_step=3).strip()

    if not script.keyframes:
        raise ScriptValidationError("Script is missing keyframes. Re-run step 2 to generate a new script.")

    logger.info(f"Step 4: generating {len(script.keyframes)} keyframe images...")
    semaphore = asyncio.Semaphore(MAX_CONCURRENT_GENERATIONS)

    async def generate_one(index: int, description: str) -> str:
        async with semaphore:
            logger.info(f"  Keyframe {index}...")
            url = await image_generator.generate_image(description, character_url)
            await download_file(http_client, url, project.file(keyframe_filename(index)))
            logger.info(f"  Keyframe {index} done")
            return url

    keyframe_urls = await gather_units(
        (f"Keyframe {i}", generate_one(i, description))
        for i, description in enumerate(script.keyframes)
    )

    project.write_json(KEYFRAME_URLS_FILE, list(keyframe_urls))
    return list(keyframe_urls)
