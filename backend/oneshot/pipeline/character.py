"""Character reference image generation (step 3)."""

import logging
from pathlib import Path

import httpx

from oneshot.pipeline.script import load_script
from oneshot.services.artifact_store import (
    CHARACTER_IMAGE,
    CHARACTER_URL_FILE,
    ProjectDir,
    download_file,
)
from oneshot.services.providers.base import ImageGenerator

logger = logging.getLogger(__name__)


async def generate_character(
    project_dir: Path,
    image_generator: ImageGenerator,
    http_client: httpx.AsyncClient,
) -> str:
    """Generate the protagonist's reference image.

    The image is saved as character.jpg and its source URL as
    character_url.txt; step 4 passes that URL to every keyframe request as
    the subject reference.

    Returns:
        The character image URL.
    """
    project = ProjectDir(project_dir)
    script = load_script(project_dir)

    logger.info("Step 3: generating character reference image...")
    character_url = await image_generator.generate_image(script.main_character_description)
    await download_file(http_client, character_url, project.file(CHARACTER_IMAGE))
    project.write_text(CHARACTER_URL_FILE, character_url)
    logger.info(f"  Saved: {CHARACTER_IMAGE}")
    return character_url
