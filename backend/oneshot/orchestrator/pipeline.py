"""Step dispatch and full-run orchestration.

Coordinates the six pipeline steps with:
- Step number -> stage implementation dispatch
- Single-flight guard per project via RunRegistry
- Optional invalidation of downstream artifacts before a re-run
- Per-step timing and logging
- Progress callback interface for CLI/API integration

The orchestrator does not check that earlier steps have completed. A step
reads the files it needs and fails with MissingArtifactError if one is
absent.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional

from oneshot.config import settings
from oneshot.errors import InvalidStepError
from oneshot.orchestrator.run_registry import RunRegistry
from oneshot.orchestrator.state import (
    FIRST_STEP,
    LAST_STEP,
    STEP_NAMES,
    Progress,
    detect_status,
    is_valid_step,
)
from oneshot.pipeline.character import generate_character
from oneshot.pipeline.keyframes import generate_keyframes
from oneshot.pipeline.script import collect_input, generate_script
from oneshot.pipeline.stitcher import stitch_videos
from oneshot.pipeline.video_gen import generate_videos
from oneshot.services.artifact_store import ArtifactStore, ProjectDir
from oneshot.services.providers.base import GenerationServices

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


def validate_step_request(step: int, description: Optional[str] = None) -> None:
    """Reject requests that can never succeed.

    Raises:
        InvalidStepError: If step is outside 1-6, or step 1 lacks a description.
    """
    if not is_valid_step(step):
        raise InvalidStepError(f"stepNum must be {FIRST_STEP}-{LAST_STEP}")
    if step == 1 and not (description and description.strip()):
        raise InvalidStepError("description required for step 1")


async def run_step(
    project_dir: Path,
    step: int,
    services: Optional[GenerationServices],
    *,
    description: Optional[str] = None,
    invalidate_downstream: Optional[bool] = None,
) -> None:
    """Run one pipeline step against a project directory.

    Args:
        project_dir: The project's artifact directory.
        step: Step number 1-6.
        services: Generation providers; unused by steps 1 and 6.
        description: Required for step 1.
        invalidate_downstream: Delete later steps' artifacts first. Defaults to
            settings.pipeline.invalidate_downstream.
    """
    validate_step_request(step, description)
    if step in (2, 3, 4, 5) and services is None:
        raise ValueError(f"Step {step} requires generation services")

    if invalidate_downstream is None:
        invalidate_downstream = settings.pipeline.invalidate_downstream
    if invalidate_downstream:
        ProjectDir(project_dir).clear_after_step(step)

    step_name = STEP_NAMES[step]
    start = time.monotonic()
    logger.info(f"Project {Path(project_dir).name}: starting step {step} ({step_name})")

    try:
        if step == 1:
            collect_input(project_dir, description)
        elif step == 2:
            await generate_script(
                project_dir, services.text, settings.pipeline.segment_duration
            )
        elif step == 3:
            await generate_character(project_dir, services.image, services.http_client)
        elif step == 4:
            await generate_keyframes(project_dir, services.image, services.http_client)
        elif step == 5:
            await generate_videos(project_dir, services.video, services.http_client)
        elif step == 6:
            await stitch_videos(project_dir)
    except Exception as e:
        duration = time.monotonic() - start
        logger.error(
            f"Project {Path(project_dir).name}: step {step} ({step_name}) failed "
            f"after {duration:.1f}s: {type(e).__name__}: {e}"
        )
        raise

    duration = time.monotonic() - start
    logger.info(f"Project {Path(project_dir).name}: step {step} ({step_name}) completed in {duration:.1f}s")


async def execute_step(
    store: ArtifactStore,
    registry: RunRegistry,
    project_id: str,
    step: int,
    services: Optional[GenerationServices],
    *,
    description: Optional[str] = None,
) -> Progress:
    """Run a step under the project's single-flight guard.

    Raises:
        InvalidStepError: Before the guard is taken, for an invalid request.
        StepConflictError: If another step is running for the project.

    Returns:
        Progress re-derived after the step finished.
    """
    validate_step_request(step, description)
    project_dir = store.project_path(project_id)

    with registry.running(project_id, step):
        await run_step(project_dir, step, services, description=description)

    return detect_status(project_dir)


async def create_movie(
    description: str,
    services: GenerationServices,
    store: Optional[ArtifactStore] = None,
    registry: Optional[RunRegistry] = None,
    progress_callback: Optional[ProgressCallback] = None,
    project_id: Optional[str] = None,
) -> str:
    """Create a project and run all six steps in order.

    Stops at the first failing step; the project can then be continued one
    step at a time.

    Returns:
        The new project id.
    """
    store = store or ArtifactStore()
    registry = registry or RunRegistry()
    project_id = project_id or store.new_project_id()
    logger.info(f"Output: {store.project_path(project_id)}")

    def _progress(msg: str) -> None:
        if progress_callback:
            progress_callback(msg)

    pipeline_start = time.monotonic()
    for step in range(FIRST_STEP, LAST_STEP + 1):
        _progress(f"Step {step}/{LAST_STEP}: {STEP_NAMES[step]}")
        await execute_step(
            store,
            registry,
            project_id,
            step,
            services,
            description=description if step == 1 else None,
        )

    total = time.monotonic() - pipeline_start
    logger.info(f"Project {project_id}: pipeline completed in {total:.1f}s")
    _progress("Complete")
    return project_id
