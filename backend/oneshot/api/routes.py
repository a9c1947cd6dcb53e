"""API route handlers and Pydantic response schemas."""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from oneshot import ffmpeg_available
from oneshot.errors import InvalidStepError, StepConflictError
from oneshot.orchestrator.pipeline import execute_step
from oneshot.orchestrator.run_registry import RunRegistry
from oneshot.orchestrator.state import detect_status
from oneshot.pipeline.script import collect_input
from oneshot.services.artifact_store import INPUT_FILE, SCRIPT_FILE, ArtifactStore, ProjectDir
from oneshot.services.providers.base import GenerationServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ============================================================================
# Request / Response Schemas
# ============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateProjectRequest(BaseModel):
    """Request schema for POST /api/projects."""
    description: Optional[str] = None


class StepRequest(BaseModel):
    """Request body for POST /api/projects/{id}/step/{n}; only step 1 reads it."""
    description: Optional[str] = None


class CreateProjectResponse(_CamelModel):
    id: str
    completed_step: int = Field(alias="completedStep")


class ProjectListItem(_CamelModel):
    id: str
    completed_step: int = Field(alias="completedStep")
    description: str
    running_step: Optional[int] = Field(alias="runningStep")


class ProjectStatusResponse(_CamelModel):
    id: str
    completed_step: int = Field(alias="completedStep")
    artifacts: list[str]
    running_step: Optional[int] = Field(alias="runningStep")


class HealthResponse(BaseModel):
    status: str
    ffmpeg: bool


# ============================================================================
# Dependencies
# ============================================================================

def get_store(request: Request) -> ArtifactStore:
    return request.app.state.store


def get_registry(request: Request) -> RunRegistry:
    return request.app.state.registry


def get_services(request: Request) -> Optional[GenerationServices]:
    return request.app.state.services


def _project_dir(store: ArtifactStore, project_id: str) -> ProjectDir:
    try:
        return store.project(project_id)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid project id: {project_id}")


def _status_response(
    project_id: str, project: ProjectDir, registry: RunRegistry
) -> ProjectStatusResponse:
    progress = detect_status(project.path)
    return ProjectStatusResponse(
        id=project_id,
        completed_step=progress.completed_step,
        artifacts=progress.artifacts,
        running_step=registry.running_step_of(project_id),
    )


# ============================================================================
# Endpoint Handlers
# ============================================================================

@router.get("/projects", response_model=list[ProjectListItem])
async def list_projects(
    store: ArtifactStore = Depends(get_store),
    registry: RunRegistry = Depends(get_registry),
):
    """List all projects, newest first."""
    items = []
    for project_id in store.list_project_ids():
        project = store.project(project_id)
        description = project.file(INPUT_FILE).read_text(encoding="utf-8") if project.has(INPUT_FILE) else ""
        items.append(
            ProjectListItem(
                id=project_id,
                completed_step=detect_status(project.path).completed_step,
                description=description,
                running_step=registry.running_step_of(project_id),
            )
        )
    return items


@router.post("/projects", response_model=CreateProjectResponse)
async def create_project(
    request: CreateProjectRequest,
    store: ArtifactStore = Depends(get_store),
):
    """Create a project and run step 1 with the given description."""
    if not request.description or not request.description.strip():
        raise HTTPException(status_code=400, detail="description required")

    project_id = store.new_project_id()
    collect_input(store.project_path(project_id), request.description)
    logger.info(f"Created project {project_id}")
    return CreateProjectResponse(id=project_id, completed_step=1)


@router.get("/projects/{project_id}/status", response_model=ProjectStatusResponse)
async def get_project_status(
    project_id: str,
    store: ArtifactStore = Depends(get_store),
    registry: RunRegistry = Depends(get_registry),
):
    """Get derived project status for polling.

    An unknown id reports completedStep 0 with no artifacts.
    """
    return _status_response(project_id, _project_dir(store, project_id), registry)


@router.post("/projects/{project_id}/step/{step_num}", response_model=ProjectStatusResponse)
async def run_project_step(
    project_id: str,
    step_num: int,
    body: Optional[StepRequest] = None,
    store: ArtifactStore = Depends(get_store),
    registry: RunRegistry = Depends(get_registry),
    services: Optional[GenerationServices] = Depends(get_services),
):
    """Run (or re-run) one step and wait for it to finish.

    Returns 400 for an invalid step, 409 if a step is already running for the
    project and 500 with {"error": message} if the step fails.
    """
    project = _project_dir(store, project_id)
    description = body.description if body else None

    try:
        await execute_step(
            store, registry, project_id, step_num, services, description=description
        )
    except InvalidStepError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StepConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Step {step_num} failed for {project_id}: {type(e).__name__}: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})

    return _status_response(project_id, project, registry)


@router.get("/projects/{project_id}/script")
async def get_project_script(
    project_id: str,
    store: ArtifactStore = Depends(get_store),
):
    """Return the persisted script.json as-is."""
    project = _project_dir(store, project_id)
    if not project.has(SCRIPT_FILE):
        raise HTTPException(status_code=404, detail="Script not found")
    return project.read_json(SCRIPT_FILE, producing_step=2)


@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", ffmpeg=await asyncio.to_thread(ffmpeg_available))
