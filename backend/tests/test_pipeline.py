"""Tests for step dispatch, downstream invalidation and full runs."""

import json

import pytest

from oneshot.errors import InvalidStepError, ProviderError
from oneshot.orchestrator import RunRegistry, create_movie, detect_status, execute_step, run_step

from conftest import ASTRONAUT, FakeImageGenerator, make_script

LATER_FILES = ("keyframe0.jpg", "keyframes.json", "segment1.mp4", "movie.mp4")


def seed_project(project_dir):
    (project_dir / "input.txt").write_text(ASTRONAUT)
    (project_dir / "script.json").write_text(json.dumps(make_script(4)))
    for name in LATER_FILES:
        (project_dir / name).write_bytes(b"old")


@pytest.mark.asyncio
async def test_create_movie_runs_all_steps(store, services, fake_ffmpeg):
    messages = []

    project_id = await create_movie(ASTRONAUT, services, store=store, progress_callback=messages.append)

    progress = detect_status(store.project_path(project_id))
    assert progress.completed_step == 6
    assert (store.project_path(project_id) / "input.txt").read_text() == ASTRONAUT
    assert messages[0] == "Step 1/6: input"
    assert messages[-1] == "Complete"
    assert len(services.image.calls) == 1 + 5


@pytest.mark.asyncio
async def test_create_movie_stops_at_failing_step(store, services, script_data, fake_ffmpeg):
    services.image = FakeImageGenerator(fail_on=script_data["mainCharacterDescription"])
    registry = RunRegistry()

    with pytest.raises(ProviderError):
        await create_movie(ASTRONAUT, services, store=store, registry=registry, project_id="1700000000000")

    assert detect_status(store.project_path("1700000000000")).completed_step == 2
    assert registry.snapshot() == {}
    assert services.video.calls == []
    assert fake_ffmpeg == []


@pytest.mark.asyncio
async def test_execute_step_validates_before_guard(store, services):
    registry = RunRegistry()

    with pytest.raises(InvalidStepError, match="stepNum must be 1-6"):
        await execute_step(store, registry, "1700000000000", 9, services)
    with pytest.raises(InvalidStepError, match="description required"):
        await execute_step(store, registry, "1700000000000", 1, services, description="  ")

    assert registry.snapshot() == {}


@pytest.mark.asyncio
async def test_rerun_keeps_downstream_by_default(project_dir, services):
    seed_project(project_dir)

    await run_step(project_dir, 3, services, invalidate_downstream=False)

    for name in LATER_FILES:
        assert (project_dir / name).read_bytes() == b"old"
    assert detect_status(project_dir).completed_step == 6


@pytest.mark.asyncio
async def test_rerun_with_invalidation_clears_later_steps(project_dir, services):
    seed_project(project_dir)

    await run_step(project_dir, 3, services, invalidate_downstream=True)

    for name in LATER_FILES:
        assert not (project_dir / name).exists()
    assert (project_dir / "script.json").exists()
    assert detect_status(project_dir).completed_step == 3


@pytest.mark.asyncio
async def test_generation_steps_need_services(project_dir):
    seed_project(project_dir)
    with pytest.raises(ValueError, match="requires generation services"):
        await run_step(project_dir, 2, None)
