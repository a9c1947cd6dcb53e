"""API tests against the FastAPI app with in-process generation fakes."""

import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from oneshot.api.app import create_app
from oneshot.services.providers.base import GenerationServices, TextGenerator

from conftest import ASTRONAUT, FakeImageGenerator, FakeTextGenerator, FakeVideoGenerator, make_http_client


@pytest.fixture
def client(store, services):
    return TestClient(create_app(store, services))


def create_project(client, description=ASTRONAUT) -> str:
    response = client.post("/api/projects", json={"description": description})
    assert response.status_code == 200
    return response.json()["id"]


def test_full_run_through_steps(store, services, fake_ffmpeg):
    with TestClient(create_app(store, services)) as client:
        response = client.post("/api/projects", json={"description": ASTRONAUT})
        assert response.status_code == 200
        project_id = response.json()["id"]
        assert response.json() == {"id": project_id, "completedStep": 1}

        for step in range(2, 7):
            response = client.post(f"/api/projects/{project_id}/step/{step}")
            assert response.status_code == 200, response.text
            assert response.json()["completedStep"] == step
            assert response.json()["runningStep"] is None

        status = client.get(f"/api/projects/{project_id}/status").json()
        assert status["completedStep"] == 6
        assert status["artifacts"] == sorted(
            ["character.jpg", "input.txt", "keyframes.json", "movie.mp4", "script.json"]
            + [f"keyframe{i}.jpg" for i in range(5)]
            + [f"segment{n}.mp4" for n in range(1, 5)]
        )

        script = client.get(f"/api/projects/{project_id}/script").json()
        assert len(script["segments"]) == 4
        assert len(script["keyframes"]) == 5
        assert "mainCharacterDescription" in script

        media = client.get(f"/media/{project_id}/keyframe0.jpg")
        assert media.status_code == 200
        assert media.content.startswith(b"bytes:/img/")

        assert client.get("/api/health").json() == {"status": "ok", "ffmpeg": True}

    # keyframe i and i+1 bracket segment i
    keyframe_urls = json.loads((store.project_path(project_id) / "keyframes.json").read_text())
    for prompt, first, last in services.video.calls:
        index = int(prompt.rsplit(" ", 1)[-1]) - 1
        assert (first, last) == (keyframe_urls[index], keyframe_urls[index + 1])
    assert fake_ffmpeg[0]["list"].count("file 'segment") == 4


def test_list_projects_newest_first(client, store):
    (store.base_dir / "1700000000001").mkdir()
    (store.base_dir / "1700000000001" / "input.txt").write_text("older idea")
    (store.base_dir / "1700000000005").mkdir()
    (store.base_dir / "1700000000005" / "input.txt").write_text("newer idea")
    (store.base_dir / "1700000000005" / "script.json").write_text("{}")

    response = client.get("/api/projects")

    assert response.status_code == 200
    assert response.json() == [
        {"id": "1700000000005", "completedStep": 2, "description": "newer idea", "runningStep": None},
        {"id": "1700000000001", "completedStep": 1, "description": "older idea", "runningStep": None},
    ]


@pytest.mark.parametrize("body", [{}, {"description": ""}, {"description": "   "}])
def test_create_project_requires_description(client, store, body):
    response = client.post("/api/projects", json=body)
    assert response.status_code == 400
    assert response.json() == {"error": "description required"}
    assert store.list_project_ids() == []


@pytest.mark.parametrize("step", [0, 7])
def test_step_out_of_range(client, step):
    project_id = create_project(client)
    response = client.post(f"/api/projects/{project_id}/step/{step}")
    assert response.status_code == 400
    assert response.json() == {"error": "stepNum must be 1-6"}


def test_step_not_a_number(client):
    project_id = create_project(client)
    response = client.post(f"/api/projects/{project_id}/step/two")
    assert response.status_code == 400
    assert "error" in response.json()


def test_step_one_requires_description(client):
    project_id = create_project(client)
    response = client.post(f"/api/projects/{project_id}/step/1", json={})
    assert response.status_code == 400
    assert response.json() == {"error": "description required for step 1"}


def test_step_one_rewrites_input(client, store):
    project_id = create_project(client)
    response = client.post(f"/api/projects/{project_id}/step/1", json={"description": "a diver in a kelp forest"})
    assert response.status_code == 200
    assert (store.project_path(project_id) / "input.txt").read_text() == "a diver in a kelp forest"


def test_step_out_of_order_reports_missing_artifact(client):
    project_id = create_project(client)
    response = client.post(f"/api/projects/{project_id}/step/3")
    assert response.status_code == 500
    assert response.json() == {"error": "script.json not found. Re-run step 2."}


def test_failed_step_releases_project(store, services):
    services.text = FakeTextGenerator("no json here")
    client = TestClient(create_app(store, services))
    project_id = create_project(client)

    response = client.post(f"/api/projects/{project_id}/step/2")
    assert response.status_code == 500
    assert "Re-run step 2" in response.json()["error"]
    assert not (store.project_path(project_id) / "script.json").exists()

    status = client.get(f"/api/projects/{project_id}/status").json()
    assert status["runningStep"] is None
    assert status["completedStep"] == 1


def test_status_of_unknown_project(client):
    response = client.get("/api/projects/1234567890123/status")
    assert response.status_code == 200
    assert response.json() == {"id": "1234567890123", "completedStep": 0, "artifacts": [], "runningStep": None}


def test_script_not_found(client):
    project_id = create_project(client)
    response = client.get(f"/api/projects/{project_id}/script")
    assert response.status_code == 404
    assert response.json() == {"error": "Script not found"}


class BlockingTextGenerator(TextGenerator):
    """Holds step 2 open until released."""

    def __init__(self, response: str):
        self.response = response
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def generate_text(self, prompt: str) -> str:
        self.started.set()
        await self.release.wait()
        return self.response


@pytest.mark.asyncio
async def test_concurrent_step_is_rejected(store, script_data):
    text = BlockingTextGenerator(json.dumps(script_data))
    services = GenerationServices(
        text=text,
        image=FakeImageGenerator(),
        video=FakeVideoGenerator(),
        http_client=make_http_client(),
    )
    app = create_app(store, services)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        project_id = (await client.post("/api/projects", json={"description": ASTRONAUT})).json()["id"]

        running = asyncio.create_task(client.post(f"/api/projects/{project_id}/step/2"))
        await asyncio.wait_for(text.started.wait(), timeout=5)

        conflict = await client.post(f"/api/projects/{project_id}/step/3")
        assert conflict.status_code == 409
        assert conflict.json() == {"error": "Step 2 is already running for this project"}

        status = (await client.get(f"/api/projects/{project_id}/status")).json()
        assert status["runningStep"] == 2
        listing = (await client.get("/api/projects")).json()
        assert listing[0]["runningStep"] == 2

        text.release.set()
        finished = await running

    assert finished.status_code == 200
    assert finished.json()["completedStep"] == 2
    assert finished.json()["runningStep"] is None
    assert app.state.registry.snapshot() == {}


def test_health_reports_ffmpeg(client, fake_ffmpeg):
    assert client.get("/api/health").json() == {"status": "ok", "ffmpeg": True}


def test_health_without_ffmpeg(client, monkeypatch):
    import subprocess

    def run(args, **kwargs):
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(subprocess, "run", run)
    assert client.get("/api/health").json() == {"status": "ok", "ffmpeg": False}
