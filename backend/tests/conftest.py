"""Shared fixtures: in-process generation fakes and a mock download server."""

import asyncio
import json
import subprocess
from pathlib import Path
from typing import Optional

import httpx
import pytest

from oneshot.services.artifact_store import ArtifactStore
from oneshot.services.providers.base import (
    GenerationServices,
    ImageGenerator,
    TextGenerator,
    VideoGenerator,
)

ASTRONAUT = "a lone astronaut walks across a red desert"


def make_script(segment_count: int = 4) -> dict:
    return {
        "mainCharacterDescription": "An astronaut in a scuffed white suit, full body, gold visor",
        "keyframes": [f"keyframe description {i}" for i in range(segment_count + 1)],
        "segments": [{"script": f"segment action {i + 1}"} for i in range(segment_count)],
    }


class FakeTextGenerator(TextGenerator):
    def __init__(self, response: str):
        self.response = response
        self.prompts: list[str] = []

    async def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.response


class ConcurrencyCounter:
    """Counts calls in flight at the same time."""

    def __init__(self):
        self.in_flight = 0
        self.max_in_flight = 0

    async def enter(self, delay: float):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(delay)
        finally:
            self.in_flight -= 1


class FakeImageGenerator(ImageGenerator):
    def __init__(self, prefix: str = "img", delay: float = 0.01, fail_on: Optional[str] = None):
        self.prefix = prefix
        self.delay = delay
        self.fail_on = fail_on
        self.calls: list[tuple[str, Optional[str]]] = []
        self.counter = ConcurrencyCounter()

    async def generate_image(self, prompt: str, reference_image_url: Optional[str] = None) -> str:
        self.calls.append((prompt, reference_image_url))
        n = len(self.calls)
        await self.counter.enter(self.delay)
        if self.fail_on is not None and prompt == self.fail_on:
            from oneshot.errors import ProviderError

            raise ProviderError("MiniMax image error: content rejected")
        slug = prompt.replace(" ", "-")
        return f"https://cdn.test/{self.prefix}/{n}/{slug}.jpg"


class FakeVideoGenerator(VideoGenerator):
    def __init__(self, delay: float = 0.01):
        self.delay = delay
        self.calls: list[tuple[str, str, str]] = []
        self.counter = ConcurrencyCounter()

    async def generate_video(self, prompt: str, first_frame_url: str, last_frame_url: str) -> str:
        self.calls.append((prompt, first_frame_url, last_frame_url))
        await self.counter.enter(self.delay)
        slug = prompt.replace(" ", "-")
        return f"https://cdn.test/video/{slug}.mp4"


def _download_handler(request: httpx.Request) -> httpx.Response:
    if "missing" in request.url.path:
        return httpx.Response(404)
    return httpx.Response(200, content=f"bytes:{request.url.path}".encode())


def make_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(_download_handler))


@pytest.fixture(autouse=True)
def no_datadog(monkeypatch):
    monkeypatch.delenv("DD_API_KEY", raising=False)


@pytest.fixture
def store(tmp_path) -> ArtifactStore:
    return ArtifactStore(tmp_path / "projects")


@pytest.fixture
def project_dir(store) -> Path:
    path = store.project_path("1700000000000")
    path.mkdir()
    return path


@pytest.fixture
def script_data() -> dict:
    return make_script(4)


@pytest.fixture
def services(script_data) -> GenerationServices:
    return GenerationServices(
        text=FakeTextGenerator(f"Here is your plan:\n{json.dumps(script_data)}\nEnjoy!"),
        image=FakeImageGenerator(),
        video=FakeVideoGenerator(),
        http_client=make_http_client(),
    )


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    """Replace subprocess.run so ffmpeg calls write the output file.

    Records the concat list contents seen at call time.
    """
    calls = []

    def run(args, **kwargs):
        if args[:2] == ["ffmpeg", "-version"]:
            return subprocess.CompletedProcess(args, 0, stdout="ffmpeg version test\n", stderr="")
        list_file = Path(args[args.index("-i") + 1])
        calls.append({"args": args, "list": list_file.read_text()})
        Path(args[-1]).write_bytes(b"movie")
        return subprocess.CompletedProcess(args, 0, stdout=b"", stderr=b"")

    monkeypatch.setattr(subprocess, "run", run)
    return calls
