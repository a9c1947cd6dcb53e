"""MiniMax API client implementing text, image and video generation.

Provides:
- Chat completions for script generation
- Image generation with optional character subject reference
- Video generation as a three-phase task: submit, poll, resolve file URL

Usage:
    from oneshot.services.providers.minimax import get_minimax_client

    client = get_minimax_client()
    url = await client.generate_image("a lone astronaut, full body")
    video_url = await client.generate_video(prompt, first_url, last_url)
"""

import asyncio
import logging
import os
from typing import Any, Optional

import httpx
from dotenv import load_dotenv
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from oneshot.config import settings
from oneshot.errors import ConfigurationError, ProviderError, VideoTimeoutError
from oneshot.services.providers.base import ImageGenerator, TextGenerator, VideoGenerator

logger = logging.getLogger(__name__)

# Load .env for MINIMAX_API_KEY
load_dotenv()


class MiniMaxClient(TextGenerator, ImageGenerator, VideoGenerator):
    """Async client for the MiniMax generation endpoints.

    Provider error responses are surfaced immediately as ProviderError and
    never retried. Only transport failures on the idempotent status and file
    lookups are retried.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.minimax.io",
        *,
        text_model: str = "MiniMax-M2.5-highspeed",
        image_model: str = "image-01",
        video_model: str = "MiniMax-Hailuo-02",
        max_tokens: int = 2048,
        aspect_ratio: str = "16:9",
        video_duration: int = 6,
        video_resolution: str = "768P",
        poll_interval: float = 5.0,
        poll_max: int = 120,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.text_model = text_model
        self.image_model = image_model
        self.video_model = video_model
        self.max_tokens = max_tokens
        self.aspect_ratio = aspect_ratio
        self.video_duration = video_duration
        self.video_resolution = video_resolution
        self.poll_interval = poll_interval
        self.poll_max = poll_max
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            if not self.api_key:
                raise ConfigurationError(
                    "MiniMax API key not configured. Set MINIMAX_API_KEY "
                    "or minimax.api_key in config.yaml."
                )
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=httpx.Timeout(self.timeout, connect=30.0),
                transport=self._transport,
            )
        return self._client

    # -- response checks ----------------------------------------------------

    @staticmethod
    def _raise_for_status(response: httpx.Response, label: str) -> None:
        if not response.is_success:
            raise ProviderError(
                f"MiniMax {label} {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

    @staticmethod
    def _raise_for_base_resp(data: dict[str, Any], label: str) -> None:
        base_resp = data.get("base_resp") or {}
        if base_resp.get("status_code", 0) != 0:
            raise ProviderError(f"MiniMax {label} error: {base_resp.get('status_msg')}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _get(self, path: str, params: dict[str, str]) -> httpx.Response:
        """GET with retry on connection-level failures."""
        return await self.client.get(path, params=params)

    # -- text ---------------------------------------------------------------

    async def generate_text(self, prompt: str) -> str:
        logger.info(f"POST /v1/chat/completions model={self.text_model}")
        response = await self.client.post(
            "/v1/chat/completions",
            json={
                "model": self.text_model,
                "max_tokens": self.max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            },
        )
        self._raise_for_status(response, "LLM")
        data = response.json()
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(f"MiniMax LLM returned no choices: {data}") from None

    # -- image --------------------------------------------------------------

    async def generate_image(
        self,
        prompt: str,
        reference_image_url: Optional[str] = None,
    ) -> str:
        body: dict[str, Any] = {
            "model": self.image_model,
            "prompt": prompt,
            "aspect_ratio": self.aspect_ratio,
            "response_format": "url",
            "n": 1,
        }
        if reference_image_url:
            body["subject_reference"] = [
                {"type": "character", "image_file": reference_image_url},
            ]

        logger.info(
            f"POST /v1/image_generation model={self.image_model} "
            f"reference={'yes' if reference_image_url else 'no'}"
        )
        response = await self.client.post("/v1/image_generation", json=body)
        self._raise_for_status(response, "image")
        data = response.json()
        self._raise_for_base_resp(data, "image")

        image_urls = (data.get("data") or {}).get("image_urls") or []
        if not image_urls:
            raise ProviderError("MiniMax image error: response contained no image URL")
        return image_urls[0]

    # -- video --------------------------------------------------------------

    async def generate_video(
        self,
        prompt: str,
        first_frame_url: str,
        last_frame_url: str,
    ) -> str:
        task_id = await self._submit_video_task(prompt, first_frame_url, last_frame_url)
        file_id = await self._poll_video_task(task_id)
        return await self._get_file_url(file_id)

    async def _submit_video_task(self, prompt: str, first_frame_url: str, last_frame_url: str) -> str:
        response = await self.client.post(
            "/v1/video_generation",
            json={
                "model": self.video_model,
                "prompt": prompt,
                "first_frame_image": first_frame_url,
                "last_frame_image": last_frame_url,
                "duration": self.video_duration,
                "resolution": self.video_resolution,
            },
        )
        self._raise_for_status(response, "video")
        data = response.json()
        self._raise_for_base_resp(data, "video")

        task_id = data.get("task_id")
        if not task_id:
            raise ProviderError("MiniMax video error: response contained no task_id")
        logger.info(f"Video task submitted: task_id={task_id}")
        return task_id

    async def _poll_video_task(self, task_id: str) -> str:
        """Poll until the task succeeds, fails or the poll budget runs out.

        Returns:
            The file_id of the generated video.
        """
        for poll_attempt in range(1, self.poll_max + 1):
            response = await self._get("/v1/query/video_generation", {"task_id": task_id})
            self._raise_for_status(response, "poll")
            data = response.json()
            status = data.get("status")

            if status == "Success" and data.get("file_id"):
                logger.info(f"Video task {task_id} succeeded after {poll_attempt} poll(s)")
                return data["file_id"]
            if status == "Fail":
                status_msg = (data.get("base_resp") or {}).get("status_msg")
                raise ProviderError(f"Video generation failed: {status_msg}")

            logger.debug(f"Video task {task_id}: status={status} (poll {poll_attempt}/{self.poll_max})")
            if poll_attempt < self.poll_max:
                await asyncio.sleep(self.poll_interval)

        raise VideoTimeoutError(
            f"Video task {task_id} did not complete after "
            f"{self.poll_max} polls ({self.poll_max * self.poll_interval:.0f} seconds)"
        )

    async def _get_file_url(self, file_id: str) -> str:
        response = await self._get("/v1/files/retrieve", {"file_id": file_id})
        self._raise_for_status(response, "file")
        data = response.json()
        try:
            return data["file"]["download_url"]
        except (KeyError, TypeError):
            raise ProviderError(f"MiniMax file {file_id} has no download_url") from None

    async def close(self):
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def get_minimax_client(api_key: Optional[str] = None) -> MiniMaxClient:
    """Build a MiniMaxClient from settings.

    Falls back to the MINIMAX_API_KEY environment variable when neither an
    explicit key nor minimax.api_key is configured.
    """
    resolved_key = api_key or settings.minimax.api_key or os.environ.get("MINIMAX_API_KEY")
    return MiniMaxClient(
        resolved_key,
        settings.minimax.base_url,
        text_model=settings.models.script_llm,
        image_model=settings.models.image_gen,
        video_model=settings.models.video_gen,
        max_tokens=settings.pipeline.script_max_tokens,
        aspect_ratio=settings.pipeline.image_aspect_ratio,
        video_duration=settings.pipeline.segment_duration,
        video_resolution=settings.pipeline.video_resolution,
        poll_interval=settings.pipeline.video_poll_interval,
        poll_max=settings.pipeline.video_poll_max,
        timeout=settings.minimax.request_timeout,
    )
