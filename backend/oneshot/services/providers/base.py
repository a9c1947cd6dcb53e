"""Abstract generation capabilities consumed by the pipeline steps.

The steps only see these three interfaces. Concrete providers (MiniMax,
Ollama) and test fakes implement them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx


class TextGenerator(ABC):
    """Free-form text generation from a single user prompt."""

    @abstractmethod
    async def generate_text(self, prompt: str) -> str:
        """Return the model's reply to prompt.

        Raises:
            ProviderError: On a non-success response.
        """
        ...


class ImageGenerator(ABC):
    """Single-image generation, optionally conditioned on a subject reference."""

    @abstractmethod
    async def generate_image(
        self,
        prompt: str,
        reference_image_url: Optional[str] = None,
    ) -> str:
        """Generate one image and return its URL.

        Args:
            prompt: Visual description of the image.
            reference_image_url: Optional URL of a character image whose
                subject should appear in the output.

        Raises:
            ProviderError: On a non-success HTTP or provider status.
        """
        ...


class VideoGenerator(ABC):
    """First/last-frame video generation."""

    @abstractmethod
    async def generate_video(
        self,
        prompt: str,
        first_frame_url: str,
        last_frame_url: str,
    ) -> str:
        """Generate a clip interpolating between two frames and return its URL.

        Raises:
            ProviderError: If any phase of the task fails.
            VideoTimeoutError: If the task does not finish within the poll budget.
        """
        ...


@dataclass
class GenerationServices:
    """Everything a step may need to reach the outside world.

    http_client is used to download generated assets.
    """

    text: TextGenerator
    image: ImageGenerator
    video: VideoGenerator
    http_client: httpx.AsyncClient

    async def aclose(self) -> None:
        seen = set()
        for provider in (self.text, self.image, self.video):
            close = getattr(provider, "close", None)
            if close is not None and id(provider) not in seen:
                seen.add(id(provider))
                await close()
        if not self.http_client.is_closed:
            await self.http_client.aclose()
