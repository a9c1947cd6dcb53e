"""Ollama text generator.

Lets the script step run against a local or cloud Ollama model instead of
MiniMax. Only text generation is offered; image and video generation stay
with MiniMax.
"""

import logging
from typing import Optional

from ollama import AsyncClient, ResponseError

from oneshot.errors import ProviderError
from oneshot.services.providers.base import TextGenerator

logger = logging.getLogger(__name__)


class OllamaTextGenerator(TextGenerator):
    """TextGenerator backed by an Ollama chat model.

    Strips the "ollama/" prefix from model IDs before passing to the ollama
    library. Always passes stream=False to avoid async generator responses.
    """

    def __init__(
        self,
        model_id: str,
        base_url: str = "http://localhost:11434",
        api_key: Optional[str] = None,
        temperature: float = 0.7,
    ) -> None:
        self._ollama_model = model_id.removeprefix("ollama/")
        self._temperature = temperature
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = AsyncClient(host=base_url, headers=headers)

    async def generate_text(self, prompt: str) -> str:
        logger.info(f"Ollama chat model={self._ollama_model}")
        try:
            response = await self._client.chat(
                model=self._ollama_model,
                messages=[{"role": "user", "content": prompt}],
                options={"temperature": self._temperature},
                stream=False,
            )
        except ResponseError as e:
            raise ProviderError(f"Ollama {e.status_code}: {e.error}", status_code=e.status_code) from e
        return response.message.content or ""
