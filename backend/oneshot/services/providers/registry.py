"""Provider registry.

Routes the configured script model ID to a TextGenerator and assembles the
GenerationServices bundle the pipeline steps receive.
"""

import logging
import os
from typing import Optional

import httpx

from oneshot.config import settings
from oneshot.services.providers.base import GenerationServices, TextGenerator
from oneshot.services.providers.minimax import MiniMaxClient, get_minimax_client

logger = logging.getLogger(__name__)


def _is_ollama_model(model_id: str) -> bool:
    """Return True if the model ID uses the ollama/ prefix."""
    return model_id.startswith("ollama/")


def get_text_generator(
    model_id: str,
    minimax: Optional[MiniMaxClient] = None,
) -> TextGenerator:
    """Return the text generator for the given model ID.

    Routing logic:
    - "ollama/*"  -> OllamaTextGenerator (settings.models.ollama_host,
                    OLLAMA_API_KEY for cloud endpoints)
    - anything else -> MiniMaxClient with that chat model
    """
    if _is_ollama_model(model_id):
        from oneshot.services.providers.ollama_adapter import OllamaTextGenerator

        logger.debug(f"Routing {model_id} to OllamaTextGenerator ({settings.models.ollama_host})")
        return OllamaTextGenerator(
            model_id=model_id,
            base_url=settings.models.ollama_host,
            api_key=os.environ.get("OLLAMA_API_KEY"),
        )

    client = minimax or get_minimax_client()
    client.text_model = model_id
    logger.debug(f"Routing {model_id} to MiniMaxClient")
    return client


def build_generation_services() -> GenerationServices:
    """Assemble providers and a download client from settings."""
    minimax = get_minimax_client()
    return GenerationServices(
        text=get_text_generator(settings.models.script_llm, minimax),
        image=minimax,
        video=minimax,
        http_client=httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(300.0, connect=30.0),
        ),
    )
