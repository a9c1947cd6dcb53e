"""Generation provider abstraction layer.

Provides the text, image and video capability interfaces used by the
pipeline steps, and the concrete MiniMax and Ollama implementations.

Usage:
    from oneshot.services.providers import build_generation_services

    services = build_generation_services()
    url = await services.image.generate_image(prompt)
"""

from oneshot.services.providers.base import (
    GenerationServices,
    ImageGenerator,
    TextGenerator,
    VideoGenerator,
)
from oneshot.services.providers.registry import build_generation_services, get_text_generator

__all__ = [
    "GenerationServices",
    "ImageGenerator",
    "TextGenerator",
    "VideoGenerator",
    "build_generation_services",
    "get_text_generator",
]
