"""
Image generation client.

Talks to OpenAI-compatible `/images/generations` endpoints (Gemini's Imagen
models through Google's compatibility layer, or OpenAI) and returns the
first image as a base64 data URL.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import structlog

from taletype.core.config import settings
from taletype.llm.client import GEMINI_BASE_URL, OPENAI_BASE_URL, post_with_retry

log = structlog.get_logger(__name__)


IMAGE_DEFAULTS = dict(
    provider="gemini",
    model="imagen-4.0-generate-001",
    size="1792x1024",  # 16:9-ish landscape
    timeout=60.0,
)

PROVIDER_IMAGE_MODELS = {
    "gemini": ("imagen-4.0-generate-001", GEMINI_BASE_URL),
    "openai": ("gpt-image-1", OPENAI_BASE_URL),
}


class ImageClient(ABC):
    """Abstract base for image providers."""

    @abstractmethod
    async def generate(self, prompt: str) -> Optional[str]:
        """
        Generate one image.

        Args:
            prompt: Image description

        Returns:
            data URL of the image, or None when the provider returned nothing
        """
        pass


class OpenAICompatibleImageClient(ImageClient):
    """Image client for OpenAI-compatible image generation APIs."""

    def __init__(
        self,
        model: str,
        base_url: str,
        provider_name: str,
        api_key: str,
        size: str = IMAGE_DEFAULTS["size"],
        timeout: float = IMAGE_DEFAULTS["timeout"],
    ):
        self.model = model
        self.base_url = base_url
        self.provider_name = provider_name
        self.api_key = api_key
        self.size = size
        self.timeout = timeout

        log.info(
            "image_client_initialized",
            provider=self.provider_name,
            model=self.model,
        )

    async def generate(self, prompt: str) -> Optional[str]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "n": 1,
            "size": self.size,
            "response_format": "b64_json",
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        start = time.perf_counter()
        data = await post_with_retry(
            f"{self.base_url}/images/generations",
            headers=headers,
            payload=payload,
            timeout=self.timeout,
            provider=self.provider_name,
            role="image",
        )
        latency_ms = (time.perf_counter() - start) * 1000

        images = data.get("data") or []
        b64 = images[0].get("b64_json") if images else None

        log.info(
            "image_generated" if b64 else "image_empty",
            provider=self.provider_name,
            model=self.model,
            latency_ms=round(latency_ms, 2),
        )

        if not b64:
            return None
        return f"data:image/png;base64,{b64}"


def get_image_client() -> ImageClient:
    """
    Factory for the image client.

    Raises:
        ValueError: If unknown provider configured or API key missing
    """
    provider = settings.image_provider or IMAGE_DEFAULTS["provider"]
    if provider not in PROVIDER_IMAGE_MODELS:
        raise ValueError(
            f"Unknown image provider '{provider}'. Supported providers: gemini, openai"
        )

    api_key = getattr(settings, f"{provider}_api_key", None)
    if not api_key:
        raise ValueError(f"{provider.upper()}_API_KEY not configured. Set it in .env.")

    model, base_url = PROVIDER_IMAGE_MODELS[provider]
    return OpenAICompatibleImageClient(
        model=model,
        base_url=base_url,
        provider_name=provider,
        api_key=api_key,
    )
