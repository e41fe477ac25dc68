"""Client for the OpenAI images API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from ..errors import ProviderError
from .base import BaseImageClient, provider_size

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_IMAGE_MODEL = "dall-e-3"


class OpenAIImageClient(BaseImageClient):
    """Text-to-image via the ``openai`` SDK. Reference images are not supported."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: int = 180,
    ) -> None:
        super().__init__(timeout=timeout)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/") if base_url else None
        self._model = model or DEFAULT_OPENAI_IMAGE_MODEL
        self._client = None

    def generate(
        self,
        prompt: str,
        output_path: Path,
        aspect_ratio: str,
        quality: str,
        reference_images: Sequence[str] | None = None,
    ) -> Path:
        if not self._api_key:
            raise ProviderError("OPENAI_API_KEY not found")
        if reference_images:
            logger.debug("OpenAI images API ignores %d reference image(s)", len(reference_images))

        client = self._resolve_client()
        from openai import OpenAIError  # type: ignore

        width, height = provider_size(aspect_ratio)
        try:
            response = client.images.generate(
                model=self._model,
                prompt=prompt,
                n=1,
                size=f"{width}x{height}",
            )
        except OpenAIError as exc:
            raise ProviderError(f"OpenAI API request failed: {exc}") from exc
        payload = response.model_dump() if hasattr(response, "model_dump") else response
        return self._save_from_response(payload, output_path)

    def _resolve_client(self):
        if self._client is not None:
            return self._client
        try:
            from openai import OpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "openai package is required for OpenAI image calls. Install via `pip install openai`."
            ) from exc
        self._client = OpenAI(api_key=self._api_key, base_url=self._base_url, timeout=self._timeout)
        return self._client
