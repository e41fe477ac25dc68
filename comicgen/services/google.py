"""Client for Gemini image generation over the Generative Language REST API."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..errors import ProviderError
from ..utils.files import b64encode, read_binary
from .base import BaseImageClient

logger = logging.getLogger(__name__)

DEFAULT_GOOGLE_BASE_URL = "https://generativelanguage.googleapis.com"
DEFAULT_GOOGLE_IMAGE_MODEL = "gemini-3-pro-image-preview"


class GoogleImageClient(BaseImageClient):
    """Generates panels with Gemini; reference images travel as inline data."""

    name = "google"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: int = 180,
    ) -> None:
        super().__init__(timeout=timeout)
        self._api_key = api_key
        self._base_url = (base_url or DEFAULT_GOOGLE_BASE_URL).rstrip("/")
        self._model = model or DEFAULT_GOOGLE_IMAGE_MODEL

    def generate(
        self,
        prompt: str,
        output_path: Path,
        aspect_ratio: str,
        quality: str,
        reference_images: Sequence[str] | None = None,
    ) -> Path:
        if not self._api_key:
            raise ProviderError("GOOGLE_API_KEY not found")

        full_prompt = f"{prompt} Aspect ratio: {aspect_ratio}." if aspect_ratio else prompt
        parts: List[Dict[str, Any]] = [{"text": full_prompt}]
        for ref_path in reference_images or []:
            mime_type = mimetypes.guess_type(ref_path)[0] or "image/png"
            parts.append({"inlineData": {"mimeType": mime_type, "data": b64encode(read_binary(ref_path))}})

        body = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {"imageSize": "2K" if quality.lower() == "2k" else "1K"},
            },
        }
        logger.info("Calling Google Gemini (%s) for %s", self._model, output_path.name)
        response = self._post_json(f"models/{self._model}:generateContent", body)

        image_data = self._extract_inline_image(response)
        if not image_data:
            raise ProviderError(f"No image data in Google API response: {str(response)[:200]}")
        return self._save_from_response({"data": image_data}, output_path)

    def _build_url(self, path: str) -> str:
        cleaned = path.lstrip("/")
        if self._base_url.endswith("/v1beta"):
            return f"{self._base_url}/{cleaned}"
        return f"{self._base_url}/v1beta/{cleaned}"

    def _post_json(self, path: str, payload: dict) -> dict:
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self._api_key or "",
        }
        try:
            response = requests.post(self._build_url(path), json=payload, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            raise ProviderError(f"Google API request failed: {exc}") from exc
        if not response.ok:
            raise ProviderError(f"Google API error ({response.status_code}): {response.text[:500]}")
        return response.json()

    @staticmethod
    def _extract_inline_image(response: dict) -> Optional[str]:
        for candidate in response.get("candidates") or []:
            for part in (candidate.get("content") or {}).get("parts") or []:
                data = (part.get("inlineData") or {}).get("data")
                if isinstance(data, str) and data:
                    return data
        return None
