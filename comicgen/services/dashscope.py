"""Client wrapper for DashScope (Tongyi Wanxiang) text-to-image synthesis."""

from __future__ import annotations

import logging
from http import HTTPStatus
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from ..errors import ProviderError
from ..utils.files import atomic_write
from .base import BaseImageClient, provider_size

logger = logging.getLogger(__name__)

DEFAULT_DASHSCOPE_IMAGE_MODEL = "wanx-v1"
# Sizes accepted by the wanx models.
DASHSCOPE_SIZES: Dict[str, Tuple[int, int]] = {
    "1:1": (1024, 1024),
    "2:3": (768, 1152),
    "9:16": (720, 1280),
    "16:9": (1280, 720),
}


class DashScopeImageClient(BaseImageClient):
    """Calls ``ImageSynthesis``; the SDK submits the task and polls until it settles."""

    name = "dashscope"

    def __init__(
        self,
        api_key: Optional[str],
        model: Optional[str] = None,
        timeout: int = 180,
    ) -> None:
        super().__init__(timeout=timeout)
        self._api_key = api_key
        self._model = model or DEFAULT_DASHSCOPE_IMAGE_MODEL

    def generate(
        self,
        prompt: str,
        output_path: Path,
        aspect_ratio: str,
        quality: str,
        reference_images: Sequence[str] | None = None,
    ) -> Path:
        if not self._api_key:
            raise ProviderError("DASHSCOPE_API_KEY not found")

        try:
            from dashscope import ImageSynthesis  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "DashScope SDK is required for DashScope image generation. Install via `pip install dashscope`."
            ) from exc

        width, height = provider_size(aspect_ratio, DASHSCOPE_SIZES)
        logger.info("Calling DashScope (%s, %dx%d) for %s", self._model, width, height, output_path.name)
        response = ImageSynthesis.call(
            api_key=self._api_key,
            model=self._model,
            prompt=prompt,
            n=1,
            size=f"{width}*{height}",
        )
        if response.status_code != HTTPStatus.OK:
            raise ProviderError(
                f"DashScope API error [{getattr(response, 'code', response.status_code)}]: "
                f"{getattr(response, 'message', '')}"
            )

        results = getattr(response.output, "results", None) or []
        url = None
        for result in results:
            url = result.get("url") if isinstance(result, dict) else getattr(result, "url", None)
            if url:
                break
        if not url:
            task_status = getattr(response.output, "task_status", "unknown")
            raise ProviderError(f"DashScope task finished with status {task_status} but returned no image")
        return atomic_write(output_path, self._download_binary(url))
