"""Shared plumbing for image provider clients."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import requests

from ..core.geometry import parse_aspect_ratio
from ..errors import ConfigError, ProviderError
from ..utils.files import atomic_write, b64decode_to_bytes

# Pixel sizes accepted by the hosted image APIs, keyed by aspect ratio.
SIZE_TABLE: Dict[str, Tuple[int, int]] = {
    "1:1": (1024, 1024),
    "3:4": (1024, 1365),
    "4:3": (1365, 1024),
    "9:16": (1024, 1792),
    "16:9": (1792, 1024),
}


class ImageClient(Protocol):
    """Protocol implemented by every provider client."""

    def generate(
        self,
        prompt: str,
        output_path: Path,
        aspect_ratio: str,
        quality: str,
        reference_images: Sequence[str] | None = None,
    ) -> Path:
        ...


def provider_size(
    aspect_ratio: str, table: Dict[str, Tuple[int, int]] = SIZE_TABLE
) -> Tuple[int, int]:
    """Map an aspect ratio onto the closest size listed in ``table``."""
    if aspect_ratio in table:
        return table[aspect_ratio]
    try:
        width, height = parse_aspect_ratio(aspect_ratio)
    except ConfigError:
        return table.get("1:1", next(iter(table.values())))
    target = width / height
    key = min(table, key=lambda ratio: abs(_ratio_value(ratio) - target))
    return table[key]


def _ratio_value(ratio: str) -> float:
    width, height = ratio.split(":")
    return int(width) / int(height)


def candidate_containers(response: Any) -> List[dict]:
    """Flatten every nested dict of a JSON response, outermost first."""
    containers: List[dict] = []
    seen: set[int] = set()
    stack: List[Any] = [response]
    while stack:
        item = stack.pop(0)
        if isinstance(item, dict):
            identifier = id(item)
            if identifier in seen:
                continue
            seen.add(identifier)
            containers.append(item)
            stack.extend(item.values())
        elif isinstance(item, list):
            stack.extend(item)
    return containers


def extract_string(response: Any, candidates: Tuple[str, ...]) -> Optional[str]:
    """Find the first non-empty string under any of the ``candidates`` keys."""
    lowered = {candidate.replace("_", "").lower() for candidate in candidates}
    for container in candidate_containers(response):
        for key, value in container.items():
            normalized = key.replace("_", "").lower()
            if isinstance(value, str) and value and normalized in lowered:
                return value
    return None


def extract_base64_blob(response: Any) -> Optional[str]:
    for container in candidate_containers(response):
        for key, value in container.items():
            normalized = key.replace("_", "").lower()
            is_blob_key = "base64" in normalized or normalized.endswith("b64") or normalized in {"b64json", "data"}
            if isinstance(value, list) and value and is_blob_key:
                first = next((item for item in value if isinstance(item, str) and item), None)
                if first:
                    return first
            if isinstance(value, str) and value and is_blob_key and not value.startswith("http"):
                return value
    return None


def extract_media_url(response: Any) -> Optional[str]:
    for container in candidate_containers(response):
        for key, value in container.items():
            lowered = key.lower()
            if isinstance(value, str) and value and lowered in {"url", "image_url"}:
                return value
            if isinstance(value, list) and value and lowered in {"image_urls", "urls"}:
                first = next((item for item in value if isinstance(item, str) and item), None)
                if first:
                    return first
    return None


class BaseImageClient:
    """Download and persistence helpers shared by the HTTP-backed clients."""

    name = "base"

    def __init__(self, timeout: int = 120) -> None:
        self._timeout = timeout

    def _download_binary(self, url: str) -> bytes:
        response = requests.get(url, timeout=self._timeout)
        response.raise_for_status()
        return response.content

    def _save_from_response(self, response: Any, output_path: Path) -> Path:
        """Persist the image carried by ``response`` (inline base64 or URL)."""
        blob = extract_base64_blob(response)
        if blob:
            return atomic_write(output_path, b64decode_to_bytes(blob))
        url = extract_media_url(response)
        if url:
            return atomic_write(output_path, self._download_binary(url))
        raise ProviderError(f"{self.name} response contained no image: {str(response)[:200]}")
