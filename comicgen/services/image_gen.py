"""Provider-agnostic entry point for generating one image."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Sequence

from ..config import MOCK_PROVIDER, CredentialResolver
from ..errors import ConfigError
from ..utils.files import ensure_dir
from .base import ImageClient
from .dashscope import DashScopeImageClient
from .google import GoogleImageClient
from .jimeng import JimengImageClient
from .mock import MockImageClient
from .openai import OpenAIImageClient

logger = logging.getLogger(__name__)


def build_client(provider: str, resolver: CredentialResolver) -> ImageClient:
    """Instantiate the client for ``provider`` from resolved credentials."""
    if provider == MOCK_PROVIDER:
        return MockImageClient()
    credentials = resolver.credentials_for(provider)
    if provider == "dashscope":
        return DashScopeImageClient(api_key=credentials.api_key, model=credentials.model)
    if provider == "google":
        return GoogleImageClient(
            api_key=credentials.api_key,
            base_url=credentials.base_url,
            model=credentials.model,
        )
    if provider == "openai":
        return OpenAIImageClient(
            api_key=credentials.api_key,
            base_url=credentials.base_url,
            model=credentials.model,
        )
    if provider == "jimeng":
        return JimengImageClient(
            api_key=credentials.api_key,
            api_secret=credentials.api_secret,
            api_url=credentials.base_url,
        )
    raise ConfigError(f"Unknown provider: {provider}")


class ImageGenAdapter:
    """Dispatches generation calls to per-provider clients.

    Clients are created lazily and cached, so a run only touches the SDKs of
    the providers it actually uses.
    """

    def __init__(
        self,
        resolver: CredentialResolver | None = None,
        clients: Optional[Dict[str, ImageClient]] = None,
    ) -> None:
        self._resolver = resolver
        self._clients: Dict[str, ImageClient] = dict(clients or {})
        self._lock = threading.Lock()

    def client(self, provider: str) -> ImageClient:
        with self._lock:
            if provider not in self._clients:
                if self._resolver is None:
                    if provider != MOCK_PROVIDER:
                        raise ConfigError(f"No client registered for provider '{provider}'")
                    self._clients[provider] = MockImageClient()
                else:
                    self._clients[provider] = build_client(provider, self._resolver)
            return self._clients[provider]

    def generate(
        self,
        prompt: str,
        output_path: str | Path,
        aspect_ratio: str,
        quality: str,
        provider: str,
        reference_images: Sequence[str] | None = None,
    ) -> Path:
        """Produce ``output_path`` or raise; partial files are never left behind."""
        target = Path(output_path)
        ensure_dir(target.parent)
        client = self.client(provider)
        return client.generate(
            prompt,
            target,
            aspect_ratio or "3:4",
            quality,
            list(reference_images) if reference_images else None,
        )
