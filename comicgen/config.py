"""Configuration containers and credential resolution for comicgen."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple

from dotenv import dotenv_values

from .errors import ConfigError, NoCredentialError

MOCK_PROVIDER = "mock"
# Precedence used when no provider is requested explicitly.
PROVIDER_PRECEDENCE: Tuple[str, ...] = ("dashscope", "google", "openai", "jimeng")
KNOWN_PROVIDERS: Tuple[str, ...] = PROVIDER_PRECEDENCE + (MOCK_PROVIDER,)

_KEY_NAMES: Dict[str, Tuple[str, ...]] = {
    "dashscope": ("DASHSCOPE_API_KEY",),
    "google": ("GOOGLE_API_KEY", "GEMINI_API_KEY"),
    "openai": ("OPENAI_API_KEY",),
    "jimeng": ("JIMENG_API_KEY",),
}


def default_env_files() -> List[Path]:
    """Candidate ``.env`` files, highest priority first."""
    cwd = Path.cwd()
    return [
        Path.home() / ".comicgen" / ".env",
        cwd / ".comicgen" / ".env",
        cwd / ".env",
    ]


@dataclass(slots=True)
class GeneratorConfig:
    """Static configuration applied to every generation run."""

    env_prefix: ClassVar[str] = "COMICGEN_"

    runs_dir: str = "runs"
    default_concurrency: int = 4
    max_retries: int = 2
    quality: str = "2k"
    enable_mock_generation: bool = False
    env_files: List[Path] = field(default_factory=default_env_files)

    @classmethod
    def from_env(cls) -> "GeneratorConfig":
        """Create a config object populated from environment variables."""
        prefix = cls.env_prefix
        try:
            concurrency = int(os.getenv(f"{prefix}CONCURRENCY", "4"))
        except ValueError:
            raise ConfigError(f"{prefix}CONCURRENCY must be an integer") from None
        return cls(
            runs_dir=os.getenv(f"{prefix}RUNS_DIR", "runs"),
            default_concurrency=concurrency,
            enable_mock_generation=os.getenv(f"{prefix}ENABLE_MOCKS", "false").lower() == "true",
        )


@dataclass(slots=True, frozen=True)
class ProviderCredentials:
    """Everything a provider client needs to authenticate."""

    provider: str
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None


class CredentialResolver:
    """Resolves the image provider from explicit choice or available API keys.

    Values come from the process environment first, then from each ``.env``
    file in order; the first source that defines a key wins. The files are
    read once and ``os.environ`` is never modified.
    """

    def __init__(
        self,
        env_files: Sequence[str | Path] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._values = self._merge(env_files if env_files is not None else default_env_files(), environ)

    @staticmethod
    def _merge(env_files: Sequence[str | Path], environ: Mapping[str, str] | None) -> Dict[str, str]:
        merged: Dict[str, str] = {}
        for env_file in reversed(list(env_files)):
            path = Path(env_file)
            if not path.is_file():
                continue
            for key, value in dotenv_values(path).items():
                if value:
                    merged[key] = value
        source = os.environ if environ is None else environ
        for key, value in source.items():
            if value:
                merged[key] = value
        return merged

    def get(self, name: str) -> Optional[str]:
        return self._values.get(name)

    def _first(self, names: Sequence[str]) -> Optional[str]:
        for name in names:
            value = self.get(name)
            if value:
                return value
        return None

    def has_credentials(self, provider: str) -> bool:
        if provider == MOCK_PROVIDER:
            return True
        return self._first(_KEY_NAMES.get(provider, ())) is not None

    def resolve(self, preferred: Optional[str] = None) -> str:
        """Return the provider identifier to use for this run."""
        if preferred:
            provider = preferred.strip().lower()
            if provider not in KNOWN_PROVIDERS:
                raise ConfigError(
                    f"Unknown provider: {preferred}. Choose one of: {', '.join(KNOWN_PROVIDERS)}"
                )
            if not self.has_credentials(provider):
                names = " or ".join(_KEY_NAMES[provider])
                raise NoCredentialError(f"Provider '{provider}' requested but {names} is not set.")
            return provider

        for provider in PROVIDER_PRECEDENCE:
            if self.has_credentials(provider):
                return provider

        raise NoCredentialError(
            "No API key found. Set DASHSCOPE_API_KEY, GOOGLE_API_KEY, OPENAI_API_KEY, or JIMENG_API_KEY."
        )

    def credentials_for(self, provider: str) -> ProviderCredentials:
        """Collect the key, secret, base URL and model override for ``provider``."""
        if provider == "google":
            return ProviderCredentials(
                provider=provider,
                api_key=self._first(_KEY_NAMES["google"]),
                base_url=self.get("GOOGLE_BASE_URL"),
                model=self.get("GOOGLE_IMAGE_MODEL"),
            )
        if provider == "openai":
            return ProviderCredentials(
                provider=provider,
                api_key=self.get("OPENAI_API_KEY"),
                base_url=self.get("OPENAI_BASE_URL"),
                model=self.get("OPENAI_IMAGE_MODEL"),
            )
        if provider == "dashscope":
            return ProviderCredentials(
                provider=provider,
                api_key=self.get("DASHSCOPE_API_KEY"),
                model=self.get("DASHSCOPE_IMAGE_MODEL"),
            )
        if provider == "jimeng":
            return ProviderCredentials(
                provider=provider,
                api_key=self.get("JIMENG_API_KEY"),
                api_secret=self.get("JIMENG_API_SECRET"),
                base_url=self.get("JIMENG_API_URL"),
            )
        return ProviderCredentials(provider=provider)
