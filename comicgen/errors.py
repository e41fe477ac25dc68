"""Exception types raised across the comic generation pipeline."""

from __future__ import annotations

from typing import Iterable, List


class ComicGenError(Exception):
    """Base class for every error raised by comicgen."""


class ConfigError(ComicGenError):
    """Invalid project description, selection or credentials.

    Configuration errors are fatal: they are raised before any panel job is
    scheduled and are never retried.
    """

    def __init__(self, messages: str | Iterable[str]) -> None:
        if isinstance(messages, str):
            messages = [messages]
        self.messages: List[str] = list(messages)
        super().__init__("\n".join(self.messages))


class SelectionError(ConfigError):
    """Malformed ``--pages`` or ``--panels`` selector."""


class NoCredentialError(ConfigError):
    """No image provider credential could be found."""


class ProviderError(ComicGenError):
    """A single image provider call failed."""


class PanelGenerationError(ComicGenError):
    """A panel could not be generated after exhausting its retries."""

    def __init__(self, panel_id: str, attempts: int, last_error: BaseException) -> None:
        self.panel_id = panel_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{panel_id} failed after {attempts} attempt(s): {last_error}")


class ExportError(ComicGenError):
    """Page images could not be merged into a document."""
