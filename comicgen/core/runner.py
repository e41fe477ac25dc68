"""Render a single panel job: geometry, prompt, provider call with retries."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

from ..errors import PanelGenerationError
from ..types import JobState, PageSize, RenderJob
from .geometry import INFERENCE_CANVAS, aspect_ratio, effective_grid, panel_bounds

if TYPE_CHECKING:
    from ..project import Project
    from ..services.prompt_builder import PromptBuilder
    from ..utils.run_logger import RunLogger

logger = logging.getLogger(__name__)

MAX_RETRIES = 2
DEFAULT_QUALITY = "2k"


class ImageGenerator(Protocol):
    """What the runner needs from the provider adapter."""

    def generate(
        self,
        prompt: str,
        output_path: str | Path,
        aspect_ratio: str,
        quality: str,
        provider: str,
        reference_images: Sequence[str] | None = None,
    ) -> Path:
        ...


def panel_output_path(output_root: str | Path, panel_id: str) -> Path:
    """Deterministic location of a panel image; its presence marks the job done."""
    return Path(output_root) / "panels" / f"{panel_id}.png"


def generate_with_retry(
    generator: ImageGenerator,
    *,
    prompt: str,
    output_path: Path,
    aspect_ratio: str,
    quality: str,
    provider: str,
    reference_images: Sequence[str] | None = None,
    max_retries: int = MAX_RETRIES,
    label: Optional[str] = None,
) -> int:
    """Call the provider until it succeeds, at most ``max_retries + 1`` times.

    Every attempt uses identical arguments. Returns the number of attempts
    used; raises ``PanelGenerationError`` chained from the last failure.
    """
    label = label or output_path.stem
    attempts = max_retries + 1
    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            generator.generate(
                prompt,
                output_path,
                aspect_ratio,
                quality,
                provider,
                list(reference_images) if reference_images else None,
            )
            return attempt
        except Exception as exc:  # noqa: BLE001 - every provider failure is retryable
            last_error = exc
            if attempt < attempts:
                logger.warning(
                    "Generation attempt %d failed for %s: %s, retrying...", attempt, label, exc
                )
    assert last_error is not None
    raise PanelGenerationError(label, attempts, last_error) from last_error


class PanelRenderer:
    """Executes one ``RenderJob`` against a fixed project, output root and provider."""

    def __init__(
        self,
        project: "Project",
        output_root: str | Path,
        provider: str,
        generator: ImageGenerator,
        prompt_builder: "PromptBuilder",
        *,
        quality: str = DEFAULT_QUALITY,
        max_retries: int = MAX_RETRIES,
        canvas: PageSize = INFERENCE_CANVAS,
        run_logger: Optional["RunLogger"] = None,
        run_id: Optional[str] = None,
    ) -> None:
        self.project = project
        self.output_root = Path(output_root)
        self.provider = provider
        self._generator = generator
        self._prompt_builder = prompt_builder
        self._quality = quality
        self._max_retries = max_retries
        self._canvas = canvas
        self._run_logger = run_logger
        self._run_id = run_id

    def output_path(self, job: RenderJob) -> Path:
        return panel_output_path(self.output_root, job.panel.id)

    def resolve_aspect_ratio(self, job: RenderJob) -> str:
        """Explicit panel override, else the reduced ratio of its grid cell range."""
        if job.panel.aspect_ratio:
            return job.panel.aspect_ratio
        bounds = panel_bounds(job.panel, effective_grid(job.page), self._canvas)
        return aspect_ratio(bounds.w, bounds.h)

    def render(self, job: RenderJob) -> JobState:
        """Produce the panel image, or return ``SKIPPED`` if it already exists."""
        target = self.output_path(job)
        if target.exists():
            logger.debug("Skipping %s: %s already exists", job.panel.id, target)
            return JobState.SKIPPED

        ratio = self.resolve_aspect_ratio(job)
        prompt = self._prompt_builder.build(self.project, job.page, job.panel)
        references = self._prompt_builder.reference_images(self.project, job.panel, self.output_root)
        request = {
            "panel_id": job.panel.id,
            "page_id": job.page.id,
            "output_path": str(target),
            "aspect_ratio": ratio,
            "quality": self._quality,
            "provider": self.provider,
            "reference_images": references,
        }
        self._log_prompt(job, prompt)

        try:
            attempts = generate_with_retry(
                self._generator,
                prompt=prompt,
                output_path=target,
                aspect_ratio=ratio,
                quality=self._quality,
                provider=self.provider,
                reference_images=references,
                max_retries=self._max_retries,
                label=job.panel.id,
            )
        except PanelGenerationError as exc:
            self._log_response(job, {**request, "state": JobState.FAILED.value, "error": str(exc.last_error)})
            raise
        self._log_response(job, {**request, "state": JobState.SUCCEEDED.value, "attempts": attempts})
        return JobState.SUCCEEDED

    def _log_prompt(self, job: RenderJob, prompt: str) -> None:
        if self._run_logger is not None and self._run_id:
            self._run_logger.log_prompt(self._run_id, f"panel-{job.panel.id}", prompt)

    def _log_response(self, job: RenderJob, payload: dict) -> None:
        if self._run_logger is not None and self._run_id:
            self._run_logger.log_response(self._run_id, f"panel-{job.panel.id}", payload)
