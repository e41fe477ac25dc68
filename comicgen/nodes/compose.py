"""Page composition: place panel images on a page canvas with Pillow."""

from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from typing import Iterable, List, Optional

from PIL import Image, ImageDraw

from ..core.geometry import effective_grid, page_size, panel_bounds
from ..core.runner import panel_output_path
from ..core.selection import pages_to_compose
from ..project import Page, Project
from ..types import PageSize, RunState
from ..utils.files import atomic_write, ensure_dir
from .base import BaseNode

logger = logging.getLogger(__name__)

BACKGROUND = (255, 255, 255)
PLACEHOLDER_FILL = (204, 204, 204)
PLACEHOLDER_TEXT = (102, 102, 102)
BORDER_COLOUR = (0, 0, 0)
BORDER_WIDTH = 2

_PIL_FORMATS = {"png": "PNG", "jpg": "JPEG", "jpeg": "JPEG"}


def page_output_path(output_root: str | Path, page: Page, output_format: str = "png") -> Path:
    return Path(output_root) / "pages" / f"{page.id}.{output_format}"


def _fit(image: Image.Image, width: float, height: float) -> Image.Image:
    scale = min(width / image.width, height / image.height)
    size = (max(1, round(image.width * scale)), max(1, round(image.height * scale)))
    return image.resize(size, Image.Resampling.LANCZOS)


def compose_page(project: Project, page: Page, output_root: str | Path, canvas_size: Optional[PageSize] = None) -> Path:
    """Render one page to ``pages/<pageId>.<fmt>`` and return its path."""
    size = canvas_size or page_size(project.page_settings)
    grid = effective_grid(page)
    canvas = Image.new("RGB", (size.width, size.height), BACKGROUND)
    draw = ImageDraw.Draw(canvas)

    for panel in page.layout.panels:
        bounds = panel_bounds(panel, grid, size)
        box = (round(bounds.x), round(bounds.y), round(bounds.x + bounds.w), round(bounds.y + bounds.h))
        source = panel_output_path(output_root, panel.id)
        if source.exists():
            with Image.open(source) as panel_image:
                fitted = _fit(panel_image.convert("RGB"), bounds.w, bounds.h)
            offset = (
                round(bounds.x + (bounds.w - fitted.width) / 2),
                round(bounds.y + (bounds.h - fitted.height) / 2),
            )
            canvas.paste(fitted, offset)
        else:
            logger.warning("Panel not found: %s", panel.id)
            draw.rectangle(box, fill=PLACEHOLDER_FILL)
            draw.text((box[0] + 10, box[1] + 10), panel.id, fill=PLACEHOLDER_TEXT)
        draw.rectangle(box, outline=BORDER_COLOUR, width=BORDER_WIDTH)

    fmt = project.page_settings.output_format.value
    target = page_output_path(output_root, page, fmt)
    buffer = BytesIO()
    canvas.save(buffer, format=_PIL_FORMATS[fmt])
    return atomic_write(target, buffer.getvalue())


def compose_pages(
    project: Project,
    output_root: str | Path,
    page_numbers: Optional[Iterable[int]] = None,
) -> List[Path]:
    """Compose the given 1-based pages (all pages by default).

    A page that fails to compose is reported and skipped; the others are
    still written.
    """
    numbers = list(page_numbers) if page_numbers is not None else list(range(1, len(project.pages) + 1))
    ensure_dir(Path(output_root) / "pages")
    size = page_size(project.page_settings)
    print(f"Composing {len(numbers)} page(s)...")

    written: List[Path] = []
    for number in numbers:
        page = project.page_by_number(number)
        if page is None:
            continue
        print(f"  Composing {page.id}...")
        try:
            path = compose_page(project, page, output_root, size)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to compose %s: %s", page.id, exc)
            continue
        written.append(path)
        print(f"    ✓ Created: {path.name}")

    print(f"\n✓ Page composition complete!\n  Output: {Path(output_root) / 'pages'}/")
    return written


class ComposePages(BaseNode):
    """Composes the pages touched by the current selection."""

    def __init__(self, run_id: str, logger) -> None:
        super().__init__(name="ComposePages", run_id=run_id, logger=logger)

    def run(self, state: RunState) -> RunState:
        numbers = pages_to_compose(state.project, state.page_numbers, state.panel_ids)
        paths = compose_pages(state.project, state.output_root, numbers)
        state.composed_pages = [str(path) for path in paths]
        self.log_response({"pages": state.composed_pages})
        return state
