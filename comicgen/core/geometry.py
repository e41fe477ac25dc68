"""Grid geometry: page sizes, default grids and panel rectangles.

Everything in this module is a pure function of its arguments. Grid
dimensions are trusted: callers validate ``rows``/``cols`` (the project
loader does) before asking for bounds, and a degenerate grid simply yields
meaningless rectangles.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Dict, Tuple

from ..errors import ConfigError
from ..types import Grid, PageSize, PanelBounds

if TYPE_CHECKING:
    from ..project import Page, PageSettings, Panel

DEFAULT_GUTTER = 10
DEFAULT_DPI = 300
# Canvas used to infer a panel's aspect ratio before generation. Composition
# derives its own page size from the project settings.
INFERENCE_CANVAS = PageSize(width=1200, height=1600)

# (rows, cols, gutter); ``None`` rows means one row per panel.
_LAYOUT_GRIDS: Dict[str, Tuple[int | None, int, int]] = {
    "2x2-grid": (2, 2, 10),
    "cinematic": (3, 2, 10),
    "webtoon": (None, 1, 5),
    "dense": (3, 3, 8),
    "splash": (1, 1, 0),
    "custom": (2, 2, 10),
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_panel_bounds(
    grid: Grid,
    page_size: PageSize,
    row: int,
    col: int,
    rowspan: int = 1,
    colspan: int = 1,
) -> PanelBounds:
    """Return the pixel rectangle of a cell range on ``grid``.

    Every border, including the outer frame, is exactly ``gutter`` wide. A
    spanning panel absorbs the gutters between the cells it covers.
    """
    gutter = grid.gutter
    cell_width = (page_size.width - gutter * (grid.cols + 1)) / grid.cols
    cell_height = (page_size.height - gutter * (grid.rows + 1)) / grid.rows

    x = gutter + col * (cell_width + gutter)
    y = gutter + row * (cell_height + gutter)
    w = colspan * cell_width + (colspan - 1) * gutter
    h = rowspan * cell_height + (rowspan - 1) * gutter
    return PanelBounds(x=x, y=y, w=w, h=h)


def panel_bounds(panel: "Panel", grid: Grid, page_size: PageSize) -> PanelBounds:
    """Bounds of a project panel on ``grid``."""
    return calculate_panel_bounds(
        grid,
        page_size,
        row=panel.position.row,
        col=panel.position.col,
        rowspan=panel.rowspan,
        colspan=panel.colspan,
    )


def grid_cell_size(grid: Grid, page_size: PageSize) -> Tuple[float, float]:
    """Return ``(cell_width, cell_height)`` for a unit cell."""
    cell_width = (page_size.width - grid.gutter * (grid.cols + 1)) / grid.cols
    cell_height = (page_size.height - grid.gutter * (grid.rows + 1)) / grid.rows
    return cell_width, cell_height


def layout_grid(layout_type: str, panel_count: int) -> Grid:
    """Default grid implied by a layout type tag."""
    key = getattr(layout_type, "value", layout_type)
    rows, cols, gutter = _LAYOUT_GRIDS.get(key, _LAYOUT_GRIDS["custom"])
    if rows is None:
        rows = max(1, panel_count)
    return Grid(rows=rows, cols=cols, gutter=gutter)


def effective_grid(page: "Page") -> Grid:
    """The page's explicit grid, or the default for its layout type."""
    layout = page.layout
    if layout.grid is not None:
        return Grid(rows=layout.grid.rows, cols=layout.grid.cols, gutter=layout.grid.gutter)
    return layout_grid(layout.type, len(layout.panels))


def parse_aspect_ratio(text: str) -> Tuple[int, int]:
    """Parse a ``W:H`` ratio; both components must be positive integers."""
    parts = str(text).split(":")
    if len(parts) != 2:
        raise ConfigError(f"Invalid aspect ratio: {text}")
    try:
        width, height = (int(part.strip()) for part in parts)
    except ValueError:
        raise ConfigError(f"Invalid aspect ratio: {text}") from None
    if width <= 0 or height <= 0:
        raise ConfigError(f"Invalid aspect ratio: {text}")
    return width, height


def size_from_aspect_ratio(aspect_ratio: str, dpi: int = DEFAULT_DPI) -> PageSize:
    """Derive a canvas size: ``dpi * 10`` on the longer side, the other scaled."""
    ratio_w, ratio_h = parse_aspect_ratio(aspect_ratio)
    base = dpi * 10
    if ratio_w >= ratio_h:
        return PageSize(width=base, height=_round_half_up(base * ratio_h / ratio_w))
    return PageSize(width=_round_half_up(base * ratio_w / ratio_h), height=base)


def page_size(settings: "PageSettings") -> PageSize:
    """Resolve the composition canvas for a project's page settings."""
    if settings.width and settings.height:
        return PageSize(width=settings.width, height=settings.height)
    return size_from_aspect_ratio(settings.aspect_ratio, settings.dpi or DEFAULT_DPI)


def aspect_ratio(width: float, height: float) -> str:
    """Reduce pixel dimensions to a compact ``W:H`` string."""
    w = _round_half_up(width)
    h = _round_half_up(height)
    divisor = math.gcd(w, h) or 1
    return f"{w // divisor}:{h // divisor}"
