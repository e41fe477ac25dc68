"""Expand a project plus an optional page/panel selection into render jobs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Set, Tuple

from ..errors import SelectionError
from ..types import RenderJob

if TYPE_CHECKING:
    from ..project import Page, Project

PANEL_SELECTOR_HELP = "Expected: pageId:range (e.g., page1:1-3)"


def _parse_int(text: str, kind: str, item: str) -> int:
    try:
        return int(text.strip())
    except ValueError:
        raise SelectionError(f"Invalid {kind}: {item}") from None


def _expand_numbers(spec: str, upper: int, kind: str) -> List[int]:
    """Expand ``"1-3,5"`` into ``[1, 2, 3, 5]``, dropping numbers outside ``[1, upper]``."""
    numbers: List[int] = []
    for part in spec.split(","):
        item = part.strip()
        if not item:
            raise SelectionError(f"Invalid {kind}: empty item in '{spec}'")
        if "-" in item:
            start_text, _, end_text = item.partition("-")
            start = _parse_int(start_text, f"{kind} range", item)
            end = _parse_int(end_text, f"{kind} range", item)
            numbers.extend(n for n in range(start, end + 1) if 1 <= n <= upper)
        else:
            number = _parse_int(item, kind, item)
            if 1 <= number <= upper:
                numbers.append(number)
    return numbers


def parse_page_range(spec: str, total_pages: int) -> List[int]:
    """Return the sorted, de-duplicated 1-based page numbers named by ``spec``."""
    return sorted(set(_expand_numbers(spec, total_pages, "page number")))


def parse_panel_selector(spec: str, pages: Sequence["Page"]) -> List[str]:
    """Return the panel ids named by a ``pageId:range`` selector.

    Numbers are 1-based positions in the page's declared panel order. An
    unknown page id selects nothing.
    """
    page_id, separator, panel_range = spec.partition(":")
    if not separator or not page_id.strip() or not panel_range.strip():
        raise SelectionError(f"Invalid panel range format '{spec}'. {PANEL_SELECTOR_HELP}")

    page = next((candidate for candidate in pages if candidate.id == page_id.strip()), None)
    panels = page.layout.panels if page is not None else []
    numbers = _expand_numbers(panel_range, len(panels), "panel number")
    if page is None:
        return []

    selected: List[str] = []
    for number in numbers:
        panel_id = panels[number - 1].id
        if panel_id not in selected:
            selected.append(panel_id)
    return selected


def resolve_selection(
    project: "Project",
    pages: Optional[str] = None,
    panels: Optional[Iterable[str]] = None,
) -> Tuple[List[int], Optional[Set[str]]]:
    """Parse CLI-style selectors into page numbers and an optional panel-id set."""
    if pages:
        page_numbers = parse_page_range(pages, len(project.pages))
    else:
        page_numbers = list(range(1, len(project.pages) + 1))

    panel_ids: Optional[Set[str]] = None
    selectors = [selector for selector in (panels or []) if selector]
    if selectors:
        panel_ids = set()
        for selector in selectors:
            panel_ids.update(parse_panel_selector(selector, project.pages))
    return page_numbers, panel_ids


def enumerate_jobs(
    project: "Project",
    pages: Optional[Iterable[int]] = None,
    panel_ids: Optional[Set[str]] = None,
) -> List[RenderJob]:
    """Build the ordered job list: pages ascending, panels in declared order."""
    if pages is None:
        page_numbers = list(range(1, len(project.pages) + 1))
    else:
        page_numbers = sorted(set(pages))

    jobs: dict[Tuple[int, int], RenderJob] = {}
    for page_number in page_numbers:
        page = project.page_by_number(page_number)
        if page is None:
            continue
        for panel_index, panel in enumerate(page.layout.panels):
            if panel_ids is not None and panel.id not in panel_ids:
                continue
            job = RenderJob(page=page, panel=panel, page_index=page_number, panel_index=panel_index)
            jobs.setdefault(job.sort_key, job)
    return [jobs[key] for key in sorted(jobs)]


def pages_to_compose(
    project: "Project",
    page_numbers: Iterable[int],
    panel_ids: Optional[Set[str]] = None,
) -> List[int]:
    """Pages whose composition is affected by the selected jobs."""
    numbers = sorted(set(page_numbers))
    if panel_ids is None:
        return numbers
    selected: List[int] = []
    for number in numbers:
        page = project.page_by_number(number)
        if page is not None and any(panel.id in panel_ids for panel in page.layout.panels):
            selected.append(number)
    return selected
