"""Core data models used across the comic generation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Set

if TYPE_CHECKING:
    from .project import Page, Panel, Project


@dataclass(slots=True, frozen=True)
class Grid:
    """Rows/cols/gutter subdivision of a page canvas."""

    rows: int
    cols: int
    gutter: int = 10


@dataclass(slots=True, frozen=True)
class PageSize:
    """Pixel dimensions of a canvas."""

    width: int
    height: int


@dataclass(slots=True, frozen=True)
class PanelBounds:
    """Pixel rectangle occupied by a panel. Derived, never persisted."""

    x: float
    y: float
    w: float
    h: float


@dataclass(slots=True, frozen=True)
class RenderJob:
    """One unit of work: render ``panel`` of ``page``.

    ``page_index`` is 1-based, ``panel_index`` is the 0-based declaration
    order of the panel within its page.
    """

    page: "Page"
    panel: "Panel"
    page_index: int
    panel_index: int

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.page_index, self.panel_index)


class JobState(str, Enum):
    """How a render job ended."""

    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class JobOutcome:
    """Terminal state of a job after the controller has run it."""

    job: RenderJob
    state: JobState
    error: Optional[str] = None

    @property
    def panel_id(self) -> str:
        return self.job.panel.id


@dataclass(slots=True)
class GenerationReport:
    """Aggregated outcomes of one generation run."""

    outcomes: List[JobOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> List[JobOutcome]:
        return [o for o in self.outcomes if o.state is JobState.SUCCEEDED]

    @property
    def skipped(self) -> List[JobOutcome]:
        return [o for o in self.outcomes if o.state is JobState.SKIPPED]

    @property
    def failed(self) -> List[JobOutcome]:
        return [o for o in self.outcomes if o.state is JobState.FAILED]

    @property
    def has_failures(self) -> bool:
        return any(o.state is JobState.FAILED for o in self.outcomes)


@dataclass(slots=True)
class CharacterReference:
    """Reference sheets generated for one character."""

    character_id: str
    images: Dict[str, str] = field(default_factory=dict)
    generated: bool = False


@dataclass(slots=True)
class RunState:
    """Mutable state passed between nodes."""

    project: "Project"
    output_root: Path
    provider: str
    page_numbers: List[int] = field(default_factory=list)
    panel_ids: Optional[Set[str]] = None
    jobs: List[RenderJob] = field(default_factory=list)
    character_refs: Dict[str, CharacterReference] = field(default_factory=dict)
    report: Optional[GenerationReport] = None
    composed_pages: List[str] = field(default_factory=list)
    pdf_path: Optional[str] = None
