"""Project description models and the JSON config loader.

The project file uses camelCase keys (``pageSettings``, ``artStyle``,
``rowspan`` ...). Models are frozen: once loaded, nothing in the pipeline
mutates the project.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Annotated, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .core.geometry import effective_grid, parse_aspect_ratio
from .errors import ConfigError
from .utils.files import write_json


class ArtStyle(str, Enum):
    MANGA = "manga"
    LIGNE_CLAIRE = "ligne-claire"
    REALISTIC = "realistic"
    INK_BRUSH = "ink-brush"
    CHALK = "chalk"


class Tone(str, Enum):
    NEUTRAL = "neutral"
    WARM = "warm"
    DRAMATIC = "dramatic"
    ROMANTIC = "romantic"
    ENERGETIC = "energetic"
    VINTAGE = "vintage"
    ACTION = "action"


class LayoutType(str, Enum):
    CUSTOM = "custom"
    GRID_2X2 = "2x2-grid"
    CINEMATIC = "cinematic"
    WEBTOON = "webtoon"
    DENSE = "dense"
    SPLASH = "splash"


class CharacterRole(str, Enum):
    PROTAGONIST = "protagonist"
    ANTAGONIST = "antagonist"
    SUPPORTING = "supporting"
    BACKGROUND = "background"


class PanelFocus(str, Enum):
    CHARACTER = "character"
    ENVIRONMENT = "environment"
    ACTION = "action"
    DIALOGUE = "dialogue"
    CLOSE_UP = "close-up"
    WIDE = "wide"


class OutputFormat(str, Enum):
    PNG = "png"
    JPG = "jpg"
    JPEG = "jpeg"


class _ProjectModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=False,
    )


def _check_ratio(value: str) -> str:
    try:
        parse_aspect_ratio(value)
    except ConfigError as exc:
        raise ValueError(str(exc)) from None
    return value


AspectRatio = Annotated[str, AfterValidator(_check_ratio)]

# Ids become file and directory names under the output root.
Identifier = Annotated[str, Field(pattern=r"^[A-Za-z0-9_-]+$")]


class Meta(_ProjectModel):
    title: str
    author: Optional[str] = None
    version: Optional[str] = None


class VisualSpec(_ProjectModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    age: Optional[str] = None
    hair: Optional[str] = None
    eyes: Optional[str] = None
    outfit: Optional[str] = None
    body_type: Optional[str] = None
    distinctive_features: Optional[str] = None


class Character(_ProjectModel):
    id: Identifier
    name: str
    role: CharacterRole = CharacterRole.SUPPORTING
    description: Optional[str] = None
    visual_spec: Optional[VisualSpec] = None
    expressions: List[str] = Field(default_factory=list)
    angles: List[str] = Field(default_factory=list)


class GridPosition(_ProjectModel):
    row: int = Field(ge=0)
    col: int = Field(ge=0)


class PanelCharacter(_ProjectModel):
    id: str
    expression: Optional[str] = None
    angle: Optional[str] = None
    action: Optional[str] = None


class Panel(_ProjectModel):
    id: Identifier
    position: GridPosition
    rowspan: int = Field(default=1, ge=1)
    colspan: int = Field(default=1, ge=1)
    size_ratio: Optional[float] = None
    prompt: str
    characters: List[PanelCharacter] = Field(default_factory=list)
    focus: Optional[PanelFocus] = None
    aspect_ratio: Optional[AspectRatio] = None
    notes: Optional[str] = None


class GridSettings(_ProjectModel):
    rows: int = Field(ge=1)
    cols: int = Field(ge=1)
    gutter: int = Field(default=10, ge=0)


class Layout(_ProjectModel):
    type: LayoutType = LayoutType.CUSTOM
    grid: Optional[GridSettings] = None
    panels: List[Panel] = Field(default_factory=list)


class Page(_ProjectModel):
    id: Identifier
    title: Optional[str] = None
    layout: Layout


class Style(_ProjectModel):
    art_style: ArtStyle = ArtStyle.MANGA
    tone: Tone = Tone.NEUTRAL
    base_prompt: Optional[str] = None


class PageSettings(_ProjectModel):
    aspect_ratio: AspectRatio = "3:4"
    dpi: int = Field(default=300, ge=1)
    output_format: OutputFormat = OutputFormat.PNG
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)


class Project(_ProjectModel):
    meta: Meta
    style: Style = Field(default_factory=Style)
    page_settings: PageSettings = Field(default_factory=PageSettings)
    characters: List[Character] = Field(default_factory=list)
    pages: List[Page] = Field(default_factory=list)

    def page_by_number(self, number: int) -> Optional[Page]:
        """Return the 1-based page ``number`` or ``None``."""
        if 1 <= number <= len(self.pages):
            return self.pages[number - 1]
        return None

    def character(self, character_id: str) -> Optional[Character]:
        for character in self.characters:
            if character.id == character_id:
                return character
        return None


def validate_project(project: Project) -> List[str]:
    """Cross-reference checks that a single field validator cannot express."""
    problems: List[str] = []
    seen_pages: Dict[str, int] = {}
    panel_owners: Dict[str, str] = {}
    character_ids = {character.id for character in project.characters}

    if len(character_ids) != len(project.characters):
        problems.append("characters: character ids must be unique")

    for page_number, page in enumerate(project.pages, start=1):
        location = f"pages.{page_number - 1}"
        if page.id in seen_pages:
            problems.append(f"{location}.id: duplicate page id '{page.id}'")
        seen_pages[page.id] = page_number

        grid = effective_grid(page)
        panel_ids = set()
        for panel_index, panel in enumerate(page.layout.panels):
            panel_location = f"{location}.layout.panels.{panel_index}"
            if panel.id in panel_ids:
                problems.append(f"{panel_location}.id: duplicate panel id '{panel.id}' in page '{page.id}'")
            panel_ids.add(panel.id)
            owner = panel_owners.setdefault(panel.id, page.id)
            if owner != page.id:
                problems.append(
                    f"{panel_location}.id: panel id '{panel.id}' is already used on page '{owner}'"
                )

            row_end = panel.position.row + panel.rowspan
            col_end = panel.position.col + panel.colspan
            if row_end > grid.rows or col_end > grid.cols:
                problems.append(
                    f"{panel_location}: panel '{panel.id}' spans rows "
                    f"{panel.position.row}-{row_end - 1}, cols {panel.position.col}-{col_end - 1} "
                    f"outside the {grid.rows}x{grid.cols} grid"
                )

            for ref in panel.characters:
                if ref.id not in character_ids:
                    problems.append(f"{panel_location}.characters: unknown character '{ref.id}'")
    return problems


def _format_validation_error(exc: ValidationError) -> List[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
        messages.append(f"{location}: {error.get('msg')}")
    return messages


def parse_project(data: object) -> Project:
    """Validate a decoded project mapping."""
    try:
        project = Project.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(exc)) from None
    problems = validate_project(project)
    if problems:
        raise ConfigError(problems)
    return project


def load_project(path: str | Path) -> Project:
    """Read and validate a project file, raising ``ConfigError`` on any problem."""
    config_path = Path(path)
    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {config_path}: {exc}") from None
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse config file: {exc}") from None
    return parse_project(data)


def save_project(project: Project, path: str | Path) -> Path:
    """Write ``project`` back out with camelCase keys."""
    data = project.model_dump(mode="json", by_alias=True, exclude_none=True)
    return write_json(path, data)
