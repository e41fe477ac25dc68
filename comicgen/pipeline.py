"""Pipeline orchestration for the comic generator."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Sequence, TypedDict

from langchain_core.runnables import RunnableLambda
from langgraph.graph import END, START, StateGraph

from .config import MOCK_PROVIDER, CredentialResolver, GeneratorConfig
from .core.geometry import effective_grid, grid_cell_size, page_size
from .core.runner import PanelRenderer
from .core.selection import pages_to_compose, resolve_selection
from .nodes.base import Node
from .nodes.compose import ComposePages, compose_pages
from .nodes.export import ExportPdf, export_pdf
from .nodes.panels import GenPanels
from .nodes.references import GenCharacterRefs
from .project import ArtStyle, GridSettings, Layout, Meta, Page, PageSettings, Project, Style, Tone, load_project, save_project
from .services.image_gen import ImageGenAdapter
from .services.prompt_builder import PromptBuilder
from .types import RunState
from .utils.files import ensure_dir
from .utils.run_logger import RunLogger

PROJECT_FILE = "comicgen.json"
RULE = "─" * 50


class PipelineState(TypedDict):
    """Graph payload: the run state handed from node to node."""

    state: RunState


class ComicGenerator:
    """High-level facade exposing generation, composition and export."""

    def __init__(
        self,
        config: GeneratorConfig | None = None,
        resolver: CredentialResolver | None = None,
        adapter: ImageGenAdapter | None = None,
    ) -> None:
        self.config = config or GeneratorConfig.from_env()
        self.resolver = resolver or CredentialResolver(self.config.env_files)
        self.logger = RunLogger(base_dir=self.config.runs_dir)
        self.adapter = adapter or ImageGenAdapter(self.resolver)
        self.prompt_builder = PromptBuilder()

    def resolve_provider(self, provider: Optional[str] = None) -> str:
        """Explicit choice, else the mock when enabled, else the first keyed provider."""
        if not provider and self.config.enable_mock_generation:
            return MOCK_PROVIDER
        return self.resolver.resolve(provider)

    def generate(
        self,
        config_path: str | Path,
        *,
        output_dir: str | Path | None = None,
        pages: Optional[str] = None,
        panels: Optional[Sequence[str]] = None,
        parallel: bool = False,
        concurrency: Optional[int] = None,
        provider: Optional[str] = None,
        skip_refs: bool = False,
        skip_composite: bool = False,
        pdf: bool = False,
    ) -> RunState:
        """Run references, panels and composition for the selected pages.

        With ``pdf`` the composed pages are also merged into ``<title>.pdf``.
        """
        config_file = Path(config_path)
        project = load_project(config_file)
        output_root = Path(output_dir) if output_dir else config_file.resolve().parent
        page_numbers, panel_ids = resolve_selection(project, pages, panels)
        provider_id = self.resolve_provider(provider)

        print("Comic Generation\n")
        print(f"Project: {project.meta.title}")
        print(f"Style: {project.style.art_style.value} / {project.style.tone.value}")
        print(f"Pages: {len(project.pages)}")
        print(f"Characters: {len(project.characters)}\n")
        print(f"Provider: {provider_id}\n")
        if pages:
            print(f"Generating pages: {', '.join(str(n) for n in page_numbers)}")
        if panel_ids is not None:
            print(f"Generating panels: {', '.join(sorted(panel_ids))}")

        run_id = self._new_run_id()
        state = RunState(
            project=project,
            output_root=output_root,
            provider=provider_id,
            page_numbers=page_numbers,
            panel_ids=panel_ids,
        )
        nodes = self._build_nodes(
            run_id=run_id,
            project=project,
            output_root=output_root,
            provider=provider_id,
            parallel=parallel,
            concurrency=concurrency if concurrency is not None else self.config.default_concurrency,
            skip_refs=skip_refs,
            skip_composite=skip_composite,
            pdf=pdf,
        )

        app = self._build_graph(nodes).compile()
        final = app.invoke({"state": state})
        return final["state"]

    def composite(self, config_path: str | Path, *, output_dir: str | Path | None = None, pages: Optional[str] = None) -> List[Path]:
        """Re-compose pages from whatever panel images exist."""
        config_file = Path(config_path)
        project = load_project(config_file)
        output_root = Path(output_dir) if output_dir else config_file.resolve().parent
        page_numbers, _ = resolve_selection(project, pages)
        return compose_pages(project, output_root, pages_to_compose(project, page_numbers))

    def export_pdf(self, config_path: str | Path, *, output_dir: str | Path | None = None) -> Path:
        """Merge ``pages/`` of the project into a PDF next to it."""
        config_file = Path(config_path)
        project = load_project(config_file)
        output_root = Path(output_dir) if output_dir else config_file.resolve().parent
        return export_pdf(project, output_root)

    def preview(self, config_path: str | Path) -> str:
        """Return a textual summary of the project layout."""
        project = load_project(config_path)
        size = page_size(project.page_settings)
        lines = [
            "=" * 60,
            f"Layout Preview: {project.meta.title}",
            "=" * 60,
            "",
            f"Style: {project.style.art_style.value} / {project.style.tone.value}",
            f"Format: {project.page_settings.aspect_ratio} @ {project.page_settings.dpi} DPI ({size.width}x{size.height})",
            f"Characters: {', '.join(c.name for c in project.characters) or 'None'}",
            "",
            "─" * 60,
            "Pages",
            "─" * 60,
        ]
        for page in project.pages:
            grid = effective_grid(page)
            cell_width, cell_height = grid_cell_size(grid, size)
            lines.append("")
            lines.append(f"  {page.id}{': ' + page.title if page.title else ''}")
            lines.append(
                f"  Layout: {page.layout.type.value} ({grid.rows}x{grid.cols}, gutter {grid.gutter}, "
                f"cell {cell_width:.0f}x{cell_height:.0f}px)"
            )
            lines.append(f"  Panels: {len(page.layout.panels)}")
            for panel in page.layout.panels:
                span = f" [{panel.colspan}x{panel.rowspan}]" if panel.rowspan > 1 or panel.colspan > 1 else ""
                lines.append(f"    - {panel.id}{span}: ({panel.position.col},{panel.position.row})")
                ellipsis = "..." if len(panel.prompt) > 60 else ""
                lines.append(f"      {panel.prompt[:60]}{ellipsis}")
                if panel.characters:
                    lines.append(f"      Characters: {', '.join(c.id for c in panel.characters)}")
                if panel.focus:
                    lines.append(f"      Focus: {panel.focus.value}")
        lines.append("")
        lines.append("=" * 60)
        return "\n".join(lines)

    def init_project(
        self,
        name: str,
        *,
        parent_dir: str | Path = ".",
        title: Optional[str] = None,
        author: Optional[str] = None,
        art_style: str = ArtStyle.MANGA.value,
        tone: str = Tone.NEUTRAL.value,
        aspect_ratio: str = "3:4",
        page_count: int = 1,
    ) -> Path:
        """Scaffold ``<name>/comicgen.json`` and the output directories."""
        project_dir = ensure_dir(Path(parent_dir) / name)
        for sub in ("characters", "panels", "pages"):
            ensure_dir(project_dir / sub)
        project = Project(
            meta=Meta(title=title or name, author=author, version="1.0"),
            style=Style(art_style=ArtStyle(art_style), tone=Tone(tone)),
            page_settings=PageSettings(aspect_ratio=aspect_ratio),
            pages=[
                Page(id=f"page{index}", layout=Layout(grid=GridSettings(rows=2, cols=2)))
                for index in range(1, max(1, page_count) + 1)
            ],
        )
        return save_project(project, project_dir / PROJECT_FILE)

    def _build_graph(self, nodes: Sequence[Node]) -> StateGraph:
        """Construct a LangGraph graph wired with runnable nodes, in order."""
        if not nodes:
            raise RuntimeError("Pipeline has no nodes configured.")

        graph = StateGraph(PipelineState)
        node_names: List[str] = []
        for node in nodes:
            graph.add_node(
                node.name,
                RunnableLambda(lambda payload, _node=node: {"state": self._invoke_node(_node, payload["state"])}),
                metadata={"kind": node.name, "may_block": node.name in {"GenCharacterRefs", "GenPanels"}},
            )
            node_names.append(node.name)

        graph.add_edge(START, node_names[0])
        for previous, current in zip(node_names, node_names[1:]):
            graph.add_edge(previous, current)
        graph.add_edge(node_names[-1], END)
        return graph

    def _build_nodes(
        self,
        *,
        run_id: str,
        project: Project,
        output_root: Path,
        provider: str,
        parallel: bool,
        concurrency: Optional[int],
        skip_refs: bool,
        skip_composite: bool,
        pdf: bool = False,
    ) -> Sequence[Node]:
        """Construct node instances wired with the current services."""
        nodes: List[Node] = []
        if not skip_refs and project.characters:
            nodes.append(
                GenCharacterRefs(
                    run_id=run_id,
                    logger=self.logger,
                    generator=self.adapter,
                    prompt_builder=self.prompt_builder,
                    quality=self.config.quality,
                    max_retries=self.config.max_retries,
                )
            )
        renderer = PanelRenderer(
            project,
            output_root,
            provider,
            self.adapter,
            self.prompt_builder,
            quality=self.config.quality,
            max_retries=self.config.max_retries,
            run_logger=self.logger,
            run_id=run_id,
        )
        nodes.append(
            GenPanels(
                run_id=run_id,
                logger=self.logger,
                renderer=renderer,
                parallel=parallel,
                concurrency=concurrency,
            )
        )
        if not skip_composite:
            nodes.append(ComposePages(run_id=run_id, logger=self.logger))
        if pdf:
            nodes.append(ExportPdf(run_id=run_id, logger=self.logger))
        return nodes

    def _invoke_node(self, node: Node, state: RunState) -> RunState:
        """Execute a node while emitting structured IO traces."""
        print(RULE)
        self._print_step_io(node.name, "input", self._snapshot_state(state))

        started = time.perf_counter()
        updated_state = node.run(state)
        elapsed = time.perf_counter() - started

        self._print_step_io(node.name, "output", self._snapshot_state(updated_state), elapsed)
        return updated_state

    def _snapshot_state(self, state: RunState) -> dict:
        """Return a compact serialisable view of the state for logging."""
        snapshot = {
            "project": state.project.meta.title,
            "output_root": str(state.output_root),
            "provider": state.provider,
            "page_numbers": state.page_numbers,
            "panel_ids": sorted(state.panel_ids) if state.panel_ids is not None else None,
            "jobs": [job.panel.id for job in state.jobs],
            "character_refs": {key: asdict(ref) for key, ref in state.character_refs.items()},
            "report": self._report_summary(state),
            "composed_pages": state.composed_pages,
            "pdf_path": state.pdf_path,
        }
        return self._strip_empty(snapshot)

    @staticmethod
    def _report_summary(state: RunState) -> Optional[dict]:
        report = state.report
        if report is None:
            return None
        return {
            "total": report.total,
            "succeeded": len(report.succeeded),
            "skipped": len(report.skipped),
            "failed": [outcome.panel_id for outcome in report.failed],
        }

    def _strip_empty(self, value: Any) -> Any:
        """Recursively remove empty containers for cleaner logging."""
        if isinstance(value, dict):
            return {k: self._strip_empty(v) for k, v in value.items() if not self._is_empty(v)}
        if isinstance(value, list):
            return [self._strip_empty(item) for item in value if not self._is_empty(item)]
        return value

    @staticmethod
    def _is_empty(value: Any) -> bool:
        """Return True if the provided value is considered empty for logging."""
        if value is None:
            return True
        if isinstance(value, str) and value == "":
            return True
        if isinstance(value, (list, tuple, set, dict)) and len(value) == 0:
            return True
        return False

    def _print_step_io(self, step: str, direction: str, payload: Any, elapsed: float | None = None) -> None:
        """Pretty-print the input/output payload for each step."""
        prefix = ">>" if direction == "input" else "<<"
        timing = f" [{elapsed:.2f}s]" if elapsed is not None and direction == "output" else ""
        body = json.dumps(payload, ensure_ascii=False, indent=2, default=self._json_default)
        print(f"[{step}] {prefix} {direction}{timing}:\n{body}\n")

    @staticmethod
    def _json_default(obj: Any) -> Any:
        """Fallback serializer for non-JSON compatible objects."""
        if is_dataclass(obj):
            return asdict(obj)
        if isinstance(obj, set):
            return sorted(obj)
        return str(obj)

    @staticmethod
    def _new_run_id() -> str:
        """Return a unique run identifier."""
        return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
