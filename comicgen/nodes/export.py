"""Merge composed pages into a single PDF."""

from __future__ import annotations

from pathlib import Path
from typing import List

from PIL import Image

from ..errors import ExportError
from ..project import Project
from ..types import RunState
from ..utils.files import sanitize_filename
from .base import BaseNode

PAGE_SUFFIXES = (".png", ".jpg", ".jpeg")
DEFAULT_AUTHOR = "comicgen"


def collect_page_images(pages_dir: Path) -> List[Path]:
    """Page images in ``pages_dir`` sorted by file name."""
    if not pages_dir.is_dir():
        raise ExportError(f"Pages directory not found: {pages_dir}")
    files = sorted(
        (path for path in pages_dir.iterdir() if path.suffix.lower() in PAGE_SUFFIXES),
        key=lambda path: path.name,
    )
    if not files:
        raise ExportError(f"No page images found in {pages_dir}")
    return files


def pdf_output_path(project: Project, output_root: str | Path) -> Path:
    return Path(output_root) / f"{sanitize_filename(project.meta.title)}.pdf"


def export_pdf(project: Project, output_root: str | Path) -> Path:
    """Write every composed page of ``output_root`` into ``<title>.pdf``."""
    root = Path(output_root)
    files = collect_page_images(root / "pages")
    target = pdf_output_path(project, root)
    print(f"\nCreating PDF: {target}")
    print(f"Found {len(files)} page(s)")

    images: List[Image.Image] = []
    try:
        for path in files:
            with Image.open(path) as source:
                images.append(source.convert("RGB"))
            print(f"  Added: {path.name}")
        first, rest = images[0], images[1:]
        first.save(
            target,
            format="PDF",
            save_all=True,
            append_images=rest,
            title=project.meta.title,
            author=project.meta.author or DEFAULT_AUTHOR,
            subject="Generated Comic",
        )
    except OSError as exc:
        raise ExportError(f"Failed to write {target}: {exc}") from exc
    finally:
        for image in images:
            image.close()

    print(f"\n✓ PDF created: {target}\n  Total pages: {len(files)}")
    return target


class ExportPdf(BaseNode):
    """Optional final step bundling composed pages into a PDF."""

    def __init__(self, run_id: str, logger) -> None:
        super().__init__(name="ExportPdf", run_id=run_id, logger=logger)

    def run(self, state: RunState) -> RunState:
        state.pdf_path = str(export_pdf(state.project, state.output_root))
        self.log_response({"pdf": state.pdf_path})
        return state
