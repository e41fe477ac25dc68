"""End-to-end regression tests for the comic generator pipeline."""

from __future__ import annotations

import contextlib
import io
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import run
from comicgen.config import CredentialResolver, GeneratorConfig
from comicgen.pipeline import ComicGenerator
from comicgen.project import load_project

from factories import write_project


class PipelineIntegrationTest(unittest.TestCase):
    """Covers the top-level pipeline behaviour with the offline provider."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.config_path = write_project(self.root)
        config = GeneratorConfig(runs_dir=str(self.root / "runs"), enable_mock_generation=True, env_files=[])
        self.generator = ComicGenerator(config=config, resolver=CredentialResolver(env_files=[], environ={}))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _generate(self, **kwargs):
        with contextlib.redirect_stdout(io.StringIO()):
            return self.generator.generate(self.config_path, **kwargs)

    def test_pipeline_run(self) -> None:
        """Ensure references, panels and pages are produced end-to-end."""
        state = self._generate(parallel=True, concurrency=2)

        self.assertEqual(state.provider, "mock")
        self.assertIsNotNone(state.report)
        self.assertEqual(len(state.report.succeeded), 4)
        for panel_id in ("p1", "p2", "p3", "s1"):
            self.assertTrue((self.root / "panels" / f"{panel_id}.png").exists())
        for sheet in ("expressions", "angles", "fullbody", "palette"):
            self.assertTrue((self.root / "characters" / "hero" / f"{sheet}.png").exists())
        self.assertTrue(state.character_refs["hero"].generated)
        self.assertEqual(
            [Path(p).name for p in state.composed_pages],
            ["page1.png", "page2.png"],
        )
        self.assertTrue(any((self.root / "runs").iterdir()))

    def test_second_run_skips_existing_outputs(self) -> None:
        self._generate(skip_composite=True)
        state = self._generate(skip_composite=True)
        self.assertEqual(len(state.report.skipped), 4)
        self.assertEqual(state.report.succeeded, [])
        self.assertEqual(state.composed_pages, [])

    def test_selection_limits_jobs_and_composition(self) -> None:
        state = self._generate(panels=["page2:1"], skip_refs=True)
        self.assertEqual([job.panel.id for job in state.jobs], ["s1"])
        self.assertEqual([Path(p).name for p in state.composed_pages], ["page2.png"])
        self.assertFalse((self.root / "characters" / "hero" / "fullbody.png").exists())

    def test_output_override_and_pdf(self) -> None:
        out = self.root / "out"
        self._generate(output_dir=out, skip_refs=True)
        with contextlib.redirect_stdout(io.StringIO()):
            pdf = self.generator.export_pdf(self.config_path, output_dir=out)
        self.assertEqual(pdf, out / "Test-Comic.pdf")
        self.assertTrue(pdf.exists())

    def test_generate_can_finish_with_a_pdf(self) -> None:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            state = self.generator.generate(self.config_path, skip_refs=True, pdf=True)
        self.assertEqual(state.pdf_path, str(self.root / "Test-Comic.pdf"))
        self.assertTrue((self.root / "Test-Comic.pdf").exists())
        trace = out.getvalue()
        positions = [trace.index(f"[{name}] >> input") for name in ("GenPanels", "ComposePages", "ExportPdf")]
        self.assertEqual(positions, sorted(positions))

    def test_graph_runs_nodes_in_chain_order(self) -> None:
        with contextlib.redirect_stdout(io.StringIO()) as out:
            state = self.generator.generate(self.config_path)
        trace = out.getvalue()
        positions = [trace.index(f"[{name}] << output") for name in ("GenCharacterRefs", "GenPanels", "ComposePages")]
        self.assertEqual(positions, sorted(positions))
        self.assertNotIn("[ExportPdf]", trace)
        self.assertIsNone(state.pdf_path)

    def test_graph_requires_nodes(self) -> None:
        with self.assertRaises(RuntimeError):
            self.generator._build_graph([])

    def test_init_and_preview(self) -> None:
        path = self.generator.init_project("story", parent_dir=self.root, title="My Story", page_count=2)
        self.assertEqual(path, self.root / "story" / "comicgen.json")
        for sub in ("characters", "panels", "pages"):
            self.assertTrue((self.root / "story" / sub).is_dir())
        project = load_project(path)
        self.assertEqual([page.id for page in project.pages], ["page1", "page2"])

        preview = self.generator.preview(self.config_path)
        self.assertIn("Layout Preview: Test Comic", preview)
        self.assertIn("p3 [2x1]", preview)


class CommandLineTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        patcher = mock.patch.dict(os.environ, {"COMICGEN_RUNS_DIR": str(self.root / "runs")})
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _main(self, argv: list[str]) -> tuple[int, str, str]:
        out, err = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = run.main(argv)
        return code, out.getvalue(), err.getvalue()

    def test_generate_with_mock_provider(self) -> None:
        config_path = write_project(self.root)
        code, out, _ = self._main(
            ["generate", "-c", str(config_path), "--provider", "mock", "--skip-refs", "--pages", "2"]
        )
        self.assertEqual(code, 0)
        self.assertIn("Generation completed.", out)
        self.assertTrue((self.root / "panels" / "s1.png").exists())
        self.assertFalse((self.root / "panels" / "p1.png").exists())

    def test_generate_pdf_flag(self) -> None:
        config_path = write_project(self.root)
        code, out, _ = self._main(["generate", "-c", str(config_path), "--provider", "mock", "--skip-refs", "--pdf"])
        self.assertEqual(code, 0)
        self.assertIn("PDF created", out)
        self.assertTrue((self.root / "Test-Comic.pdf").exists())

    def test_reversed_page_range_generates_nothing(self) -> None:
        config_path = write_project(self.root)
        code, out, _ = self._main(
            ["generate", "-c", str(config_path), "--provider", "mock", "--skip-refs", "--pages", "2-1"]
        )
        self.assertEqual(code, 0)
        self.assertIn("No panels to generate.", out)
        self.assertEqual(list((self.root / "panels").iterdir()), [])

    def test_invalid_config_exits_with_one(self) -> None:
        config_path = self.root / "comicgen.json"
        config_path.write_text('{"meta": {}, "pages": []}', encoding="utf-8")
        code, _, err = self._main(["preview", "-c", str(config_path)])
        self.assertEqual(code, 1)
        self.assertIn("Error: meta.title", err)

    def test_bad_selector_exits_with_one(self) -> None:
        config_path = write_project(self.root)
        code, _, err = self._main(["generate", "-c", str(config_path), "--provider", "mock", "--pages", "x-1"])
        self.assertEqual(code, 1)
        self.assertIn("Error: Invalid page number range", err)


if __name__ == "__main__":
    unittest.main()
