"""Tests for sequential and batched panel execution."""

from __future__ import annotations

import io
import tempfile
import threading
import time
import unittest
from pathlib import Path

from comicgen.core.controller import GenerationController, clamp_concurrency
from comicgen.core.runner import PanelRenderer, panel_output_path
from comicgen.core.selection import enumerate_jobs
from comicgen.errors import PanelGenerationError, ProviderError
from comicgen.project import parse_project
from comicgen.services.prompt_builder import PromptBuilder
from comicgen.types import JobState

from factories import project_data


class RecordingRenderer:
    """Renderer double that records start/end events and fails chosen panels."""

    def __init__(self, failing: set[str] | None = None, delay: float = 0.0) -> None:
        self.failing = failing or set()
        self.delay = delay
        self.events: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def render(self, job):
        panel_id = job.panel.id
        with self._lock:
            self.events.append(("start", panel_id))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.delay)
            if panel_id in self.failing:
                raise PanelGenerationError(panel_id, 3, ProviderError("quota exceeded"))
            return JobState.SUCCEEDED
        finally:
            with self._lock:
                self.active -= 1
                self.events.append(("end", panel_id))


class PanelFailingGenerator:
    """Provider double that always fails for one panel and writes the others."""

    def __init__(self, failing_panel: str) -> None:
        self.failing_panel = failing_panel
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def generate(self, prompt, output_path, aspect_ratio, quality, provider, reference_images=None):
        path = Path(output_path)
        with self._lock:
            self.calls.append(path.stem)
        if path.stem == self.failing_panel:
            raise ProviderError("rejected")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"panel")
        return path


class ControllerTest(unittest.TestCase):
    def setUp(self) -> None:
        self.jobs = enumerate_jobs(parse_project(project_data()))
        self.out = io.StringIO()

    def test_clamp_concurrency(self) -> None:
        self.assertEqual(clamp_concurrency(None), 4)
        self.assertEqual(clamp_concurrency(0), 4)
        self.assertEqual(clamp_concurrency(-3), 1)
        self.assertEqual(clamp_concurrency(3), 3)
        self.assertEqual(clamp_concurrency(20), 8)

    def test_sequential_runs_in_job_order(self) -> None:
        renderer = RecordingRenderer()
        report = GenerationController(renderer, stream=self.out).run(self.jobs)

        starts = [panel for kind, panel in renderer.events if kind == "start"]
        self.assertEqual(starts, ["p1", "p2", "p3", "s1"])
        self.assertEqual(renderer.max_active, 1)
        self.assertEqual(len(report.succeeded), 4)
        self.assertIn("[1/4] p1", self.out.getvalue())

    def test_failure_in_a_batch_does_not_stop_siblings_or_later_batches(self) -> None:
        renderer = RecordingRenderer(failing={"p2"}, delay=0.05)
        controller = GenerationController(renderer, parallel=True, concurrency=2, stream=self.out)

        with self.assertLogs("comicgen.core.controller", level="WARNING") as logs:
            report = controller.run(self.jobs)

        self.assertEqual([o.panel_id for o in report.outcomes], ["p1", "p2", "p3", "s1"])
        self.assertEqual([o.panel_id for o in report.failed], ["p2"])
        self.assertEqual(len(report.succeeded), 3)
        self.assertTrue(report.has_failures)
        self.assertIn("quota exceeded", report.failed[0].error)
        self.assertIn("p2", logs.output[0])
        self.assertLessEqual(renderer.max_active, 2)

        # The second batch starts only after both jobs of the first have settled.
        first_p3 = renderer.events.index(("start", "p3"))
        self.assertLess(renderer.events.index(("end", "p1")), first_p3)
        self.assertLess(renderer.events.index(("end", "p2")), first_p3)
        self.assertIn("Progress: 4/4 (100%)", self.out.getvalue())
        self.assertIn("Failed panels: p2", self.out.getvalue())

    def test_failing_middle_job_leaves_siblings_rendered(self) -> None:
        project = parse_project(project_data())
        jobs = enumerate_jobs(project, [1])
        generator = PanelFailingGenerator("p2")
        with tempfile.TemporaryDirectory() as tmp:
            renderer = PanelRenderer(project, tmp, "mock", generator, PromptBuilder())
            controller = GenerationController(renderer, parallel=True, concurrency=2, stream=self.out)
            with self.assertLogs("comicgen", level="WARNING"):
                report = controller.run(jobs)

            self.assertTrue(panel_output_path(tmp, "p1").exists())
            self.assertTrue(panel_output_path(tmp, "p3").exists())
            self.assertFalse(panel_output_path(tmp, "p2").exists())
        self.assertEqual([o.panel_id for o in report.failed], ["p2"])
        self.assertEqual(generator.calls.count("p2"), 3)

    def test_single_job_runs_sequentially_even_when_parallel(self) -> None:
        renderer = RecordingRenderer()
        controller = GenerationController(renderer, parallel=True, concurrency=4, stream=self.out)
        report = controller.run(self.jobs[:1])
        self.assertEqual(report.total, 1)
        self.assertIn("Sequential generation", self.out.getvalue())

    def test_empty_job_list(self) -> None:
        report = GenerationController(RecordingRenderer(), stream=self.out).run([])
        self.assertEqual(report.total, 0)
        self.assertFalse(report.has_failures)


if __name__ == "__main__":
    unittest.main()
