"""Sequential and bounded-concurrency execution of panel render jobs."""

from __future__ import annotations

import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import IO, Iterable, List, Optional, Protocol

from ..types import GenerationReport, JobOutcome, JobState, RenderJob

logger = logging.getLogger(__name__)

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 8
DEFAULT_CONCURRENCY = 4


class JobRenderer(Protocol):
    def render(self, job: RenderJob) -> JobState:
        ...


def clamp_concurrency(value: Optional[int]) -> int:
    """Clamp a requested concurrency into ``[1, 8]``; ``None``/0 means the default."""
    if not value:
        value = DEFAULT_CONCURRENCY
    return min(max(MIN_CONCURRENCY, int(value)), MAX_CONCURRENCY)


class ProgressLine:
    """Running ``completed/total`` counter rewritten in place on one line."""

    def __init__(self, total: int, stream: Optional[IO[str]] = None) -> None:
        self.total = total
        self.completed = 0
        self._stream = stream
        self._lock = threading.Lock()

    def advance(self) -> int:
        with self._lock:
            self.completed += 1
            self._write()
            return self.completed

    def finish(self) -> None:
        with self._lock:
            self._write(final=True)

    def _write(self, final: bool = False) -> None:
        stream = self._stream or sys.stdout
        percent = round(self.completed / self.total * 100) if self.total else 100
        end = "\n" if final else ""
        stream.write(f"\r  Progress: {self.completed}/{self.total} ({percent}%){end}")
        stream.flush()


class GenerationController:
    """Runs jobs strictly in order, or in consecutive batches of ``concurrency``.

    A batch starts only after every job of the previous batch has settled.
    Job failures are logged and recorded in the report; they never abort
    sibling jobs or later batches, and never propagate past ``run``.
    """

    def __init__(
        self,
        renderer: JobRenderer,
        *,
        parallel: bool = False,
        concurrency: Optional[int] = DEFAULT_CONCURRENCY,
        stream: Optional[IO[str]] = None,
    ) -> None:
        self._renderer = renderer
        self.parallel = parallel
        self.concurrency = clamp_concurrency(concurrency)
        self._stream = stream

    def run(self, jobs: Iterable[RenderJob]) -> GenerationReport:
        job_list = list(jobs)
        if not job_list:
            self._print("No panels to generate.")
            return GenerationReport()

        if self.parallel and len(job_list) > 1:
            outcomes = self._run_parallel(job_list)
        else:
            outcomes = self._run_sequential(job_list)

        report = GenerationReport(outcomes=outcomes)
        self._print_summary(report)
        return report

    def _run_sequential(self, jobs: List[RenderJob]) -> List[JobOutcome]:
        self._print("Sequential generation\n")
        outcomes: List[JobOutcome] = []
        for index, job in enumerate(jobs, start=1):
            preview = job.panel.prompt[:50]
            self._print(f"  [{index}/{len(jobs)}] {job.panel.id}: {preview}...")
            outcomes.append(self._run_one(job))
        return outcomes

    def _run_parallel(self, jobs: List[RenderJob]) -> List[JobOutcome]:
        self._print(f"Parallel generation (concurrency: {self.concurrency})\n")
        progress = ProgressLine(total=len(jobs), stream=self._stream)
        outcomes: List[JobOutcome] = []

        def run_and_report(job: RenderJob) -> JobOutcome:
            outcome = self._run_one(job)
            progress.advance()
            return outcome

        for start in range(0, len(jobs), self.concurrency):
            batch = jobs[start : start + self.concurrency]
            with ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="panel") as pool:
                futures = [pool.submit(run_and_report, job) for job in batch]
            # Leaving the pool waits for the whole batch.
            outcomes.extend(future.result() for future in futures)

        progress.finish()
        return outcomes

    def _run_one(self, job: RenderJob) -> JobOutcome:
        try:
            state = self._renderer.render(job)
        except Exception as exc:  # noqa: BLE001 - failures are isolated per job
            logger.warning("Failed to generate %s: %s", job.panel.id, exc)
            return JobOutcome(job=job, state=JobState.FAILED, error=str(exc))
        return JobOutcome(job=job, state=state)

    def _print_summary(self, report: GenerationReport) -> None:
        generated = len(report.succeeded)
        skipped = len(report.skipped)
        failed = report.failed
        self._print(
            f"\n✓ Panel generation complete: {generated} generated, {skipped} skipped, {len(failed)} failed"
        )
        if failed:
            self._print(f"  Failed panels: {', '.join(outcome.panel_id for outcome in failed)}")

    def _print(self, message: str) -> None:
        stream = self._stream or sys.stdout
        print(message, file=stream)
