"""Panel generation node: enumerates selected jobs and runs the controller."""

from __future__ import annotations

from typing import Optional

from ..core.controller import GenerationController
from ..core.runner import PanelRenderer
from ..core.selection import enumerate_jobs
from ..types import RunState
from ..utils.files import ensure_dir
from .base import BaseNode


class GenPanels(BaseNode):
    """Renders every selected panel, sequentially or in bounded batches."""

    def __init__(
        self,
        run_id: str,
        logger,
        renderer: PanelRenderer,
        *,
        parallel: bool = False,
        concurrency: Optional[int] = None,
    ) -> None:
        super().__init__(name="GenPanels", run_id=run_id, logger=logger)
        self._renderer = renderer
        self._parallel = parallel
        self._concurrency = concurrency

    def run(self, state: RunState) -> RunState:
        """Fill ``state.jobs`` and ``state.report``."""
        ensure_dir(state.output_root / "panels")
        state.jobs = enumerate_jobs(state.project, state.page_numbers, state.panel_ids)
        print(f"\nGenerating {len(state.jobs)} panel(s)...")
        controller = GenerationController(
            self._renderer,
            parallel=self._parallel,
            concurrency=self._concurrency,
        )
        state.report = controller.run(state.jobs)
        self.log_response(
            {
                "total": state.report.total,
                "succeeded": [o.panel_id for o in state.report.succeeded],
                "skipped": [o.panel_id for o in state.report.skipped],
                "failed": {o.panel_id: o.error for o in state.report.failed},
            }
        )
        return state
