#!/usr/bin/env python3
"""
PDF Export Orchestrator

Starts the static server, launches one browser, runs every target through
Prep -> Normalize -> Emit in its own tab, and always tears both down.

Targets are best-effort: a failing target is logged and reported, the rest
keep running, and PDFs already written are kept. Only a server or browser
that cannot start aborts the run.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.async_api import Page

from .browser import BrowserSession
from .emission import PDFEmitter
from .exceptions import RunError, TargetError
from .normalization import Normalizer
from .preparation import PagePreparer
from .progress_tracker import Phase, ProgressTracker
from .server import StaticFileServer
from .targets import JobState, Target, load_targets, validate_targets
from .utils import ensure_output_dir

logger = logging.getLogger(__name__)


class RunState(Enum):
    INIT = "init"
    SERVING = "serving"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ExportResult:
    """Outcome of one export job."""
    target: Target
    success: bool = False
    state: JobState = JobState.CREATED
    pages: int = 0
    degraded: List[str] = field(default_factory=list)
    error: Optional[str] = None
    elapsed: float = 0.0


@dataclass
class ExportSummary:
    results: List[ExportResult]

    @property
    def succeeded(self) -> List[ExportResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[ExportResult]:
        return [r for r in self.results if not r.success]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def exit_code(self, strict: bool = True) -> int:
        if strict and self.failed:
            return 1
        return 0


class ExportJob:
    """Pipeline for one target bound to one exclusive tab."""

    def __init__(self, target: Target, base_url: str, preparer: PagePreparer,
                 normalizer: Normalizer, emitter: PDFEmitter):
        self.target = target
        self.url = target.url(base_url)
        self.preparer = preparer
        self.normalizer = normalizer
        self.emitter = emitter
        self.state = JobState.CREATED

    def _advance(self, state: JobState):
        logger.debug(f"[{self.target.name}] {self.state.value} -> {state.value}")
        self.state = state

    def discard_stale_output(self):
        """A failed target must not leave an earlier run's PDF looking current."""
        output = self.target.output
        if not output.exists():
            return
        try:
            output.unlink()
            logger.warning(f"[{self.target.name}] Removed stale PDF from an earlier run: {output}")
        except OSError as e:
            logger.warning(f"[{self.target.name}] Stale PDF left in place at {output}: {e}")

    async def run(self, page: Page) -> ExportResult:
        result = ExportResult(target=self.target)
        started = time.monotonic()
        logger.info(f"[{self.target.name}] Exporting {self.url} -> {self.target.output}")

        try:
            report = await self.preparer.prepare(page, self.target, self.url, on_stage=self._advance)
            result.degraded = list(report.degraded)

            await self.normalizer.apply(page)
            self._advance(JobState.NORMALIZED)

            info = await self.emitter.emit(page, self.target)
            self._advance(JobState.PAGINATED)

            result.success = True
            result.pages = info.pages
        except TargetError as e:
            self._advance(JobState.FAILED)
            result.error = str(e)
            logger.error(f"Export failed: {e}")
            self.discard_stale_output()
        except Exception as e:
            self._advance(JobState.FAILED)
            result.error = f"{type(e).__name__}: {e}"
            logger.exception(f"[{self.target.name}] Unexpected error during export")
            self.discard_stale_output()
        finally:
            result.state = self.state
            result.elapsed = time.monotonic() - started

        return result


class PDFExporter:
    """
    Runs a batch of export targets against one server and one browser.

    ``export.parallel`` is the single concurrency toggle: every target gets
    its tab at once (optionally capped by ``export.max_concurrency``), or
    targets run one after another. Both paths share the same code.
    """

    def __init__(self, config: Dict[str, Any], targets: Optional[List[Target]] = None,
                 progress: Optional[ProgressTracker] = None):
        self.config = config
        self.export_config = config.get('export', {})
        self.targets = validate_targets(targets) if targets is not None else load_targets(config)
        self.progress = progress or ProgressTracker(enabled=False)
        self.state = RunState.INIT

        server_config = config.get('server', {})
        self.server = StaticFileServer(
            root=server_config.get('root', '.'),
            host=server_config.get('host', '127.0.0.1'),
            port=int(server_config.get('port', 8080)),
        )
        self.browser = BrowserSession(config)
        self.preparer = PagePreparer(config)
        self.normalizer = Normalizer(config)
        self.emitter = PDFEmitter(config)

    @property
    def concurrency(self) -> int:
        if not self.export_config.get('parallel', True):
            return 1
        limit = self.export_config.get('max_concurrency')
        total = max(len(self.targets), 1)
        return min(int(limit), total) if limit else total

    def run(self) -> ExportSummary:
        return asyncio.run(self.run_async())

    async def run_async(self) -> ExportSummary:
        self.state = RunState.INIT
        try:
            self._prepare_output_dirs()

            self.progress.start_phase(Phase.SERVING, str(self.server.root))
            self.server.start()
            self.state = RunState.SERVING

            self.progress.start_phase(Phase.BROWSER)
            await self.browser.start()

            self.state = RunState.PROCESSING
            results = await self._process_all()
            self.state = RunState.DONE
        except RunError as e:
            self.state = RunState.FAILED
            logger.error(f"Export run aborted: {e}")
            raise
        finally:
            await self.browser.stop()
            self.server.stop()
            self.progress.cleanup()

        summary = ExportSummary(results)
        for failed in summary.failed:
            logger.error(f"[{failed.target.name}] no PDF produced: {failed.error}")
        logger.info(f"Export complete: {len(summary.succeeded)}/{len(results)} PDF(s) written")
        return summary

    def _prepare_output_dirs(self):
        directories = {Path(self.export_config.get('output_dir', 'dist'))}
        directories.update(t.output.parent for t in self.targets)
        for directory in sorted(directories):
            try:
                ensure_output_dir(str(directory))
            except OSError as e:
                raise RunError(f"Could not create output directory {directory}: {e}") from e

    async def _process_all(self) -> List[ExportResult]:
        semaphore = asyncio.Semaphore(self.concurrency)
        mode = "parallel" if self.concurrency > 1 else "sequential"
        logger.info(f"Exporting {len(self.targets)} target(s), {mode} (concurrency {self.concurrency})")
        self.progress.start_targets(len(self.targets))

        async def process(target: Target) -> ExportResult:
            async with semaphore:
                result = await self._process_target(target)
            self.progress.target_finished(result)
            return result

        return list(await asyncio.gather(*(process(t) for t in self.targets)))

    async def _process_target(self, target: Target) -> ExportResult:
        job = ExportJob(target, self.server.base_url, self.preparer, self.normalizer, self.emitter)
        page = None
        try:
            page = await self.browser.new_page()
            return await job.run(page)
        except Exception as e:
            logger.error(f"[{target.name}] Could not open a tab: {e}")
            job.discard_stale_output()
            return ExportResult(target=target, state=JobState.FAILED, error=str(e))
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.debug(f"[{target.name}] Error closing tab: {e}")
