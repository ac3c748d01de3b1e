"""The page-rendering pipeline for Pagewright.

Each document flows through the pipeline exactly once:

    PARSED -> RESOLVED -> RENDERED -> EMITTED

with a terminal FAILED state reachable from any other state. Failures are
always LocatedErrors; they end that document only, and are collected in the
BuildReport alongside the pages that succeeded.

Documents are independent, so ``Pipeline.run`` fans them out over a bounded
thread pool. The template set, the reserved-name table and the Jinja2
environment are built before dispatch and only read afterwards.

Key classes:
- Pipeline: Resolves, renders and emits documents.
- PageState: The per-document state machine.
- PageOutcome: What happened to one document.
- BuildReport: Outcomes of a whole run.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import deque
from collections.abc import Iterable, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .content import document_id, load_document
from .errors import (
    DocumentReadError,
    FrontmatterError,
    LocatedError,
    OutputError,
    RenderExecutionError,
    RenderTimeout,
    ResolutionError,
)
from .frontmatter import Document, Frontmatter, parse_frontmatter
from .protocols import PageWriter
from .renderer import PageRenderer, RenderResult
from .reporter import located
from .resolver import ReservedNameSet, Resolution, TemplateResolver
from .templates import TemplateSet

if TYPE_CHECKING:
    from .config import ProjectConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
_POLL_INTERVAL = 0.1


def default_workers() -> int:
    """Worker count used when none is configured."""
    return min(32, (os.cpu_count() or 1) + 4)


class PageState(str, Enum):
    """States of one document in the pipeline."""

    PARSED = "parsed"
    RESOLVED = "resolved"
    RENDERED = "rendered"
    EMITTED = "emitted"
    FAILED = "failed"


_NEXT_STATE: dict[PageState | None, PageState] = {
    None: PageState.PARSED,
    PageState.PARSED: PageState.RESOLVED,
    PageState.RESOLVED: PageState.RENDERED,
    PageState.RENDERED: PageState.EMITTED,
}


@dataclass
class PageOutcome:
    """What happened to one document.

    Attributes:
        document: Document identifier.
        state: Current state; EMITTED or FAILED once processing ends.
        reached: Last non-terminal state reached before failing.
        resolution: How the template was chosen, once RESOLVED.
        result: The rendered page, once RENDERED.
        error: The failure, when FAILED.
        written_to: Where the writer placed the page, if it reported one.
        skipped: True for drafts left out of the build.
    """

    document: str
    state: PageState | None = None
    reached: PageState | None = None
    resolution: Resolution | None = None
    result: RenderResult | None = None
    error: LocatedError | None = None
    written_to: Path | None = None
    skipped: bool = False

    def advance(self, state: PageState) -> None:
        """Move to the next state; states are never skipped nor re-entered."""
        expected = _NEXT_STATE.get(self.state)
        if state is not expected:
            raise RuntimeError(
                f"{self.document}: invalid transition {self.state} -> {state}"
            )
        self.state = state
        self.reached = state

    def fail(self, error: LocatedError) -> None:
        if self.state in (PageState.EMITTED, PageState.FAILED):
            raise RuntimeError(f"{self.document}: cannot fail from {self.state}")
        self.error = error
        self.state = PageState.FAILED


@dataclass
class BuildReport:
    """Outcomes of a pipeline run, in source order.

    Attributes:
        outcomes: One PageOutcome per dispatched document.
        skipped: Documents left out: drafts, or never dispatched after cancellation.
        cancelled: Whether the run was cancelled.
    """

    outcomes: list[PageOutcome] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def results(self) -> list[RenderResult]:
        return [o.result for o in self.outcomes if o.state is PageState.EMITTED and o.result]

    @property
    def errors(self) -> list[LocatedError]:
        return [o.error for o in self.outcomes if o.error is not None]

    @property
    def ok(self) -> bool:
        return not self.errors and not self.cancelled


@dataclass
class _Job:
    index: int
    source: Path
    document: str
    started: float | None = None
    abandoned: bool = False


class Pipeline:
    """Resolves, renders and emits documents.

    Construction validates the reserved-name table against the template set,
    so configuration errors surface before any document is processed.

    Attributes:
        templates: Snapshot of available templates.
        resolver: Template resolver.
        renderer: Page renderer.
        writer: Receives rendered pages; None keeps results in memory only.
        content_dir: Root that document identifiers are relative to.
        workers: Maximum number of documents in flight.
        timeout: Per-document time limit in seconds.
        include_drafts: Whether frontmatter drafts are rendered.
    """

    def __init__(
        self,
        templates: TemplateSet,
        reserved: ReservedNameSet | None = None,
        *,
        content_dir: Path | None = None,
        site: Mapping[str, Any] | None = None,
        root_url: str = "",
        writer: PageWriter | None = None,
        workers: int | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        include_drafts: bool = False,
    ):
        self.templates = templates
        self.resolver = TemplateResolver(templates, reserved)
        self.resolver.reserved.validate(templates)
        self.renderer = PageRenderer(templates, site=site, root_url=root_url)
        self.writer = writer
        self.content_dir = content_dir or Path.cwd()
        self.workers = workers or default_workers()
        self.timeout = timeout
        self.include_drafts = include_drafts

    @classmethod
    def from_config(
        cls,
        config: ProjectConfig,
        writer: PageWriter | None = None,
        include_drafts: bool = False,
    ) -> Pipeline:
        """Build a pipeline from a ProjectConfig.

        Raises:
            ConfigurationError: If the template root is missing or the
                reserved-name table refers to missing templates.
        """
        templates = TemplateSet.scan(config.templates_dir)
        return cls(
            templates,
            config.reserved_names,
            content_dir=config.content_dir,
            site=config.site,
            root_url=config.root_url,
            writer=writer,
            workers=config.workers,
            timeout=config.timeout,
            include_drafts=include_drafts,
        )

    def parse(self, document: Document) -> Frontmatter:
        """Parse a document's frontmatter, located at the document."""
        with located(document.path, FrontmatterError, document.source):
            return parse_frontmatter(
                document.raw_frontmatter,
                document.path,
                positions=document.positions,
                source=document.source,
            )

    def resolve(self, document: Document, frontmatter: Frontmatter) -> Resolution:
        """Resolve the template for a document, located at the document."""
        with located(document.path, ResolutionError, document.source):
            return self.resolver.resolve(document, frontmatter)

    def render(self, document: Document) -> RenderResult:
        """Parse, resolve and render one document without emitting it.

        Raises:
            LocatedError: If any stage fails.
        """
        frontmatter = self.parse(document)
        resolution = self.resolve(document, frontmatter)
        with located(document.path, RenderExecutionError, document.source):
            return self.renderer.render(resolution.template, document, frontmatter)

    def process_document(self, document: Document, job: _Job | None = None) -> PageOutcome:
        """Drive one document through every state; never raises LocatedError."""
        outcome = PageOutcome(document.path)
        try:
            self._process(document, outcome, job)
        except LocatedError as exc:
            outcome.fail(exc)
            logger.debug("%s failed after %s: %s", document.path, outcome.reached, exc)
        return outcome

    def process_file(self, source: Path, job: _Job | None = None) -> PageOutcome:
        """Load a content file and process it."""
        doc_id = document_id(source, self.content_dir)
        try:
            with located(doc_id, DocumentReadError, source):
                document = load_document(source, self.content_dir)
        except LocatedError as exc:
            outcome = PageOutcome(doc_id)
            outcome.fail(exc)
            return outcome
        return self.process_document(document, job)

    def _process(self, document: Document, outcome: PageOutcome, job: _Job | None) -> None:
        frontmatter = self.parse(document)
        outcome.advance(PageState.PARSED)
        if frontmatter.draft and not self.include_drafts:
            outcome.skipped = True
            return

        outcome.resolution = self.resolve(document, frontmatter)
        outcome.advance(PageState.RESOLVED)

        with located(document.path, RenderExecutionError, document.source):
            outcome.result = self.renderer.render(
                outcome.resolution.template, document, frontmatter
            )
        outcome.advance(PageState.RENDERED)

        if job is not None and job.abandoned:
            return
        if self.writer is not None:
            with located(document.path, OutputError, document.source):
                outcome.written_to = self.writer.write(outcome.result)
        outcome.advance(PageState.EMITTED)

    def _run_job(self, job: _Job) -> PageOutcome:
        job.started = time.monotonic()
        return self.process_file(job.source, job)

    def run(
        self, sources: Iterable[Path], *, cancel: threading.Event | None = None
    ) -> BuildReport:
        """Process content files on a bounded worker pool.

        At most ``workers`` documents are in flight. A document running longer
        than ``timeout`` is reported as RenderTimeout and its output discarded;
        its thread cannot be stopped, so the pool it occupies is retired and
        the remaining documents go to a fresh one. Documents whose URL was
        already claimed by an earlier source fail with OutputError without
        being rendered. Once ``cancel`` is set no further documents are
        dispatched; documents already running finish or fail on their own.

        Args:
            sources: Content files to process.
            cancel: Optional event that stops dispatching when set.

        Returns:
            BuildReport with one outcome per dispatched document.
        """
        cancel = cancel or threading.Event()
        pending: deque[_Job] = deque()
        running: dict[Future, _Job] = {}
        outcomes: dict[int, PageOutcome] = {}
        report = BuildReport()

        claimed: dict[str, str] = {}
        for index, source in enumerate(sources):
            job = _Job(index, source, document_id(source, self.content_dir))
            url = self.renderer.url_deriver.derive(job.document)
            if url in claimed:
                outcomes[index] = self._url_taken(job, url, claimed[url])
            else:
                claimed[url] = job.document
                pending.append(job)

        executor = self._new_executor()
        retired: list[ThreadPoolExecutor] = []
        try:
            while pending or running:
                while pending and not cancel.is_set() and len(running) < self.workers:
                    job = pending.popleft()
                    running[executor.submit(self._run_job, job)] = job

                if cancel.is_set() and pending:
                    report.cancelled = True
                    report.skipped.extend(job.document for job in pending)
                    logger.info("Build cancelled; %d documents not dispatched", len(pending))
                    pending.clear()
                if not running:
                    break

                done, _ = wait(
                    running, timeout=self._poll_interval(running), return_when=FIRST_COMPLETED
                )
                for future in done:
                    job = running.pop(future)
                    outcomes[job.index] = future.result()

                now = time.monotonic()
                stalled = False
                for future, job in list(running.items()):
                    if job.started is not None and now - job.started > self.timeout:
                        running.pop(future)
                        job.abandoned = True
                        outcomes[job.index] = self._timed_out(job)
                        stalled = True
                if stalled:
                    executor.shutdown(wait=False)
                    retired.append(executor)
                    executor = self._new_executor()
        finally:
            for pool in (*retired, executor):
                pool.shutdown(wait=False, cancel_futures=True)

        if cancel.is_set():
            report.cancelled = True
        for index in sorted(outcomes):
            outcome = outcomes[index]
            if outcome.skipped:
                report.skipped.append(outcome.document)
            else:
                report.outcomes.append(outcome)
        logger.info(
            "Rendered %d documents, %d failed, %d skipped",
            len(report.results),
            len(report.errors),
            len(report.skipped),
        )
        return report

    def _poll_interval(self, running: Mapping[Future, _Job]) -> float:
        now = time.monotonic()
        remaining = [
            job.started + self.timeout - now
            for job in running.values()
            if job.started is not None
        ]
        if not remaining:
            return _POLL_INTERVAL
        return max(0.0, min(_POLL_INTERVAL, min(remaining)))

    def _timed_out(self, job: _Job) -> PageOutcome:
        logger.warning("%s exceeded the %ss render timeout", job.document, self.timeout)
        outcome = PageOutcome(job.document)
        outcome.fail(
            RenderTimeout(
                job.document,
                f"rendering did not finish within {self.timeout:g}s",
                source=job.source,
            )
        )
        return outcome

    def _url_taken(self, job: _Job, url: str, owner: str) -> PageOutcome:
        outcome = PageOutcome(job.document)
        outcome.fail(
            OutputError(
                job.document,
                f"URL {url} is already produced by {owner}",
                source=job.source,
            )
        )
        return outcome

    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="pagewright")
