"""Four-level walk of the component catalog: Category, Section, Group, Component."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from core.extractors import HierarchyExtractor
from core.navigator import NavigationTimeouts, Navigator
from core.tree_builder import CatalogTreeBuilder, NodeState
from core.types import (
    PHASE_COMPLETE,
    PHASE_DISCOVERY,
    PHASE_SCRAPING,
    CatalogTree,
    NodePath,
    ProgressCallback,
    ProgressEvent,
    format_path,
    level_of,
)
from utils.error_handling import (
    ErrorContext,
    ErrorReporter,
    EvaluationError,
    HarvestError,
    NavigationError,
)
from utils.logger import log_harvest_event

RECOVERABLE_ERRORS = (NavigationError, EvaluationError)


@dataclass
class HarvestResult:
    tree: CatalogTree
    categories: int = 0
    groups: int = 0
    components: int = 0
    failures: int = 0
    failed_nodes: List[Tuple[NodePath, str]] = field(default_factory=list)
    error_report: Dict[str, Any] = field(default_factory=dict)


class TraversalOrchestrator:
    """Builds a CatalogTree by walking the catalog through one browser session.

    A failed Category is replaced by an error marker and its children are
    skipped; a failed Group gets its own marker and its siblings continue.
    Only a failure on the root page aborts the run.
    """

    def __init__(
        self,
        session,
        extractor: Optional[HierarchyExtractor] = None,
        timeouts: Optional[NavigationTimeouts] = None,
        max_concurrent_categories: int = 1,
        progress_callback: Optional[ProgressCallback] = None,
        error_reporter: Optional[ErrorReporter] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.session = session
        self.extractor = extractor or HierarchyExtractor()
        self.timeouts = timeouts or NavigationTimeouts()
        self.max_concurrent_categories = max(1, max_concurrent_categories)
        self.progress_callback = progress_callback
        self.error_reporter = error_reporter or ErrorReporter()
        self.logger = logger or logging.getLogger(__name__)

    async def harvest(self, root_url: str) -> HarvestResult:
        categories = await self._discover_categories(root_url)
        self._emit(PHASE_DISCOVERY, len(categories), len(categories), f"{len(categories)} categories")

        builder = CatalogTreeBuilder()
        builder.seed(categories)

        semaphore = asyncio.Semaphore(self.max_concurrent_categories)
        completed = 0

        async def run(name: str, url: str) -> None:
            nonlocal completed
            async with semaphore:
                await self._harvest_category(builder, name, url)
            completed += 1
            self._emit(PHASE_SCRAPING, completed, len(categories), name)

        await asyncio.gather(*(run(name, url) for name, url in categories.items()))

        tree = builder.build()
        result = HarvestResult(
            tree=tree,
            categories=len(categories),
            groups=sum(1 for path in builder.paths(NodeState.EXPANDED) if len(path) == 3),
            components=sum(1 for _ in builder.paths(NodeState.LEAF)),
            failures=self.error_reporter.total_errors,
            failed_nodes=self.error_reporter.failed_nodes(),
            error_report=self.error_reporter.generate_report(),
        )
        self._emit(PHASE_COMPLETE, len(categories), len(categories), "done")
        self.logger.info(
            "Harvest finished: %d categories, %d groups, %d components, %d failures",
            result.categories,
            result.groups,
            result.components,
            result.failures,
        )
        return result

    async def _discover_categories(self, root_url: str) -> Dict[str, str]:
        self.logger.info("Navigating to root page: %s", root_url)
        navigator = Navigator(await self.session.new_page(), self.timeouts, logger=self.logger)
        async with navigator:
            await navigator.navigate(root_url)
            categories = await self.extractor.categories(navigator)
        if not categories:
            raise EvaluationError(f"No categories found on {root_url}", {"url": root_url})
        return categories

    async def _harvest_category(self, builder: CatalogTreeBuilder, name: str, url: str) -> None:
        path: NodePath = (name,)
        self.logger.info("Processing %s", name)
        try:
            navigator = Navigator(await self.session.new_page(), self.timeouts, logger=self.logger)
        except RECOVERABLE_ERRORS as exc:
            self._record_failure(builder, path, exc, url)
            return

        async with navigator:
            try:
                await navigator.navigate(url)
                sections = await self.extractor.sections(navigator)
            except RECOVERABLE_ERRORS as exc:
                self._record_failure(builder, path, exc, url)
                return

            builder.expand(path, sections)
            for section, groups in sections.items():
                for group, group_url in groups.items():
                    await self._harvest_group(builder, navigator, path + (section, group), group_url)

    async def _harvest_group(
        self, builder: CatalogTreeBuilder, navigator: Navigator, path: NodePath, url: str
    ) -> None:
        try:
            await navigator.navigate(url)
            extraction = await self.extractor.components(navigator)
            await navigator.go_back()
            if not extraction.ok:
                failed = ", ".join(
                    f"{label}: {reason}" for label, reason in extraction.failures.items()
                )
                raise EvaluationError(
                    f"{len(extraction.failures)} component(s) failed to extract ({failed})",
                    {"url": url, "failures": extraction.failures},
                )
        except RECOVERABLE_ERRORS as exc:
            self._record_failure(builder, path, exc, url)
            return

        builder.expand(path, extraction.components)
        self.logger.info("Downloaded %d components from: %s", len(extraction.components), url)

    def _record_failure(
        self, builder: CatalogTreeBuilder, path: NodePath, exc: HarvestError, url: str
    ) -> None:
        level = level_of(path)
        builder.fail(path, exc)
        self.error_reporter.report_error(exc, ErrorContext(path=path, url=url, level=level))
        log_harvest_event(
            "node_failed",
            {"path": list(path), "level": level, "url": url, "error": str(exc)},
            level="WARNING",
            message=f"Failed to process {level} {format_path(path)}: {exc}",
            logger=self.logger,
        )

    def _emit(self, phase: str, current: int, total: int, message: str) -> None:
        if self.progress_callback is None:
            return
        self.progress_callback(ProgressEvent(phase=phase, current=current, total=total, message=message))
