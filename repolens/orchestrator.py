"""Pipeline orchestrator coordinating the analysis stages."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence, Union

from .config_manager import AnalysisOptions
from .dependencies import analyze_dependencies
from .discovery import discover_files, load_sources
from .extractors import ExtractorRegistry
from .flow import analyze_flows
from .graph import SearchBudget
from .impact import analyze_change_impact
from .inventory import analyze_languages, index_files
from .models import AnalysisResult, FileRef, SourceFile
from .quality import analyze_code_quality
from .semantics import analyze_semantics
from .xref import analyze_cross_references

logger = logging.getLogger(__name__)

InputFile = Union[FileRef, SourceFile]


class AnalysisOrchestrator:
    """Runs the requested stages, plus their prerequisites, over one file set."""

    def __init__(self, options: Optional[AnalysisOptions] = None) -> None:
        self.options = options or AnalysisOptions()
        self.stages = self.options.resolved_stages()
        self.registry = ExtractorRegistry.default(self.options.parser_backend)

    def _budget(self, max_items: Optional[int] = None) -> SearchBudget:
        return SearchBudget(seconds=self.options.time_budget_seconds, max_items=max_items)

    @contextmanager
    def _stage(self, name: str) -> Iterator[None]:
        logger.info("Running stage: %s", name)
        started = time.perf_counter()
        try:
            yield
        finally:
            logger.info("Stage %s finished in %.2fs", name, time.perf_counter() - started)

    def run(self, files: Sequence[InputFile]) -> AnalysisResult:
        opts = self.options
        sources = load_sources(files, workers=opts.workers)
        result = AnalysisResult(
            generated_at=datetime.now(timezone.utc).isoformat(),
            files=[s.path for s in sources],
            unreadable_files=[s.path for s in sources if not s.readable],
        )

        if "languages" in self.stages:
            with self._stage("languages"):
                result.languages = analyze_languages(sources)

        if "indexing" in self.stages:
            with self._stage("indexing"):
                result.indexing = index_files(files)

        if "semantics" in self.stages:
            with self._stage("semantics"):
                result.semantics = analyze_semantics(sources, self.registry, workers=opts.workers)

        if "dependencies" in self.stages:
            with self._stage("dependencies"):
                result.dependencies = analyze_dependencies(
                    sources,
                    cycle_scope=opts.cycle_scope,
                    budget=self._budget(),
                    workers=opts.workers,
                )

        semantics = result.semantics
        if "cross_references" in self.stages and semantics is not None:
            with self._stage("cross_references"):
                result.cross_references = analyze_cross_references(
                    semantics.symbols, semantics.calls, semantics.inheritance,
                )

        if "flows" in self.stages and semantics is not None:
            with self._stage("flows"):
                result.flows = analyze_flows(
                    semantics.symbols,
                    semantics.calls,
                    max_entry_points=opts.max_entry_points,
                    max_depth=opts.max_path_depth,
                    budget=self._budget(opts.max_execution_paths),
                    max_visits=opts.max_path_visits,
                )

        if "impact" in self.stages and semantics is not None:
            with self._stage("impact"):
                result.impact = analyze_change_impact(
                    semantics.symbols,
                    result.dependencies.dependencies if result.dependencies else [],
                    result.flows.data_flows if result.flows else [],
                    result.cross_references.references if result.cross_references else [],
                    settings=opts.impact,
                    budget=self._budget(),
                )

        if "quality" in self.stages:
            with self._stage("quality"):
                result.quality = analyze_code_quality(sources, opts.quality)

        return result


def analyze(files: Sequence[InputFile], options: Optional[AnalysisOptions] = None) -> AnalysisResult:
    """Analyse an already discovered file list."""
    return AnalysisOrchestrator(options).run(files)


def analyze_repository(
    root: Union[str, Path],
    options: Optional[AnalysisOptions] = None,
    exclude: Optional[Iterable[str]] = None,
) -> AnalysisResult:
    """Discover files under *root* and analyse them.

    Raises :class:`~repolens.discovery.RepositoryRootMissing` when *root*
    is not a directory.
    """
    return analyze(discover_files(root, exclude=exclude), options)
