"""
Build lifecycle trigger.

Decides whether a finished build gets analyzed, runs one pass, and attaches the result
set to the build. Per-build states:

    NOT_ANALYZED -> ANALYZING -> ATTACHED | CLEAN | FAILED
    NOT_ANALYZED -> SKIPPED

Every state after ANALYZING is terminal: a build is analyzed at most once.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, TextIO, Tuple

from doctor.config import DoctorConfig
from doctor.core.context import BuildContext
from doctor.core.models import BuildOutcome
from doctor.core.result_set import DiagnosticResultSet
from doctor.diagnostics.engine import run_analysis
from doctor.diagnostics.registry import DiagnosticRegistry
from doctor.dump import render_console_summary
from doctor.storage.result_store import ResultStore

logger = logging.getLogger(__name__)

# Terminal states older than this many builds are forgotten; attached builds are still
# recognized through the result store.
MAX_TRACKED_BUILDS = 10_000


class AnalysisState(str, Enum):
    NOT_ANALYZED = "not_analyzed"
    ANALYZING = "analyzing"
    ATTACHED = "attached"
    CLEAN = "clean"  # analysis ran, no issues found
    SKIPPED = "skipped"
    FAILED = "failed"  # no context / pass error; nothing attached


@dataclass(frozen=True)
class CompletedBuild:
    """What the host reports when a build finishes."""

    job_name: str
    build_number: int
    outcome: Optional[BuildOutcome]
    build_url: Optional[str] = None
    # Per-job opt-in/opt-out; None defers to `enabled_by_default`.
    diagnostics_enabled: Optional[bool] = None
    # Opaque host object handed to the context factory.
    handle: Any = None

    @property
    def display_name(self) -> str:
        return f"{self.job_name}#{self.build_number}"


ContextFactory = Callable[[CompletedBuild], BuildContext]


class BuildAnalysisTrigger:
    def __init__(
        self,
        *,
        registry: DiagnosticRegistry,
        config: DoctorConfig,
        store: ResultStore,
        context_factory: ContextFactory,
        max_tracked_builds: int = MAX_TRACKED_BUILDS,
    ) -> None:
        self.registry = registry
        self.config = config
        self.store = store
        self.context_factory = context_factory
        self._lock = threading.Lock()
        self.max_tracked_builds = max(1, int(max_tracked_builds))
        self._states: "OrderedDict[Tuple[str, int], AnalysisState]" = OrderedDict()

    def _lookup(self, key: Tuple[str, int]) -> AnalysisState:
        state = self._states.get(key)
        if state is not None:
            return state
        if self.store.get(*key) is not None:
            return AnalysisState.ATTACHED
        return AnalysisState.NOT_ANALYZED

    def _remember(self, key: Tuple[str, int], state: AnalysisState) -> None:
        # Caller holds the lock.
        self._states[key] = state
        self._states.move_to_end(key)
        if len(self._states) <= self.max_tracked_builds:
            return
        for old in list(self._states):
            if len(self._states) <= self.max_tracked_builds:
                break
            if self._states[old] != AnalysisState.ANALYZING:
                del self._states[old]

    def state_of(self, job_name: str, build_number: int) -> AnalysisState:
        with self._lock:
            return self._lookup((job_name, int(build_number)))

    def skip_reason(self, build: CompletedBuild) -> Optional[str]:
        """Return why `build` should not be analyzed, or None if it should."""
        cfg = self.config
        if not cfg.auto_analyze_builds:
            return "automatic analysis disabled"
        enabled = cfg.enabled_by_default if build.diagnostics_enabled is None else build.diagnostics_enabled
        if not enabled:
            return "diagnostics disabled for job"
        if cfg.is_job_excluded(build.job_name):
            return "job matches an excluded pattern"
        if build.outcome is None:
            return "build has no result"
        if build.outcome.is_better_than(cfg.analysis_threshold):
            return f"build result {build.outcome.value} is better than {cfg.analysis_threshold.value}"
        return None

    def _set(self, key: Tuple[str, int], state: AnalysisState) -> AnalysisState:
        with self._lock:
            self._remember(key, state)
        return state

    def on_completed(self, build: CompletedBuild, console: Optional[TextIO] = None) -> AnalysisState:
        key = (build.job_name, int(build.build_number))
        with self._lock:
            current = self._lookup(key)
            if current != AnalysisState.NOT_ANALYZED:
                logger.debug("Build %s already handled (%s)", build.display_name, current.value)
                return current
            reason = self.skip_reason(build)
            self._remember(key, AnalysisState.SKIPPED if reason else AnalysisState.ANALYZING)

        if reason:
            logger.debug("Skipping analysis for %s: %s", build.display_name, reason)
            return AnalysisState.SKIPPED

        logger.info(
            "Starting diagnostic analysis for build: %s (result: %s)",
            build.display_name,
            build.outcome.value if build.outcome else "UNKNOWN",
        )

        try:
            context = self.context_factory(build)
        except Exception as e:
            logger.error("Failed to create build context for %s: %s", build.display_name, e)
            return self._set(key, AnalysisState.FAILED)

        try:
            timeout = self.config.analysis_timeout_seconds or None
            analysis = run_analysis(
                self.registry,
                context,
                timeout_seconds=timeout,
                max_results=self.config.max_results_per_build,
                detailed_logging=self.config.enable_detailed_logging,
            )
        except Exception as e:
            logger.exception("Diagnostic analysis failed for %s: %s", build.display_name, e)
            return self._set(key, AnalysisState.FAILED)

        if analysis.is_empty:
            logger.info("No diagnostic issues found for build: %s", build.display_name)
            return self._set(key, AnalysisState.CLEAN)

        result_set = DiagnosticResultSet(
            results=tuple(analysis.results),
            metadata=context.metadata,
            providers_run=analysis.providers_run,
            failed_providers=tuple(analysis.failed_providers),
        )
        try:
            self.store.attach(result_set, build.job_name, build.build_number)
        except Exception as e:
            logger.error("Failed to attach diagnostic results to %s: %s", build.display_name, e)
            return self._set(key, AnalysisState.FAILED)

        if console is not None:
            build_url = build.build_url or context.metadata.build_url
            for line in render_console_summary(result_set, build_url=build_url):
                print(line, file=console)

        return self._set(key, AnalysisState.ATTACHED)
