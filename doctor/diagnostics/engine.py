from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from doctor.core.context import BuildContext
from doctor.core.models import DiagnosticResult
from doctor.core.result_set import rank_key
from doctor.diagnostics.registry import DiagnosticRegistry, provider_id_of

logger = logging.getLogger(__name__)


class ProviderTimeoutError(TimeoutError):
    pass


@dataclass(frozen=True)
class ProviderRun:
    provider_id: str
    duration_ms: int
    result_count: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class AnalysisPass:
    """Outcome of one orchestration pass over one build."""

    results: List[DiagnosticResult] = field(default_factory=list)
    runs: List[ProviderRun] = field(default_factory=list)

    @property
    def providers_run(self) -> int:
        return len(self.runs)

    @property
    def failed_providers(self) -> List[str]:
        return [r.provider_id for r in self.runs if not r.ok]

    @property
    def degraded(self) -> bool:
        return any(not r.ok for r in self.runs)

    @property
    def is_empty(self) -> bool:
        return not self.results


def _invoke(provider: Any, context: BuildContext, timeout_seconds: Optional[float]) -> Any:
    if not timeout_seconds or timeout_seconds <= 0:
        return provider.analyze(context)

    outcome: Dict[str, Any] = {}

    def _target() -> None:
        try:
            outcome["value"] = provider.analyze(context)
        except BaseException as e:  # re-raised on the caller's thread
            outcome["error"] = e

    # Daemon: a hung provider is abandoned and never holds the interpreter open at exit.
    worker = threading.Thread(target=_target, name=f"doctor-{provider_id_of(provider)}", daemon=True)
    worker.start()
    worker.join(timeout_seconds)
    if worker.is_alive():
        raise ProviderTimeoutError(f"timed out after {timeout_seconds:g}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("value")


def _collect(pid: str, raw: Any) -> List[DiagnosticResult]:
    if raw is None:
        return []
    out: List[DiagnosticResult] = []
    for item in list(raw):
        if isinstance(item, DiagnosticResult):
            out.append(item)
        else:
            logger.warning("Provider '%s' returned a non-DiagnosticResult item (%s); dropping it", pid, type(item).__name__)
    return out


def cap_results(results: List[DiagnosticResult], max_results: Optional[int]) -> List[DiagnosticResult]:
    """
    Keep at most `max_results` findings: the top N by confidence, then severity.

    Survivors keep their merge order.
    """
    if max_results is None or len(results) <= max_results:
        return list(results)
    if max_results <= 0:
        return []
    ranked = sorted(range(len(results)), key=lambda i: rank_key(results[i]))
    keep = sorted(ranked[:max_results])
    return [results[i] for i in keep]


def run_analysis(
    registry: DiagnosticRegistry,
    context: BuildContext,
    *,
    timeout_seconds: Optional[float] = None,
    max_results: Optional[int] = None,
    detailed_logging: bool = False,
) -> AnalysisPass:
    """
    Run every enabled provider (priority order) over `context` and merge their findings.

    Guarantees:
    - a provider that raises or times out contributes nothing and never stops the pass
    - merged order follows provider execution order
    - never raises for provider faults
    """
    providers = registry.get_enabled_providers(context)
    md = context.metadata
    logger.info("Running analysis with %d providers for build: %s", len(providers), md.display_name)

    merged: List[DiagnosticResult] = []
    runs: List[ProviderRun] = []
    quiet_level = logging.INFO if detailed_logging else logging.DEBUG

    for p in providers:
        pid = provider_id_of(p)
        start = time.monotonic()
        try:
            results = _collect(pid, _invoke(p, context, timeout_seconds))
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.error("Error running provider '%s': %s", pid, e, exc_info=detailed_logging)
            runs.append(ProviderRun(provider_id=pid, duration_ms=duration_ms, error=str(e) or type(e).__name__))
            continue

        duration_ms = int((time.monotonic() - start) * 1000)
        runs.append(ProviderRun(provider_id=pid, duration_ms=duration_ms, result_count=len(results)))
        if results:
            merged.extend(results)
            logger.info("Provider '%s' found %d issues in %dms", pid, len(results), duration_ms)
        else:
            logger.log(quiet_level, "Provider '%s' found no issues in %dms", pid, duration_ms)

    capped = cap_results(merged, max_results)
    if len(capped) < len(merged):
        logger.info("Truncated %d results to the configured maximum of %d", len(merged), len(capped))

    out = AnalysisPass(results=capped, runs=runs)
    if out.degraded:
        logger.warning(
            "Analysis degraded for %s: %d of %d providers failed (%s)",
            md.display_name,
            len(out.failed_providers),
            out.providers_run,
            ", ".join(out.failed_providers),
        )
    logger.info("Analysis complete: found %d total issues", len(out.results))
    return out
