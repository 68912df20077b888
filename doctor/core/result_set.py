"""Per-build aggregate of diagnostic findings (write-once, read-many)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from pydantic import Field

from doctor.core.models import BaseModelFrozen, BuildMetadata, DiagnosticResult, Severity


def rank_key(result: DiagnosticResult) -> Tuple[int, int]:
    """Sort key: confidence desc, then severity (CRITICAL first)."""
    return (-int(result.confidence), result.severity.rank)


class DiagnosticResultSet(BaseModelFrozen):
    """
    Findings produced by one analysis pass, attached to one build.

    Order of `results` is the merge order of the pass (provider priority order). All
    queries are pure reads; nothing here re-runs analysis.
    """

    results: Tuple[DiagnosticResult, ...] = ()
    metadata: Optional[BuildMetadata] = None
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    providers_run: int = 0
    failed_providers: Tuple[str, ...] = ()

    def result_count(self) -> int:
        return len(self.results)

    def has_results(self) -> bool:
        return bool(self.results)

    def results_by_severity(self, severity: Severity) -> List[DiagnosticResult]:
        return [r for r in self.results if r.severity == severity]

    def count_by_severity(self, severity: Severity) -> int:
        return sum(1 for r in self.results if r.severity == severity)

    def highest_severity(self) -> Optional[Severity]:
        if not self.results:
            return None
        return min((r.severity for r in self.results), key=lambda s: s.rank)

    def severity_counts(self) -> Dict[Severity, int]:
        counts = {s: 0 for s in Severity}
        for r in self.results:
            counts[r.severity] += 1
        return counts

    def results_by_category(self, category: str) -> List[DiagnosticResult]:
        return [r for r in self.results if r.category == category]

    def results_by_provider(self, provider_id: str) -> List[DiagnosticResult]:
        return [r for r in self.results if r.provider_id == provider_id]

    def top_results(self, limit: int) -> List[DiagnosticResult]:
        """Highest-ranked findings; ties keep merge order."""
        if limit <= 0:
            return []
        return sorted(self.results, key=rank_key)[:limit]
