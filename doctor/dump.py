"""Rendering helpers (CLI/console-friendly, testable).

We keep printing out of core modules; these return plain dicts and lines.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from doctor.core.models import Severity
from doctor.core.result_set import DiagnosticResultSet

RESULTS_URL_SUFFIX = "pipeline-doctor/"


def _clean(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v not in (None, "", [], {})}


def severity_counts_dict(result_set: DiagnosticResultSet) -> Dict[str, int]:
    return {s.value: n for s, n in result_set.severity_counts().items()}


def result_set_to_json_dict(result_set: DiagnosticResultSet, *, severity: Optional[Severity] = None) -> Dict[str, Any]:
    highest = result_set.highest_severity()
    results = result_set.results_by_severity(severity) if severity is not None else list(result_set.results)
    out = _clean(
        {
            "build": result_set.metadata.model_dump(mode="json") if result_set.metadata else None,
            "analyzed_at": result_set.analyzed_at.isoformat(),
            "failed_providers": list(result_set.failed_providers),
            "highest_severity": highest.value if highest else None,
        }
    )
    out.update(
        {
            "providers_run": result_set.providers_run,
            "result_count": result_set.result_count(),
            "counts": severity_counts_dict(result_set),
            "results": [r.model_dump(mode="json") for r in results],
        }
    )
    return out


def render_console_summary(result_set: DiagnosticResultSet, build_url: Optional[str] = None) -> List[str]:
    """Lines appended to the build's console log after a pass with findings."""
    counts = ", ".join(f"{s.value}: {n}" for s, n in result_set.severity_counts().items() if n)
    lines = [
        "",
        "=== Pipeline Doctor Analysis ===",
        f"Found {result_set.result_count()} diagnostic result(s) ({counts}):",
    ]
    for r in result_set.results:
        lines.append(f"  - {r.severity.value}: {r.summary} (confidence: {r.confidence}%)")
    if result_set.failed_providers:
        lines.append(f"Providers with errors: {', '.join(result_set.failed_providers)}")
    if build_url:
        lines.append(f"View detailed analysis at: {build_url.rstrip('/')}/{RESULTS_URL_SUFFIX}")
    lines.append("===============================")
    return lines
