from __future__ import annotations

from doctor.core.models import BuildMetadata, DiagnosticResult, Severity
from doctor.core.result_set import DiagnosticResultSet
from doctor.dump import render_console_summary, result_set_to_json_dict


def _rs() -> DiagnosticResultSet:
    def r(rid: str, sev: Severity) -> DiagnosticResult:
        return DiagnosticResult(id=rid, category="c", severity=sev, summary=f"{rid} summary", provider_id="p", confidence=70)

    return DiagnosticResultSet(
        results=(r("a", Severity.LOW), r("b", Severity.CRITICAL), r("c", Severity.MEDIUM)),
        metadata=BuildMetadata(job_name="app", build_number=4),
        providers_run=3,
        failed_providers=("flaky",),
    )


def test_json_dict_has_query_surface_fields() -> None:
    d = result_set_to_json_dict(_rs())
    assert d["result_count"] == 3
    assert d["highest_severity"] == "CRITICAL"
    assert d["counts"] == {"CRITICAL": 1, "HIGH": 0, "MEDIUM": 1, "LOW": 1}
    assert [r["id"] for r in d["results"]] == ["a", "b", "c"]
    assert d["results"][1]["severity"] == "CRITICAL"
    assert d["build"]["job_name"] == "app"
    assert d["failed_providers"] == ["flaky"]


def test_json_dict_severity_filter() -> None:
    d = result_set_to_json_dict(_rs(), severity=Severity.MEDIUM)
    assert [r["id"] for r in d["results"]] == ["c"]
    # Counts describe the whole set, not the filtered view.
    assert d["result_count"] == 3


def test_json_dict_for_empty_set_keeps_core_keys() -> None:
    d = result_set_to_json_dict(DiagnosticResultSet())
    assert d["results"] == []
    assert d["result_count"] == 0
    assert "highest_severity" not in d


def test_console_summary_lines() -> None:
    lines = render_console_summary(_rs(), build_url="https://ci/job/app/4")
    assert lines[1] == "=== Pipeline Doctor Analysis ==="
    assert lines[2] == "Found 3 diagnostic result(s) (CRITICAL: 1, MEDIUM: 1, LOW: 1):"
    assert "  - CRITICAL: b summary (confidence: 70%)" in lines
    assert "Providers with errors: flaky" in lines
    assert "View detailed analysis at: https://ci/job/app/4/pipeline-doctor/" in lines
    assert lines[-1].startswith("====")
