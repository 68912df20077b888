from __future__ import annotations

import pytest
from pydantic import ValidationError

from doctor.core.models import ActionStep, BuildMetadata, BuildOutcome, DiagnosticResult, Severity, Solution


def _result(**kwargs) -> DiagnosticResult:
    defaults = {
        "id": "r1",
        "category": "build",
        "severity": Severity.HIGH,
        "summary": "Compilation failed",
        "provider_id": "p",
    }
    defaults.update(kwargs)
    return DiagnosticResult(**defaults)


@pytest.mark.parametrize(
    "raw,expected",
    [(-20, 0), (0, 0), (55, 55), (100, 100), (150, 100), (99.9, 99), ("120", 100)],
)
def test_confidence_is_clamped_not_rejected(raw, expected) -> None:
    assert _result(confidence=raw).confidence == expected


def test_confidence_defaults_to_100() -> None:
    assert _result().confidence == 100


def test_result_is_immutable() -> None:
    r = _result()
    with pytest.raises(ValidationError):
        r.summary = "changed"  # type: ignore[misc]


def test_required_fields_reject_none() -> None:
    with pytest.raises(ValidationError):
        _result(provider_id=None)
    with pytest.raises(ValidationError):
        ActionStep(description=None)  # type: ignore[arg-type]


def test_solutions_keep_author_order() -> None:
    sols = [Solution(id=f"s{i}", title=f"Fix {i}") for i in (3, 1, 2)]
    r = _result(solutions=sols)
    assert [s.id for s in r.solutions] == ["s3", "s1", "s2"]
    assert isinstance(r.solutions, tuple)


def test_metadata_is_copied_on_construction() -> None:
    meta = {"line": 12}
    r = _result(metadata=meta)
    meta["line"] = 99
    assert r.metadata == {"line": 12}


def test_attached_maps_are_read_only() -> None:
    from doctor.core.result_set import DiagnosticResultSet

    sol = Solution(id="s", title="Increase heap", examples={"k": "-Xmx2g"})
    rs = DiagnosticResultSet(results=(_result(metadata={"line": 1}, solutions=[sol]),))

    with pytest.raises(TypeError):
        rs.results[0].metadata["line"] = 999  # type: ignore[index]
    with pytest.raises(TypeError):
        rs.results[0].solutions[0].examples["k"] = "changed"  # type: ignore[index]
    with pytest.raises(TypeError):
        _result().metadata["new"] = 1  # type: ignore[index]

    assert rs.results[0].metadata == {"line": 1}
    dumped = rs.model_dump(mode="json")
    assert dumped["results"][0]["metadata"] == {"line": 1}
    assert dumped["results"][0]["solutions"][0]["examples"] == {"k": "-Xmx2g"}
    assert DiagnosticResultSet.model_validate(dumped).results[0].metadata == {"line": 1}


def test_action_step_has_command() -> None:
    assert ActionStep(description="Clean workspace", command="git clean -fdx").has_command
    assert not ActionStep(description="Check quota").has_command
    assert not ActionStep(description="Check quota", command="   ").has_command
    assert ActionStep(description="x", optional=True).optional


def test_solution_defaults() -> None:
    s = Solution(id="s", title="Increase heap")
    assert s.priority == 100
    assert s.steps == ()
    assert s.examples == {}
    assert s.description is None


def test_severity_order_critical_first() -> None:
    assert [s.rank for s in Severity] == [0, 1, 2, 3]
    assert Severity.CRITICAL.rank < Severity.LOW.rank
    assert Severity.parse(" medium ") == Severity.MEDIUM


def test_build_outcome_ordering() -> None:
    assert BuildOutcome.SUCCESS.is_better_than(BuildOutcome.UNSTABLE)
    assert not BuildOutcome.UNSTABLE.is_better_than(BuildOutcome.UNSTABLE)
    assert BuildOutcome.ABORTED.is_worse_than(BuildOutcome.FAILURE)
    assert BuildOutcome.parse("failure") == BuildOutcome.FAILURE
    assert BuildOutcome.parse("UNKNOWN") is None
    assert BuildOutcome.parse(None) is None


def test_build_metadata_display_and_defaults() -> None:
    md = BuildMetadata(job_name="folder/app", build_number=7, start_time=1_700_000_000_000)
    assert md.display_name == "folder/app#7"
    assert md.node_name == "unknown"
    assert md.scm_revision is None and md.branch is None
    assert md.started_at.year == 2023
