from __future__ import annotations

import pytest

from doctor.config import ConfigError, DoctorConfig, load_doctor_config, split_patterns
from doctor.core.models import BuildOutcome


def test_defaults_without_env() -> None:
    cfg = load_doctor_config()
    assert cfg == DoctorConfig()
    assert cfg.enabled_by_default is True
    assert cfg.auto_analyze_builds is True
    assert cfg.max_results_per_build == 50
    assert cfg.analysis_timeout_seconds == 300
    assert cfg.analysis_threshold == BuildOutcome.UNSTABLE
    assert cfg.storage_dir is None


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("DOCTOR_AUTO_ANALYZE_BUILDS", "false")
    monkeypatch.setenv("DOCTOR_MAX_RESULTS_PER_BUILD", "7")
    monkeypatch.setenv("DOCTOR_ANALYSIS_TIMEOUT_SECONDS", "0")
    monkeypatch.setenv("DOCTOR_ANALYSIS_THRESHOLD", "failure")
    monkeypatch.setenv("DOCTOR_EXCLUDED_JOB_PATTERNS", "sandbox/.*,\n tmp-.* ,")
    monkeypatch.setenv("DOCTOR_PROVIDERS", "pkg.mod:A, pkg.mod.B")

    cfg = load_doctor_config()
    assert cfg.auto_analyze_builds is False
    assert cfg.max_results_per_build == 7
    assert cfg.analysis_timeout_seconds == 0
    assert cfg.analysis_threshold == BuildOutcome.FAILURE
    assert cfg.excluded_job_patterns == ("sandbox/.*", "tmp-.*")
    assert cfg.providers == ("pkg.mod:A", "pkg.mod.B")


def test_yaml_file_is_layered_under_env(monkeypatch, tmp_path) -> None:
    path = tmp_path / "doctor.yaml"
    path.write_text(
        "max_results_per_build: 20\n"
        "enable_detailed_logging: true\n"
        "excluded_job_patterns:\n  - experimental/.*\n"
        f"storage_dir: {tmp_path / 'store'}\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("DOCTOR_CONFIG_FILE", str(path))
    monkeypatch.setenv("DOCTOR_MAX_RESULTS_PER_BUILD", "30")

    cfg = load_doctor_config()
    assert cfg.max_results_per_build == 30
    assert cfg.enable_detailed_logging is True
    assert cfg.excluded_job_patterns == ("experimental/.*",)
    assert cfg.storage_dir == str(tmp_path / "store")


@pytest.mark.parametrize(
    "name,value",
    [
        ("DOCTOR_MAX_RESULTS_PER_BUILD", "0"),
        ("DOCTOR_MAX_RESULTS_PER_BUILD", "lots"),
        ("DOCTOR_ANALYSIS_TIMEOUT_SECONDS", "5"),
        ("DOCTOR_EXCLUDED_JOB_PATTERNS", "([unclosed"),
        ("DOCTOR_ANALYSIS_THRESHOLD", "sometimes"),
    ],
)
def test_invalid_values_raise_config_error(monkeypatch, name, value) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigError):
        load_doctor_config()


def test_missing_config_file_is_an_error(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("DOCTOR_CONFIG_FILE", str(tmp_path / "nope.yaml"))
    with pytest.raises(ConfigError):
        load_doctor_config()


def test_job_exclusion_uses_full_match() -> None:
    cfg = DoctorConfig(excluded_job_patterns=("tmp-.*",))
    assert cfg.is_job_excluded("tmp-123")
    assert not cfg.is_job_excluded("release/tmp-123")


def test_split_patterns() -> None:
    assert split_patterns(None) == []
    assert split_patterns("a, b\nc,,") == ["a", "b", "c"]
    assert split_patterns(["x", " ", "y "]) == ["x", "y"]
