"""
Pytest config.

Pin the repo root on sys.path so `import doctor` works when invoking a global `pytest`
entrypoint without installing the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


@pytest.fixture(autouse=True)
def _isolate_doctor_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Developer shells may export DOCTOR_* settings; tests start from defaults."""
    for name in list(os.environ):
        if name.startswith("DOCTOR_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def build_context():
    """Factory for plain build contexts."""
    from doctor.core.context import StaticBuildContext
    from doctor.core.models import BuildMetadata

    def _make(job_name: str = "app", build_number: int = 1, log: str = "", result: str = "FAILURE"):
        return StaticBuildContext(
            metadata=BuildMetadata(job_name=job_name, build_number=build_number),
            build_log=log,
            build_result=result,
        )

    return _make
