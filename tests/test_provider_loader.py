from __future__ import annotations

import sys
import types

import pytest

from doctor.diagnostics.base import BaseDiagnosticProvider
from doctor.diagnostics.loader import load_providers, resolve_provider_class


class _ExampleProvider(BaseDiagnosticProvider):
    provider_id = "example"
    provider_name = "Example"

    def analyze(self, context):  # type: ignore[no-untyped-def]
        return []


class _NeedsArgs(BaseDiagnosticProvider):
    provider_id = "needs-args"

    def __init__(self, required) -> None:  # type: ignore[no-untyped-def]
        super().__init__()


@pytest.fixture
def fake_module(monkeypatch):
    mod = types.ModuleType("doctor_test_providers")
    mod.ExampleProvider = _ExampleProvider  # type: ignore[attr-defined]
    mod.NeedsArgs = _NeedsArgs  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "doctor_test_providers", mod)
    return mod


def test_resolve_both_path_styles(fake_module) -> None:
    assert resolve_provider_class("doctor_test_providers:ExampleProvider") is _ExampleProvider
    assert resolve_provider_class("doctor_test_providers.ExampleProvider") is _ExampleProvider


def test_resolve_rejects_malformed_paths() -> None:
    with pytest.raises(ValueError):
        resolve_provider_class("NoModule")


def test_load_providers_skips_broken_entries(fake_module, caplog) -> None:
    providers = load_providers(
        [
            "doctor_test_providers:ExampleProvider",
            "doctor_test_providers:Missing",
            "no_such_module_for_doctor:Thing",
            "doctor_test_providers:NeedsArgs",
            "",
        ]
    )
    assert [p.provider_id for p in providers] == ["example"]
    assert "Failed to load diagnostic provider" in caplog.text
