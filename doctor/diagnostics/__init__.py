"""Diagnostic providers and their orchestration.

- `base`: the provider contract
- `registry`: the live, priority-ordered provider set
- `engine`: one fault-isolated analysis pass over a build
- `loader`: providers from configured import paths
"""

from .base import BaseDiagnosticProvider, DiagnosticProvider
from .engine import AnalysisPass, ProviderRun, run_analysis
from .registry import DiagnosticRegistry, build_registry

__all__ = [
    "AnalysisPass",
    "BaseDiagnosticProvider",
    "DiagnosticProvider",
    "DiagnosticRegistry",
    "ProviderRun",
    "build_registry",
    "run_analysis",
]
