from __future__ import annotations

from typing import FrozenSet, List, Protocol

from doctor.core.context import BuildContext
from doctor.core.models import DiagnosticResult

DEFAULT_PRIORITY = 100


class DiagnosticProvider(Protocol):
    """
    Diagnostic provider contract.

    Providers are:
    - opaque to the core (pattern libraries, external services, models all fit here)
    - identified by a registry-wide unique, non-empty `provider_id`
    - free to raise from `analyze`; the orchestrator contains the failure
    """

    provider_id: str
    provider_name: str
    supported_categories: FrozenSet[str]
    priority: int

    def is_enabled(self, context: BuildContext) -> bool:
        """Return True if this provider should run for the given build."""

    def analyze(self, context: BuildContext) -> List[DiagnosticResult]:
        """Return findings for the build (possibly empty)."""


class BaseDiagnosticProvider:
    """Convenience base supplying the contract defaults. Subclasses set `provider_id` and implement `analyze`."""

    provider_id: str = ""
    provider_name: str = ""
    supported_categories: FrozenSet[str] = frozenset()
    # Higher runs first.
    priority: int = DEFAULT_PRIORITY

    def __init__(self) -> None:
        if not self.provider_name:
            self.provider_name = self.provider_id

    def is_enabled(self, context: BuildContext) -> bool:
        return True

    def analyze(self, context: BuildContext) -> List[DiagnosticResult]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider_id={self.provider_id!r}, priority={self.priority})"
