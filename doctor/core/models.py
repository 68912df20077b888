"""Canonical domain models for diagnostic findings (single source of truth).

These models are shared by:
- providers (which build `DiagnosticResult`s)
- the orchestrator (which merges them)
- result sets attached to builds (which are queried by the UI/API)

All models are frozen: once a provider hands a result over, nothing downstream can
change it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class BaseModelFrozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Severity(str, Enum):
    """Impact of a finding. Declaration order is the severity order (CRITICAL first)."""

    CRITICAL = "CRITICAL"  # build fails, no workaround
    HIGH = "HIGH"  # build fails, manual workaround exists
    MEDIUM = "MEDIUM"  # build succeeds but with issues
    LOW = "LOW"  # performance or optimization suggestions

    @property
    def rank(self) -> int:
        """0 for CRITICAL, increasing as severity decreases."""
        return _SEVERITY_ORDER.index(self)

    @classmethod
    def parse(cls, value: str) -> "Severity":
        return cls((value or "").strip().upper())


_SEVERITY_ORDER: Tuple[Severity, ...] = tuple(Severity)


class BuildOutcome(str, Enum):
    """Host CI build outcome, ordered from best to worst."""

    SUCCESS = "SUCCESS"
    UNSTABLE = "UNSTABLE"
    FAILURE = "FAILURE"
    NOT_BUILT = "NOT_BUILT"
    ABORTED = "ABORTED"

    @property
    def ordinal(self) -> int:
        return _OUTCOME_ORDER.index(self)

    def is_better_than(self, other: "BuildOutcome") -> bool:
        return self.ordinal < other.ordinal

    def is_worse_than(self, other: "BuildOutcome") -> bool:
        return self.ordinal > other.ordinal

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["BuildOutcome"]:
        """Parse a host result string; unknown or missing results map to None."""
        raw = (value or "").strip().upper()
        try:
            return cls(raw)
        except ValueError:
            return None


_OUTCOME_ORDER: Tuple[BuildOutcome, ...] = tuple(BuildOutcome)


def _clamp_0_100(x: int) -> int:
    return max(0, min(100, int(x)))


def _read_only(m: Mapping[str, Any]) -> Mapping[str, Any]:
    """Shallow read-only copy; `frozen=True` alone leaves dict fields writable."""
    return MappingProxyType(dict(m))


class ActionStep(BaseModelFrozen):
    description: str
    command: Optional[str] = None
    optional: bool = False

    @property
    def has_command(self) -> bool:
        return bool((self.command or "").strip())


class Solution(BaseModelFrozen):
    """A remediation for a finding.

    `steps` keep author order. `priority` is only comparable between solutions of the
    same provider.
    """

    id: str
    title: str
    description: Optional[str] = None
    steps: Tuple[ActionStep, ...] = ()
    examples: Mapping[str, str] = Field(default_factory=dict, validate_default=True)
    priority: int = 100

    @field_validator("examples", mode="after")
    @classmethod
    def _freeze_examples(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return _read_only(v)

    @field_serializer("examples")
    def _dump_examples(self, v: Mapping[str, str]) -> Dict[str, str]:
        return dict(v)


class DiagnosticResult(BaseModelFrozen):
    id: str
    category: str
    severity: Severity
    summary: str
    description: Optional[str] = None
    # Insertion order is the provider's ranking of its solutions.
    solutions: Tuple[Solution, ...] = ()
    metadata: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    provider_id: str
    confidence: int = 100

    @field_validator("metadata", mode="after")
    @classmethod
    def _freeze_metadata(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        return _read_only(v)

    @field_serializer("metadata")
    def _dump_metadata(self, v: Mapping[str, Any]) -> Dict[str, Any]:
        return dict(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> int:
        # Out-of-range scores are normalized, never rejected.
        try:
            return _clamp_0_100(float(v.strip()) if isinstance(v, str) else v)
        except (TypeError, ValueError):
            raise ValueError(f"confidence must be a number, got {v!r}") from None


class BuildMetadata(BaseModelFrozen):
    job_name: str
    build_number: int = 0
    build_url: Optional[str] = None
    node_name: str = "unknown"
    start_time: int = 0  # epoch millis
    scm_revision: Optional[str] = None
    branch: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.job_name}#{self.build_number}"

    @property
    def started_at(self) -> datetime:
        return datetime.fromtimestamp(self.start_time / 1000.0, tz=timezone.utc)
