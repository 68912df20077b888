"""Build context capability.

The host CI integration supplies a `BuildContext` per analyzed build. The core only
reads it; it never builds logs or environment snapshots itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol

from doctor.core.models import BuildMetadata

logger = logging.getLogger(__name__)


class BuildContextError(RuntimeError):
    """Raised by host adapters when a build context cannot be constructed."""


class BuildContext(Protocol):
    """Read-only view of one finished build."""

    build_log: str
    environment: Mapping[str, str]
    metadata: BuildMetadata
    is_pipeline: bool
    build_result: str
    duration_ms: int


class ScmRevisionSource(Protocol):
    """
    Optional host capability: report the SCM revision a build ran against.

    Hosts without SCM information simply don't pass one.
    """

    def current_revision(self) -> Optional[str]:
        """Return the commit id of the first non-empty change set, or None."""


@dataclass(frozen=True)
class StaticBuildContext:
    """Plain-value `BuildContext` used by host adapters and tests."""

    metadata: BuildMetadata
    build_log: str = ""
    environment: Mapping[str, str] = field(default_factory=dict)
    is_pipeline: bool = False
    build_result: str = "UNKNOWN"
    duration_ms: int = 0

    @classmethod
    def from_event(cls, event: Any) -> "StaticBuildContext":
        """
        Build a context from an inbound build-completed event.

        `event` is duck-typed (see `doctor.api.webhook.BuildCompletedEvent`).
        """
        env = dict(getattr(event, "environment", None) or {})
        metadata = build_metadata(
            job_name=event.job_name,
            build_number=event.build_number,
            build_url=getattr(event, "build_url", None),
            node_name=getattr(event, "node_name", None),
            start_time=getattr(event, "start_time", 0) or 0,
            environment=env,
            branch=getattr(event, "branch", None),
            scm=_FixedRevision(getattr(event, "scm_revision", None)),
        )
        return cls(
            metadata=metadata,
            build_log=getattr(event, "log", "") or "",
            environment=env,
            is_pipeline=bool(getattr(event, "pipeline", False)),
            build_result=(getattr(event, "result", None) or "UNKNOWN").upper(),
            duration_ms=int(getattr(event, "duration_ms", 0) or 0),
        )


@dataclass(frozen=True)
class _FixedRevision:
    revision: Optional[str]

    def current_revision(self) -> Optional[str]:
        return self.revision


def branch_from_environment(environment: Mapping[str, str]) -> Optional[str]:
    branch = environment.get("GIT_BRANCH")
    if branch is not None:
        return branch[len("origin/") :] if branch.startswith("origin/") else branch
    return environment.get("BRANCH_NAME")


def build_metadata(
    *,
    job_name: str,
    build_number: int,
    build_url: Optional[str] = None,
    node_name: Optional[str] = None,
    start_time: int = 0,
    environment: Optional[Mapping[str, str]] = None,
    branch: Optional[str] = None,
    scm: Optional[ScmRevisionSource] = None,
) -> BuildMetadata:
    """
    Snapshot build identity once per analyzed build.

    Branch falls back to the environment (`GIT_BRANCH`, then `BRANCH_NAME`). SCM revision
    is best-effort: a failing `scm` source yields None.
    """
    env: Dict[str, str] = dict(environment or {})
    revision: Optional[str] = None
    if scm is not None:
        try:
            revision = scm.current_revision()
        except Exception as e:
            logger.debug("Could not read SCM revision for %s#%s: %s", job_name, build_number, e)

    return BuildMetadata(
        job_name=job_name,
        build_number=int(build_number),
        build_url=build_url,
        node_name=node_name or "unknown",
        start_time=int(start_time),
        scm_revision=revision,
        branch=branch or branch_from_environment(env),
    )
