"""Process-wide wiring, built once at startup and passed explicitly."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from doctor.config import DoctorConfig, load_doctor_config
from doctor.core.context import StaticBuildContext
from doctor.diagnostics.base import DiagnosticProvider
from doctor.diagnostics.loader import load_providers
from doctor.diagnostics.registry import DiagnosticRegistry, build_registry
from doctor.pipeline.trigger import BuildAnalysisTrigger, CompletedBuild, ContextFactory
from doctor.storage.local_store import LocalStorage
from doctor.storage.result_store import LocalResultStore, MemoryResultStore, ResultStore

logger = logging.getLogger(__name__)


def context_from_handle(build: CompletedBuild) -> StaticBuildContext:
    """Default factory: the host handle is a build-completed event."""
    if build.handle is None:
        raise ValueError(f"No build data supplied for {build.display_name}")
    if isinstance(build.handle, StaticBuildContext):
        return build.handle
    return StaticBuildContext.from_event(build.handle)


@dataclass
class DoctorRuntime:
    config: DoctorConfig
    registry: DiagnosticRegistry
    store: ResultStore
    trigger: BuildAnalysisTrigger


def build_store(config: DoctorConfig) -> ResultStore:
    if config.storage_dir:
        return LocalResultStore(LocalStorage(base_dir=config.storage_dir))
    return MemoryResultStore()


def build_runtime(
    config: Optional[DoctorConfig] = None,
    *,
    providers: Optional[Iterable[DiagnosticProvider]] = None,
    context_factory: Optional[ContextFactory] = None,
) -> DoctorRuntime:
    """
    Compose registry, store and trigger.

    `providers` are registered after the ones named in `config.providers`.
    """
    cfg = config or load_doctor_config()
    all_providers = list(load_providers(cfg.providers)) + list(providers or [])
    registry = build_registry(all_providers)
    store = build_store(cfg)
    trigger = BuildAnalysisTrigger(
        registry=registry,
        config=cfg,
        store=store,
        context_factory=context_factory or context_from_handle,
    )
    return DoctorRuntime(config=cfg, registry=registry, store=store, trigger=trigger)
