from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, List, Optional, Set, Tuple

from doctor.core.context import BuildContext
from doctor.diagnostics.base import DEFAULT_PRIORITY, DiagnosticProvider

logger = logging.getLogger(__name__)


def provider_id_of(provider: Any) -> str:
    return str(getattr(provider, "provider_id", "") or "").strip()


def provider_priority(provider: Any) -> int:
    try:
        return int(getattr(provider, "priority", DEFAULT_PRIORITY))
    except (TypeError, ValueError):
        return DEFAULT_PRIORITY


def provider_categories(provider: Any) -> Set[str]:
    return set(getattr(provider, "supported_categories", None) or ())


def _by_priority(providers: Iterable[DiagnosticProvider]) -> List[DiagnosticProvider]:
    # sorted() is stable: registration order breaks priority ties.
    return sorted(providers, key=lambda p: -provider_priority(p))


class DiagnosticRegistry:
    """
    Live set of diagnostic providers.

    Writers serialize on a lock and publish a fresh tuple; readers work from whatever
    snapshot was current when they started and never block.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: Tuple[DiagnosticProvider, ...] = ()

    def __len__(self) -> int:
        return len(self._providers)

    def register(self, provider: Optional[DiagnosticProvider]) -> bool:
        """Add a provider. Invalid or duplicate providers are logged and ignored; returns True if stored."""
        if provider is None:
            logger.warning("Attempted to register null provider")
            return False

        pid = provider_id_of(provider)
        if not pid:
            logger.warning("Provider has null or empty ID, skipping registration: %s", type(provider).__name__)
            return False

        with self._lock:
            if any(provider_id_of(p) == pid for p in self._providers):
                logger.warning(
                    "Provider with ID '%s' already registered, skipping: %s", pid, type(provider).__name__
                )
                return False
            self._providers = self._providers + (provider,)

        logger.info(
            "Registered diagnostic provider: %s (%s)", pid, getattr(provider, "provider_name", "") or pid
        )
        return True

    def unregister(self, provider: DiagnosticProvider) -> None:
        with self._lock:
            if not any(p is provider for p in self._providers):
                return
            self._providers = tuple(p for p in self._providers if p is not provider)
        logger.info("Unregistered diagnostic provider: %s", provider_id_of(provider))

    def get_providers(self, category: Optional[str] = None) -> List[DiagnosticProvider]:
        """All providers, highest priority first; optionally only those supporting `category`."""
        snapshot = self._providers
        if category is None:
            return _by_priority(snapshot)
        return _by_priority(p for p in snapshot if category in provider_categories(p))

    def get_enabled_providers(self, context: BuildContext) -> List[DiagnosticProvider]:
        out: List[DiagnosticProvider] = []
        for p in self._providers:
            check = getattr(p, "is_enabled", None)
            if check is None:
                out.append(p)
                continue
            try:
                if check(context):
                    out.append(p)
            except Exception as e:
                logger.error("Provider '%s' failed applicability check, not running it: %s", provider_id_of(p), e)
        return _by_priority(out)

    def get_provider(self, provider_id: str) -> Optional[DiagnosticProvider]:
        for p in self._providers:
            if provider_id_of(p) == provider_id:
                return p
        return None

    def get_all_supported_categories(self) -> Set[str]:
        out: Set[str] = set()
        for p in self._providers:
            out |= provider_categories(p)
        return out

    def provider_ids(self) -> List[str]:
        return [provider_id_of(p) for p in self.get_providers()]


def build_registry(providers: Iterable[DiagnosticProvider]) -> DiagnosticRegistry:
    """Explicit composition: one registry per process, handed to whoever needs it."""
    reg = DiagnosticRegistry()
    for p in providers:
        reg.register(p)
    logger.info("Registered %d diagnostic providers", len(reg))
    return reg
