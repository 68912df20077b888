"""Provider discovery from a configured list of import paths.

Accepted forms: `package.module:ClassName` or `package.module.ClassName`. Each entry is
imported and instantiated with no arguments.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Iterable, List

from doctor.diagnostics.base import DiagnosticProvider

logger = logging.getLogger(__name__)


def resolve_provider_class(path: str) -> Any:
    path = (path or "").strip()
    if ":" in path:
        module_name, _, attr = path.partition(":")
    else:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ValueError(f"Invalid provider path: {path!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


def load_providers(paths: Iterable[str]) -> List[DiagnosticProvider]:
    """Instantiate configured providers. Entries that fail to import or construct are logged and skipped."""
    out: List[DiagnosticProvider] = []
    for path in paths:
        if not (path or "").strip():
            continue
        try:
            cls = resolve_provider_class(path)
            out.append(cls())
        except Exception as e:
            logger.error("Failed to load diagnostic provider %r: %s", path, e)
    return out
