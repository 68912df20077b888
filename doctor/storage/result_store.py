"""Where result sets live once attached to a build."""

from __future__ import annotations

import logging
import re
import threading
from typing import Dict, Optional, Protocol, Tuple

from doctor.core.result_set import DiagnosticResultSet
from doctor.storage.local_store import LocalStorage

logger = logging.getLogger(__name__)

BuildKey = Tuple[str, int]


class ResultStore(Protocol):
    def attach(self, result_set: DiagnosticResultSet, job_name: str, build_number: int) -> None:
        """Attach a result set to a build. Result sets are write-once per build."""

    def get(self, job_name: str, build_number: int) -> Optional[DiagnosticResultSet]:
        """Return the attached result set, or None."""


class MemoryResultStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: Dict[BuildKey, DiagnosticResultSet] = {}

    def attach(self, result_set: DiagnosticResultSet, job_name: str, build_number: int) -> None:
        key = (job_name, int(build_number))
        with self._lock:
            if key in self._items:
                logger.warning("Result set already attached to %s#%s; keeping the first", job_name, build_number)
                return
            self._items[key] = result_set

    def get(self, job_name: str, build_number: int) -> Optional[DiagnosticResultSet]:
        return self._items.get((job_name, int(build_number)))


def _sanitize_path_component(value: str) -> str:
    value = (value or "").strip()
    if not value:
        return "unknown"
    return re.sub(r"[^A-Za-z0-9._-]+", "_", value)


def result_key(job_name: str, build_number: int) -> str:
    return f"builds/{_sanitize_path_component(job_name)}/{int(build_number)}/diagnostics.json"


class LocalResultStore:
    """Result sets as JSON files, one per build."""

    def __init__(self, storage: LocalStorage) -> None:
        self.storage = storage

    def attach(self, result_set: DiagnosticResultSet, job_name: str, build_number: int) -> None:
        key = result_key(job_name, build_number)
        if self.storage.exists(key):
            logger.warning("Result set already attached to %s#%s; keeping the first", job_name, build_number)
            return
        self.storage.put_json(key, result_set.model_dump(mode="json"))

    def get(self, job_name: str, build_number: int) -> Optional[DiagnosticResultSet]:
        data = self.storage.get_json(result_key(job_name, build_number))
        if data is None:
            return None
        return DiagnosticResultSet.model_validate(data)
