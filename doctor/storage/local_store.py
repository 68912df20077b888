"""Local filesystem storage for build-attached state."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union


@dataclass
class LocalStorage:
    """Key/value files under `base_dir`; keys are relative paths."""

    base_dir: str = "./builds"

    def __post_init__(self) -> None:
        self.base_dir = os.path.abspath(self.base_dir)
        Path(self.base_dir).mkdir(parents=True, exist_ok=True)

    def _path(self, rel_key: str) -> Path:
        rel_key = rel_key.lstrip("/")
        return Path(self.base_dir) / rel_key

    def exists(self, rel_key: str) -> bool:
        return self._path(rel_key).exists()

    def put_json(self, rel_key: str, body: Union[str, Dict[str, Any]]) -> None:
        path = self._path(rel_key)
        path.parent.mkdir(parents=True, exist_ok=True)

        if isinstance(body, str):
            payload = body
        else:
            payload = json.dumps(body, sort_keys=True, indent=2)

        # Write-then-rename so readers never see a partial file.
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(path)

    def get_json(self, rel_key: str) -> Optional[Dict[str, Any]]:
        path = self._path(rel_key)
        if not path.exists():
            return None
        data = json.loads(path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else None
