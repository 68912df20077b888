from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern, Tuple

import yaml

from doctor.core.models import BuildOutcome

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    pass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "y", "on")


def _as_int(name: str, value: Any, default: int) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def split_patterns(raw: Any) -> List[str]:
    """Comma/newline separated string (or a list) -> non-empty, stripped entries."""
    if raw is None:
        return []
    items = raw if isinstance(raw, (list, tuple)) else re.split(r"[,\n]", str(raw))
    return [str(x).strip() for x in items if str(x).strip()]


@dataclass(frozen=True)
class DoctorConfig:
    # Feature flags
    enabled_by_default: bool = True
    auto_analyze_builds: bool = True
    enable_detailed_logging: bool = False

    # Limits
    max_results_per_build: int = 50
    analysis_timeout_seconds: int = 300  # 0 disables the per-provider bound

    # Builds whose outcome is better than this are not analyzed.
    analysis_threshold: BuildOutcome = BuildOutcome.UNSTABLE
    excluded_job_patterns: Tuple[str, ...] = ()

    # Provider import paths (see doctor.diagnostics.loader)
    providers: Tuple[str, ...] = ()

    # None keeps result sets in memory only.
    storage_dir: Optional[str] = None

    def compiled_exclusions(self) -> List[Pattern[str]]:
        return [re.compile(p) for p in self.excluded_job_patterns]

    def is_job_excluded(self, job_name: str) -> bool:
        return any(p.fullmatch(job_name or "") for p in self.compiled_exclusions())


def validate_config(cfg: DoctorConfig) -> DoctorConfig:
    if cfg.max_results_per_build < 1:
        raise ConfigError("Maximum results must be at least 1")
    if cfg.max_results_per_build > 1000:
        logger.warning("Very high max_results_per_build (%d) may impact performance", cfg.max_results_per_build)

    t = cfg.analysis_timeout_seconds
    if t != 0 and t < 10:
        raise ConfigError("Timeout must be at least 10 seconds (or 0 to disable)")
    if t > 3600:
        logger.warning("Very long analysis timeout (%ds) may let hung providers stall builds", t)

    for p in cfg.excluded_job_patterns:
        try:
            re.compile(p)
        except re.error as e:
            raise ConfigError(f"Invalid regex pattern {p!r}: {e}") from e
    return cfg


def _load_file(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {path}")
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def load_doctor_config() -> DoctorConfig:
    """
    Load configuration from `DOCTOR_CONFIG_FILE` (YAML, optional) and `DOCTOR_*` env vars.

    Environment variables win over the file.
    """
    file_path = (os.getenv("DOCTOR_CONFIG_FILE") or "").strip()
    data: Dict[str, Any] = _load_file(file_path) if file_path else {}

    def pick(key: str) -> Any:
        raw = os.getenv(f"DOCTOR_{key.upper()}")
        if raw is not None and raw.strip():
            return raw
        return data.get(key)

    threshold_raw = pick("analysis_threshold")
    threshold = BuildOutcome.UNSTABLE
    if threshold_raw:
        parsed = BuildOutcome.parse(str(threshold_raw))
        if parsed is None:
            raise ConfigError(f"Unknown analysis_threshold: {threshold_raw!r}")
        threshold = parsed

    storage_dir = (str(pick("storage_dir") or "")).strip() or None

    cfg = DoctorConfig(
        enabled_by_default=_as_bool(pick("enabled_by_default"), True),
        auto_analyze_builds=_as_bool(pick("auto_analyze_builds"), True),
        enable_detailed_logging=_as_bool(pick("enable_detailed_logging"), False),
        max_results_per_build=_as_int("max_results_per_build", pick("max_results_per_build"), 50),
        analysis_timeout_seconds=_as_int("analysis_timeout_seconds", pick("analysis_timeout_seconds"), 300),
        analysis_threshold=threshold,
        excluded_job_patterns=tuple(split_patterns(pick("excluded_job_patterns"))),
        providers=tuple(split_patterns(pick("providers"))),
        storage_dir=storage_dir,
    )
    return validate_config(cfg)


def configure_logging(cfg: Optional[DoctorConfig] = None) -> None:
    log_level = (os.getenv("LOG_LEVEL") or "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if (cfg is not None and cfg.enable_detailed_logging) or _env_bool("DOCTOR_VERBOSE", False):
        logging.getLogger("doctor").setLevel(logging.DEBUG)
