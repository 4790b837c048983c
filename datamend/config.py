"""Engine settings: defaults, optional JSON config file, DATAMEND_* env overrides."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from datamend.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "DATAMEND_"
EXECUTOR_KINDS = ("thread", "process")

# config-file section -> settings fields it may set
CONFIG_SECTIONS = {
    "detection": (
        "missing_error_ratio",
        "outlier_min_values",
        "iqr_multiplier",
        "categorical_min",
        "categorical_max",
        "typo_max_distance",
        "typo_max_ratio",
    ),
    "dates": ("dayfirst",),
    "linkage": ("fallback_cap", "batch_size", "max_workers", "executor"),
}


@dataclass(frozen=True)
class Settings:
    missing_error_ratio: float = 0.10
    outlier_min_values: int = 5
    iqr_multiplier: float = 1.5
    categorical_min: int = 2
    categorical_max: int = 50
    typo_max_distance: int = 2
    typo_max_ratio: float = 0.5
    dayfirst: bool = True
    fallback_cap: int = 2000
    batch_size: int = 500
    max_workers: int = 1
    executor: str = "thread"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


DEFAULT_SETTINGS = Settings()

STARTER_CONFIG = {
    "detection": {
        "missing_error_ratio": DEFAULT_SETTINGS.missing_error_ratio,
        "outlier_min_values": DEFAULT_SETTINGS.outlier_min_values,
        "iqr_multiplier": DEFAULT_SETTINGS.iqr_multiplier,
        "categorical_min": DEFAULT_SETTINGS.categorical_min,
        "categorical_max": DEFAULT_SETTINGS.categorical_max,
        "typo_max_distance": DEFAULT_SETTINGS.typo_max_distance,
        "typo_max_ratio": DEFAULT_SETTINGS.typo_max_ratio,
    },
    "dates": {"dayfirst": DEFAULT_SETTINGS.dayfirst},
    "linkage": {
        "fallback_cap": DEFAULT_SETTINGS.fallback_cap,
        "batch_size": DEFAULT_SETTINGS.batch_size,
        "max_workers": DEFAULT_SETTINGS.max_workers,
        "executor": DEFAULT_SETTINGS.executor,
    },
}


def _coerce(name: str, raw: Any) -> Any:
    field_type = {f.name: f.type for f in fields(Settings)}[name]
    try:
        if field_type == "bool":
            if isinstance(raw, bool):
                return raw
            text = str(raw).strip().lower()
            if text in {"1", "true", "yes", "on"}:
                return True
            if text in {"0", "false", "no", "off"}:
                return False
            raise ValueError(f"not a boolean: {raw!r}")
        if field_type == "int":
            if isinstance(raw, bool):
                raise ValueError(f"not an integer: {raw!r}")
            return int(raw)
        if field_type == "float":
            return float(raw)
        value = str(raw).strip().lower()
        if name == "executor" and value not in EXECUTOR_KINDS:
            raise ValueError(f"executor must be one of {EXECUTOR_KINDS}, got {raw!r}")
        return value
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {name}: {exc}") from exc


def _validate(settings: Settings) -> Settings:
    if not 0 <= settings.missing_error_ratio <= 1:
        raise ConfigError("missing_error_ratio must be between 0 and 1")
    if settings.categorical_min > settings.categorical_max:
        raise ConfigError("categorical_min cannot exceed categorical_max")
    if settings.fallback_cap < 0:
        raise ConfigError("fallback_cap cannot be negative")
    if settings.batch_size < 1:
        raise ConfigError("batch_size must be at least 1")
    if settings.max_workers < 1:
        raise ConfigError("max_workers must be at least 1")
    return settings


def _settings_from_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read config {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError("Config root must be a JSON object.")

    overrides: dict[str, Any] = {}
    for section, body in payload.items():
        allowed = CONFIG_SECTIONS.get(section)
        if allowed is None or not isinstance(body, dict):
            logger.warning("Ignoring unknown config section %r in %s", section, path)
            continue
        for key, value in body.items():
            if key not in allowed:
                logger.warning("Ignoring unknown config key %s.%s in %s", section, key, path)
                continue
            overrides[key] = _coerce(key, value)
    return overrides


def _settings_from_env(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for f in fields(Settings):
        raw = environ.get(ENV_PREFIX + f.name.upper())
        if raw is not None and raw != "":
            overrides[f.name] = _coerce(f.name, raw)
    return overrides


def load_settings(path: "str | Path | None" = None, environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from defaults, then the JSON config file, then the environment."""
    settings = DEFAULT_SETTINGS
    if path is not None:
        settings = replace(settings, **_settings_from_file(Path(path)))
    env = os.environ if environ is None else environ
    settings = replace(settings, **_settings_from_env(env))
    return _validate(settings)


def starter_config_text() -> str:
    return json.dumps(STARTER_CONFIG, indent=2) + "\n"
