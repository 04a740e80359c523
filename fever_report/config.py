"""
Runtime settings.

Defaults, then an optional JSON file, then FEVER_REPORT_* environment
variables. Settings objects are passed explicitly to whatever needs them.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from fever_report.ages import DEFAULT_COLUMN_INDEX
from fever_report.filenames import DEFAULT_SUFFIXES, DatasetKind
from fever_report.weeks import DEFAULT_UTC_OFFSET_HOURS

ENV_PREFIX = "FEVER_REPORT_"
DEFAULT_CONFIG_NAME = "fever-report.json"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    column_index: int = DEFAULT_COLUMN_INDEX
    visit_suffix: str = DEFAULT_SUFFIXES[DatasetKind.VISIT]
    fever_suffix: str = DEFAULT_SUFFIXES[DatasetKind.FEVER]
    file_extension: str = ".xlsx"
    report_sheet: str = "weekly_reports"
    reports_endpoint: str = ""
    utc_offset_hours: int = DEFAULT_UTC_OFFSET_HOURS
    max_workers: int = 4

    def suffix_for(self, kind: DatasetKind) -> str:
        return self.visit_suffix if kind is DatasetKind.VISIT else self.fever_suffix

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _coerce(name: str, raw: Any, default: Any) -> Any:
    if isinstance(default, int):
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ConfigError(f"Setting '{name}' must be an integer, got {raw!r}")
    return str(raw)


def load_settings(path: "str | Path | None" = None, env: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if env is None else env
    defaults = Settings()
    values: dict[str, Any] = {}

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            payload = json.loads(config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Config file is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ConfigError("Config file must contain a JSON object")
        known = {item.name for item in fields(Settings)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(unknown)}")
        values.update(payload)

    for item in fields(Settings):
        env_value = env.get(ENV_PREFIX + item.name.upper())
        if env_value:
            values[item.name] = env_value

    coerced = {
        name: _coerce(name, raw, getattr(defaults, name))
        for name, raw in values.items()
    }
    settings = replace(defaults, **coerced)
    if settings.column_index < 0:
        raise ConfigError("Setting 'column_index' must be zero or positive")
    if settings.max_workers < 1:
        raise ConfigError("Setting 'max_workers' must be at least 1")
    return settings


def starter_config() -> str:
    return json.dumps(Settings().to_dict(), indent=2, ensure_ascii=False) + "\n"
