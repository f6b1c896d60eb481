from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML (default ``config/lotsheet.yml``)
- Validate against the packaged JSON schema
- Apply defaults, then environment overrides (LOTSHEET_*)

A missing config file is not an error when ``required=False``; every key has
a default.
"""

__all__ = [
    "AppConfig",
    "BatchConfig",
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "DestinationConfig",
    "SCHEMA_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config") / "lotsheet.yml"

ENV_DESTINATION = "LOTSHEET_DESTINATION"
ENV_TAB = "LOTSHEET_TAB"
ENV_TEMPLATE = "LOTSHEET_TEMPLATE"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DestinationConfig:
    workbook: str | None = None
    tab_name: str | None = None
    write_quota: int | None = None
    quota_window: float = 60.0


@dataclass(frozen=True)
class BatchConfig:
    inter_item_delay: float = 1.0
    cooldown_seconds: float = 60.0
    auto_retry: bool = True


@dataclass(frozen=True)
class AppConfig:
    template_paths: tuple[str, ...] = ("data/template.xlsx", "public/template.xlsx")
    output_directory: str = "out"
    archive_name: str = "farmer-profiles.zip"
    destination: DestinationConfig = field(default_factory=DestinationConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / invalid, or data violates the schema
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _apply_env(cfg: AppConfig) -> AppConfig:
    dest = cfg.destination
    workbook = os.getenv(ENV_DESTINATION) or dest.workbook
    tab = os.getenv(ENV_TAB) or dest.tab_name
    templates = cfg.template_paths
    env_template = os.getenv(ENV_TEMPLATE)
    if env_template:
        # 環境変数のテンプレートを最優先で試す
        templates = (env_template, *templates)
    return AppConfig(
        template_paths=templates,
        output_directory=cfg.output_directory,
        archive_name=cfg.archive_name,
        destination=DestinationConfig(
            workbook=workbook,
            tab_name=tab,
            write_quota=dest.write_quota,
            quota_window=dest.quota_window,
        ),
        batch=cfg.batch,
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH, *, required: bool = False) -> AppConfig:
    if not path.exists():
        if required:
            raise ConfigError(f"config file not found: {path}")
        return _apply_env(AppConfig())
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    defaults = AppConfig()
    dest_raw = data.get("destination") or {}
    batch_raw = data.get("batch") or {}
    cfg = AppConfig(
        template_paths=tuple(data.get("template_paths", defaults.template_paths)),
        output_directory=data.get("output_directory", defaults.output_directory),
        archive_name=data.get("archive_name", defaults.archive_name),
        destination=DestinationConfig(
            workbook=dest_raw.get("workbook"),
            tab_name=dest_raw.get("tab_name"),
            write_quota=dest_raw.get("write_quota"),
            quota_window=float(dest_raw.get("quota_window", 60.0)),
        ),
        batch=BatchConfig(
            inter_item_delay=float(batch_raw.get("inter_item_delay", 1.0)),
            cooldown_seconds=float(batch_raw.get("cooldown_seconds", 60.0)),
            auto_retry=bool(batch_raw.get("auto_retry", True)),
        ),
    )
    return _apply_env(cfg)
