from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    AppConfig,
    DatabaseConfig,
    ExportSettings,
    ImportSettings,
    MatchingSettings,
    StatisticsSettings,
)

"""Config loader.

Responsibilities:
- Load YAML config (default ``config/slabstock.yml``)
- Validate against the packaged JSON schema
- Apply defaults for every missing key
- Resolve the acting user from ``SLABSTOCK_USER_ID`` (env wins over file)
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/slabstock.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
USER_ENV_VAR = "SLABSTOCK_USER_ID"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: if the schema file is missing or invalid, or the data
            fails validation (unknown keys, wrong types, out of range values)
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


def load_config(path: Path | None = None, *, required: bool = False) -> AppConfig:
    """Load and validate configuration.

    A missing file yields the defaults unless ``required`` is set.
    """
    path = path or DEFAULT_CONFIG_PATH
    if not path.exists():
        if required:
            raise ConfigError(f"config file not found: {path}")
        data: dict[str, Any] = {}
    else:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid yaml: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    imp = data.get("import", {})
    match = data.get("matching", {})
    stats = data.get("statistics", {})
    export = data.get("export", {})
    db_raw = data.get("database", {})

    defaults = ImportSettings()
    import_settings = ImportSettings(
        batch_size=imp.get("batch_size", defaults.batch_size),
        max_attempts=imp.get("max_attempts", defaults.max_attempts),
        retry_base_delay=float(imp.get("retry_base_delay", defaults.retry_base_delay)),
        page_size=imp.get("page_size", defaults.page_size),
        progress_clear_delay=float(imp.get("progress_clear_delay", defaults.progress_clear_delay)),
    )
    matching = MatchingSettings(
        default_tolerance=match.get("default_tolerance", MatchingSettings.default_tolerance),
        max_tolerance=match.get("max_tolerance", MatchingSettings.max_tolerance),
    )
    if matching.default_tolerance > matching.max_tolerance:
        raise ConfigError(
            f"matching.default_tolerance ({matching.default_tolerance}) exceeds "
            f"max_tolerance ({matching.max_tolerance})"
        )

    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return AppConfig(
        import_settings=import_settings,
        matching=matching,
        statistics=StatisticsSettings(
            old_slab_days=stats.get("old_slab_days", StatisticsSettings.old_slab_days),
        ),
        export=ExportSettings(
            output_directory=export.get("output_directory", ExportSettings.output_directory),
        ),
        database=db,
        user_id=os.getenv(USER_ENV_VAR) or data.get("user_id"),
    )
