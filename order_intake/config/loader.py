from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DEFAULT_SETTINGS_PATH, DatabaseConfig, ExportConfig, IntakeConfig, LLMConfig

"""Config loader.

Responsibilities:
- Load the YAML config (``config/intake.yml`` by default)
- Validate it against ``config_schema.json`` shipped next to this module
- Apply defaults for optional sections
- Let DATABASE_URL override the database section
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/intake.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or invalid, or the data violates it
            (missing required keys, wrong types, unknown keys)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path)
        suffix = f" (at {location})" if location else ""
        raise ConfigError(f"config validation failed: {e.message}{suffix}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> IntakeConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=os.getenv("DATABASE_URL") or db_raw.get("dsn"),
    )

    llm_raw = data.get("llm") or {}
    llm_defaults = LLMConfig()
    llm = LLMConfig(
        enabled=llm_raw.get("enabled", llm_defaults.enabled),
        endpoint=llm_raw.get("endpoint", llm_defaults.endpoint).rstrip("/"),
        model=llm_raw.get("model", llm_defaults.model),
        api_key_env=llm_raw.get("api_key_env", llm_defaults.api_key_env),
        timeout_seconds=float(llm_raw.get("timeout_seconds", llm_defaults.timeout_seconds)),
    )

    export_raw = data.get("export") or {}
    export = ExportConfig(filename_prefix=export_raw.get("filename_prefix", ExportConfig().filename_prefix))

    return IntakeConfig(
        source_directory=data["source_directory"],
        output_directory=data["output_directory"],
        settings_path=data.get("settings_path", DEFAULT_SETTINGS_PATH),
        export=export,
        llm=llm,
        database=db,
    )
