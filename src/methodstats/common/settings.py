from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema
import yaml


@dataclass(frozen=True)
class Settings:
    config_version: str
    environment: str
    log_level: str
    app_log_path: Optional[str]
    metrics_log_path: Optional[str]
    metrics_echo: bool
    config_path: Path
    raw: Dict[str, Any]

    @property
    def bindings(self) -> Dict[str, Any]:
        return dict(self.raw.get("bindings") or {})


def compute_config_hash(config_path: Path) -> str:
    data = config_path.read_bytes()
    return hashlib.sha256(data).hexdigest()


def load_yaml(path: Path) -> Dict[str, Any]:
    data = yaml.safe_load(path.read_text())
    return data or {}


def validate_config(config: Dict[str, Any], schema_path: Path) -> None:
    schema = json.loads(schema_path.read_text())
    jsonschema.validate(instance=config, schema=schema)


def load_settings(config_path: Path, schema_path: Path) -> Settings:
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_path}")

    config = load_yaml(config_path)
    validate_config(config, schema_path)

    metrics = config.get("metrics") or {}
    return Settings(
        config_version=str(config["config_version"]),
        environment=str(config["environment"]),
        log_level=str(config.get("log_level", "INFO")),
        app_log_path=config.get("app_log_path"),
        metrics_log_path=metrics.get("log_path"),
        metrics_echo=bool(metrics.get("echo", False)),
        config_path=config_path,
        raw=config,
    )
