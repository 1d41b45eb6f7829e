from pathlib import Path

import jsonschema
import pytest
import yaml

from methodstats.bootstrap import build_sink, configure_from_settings
from methodstats.common.settings import load_settings, validate_config
from methodstats.sinks.jsonl import JsonLinesMeterRegistry
from methodstats.sinks.memory import InMemoryMeterRegistry


def _base_config() -> dict:
    return {
        "config_version": "0.1",
        "environment": "local",
        "log_level": "INFO",
    }


def _write(tmp_path: Path, config: dict) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


def test_validate_config_accepts_minimal_config(schema_path) -> None:
    validate_config(_base_config(), schema_path)


def test_validate_config_rejects_invalid_environment(schema_path) -> None:
    config = _base_config()
    config["environment"] = "dev"
    with pytest.raises(jsonschema.ValidationError):
        validate_config(config, schema_path)


def test_validate_config_requires_log_path_for_jsonl_sink(schema_path) -> None:
    config = _base_config()
    config["metrics"] = {"sink": "jsonl"}
    with pytest.raises(jsonschema.ValidationError):
        validate_config(config, schema_path)


def test_validate_config_rejects_unknown_binding_field(schema_path) -> None:
    config = _base_config()
    config["bindings"] = {"shop.orders:OrderService.place": {"tags": "a,b"}}
    with pytest.raises(jsonschema.ValidationError):
        validate_config(config, schema_path)


def test_shipped_settings_are_valid(schema_path) -> None:
    settings = load_settings(schema_path.parent / "settings.yaml", schema_path)
    assert settings.environment == "local"
    assert "shop.orders:OrderService.place" in settings.bindings


def test_load_settings_missing_file(tmp_path, schema_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "absent.yaml", schema_path)


def test_build_sink_from_settings(tmp_path, schema_path) -> None:
    memory = load_settings(_write(tmp_path, _base_config()), schema_path)
    assert isinstance(build_sink(memory), InMemoryMeterRegistry)

    config = _base_config()
    config["metrics"] = {"sink": "jsonl", "log_path": str(tmp_path / "m" / "metrics.log")}
    jsonl = build_sink(load_settings(_write(tmp_path, config), schema_path))
    try:
        assert isinstance(jsonl, JsonLinesMeterRegistry)
    finally:
        jsonl.close()


def test_configure_from_settings_installs_bindings(tmp_path, schema_path) -> None:
    config = _base_config()
    config["app_log_path"] = str(tmp_path / "logs" / "app.log")
    config["bindings"] = {"shop.billing:charge": {"method_name": "billing.charge"}}
    settings = load_settings(_write(tmp_path, config), schema_path)

    interceptor = configure_from_settings(settings)

    assert interceptor.registry is not None
    assert interceptor.registry.get("shop.billing:charge").method_name == "billing.charge"
    assert (tmp_path / "logs" / "app.log").exists()
