from __future__ import annotations
import pytest
from pathlib import Path
from order_intake.config.loader import load_config, ConfigError


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.source_directory == "./data"
    assert cfg.output_directory == "./export"
    assert cfg.settings_path == "./.order_intake/settings.json"
    assert cfg.export.filename_prefix == "objednavka"
    assert cfg.llm.enabled is False
    # defaults for keys the file leaves out
    assert cfg.llm.model == "gemini-2.0-flash"
    assert cfg.llm.api_key_env == "GEMINI_API_KEY"
    assert cfg.database.configured is False


def test_load_config_minimal(temp_workdir: Path):
    path = temp_workdir / "config" / "intake.yml"
    path.write_text("source_directory: in\noutput_directory: out\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.settings_path == ".order_intake/settings.json"
    assert cfg.llm.enabled is True
    assert cfg.llm.timeout_seconds == 30.0


def test_load_config_missing_file(temp_workdir: Path):
    missing = temp_workdir / "config" / "not_exists.yml"
    with pytest.raises(ConfigError):
        load_config(missing)


def test_load_config_invalid_yaml(write_config: Path):
    write_config.write_text("source_directory: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "invalid yaml" in str(e.value)


def test_load_config_missing_required(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("output_directory: ./export\n", "")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value) and "required property" in str(e.value)


def test_load_config_extra_field(write_config: Path):
    text = write_config.read_text(encoding="utf-8") + "\nextra_field: not_allowed\n"
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value)


def test_load_config_wrong_nested_type(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("  enabled: false", "  enabled: maybe")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "llm/enabled" in str(e.value)


def test_database_url_overrides_config(write_config: Path, monkeypatch):
    text = write_config.read_text(encoding="utf-8") + "database:\n  host: db.local\n  port: 5432\n"
    write_config.write_text(text, encoding="utf-8")
    cfg = load_config(write_config)
    assert cfg.database.host == "db.local"
    assert cfg.database.dsn is None
    assert cfg.database.configured

    monkeypatch.setenv("DATABASE_URL", "postgresql://u@env/orders")
    assert load_config(write_config).database.dsn == "postgresql://u@env/orders"
