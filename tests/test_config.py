import json
import os

import pytest
import yaml
from pathlib import Path

from provocation.config import ProvocationConfig, get_provocation_home, load_config, load_schema


def test_get_provocation_home_default(monkeypatch):
    monkeypatch.delenv("PROVOCATION_HOME", raising=False)
    home = get_provocation_home()
    assert home == Path("~/.config/provocation").expanduser()


def test_get_provocation_home_env_var(monkeypatch, tmp_path):
    custom_home = tmp_path / "custom_home"
    monkeypatch.setenv("PROVOCATION_HOME", str(custom_home))
    assert get_provocation_home() == custom_home


def test_load_config_missing_file(monkeypatch, tmp_path):
    monkeypatch.setenv("PROVOCATION_HOME", str(tmp_path))
    with pytest.raises(FileNotFoundError, match="provocation config.yaml not found"):
        load_config()


def test_load_config_valid(monkeypatch, tmp_path):
    monkeypatch.setenv("PROVOCATION_HOME", str(tmp_path))
    config_path = tmp_path / "config.yaml"

    config_data = {
        "resource_type": "Acme::Storage::Bucket",
        "schema_path": "~/schemas/bucket.json",
        "region": "us-east-1",
        "events_dataset": "provider_events",
        "metrics_enabled": True,
        "log_format": "pretty",
        "owner": "storage-team",
    }
    config_path.write_text(yaml.dump(config_data))

    cfg = load_config()
    assert isinstance(cfg, ProvocationConfig)
    assert cfg.resource_type == "Acme::Storage::Bucket"
    assert cfg.region == "us-east-1"
    assert cfg.metrics_enabled is True
    assert cfg.scrub_temp_dir is False
    assert cfg.log_level == "INFO"
    assert cfg.log_format == "pretty"
    assert cfg.get_schema_path() == Path("~/schemas/bucket.json").expanduser()
    assert cfg.extra == {"owner": "storage-team"}


def test_load_config_explicit_path(tmp_path):
    config_path = tmp_path / "other.yaml"
    config_path.write_text(yaml.dump({"region": "eu-west-1"}))

    assert load_config(config_path).region == "eu-west-1"


def test_load_config_empty_file(monkeypatch, tmp_path):
    monkeypatch.setenv("PROVOCATION_HOME", str(tmp_path))
    (tmp_path / "config.yaml").write_text("")

    cfg = load_config()
    assert cfg.resource_type is None
    assert cfg.get_schema_path() is None
    assert cfg.get_log_file_path() is None


def test_load_config_not_a_mapping(monkeypatch, tmp_path):
    monkeypatch.setenv("PROVOCATION_HOME", str(tmp_path))
    (tmp_path / "config.yaml").write_text(yaml.dump(["a", "b"]))

    with pytest.raises(ValueError, match="must be a mapping"):
        load_config()


def test_load_config_with_env_file(monkeypatch, tmp_path):
    monkeypatch.setenv("PROVOCATION_HOME", str(tmp_path))
    config_path = tmp_path / "config.yaml"
    env_file = tmp_path / ".env.test"

    env_file.write_text("TEST_VAR=loaded_from_env")
    config_path.write_text(yaml.dump({"resource_type": "T", "env_file": str(env_file)}))

    # Pre-clean env var
    monkeypatch.delenv("TEST_VAR", raising=False)

    load_config()
    assert os.environ.get("TEST_VAR") == "loaded_from_env"
    monkeypatch.delenv("TEST_VAR", raising=False)


def test_load_schema(tmp_path, schema):
    path = tmp_path / "bucket.json"
    path.write_text(json.dumps(schema))

    assert load_schema(path) == schema


def test_load_schema_missing(tmp_path):
    with pytest.raises(FileNotFoundError, match="Resource schema not found"):
        load_schema(tmp_path / "missing.json")


def test_load_schema_not_an_object(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[]")

    with pytest.raises(ValueError, match="must be a JSON object"):
        load_schema(path)
