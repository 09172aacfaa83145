"""Tests for configuration loading."""

from stepflow.config import load_config
from stepflow.persistence import SQLiteWorkflowRepository, get_repository


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "stepflow.yaml"
    config_path.write_text(
        """
database_url: sqlite://ignored.db
logging:
  level: DEBUG
  json: true
discovery:
  enabled: false
  step_types_group: acme.steps
"""
    )
    monkeypatch.setenv("STEPFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("STEPFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = load_config()
    assert config.database_url == "sqlite://ignored.db"
    assert config.logging.level == "DEBUG"
    assert config.logging.json_output is True
    assert config.discovery.enabled is False
    assert config.discovery.step_types_group == "acme.steps"
    assert config.discovery.parameter_types_group == "stepflow.parameter_types"


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.delenv("STEPFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    config = load_config(str(tmp_path / "missing.yaml"))
    assert config.database_url is None
    assert config.logging.level == "INFO"
    assert config.discovery.enabled is True


def test_environment_overrides_database_url(tmp_path, monkeypatch):
    config_path = tmp_path / "stepflow.yaml"
    config_path.write_text("database_url: sqlite://from-file.db\n")
    db_path = tmp_path / "env.db"
    monkeypatch.setenv("STEPFLOW_DATABASE_URL", f"sqlite://{db_path}")

    config = load_config(str(config_path))
    assert config.database_url == f"sqlite://{db_path}"

    repo = get_repository(config=config)
    assert isinstance(repo, SQLiteWorkflowRepository)
    assert repo.db_path == str(db_path)
