"""
Unit tests for loading the rc file into a validated configuration.
"""
import pytest
import yaml

from conftest import FakeEngine
from dockest.errors import ConfigurationError
from dockest.MANAGERS.config_store import ConfigStore, import_object
from dockest.MODELS.service_declaration import PostgresDeclaration
from dockest.RUNNERS import pytest_engine


def write_rc(tmp_path, content):
    rc_file = tmp_path / ".dockestrc.yml"
    with open(rc_file, 'w') as f:
        if isinstance(content, str):
            f.write(content)
        else:
            yaml.dump(content, f)
    return rc_file


class TestConfigStore:
    """Tests for ConfigStore."""

    def test_user_config_is_merged_with_defaults(self):
        store = ConfigStore({"test_engine": {"lib": FakeEngine()}})
        config = store.get_config()
        assert config.test_engine.projects == ["."]
        assert config.dockest.verbose is False
        assert config.dockest.compose_file_path == "docker-compose.yml"
        assert config.postgres == [] and config.redis == [] and config.kafka == []

    def test_declarations_are_typed(self):
        store = ConfigStore({
            "test_engine": {"lib": FakeEngine()},
            "postgres": [{
                "label": "pg", "service": "pg", "host": "localhost", "db": "db",
                "port": "5432", "password": "pw", "username": "user",
                "commands": ["alembic upgrade head"],
            }],
        })
        declaration = store.get_config().postgres[0]
        assert isinstance(declaration, PostgresDeclaration)
        assert declaration.port == 5432
        assert declaration.container_id is None

    def test_validation_runs(self):
        with pytest.raises(ConfigurationError, match="redis"):
            ConfigStore({"test_engine": {"lib": FakeEngine()}, "redis": [{"label": "r"}]})

    def test_invalid_values_raise_configuration_error(self):
        with pytest.raises(ConfigurationError, match="redis.0.port"):
            ConfigStore({"test_engine": {"lib": FakeEngine()}, "redis": [{"label": "r", "port": "abc"}]})

    def test_non_mapping_config(self):
        with pytest.raises(ConfigurationError, match="Configuration step failed"):
            ConfigStore(["not", "a", "mapping"])

    def test_missing_rc_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Could not find"):
            ConfigStore(base_dir=str(tmp_path))

    def test_rc_file_with_import_string(self, tmp_path):
        write_rc(tmp_path, {
            "test_engine": {"lib": "dockest.RUNNERS.pytest_engine", "projects": ["tests"]},
            "redis": [{"label": "dockest=redis", "port": 6380}],
        })
        config = ConfigStore(base_dir=str(tmp_path)).get_config()
        assert config.test_engine.lib is pytest_engine
        assert config.test_engine.projects == ["tests"]
        assert config.redis[0].port == 6380

    def test_rc_file_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("REDIS_PORT", "6390")
        (tmp_path / ".env").write_text("REDIS_LABEL=from-dotenv\nREDIS_PORT=1\n")
        write_rc(tmp_path, (
            "test_engine:\n"
            "  lib: dockest.RUNNERS.pytest_engine\n"
            "redis:\n"
            "  - label: ${REDIS_LABEL}\n"
            "    port: ${REDIS_PORT}\n"
            "    connection_timeout: ${REDIS_TIMEOUT:-5}\n"
        ))
        config = ConfigStore(base_dir=str(tmp_path)).get_config()
        assert config.redis[0].label == "from-dotenv"
        assert config.redis[0].port == 6390
        assert config.redis[0].connection_timeout == 5

    def test_unset_variable(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DOCKEST_UNSET_VAR", raising=False)
        write_rc(tmp_path, "test_engine:\n  lib: ${DOCKEST_UNSET_VAR}\n")
        with pytest.raises(ConfigurationError, match="DOCKEST_UNSET_VAR"):
            ConfigStore(base_dir=str(tmp_path))

    def test_empty_rc_file(self, tmp_path):
        write_rc(tmp_path, "")
        with pytest.raises(ConfigurationError, match="Configuration step failed"):
            ConfigStore(base_dir=str(tmp_path))


class TestImportObject:
    """Tests for import_object."""

    def test_module(self):
        assert import_object("dockest.RUNNERS.pytest_engine") is pytest_engine

    def test_attribute(self):
        assert import_object("dockest.RUNNERS.pytest_engine:run_cli") is pytest_engine.run_cli

    def test_unknown(self):
        with pytest.raises(ConfigurationError):
            import_object("dockest.does_not_exist")
