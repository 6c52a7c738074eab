"""Unit tests for configuration loading."""

import os
import stat

import pytest

from pgvp.core.config import (
    AppConfig,
    EnvironmentOverrides,
    PostgresConfig,
    ProvisionConfig,
    get_example_config,
    init_config,
)
from pgvp.core.exceptions import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch):
    """Remove environment overrides."""
    monkeypatch.delenv("PGVP_APP_USER", raising=False)
    monkeypatch.delenv("PGVP_APP_DATABASE", raising=False)


class TestDefaults:
    """Tests for default configuration values."""

    def test_defaults(self):
        config = ProvisionConfig()

        assert config.application.user == "webui_user"
        assert config.application.database == "open_webui_db"
        assert config.application.extension == "vector"
        assert config.postgres.version == "16"
        assert config.postgres.port == 5432
        assert config.postgres.startup_wait == 5
        assert config.access.external_cidr == "0.0.0.0/0"

    def test_pgdg_paths(self):
        pg = PostgresConfig(version="16")

        assert pg.service_name == "postgresql-16"
        assert str(pg.resolved_data_dir) == "/var/lib/pgsql/16/data"
        assert str(pg.bin_dir) == "/usr/pgsql-16/bin"

    def test_data_dir_override(self, tmp_path):
        assert PostgresConfig(data_dir=tmp_path).resolved_data_dir == tmp_path


class TestLoad:
    """Tests for YAML loading."""

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "application:\n"
            "  user: rag_user\n"
            "  database: rag_db\n"
            "postgres:\n"
            "  version: '17'\n"
            "  port: 5433\n"
            "access:\n"
            "  external_cidr: 10.0.0.0/24\n"
        )

        config = ProvisionConfig.load(path)

        assert config.application.user == "rag_user"
        assert config.postgres.version == "17"
        assert config.postgres.port == 5433
        assert config.access.external_cidr == "10.0.0.0/24"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ProvisionConfig.load(tmp_path / "missing.yaml")

    def test_missing_file_defaults(self, tmp_path):
        config = ProvisionConfig.load_or_default(tmp_path / "missing.yaml")
        assert config.application.user == "webui_user"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("application: [unclosed\n")

        with pytest.raises(ConfigurationError):
            ProvisionConfig.load(path)

    @pytest.mark.parametrize("body", [
        "application:\n  user: bad-name\n",
        "application:\n  database: postgres\n",
        "postgres:\n  version: '9'\n",
        "postgres:\n  port: 70000\n",
        "access:\n  external_cidr: 10.0.0.1\n",
        "application:\n  extension: 'vector\"; DROP TABLE x; --'\n",
    ])
    def test_invalid_values(self, tmp_path, body):
        path = tmp_path / "config.yaml"
        path.write_text(body)

        with pytest.raises(ConfigurationError):
            ProvisionConfig.load(path)

    def test_example_config_is_valid(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(get_example_config())

        config = ProvisionConfig.load(path)
        assert config.application.user == "webui_user"


class TestEnvironmentOverrides:
    """Tests for PGVP_APP_USER / PGVP_APP_DATABASE."""

    def test_env_overrides_application(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PGVP_APP_USER", "env_user")
        monkeypatch.setenv("PGVP_APP_DATABASE", "env_db")

        app_config = AppConfig(config_path=tmp_path / "missing.yaml")

        assert app_config.application.user == "env_user"
        assert app_config.application.database == "env_db"

    def test_env_override_beats_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("application:\n  user: file_user\n  database: file_db\n")
        monkeypatch.setenv("PGVP_APP_USER", "env_user")
        monkeypatch.delenv("PGVP_APP_DATABASE", raising=False)

        app_config = AppConfig(config_path=path)

        assert app_config.application.user == "env_user"
        assert app_config.application.database == "file_db"

    def test_invalid_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PGVP_APP_USER", "bad-name")

        with pytest.raises(ConfigurationError):
            AppConfig(config_path=tmp_path / "missing.yaml")

    def test_no_env_keeps_file(self, tmp_path, clean_env):
        app_config = AppConfig(
            config_path=tmp_path / "missing.yaml",
            overrides=EnvironmentOverrides(),
        )
        assert app_config.application.user == "webui_user"


class TestInitConfig:
    """Tests for init_config."""

    def test_creates_file(self, tmp_path):
        path = tmp_path / "etc" / "config.yaml"
        init_config(path)

        assert path.exists()
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_refuses_overwrite(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("{}\n")

        with pytest.raises(ConfigurationError):
            init_config(path)

    def test_force_overwrites(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("{}\n")

        init_config(path, force=True)
        assert "application:" in path.read_text()
