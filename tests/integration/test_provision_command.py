"""Integration tests for the pgvp CLI.

Tests the CLI interface and workflow of the commands, mocking the
provisioning driver and host detection so no root or PostgreSQL is needed.
"""

import pytest
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from pgvp import __version__
from pgvp.cli import app
from pgvp.core.exceptions import PostgresError, ServiceError
from pgvp.services.tuning import GIB, HostResources


runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    """Keep environment overrides out of the tests."""
    monkeypatch.delenv("PGVP_APP_USER", raising=False)
    monkeypatch.delenv("PGVP_APP_DATABASE", raising=False)


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """A config path with no file behind it (defaults apply)."""
    return tmp_path / "config.yaml"


@pytest.fixture
def mock_run_provision() -> Generator[MagicMock, None, None]:
    """Mock the provisioning driver."""
    with patch("pgvp.commands.provision.run_provision") as mock:
        yield mock


@pytest.fixture
def mock_detector() -> Generator[MagicMock, None, None]:
    """Mock resource detection with a 16GB / 8 core host."""
    with patch("pgvp.commands.provision.ResourceDetector") as mock:
        mock.return_value.detect.return_value = HostResources(
            total_memory_bytes=16 * GIB, cpu_core_count=8,
        )
        yield mock.return_value


class TestProvisionCommand:
    """Tests for `pgvp provision`."""

    def test_dry_run_skips_confirmation(
        self,
        config_path: Path,
        mock_run_provision: MagicMock,
    ) -> None:
        """--dry-run should run without prompting."""
        result = runner.invoke(app, ["provision", "--dry-run", "-c", str(config_path)])

        assert result.exit_code == 0
        assert "webui_user" in result.output
        mock_run_provision.assert_called_once()
        ctx = mock_run_provision.call_args[0][0]
        assert ctx.dry_run is True

    def test_options_passed_through(
        self,
        config_path: Path,
        mock_run_provision: MagicMock,
    ) -> None:
        """--skip-install and --reuse-existing should reach the driver."""
        result = runner.invoke(app, [
            "provision", "-y", "--skip-install", "--reuse-existing",
            "-c", str(config_path),
        ])

        assert result.exit_code == 0
        assert mock_run_provision.call_args.kwargs == {
            "skip_install": True,
            "reuse_existing": True,
        }

    def test_declined_confirmation(
        self,
        config_path: Path,
        mock_run_provision: MagicMock,
    ) -> None:
        """Answering no should cancel without provisioning."""
        result = runner.invoke(app, ["provision", "-c", str(config_path)], input="n\n")

        assert result.exit_code == 0
        mock_run_provision.assert_not_called()

    def test_service_error_exit_code(
        self,
        config_path: Path,
        mock_run_provision: MagicMock,
    ) -> None:
        """A ServiceError should exit with code 13."""
        mock_run_provision.side_effect = ServiceError(
            "Failed to start postgresql-16", service="postgresql-16",
        )

        result = runner.invoke(app, ["provision", "-y", "-c", str(config_path)])

        assert result.exit_code == 13

    def test_postgres_error_exit_code(
        self,
        config_path: Path,
        mock_run_provision: MagicMock,
    ) -> None:
        """A PostgresError should exit with code 10."""
        mock_run_provision.side_effect = PostgresError("Already exists: role 'webui_user'")

        result = runner.invoke(app, ["provision", "-y", "-c", str(config_path)])

        assert result.exit_code == 10

    def test_invalid_config_exit_code(
        self,
        config_path: Path,
        mock_run_provision: MagicMock,
    ) -> None:
        """An invalid config file should exit with code 2 before provisioning."""
        config_path.write_text("application:\n  user: bad-name\n")

        result = runner.invoke(app, ["provision", "-y", "-c", str(config_path)])

        assert result.exit_code == 2
        mock_run_provision.assert_not_called()


class TestPlanCommand:
    """Tests for `pgvp plan`."""

    def test_plan_shows_derived_settings(
        self,
        config_path: Path,
        mock_detector: MagicMock,
    ) -> None:
        """plan should print the derived table."""
        result = runner.invoke(app, ["plan", "-c", str(config_path)])

        assert result.exit_code == 0
        assert "Derived Settings" in result.output
        assert "shared_buffers" in result.output
        assert "4GB" in result.output

    def test_plan_show_renders_files(
        self,
        config_path: Path,
        mock_detector: MagicMock,
    ) -> None:
        """--show should print both configuration files."""
        result = runner.invoke(app, ["plan", "--show", "-c", str(config_path)])

        assert result.exit_code == 0
        assert "scram-sha-256" in result.output
        assert "pg_stat_statements" in result.output


class TestConfigCommands:
    """Tests for the config command group."""

    def test_example(self) -> None:
        result = runner.invoke(app, ["config", "example"])

        assert result.exit_code == 0
        assert "application:" in result.output
        assert "webui_user" in result.output

    def test_init_then_refuse(self, config_path: Path) -> None:
        first = runner.invoke(app, ["config", "init", "-c", str(config_path)])
        second = runner.invoke(app, ["config", "init", "-c", str(config_path)])

        assert first.exit_code == 0
        assert config_path.exists()
        assert second.exit_code == 2

    def test_validate_invalid(self, config_path: Path) -> None:
        config_path.write_text("access:\n  external_cidr: 10.0.0.1\n")

        result = runner.invoke(app, ["config", "validate", "-c", str(config_path)])

        assert result.exit_code == 2

    def test_validate_valid(self, config_path: Path) -> None:
        config_path.write_text("access:\n  external_cidr: 10.0.0.0/24\n")

        result = runner.invoke(app, ["config", "validate", "-c", str(config_path)])

        assert result.exit_code == 0

    def test_show(self, config_path: Path) -> None:
        result = runner.invoke(app, ["config", "show", "-c", str(config_path)])

        assert result.exit_code == 0
        assert "open_webui_db" in result.output


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output
