"""Unit tests for credential generation and provisioning."""

import string
from urllib.parse import urlsplit

import pytest
from unittest.mock import Mock, patch

from pgvp.core.config import ApplicationConfig
from pgvp.core.exceptions import ExecutionError, PostgresError, ValidationError
from pgvp.core.executor import CommandResult, PrivilegedExecutor
from pgvp.services.credentials import (
    AppCredential,
    CredentialProvisioner,
    detect_host_address,
    generate_credential,
)
from pgvp.services.postgresql import PostgreSQLService


ALPHANUMERIC = set(string.ascii_letters + string.digits)


@pytest.fixture
def mock_ctx():
    """Create a mock execution context."""
    ctx = Mock()
    ctx.dry_run = False
    return ctx


@pytest.fixture
def credential():
    return AppCredential(
        username="webui_user",
        database="open_webui_db",
        password="A" * 24,
        host="10.0.0.5",
        port=5432,
    )


class TestGenerateCredential:
    """Tests for generate_credential."""

    def test_password_is_24_alphanumeric(self):
        """Password should be 24 characters from [A-Za-z0-9]."""
        cred = generate_credential(ApplicationConfig(), host="db", port=5432)

        assert len(cred.password) == 24
        assert set(cred.password) <= ALPHANUMERIC

    def test_password_differs_between_runs(self):
        """Two runs should never produce the same password."""
        first = generate_credential(ApplicationConfig(), host="db", port=5432)
        second = generate_credential(ApplicationConfig(), host="db", port=5432)

        assert first.password != second.password

    def test_uses_configured_names(self):
        """User and database should come from the configuration."""
        app = ApplicationConfig(user="rag_user", database="rag_db")
        cred = generate_credential(app, host="db", port=5433)

        assert cred.username == "rag_user"
        assert cred.database == "rag_db"
        assert cred.port == 5433

    def test_defaults(self):
        """Defaults should match the Open WebUI names."""
        cred = generate_credential(ApplicationConfig(), host="db", port=5432)

        assert cred.username == "webui_user"
        assert cred.database == "open_webui_db"


class TestAppCredential:
    """Tests for AppCredential."""

    def test_dsn(self, credential):
        """DSN should combine every connection field."""
        assert credential.dsn == (
            "postgresql://webui_user:" + "A" * 24 + "@10.0.0.5:5432/open_webui_db"
        )

    def test_dsn_brackets_ipv6_host(self):
        """An IPv6 host should be bracketed so the port stays separate."""
        cred = AppCredential(
            username="webui_user",
            database="open_webui_db",
            password="A" * 24,
            host="fd00::5",
            port=5432,
        )

        parts = urlsplit(cred.dsn)

        assert parts.hostname == "fd00::5"
        assert parts.port == 5432

    def test_repr_hides_password(self, credential):
        """The password should not leak through repr()."""
        assert "A" * 24 not in repr(credential)


class TestDetectHostAddress:
    """Tests for detect_host_address."""

    def test_first_address(self):
        """Should use the first address from hostname -I."""
        executor = Mock()
        executor.run.return_value = CommandResult([], 0, "10.0.0.5 172.17.0.1 \n", "")

        assert detect_host_address(executor) == "10.0.0.5"

    def test_falls_back_to_hostname(self):
        """No addresses should fall back to the hostname."""
        executor = Mock()
        executor.run.return_value = CommandResult([], 0, "", "")

        assert detect_host_address(executor)

    def test_missing_hostname_binary_falls_back(self, mock_ctx):
        """A missing hostname binary should fall back to the hostname."""
        executor = PrivilegedExecutor(mock_ctx)

        with patch("pgvp.core.executor.subprocess.run",
                   side_effect=FileNotFoundError("hostname")), \
                patch("pgvp.services.credentials.socket.gethostname",
                      return_value="db-01"):
            assert detect_host_address(executor) == "db-01"


class TestCredentialProvisioner:
    """Tests for CredentialProvisioner."""

    @pytest.fixture
    def mock_pg(self):
        """Mock PostgreSQLService with nothing pre-existing."""
        pg = Mock()
        pg.user_exists.return_value = False
        pg.database_exists.return_value = False
        return pg

    def _mutations(self, pg):
        return [
            c[0] for c in pg.mock_calls
            if c[0] not in ("user_exists", "database_exists")
        ]

    def test_creates_in_order(self, mock_ctx, mock_pg, credential):
        """Role, then database, then extension."""
        CredentialProvisioner(mock_ctx, mock_pg).apply(credential)

        assert self._mutations(mock_pg) == [
            "create_role", "create_database", "enable_extension",
        ]
        mock_pg.create_role.assert_called_once_with("webui_user", "A" * 24)
        mock_pg.create_database.assert_called_once_with("open_webui_db", owner="webui_user")
        mock_pg.enable_extension.assert_called_once_with("open_webui_db", "vector")

    def test_existing_role_fails_loudly(self, mock_ctx, mock_pg, credential):
        """An existing role should fail before any change."""
        mock_pg.user_exists.return_value = True

        with pytest.raises(PostgresError) as exc:
            CredentialProvisioner(mock_ctx, mock_pg).apply(credential)

        assert "--reuse-existing" in exc.value.hint
        assert self._mutations(mock_pg) == []

    def test_existing_database_fails_loudly(self, mock_ctx, mock_pg, credential):
        """An existing database should fail before any change."""
        mock_pg.database_exists.return_value = True

        with pytest.raises(PostgresError):
            CredentialProvisioner(mock_ctx, mock_pg).apply(credential)

        assert self._mutations(mock_pg) == []

    def test_reuse_existing(self, mock_ctx, mock_pg, credential):
        """With reuse_existing the role is updated and the database kept."""
        mock_pg.user_exists.return_value = True
        mock_pg.database_exists.return_value = True

        CredentialProvisioner(mock_ctx, mock_pg).apply(credential, reuse_existing=True)

        assert self._mutations(mock_pg) == [
            "alter_role_password", "set_database_owner", "enable_extension",
        ]

    def test_failure_stops_sequence(self, mock_ctx, mock_pg, credential):
        """A failed role creation should not be followed by anything else."""
        mock_pg.create_role.side_effect = PostgresError("Create role failed")

        with pytest.raises(PostgresError):
            CredentialProvisioner(mock_ctx, mock_pg).apply(credential)

        mock_pg.create_database.assert_not_called()
        mock_pg.enable_extension.assert_not_called()


class TestPostgreSQLService:
    """Tests for the SQL issued by PostgreSQLService."""

    @pytest.fixture
    def mock_executor(self):
        executor = Mock()
        executor.run_sql.return_value = ""
        return executor

    @pytest.fixture
    def pg(self, mock_ctx, mock_executor):
        return PostgreSQLService(mock_ctx, mock_executor, port=5432)

    def test_create_role_uses_scram(self, pg, mock_executor):
        """Role creation should set SCRAM hashing and LOGIN."""
        pg.create_role("webui_user", "Secret123Secret123Secret")

        sql = mock_executor.run_sql.call_args[0][0]
        assert "password_encryption = 'scram-sha-256'" in sql
        assert 'CREATE ROLE "webui_user" WITH LOGIN' in sql
        assert "Secret123Secret123Secret" in sql
        assert mock_executor.run_sql.call_args.kwargs["as_user"] == "postgres"

    def test_create_database_with_owner(self, pg, mock_executor):
        """Database creation should assign the owner."""
        pg.create_database("open_webui_db", owner="webui_user")

        sql = mock_executor.run_sql.call_args[0][0]
        assert sql == 'CREATE DATABASE "open_webui_db" OWNER "webui_user"'

    def test_enable_extension_in_target_database(self, pg, mock_executor):
        """The extension should be created inside the application database."""
        pg.enable_extension("open_webui_db", "vector")

        call = mock_executor.run_sql.call_args
        assert call[0][0] == 'CREATE EXTENSION IF NOT EXISTS "vector"'
        assert call.kwargs["database"] == "open_webui_db"

    def test_enable_extension_rejects_unsafe_name(self, pg, mock_executor):
        """An extension name that is not an identifier should never reach psql."""
        with pytest.raises(ValidationError):
            pg.enable_extension("open_webui_db", 'vector"; DROP TABLE x; --')

        mock_executor.run_sql.assert_not_called()

    def test_execution_error_becomes_postgres_error(self, pg, mock_executor):
        """A failed statement should raise PostgresError (exit code 10)."""
        mock_executor.run_sql.side_effect = ExecutionError("Command failed", return_code=1)

        with pytest.raises(PostgresError) as exc:
            pg.create_database("open_webui_db", owner="webui_user")

        assert exc.value.exit_code == 10

    def test_user_exists(self, pg, mock_executor):
        """user_exists should reflect the pg_roles lookup."""
        mock_executor.run_sql.return_value = "1"
        assert pg.user_exists("webui_user") is True

        mock_executor.run_sql.return_value = ""
        assert pg.user_exists("webui_user") is False
