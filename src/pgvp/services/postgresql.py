"""PostgreSQL role, database and extension operations.

All statements run through psql as the postgres OS user over the local
socket. Names are validated identifiers; passwords are embedded with a
random dollar-quote tag.
"""

import secrets
from typing import Optional

from pgvp.core.context import ExecutionContext
from pgvp.core.exceptions import ExecutionError, PostgresError
from pgvp.core.executor import PrivilegedExecutor
from pgvp.core.validation import validate_identifier


def _unique_dollar_tag() -> str:
    """Generate a unique dollar-quote tag to embed a password in SQL.

    A random tag means the password can never terminate the literal early.
    """
    return f"p{secrets.token_hex(4)}"


class PostgreSQLService:
    """Role, database and extension management on the local server.

    Failed statements raise PostgresError. Nothing is retried.
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        executor: PrivilegedExecutor,
        *,
        port: int = 5432,
    ) -> None:
        self.ctx = ctx
        self.executor = executor
        self.port = port

    def _run_sql(
        self,
        sql: str,
        *,
        database: str = "postgres",
        description: Optional[str] = None,
    ) -> str:
        try:
            return self.executor.run_sql(
                sql,
                database=database,
                as_user="postgres",
                description=description,
                port=self.port,
            )
        except ExecutionError as e:
            raise PostgresError(
                f"{description or 'SQL statement'} failed",
                details=[e.message] + e.details,
                hint="Check the PostgreSQL log: journalctl -u postgresql-*",
            ) from e

    # =========================================================================
    # Lookups
    # =========================================================================

    def user_exists(self, name: str) -> bool:
        """Check if a role exists."""
        validate_identifier(name, "user")
        if self.ctx.dry_run:
            return False

        result = self._run_sql(f"SELECT 1 FROM pg_roles WHERE rolname = '{name}'")
        return bool(result.strip())

    def database_exists(self, name: str) -> bool:
        """Check if a database exists."""
        validate_identifier(name, "database")
        if self.ctx.dry_run:
            return False

        result = self._run_sql(f"SELECT 1 FROM pg_database WHERE datname = '{name}'")
        return bool(result.strip())

    # =========================================================================
    # Roles
    # =========================================================================

    def create_role(self, name: str, password: str) -> None:
        """Create a login role with a SCRAM-SHA-256 password.

        Raises:
            PostgresError: If the role already exists or creation fails
        """
        validate_identifier(name, "user")

        tag = _unique_dollar_tag()
        sql = f"""
        SET password_encryption = 'scram-sha-256';
        CREATE ROLE "{name}" WITH LOGIN NOSUPERUSER NOCREATEDB NOCREATEROLE
            PASSWORD ${tag}${password}${tag}$;
        """

        self._run_sql(sql, description=f"Create role '{name}'")
        self.ctx.console.success(f"Role '{name}' created")

    def alter_role_password(self, name: str, password: str) -> None:
        """Reset an existing role's password (SCRAM-SHA-256).

        Raises:
            PostgresError: If the statement fails
        """
        validate_identifier(name, "user")

        tag = _unique_dollar_tag()
        sql = f"""
        SET password_encryption = 'scram-sha-256';
        ALTER ROLE "{name}" WITH LOGIN PASSWORD ${tag}${password}${tag}$;
        """

        self._run_sql(sql, description=f"Reset password for role '{name}'")
        self.ctx.console.success(f"Password reset for role '{name}'")

    # =========================================================================
    # Databases
    # =========================================================================

    def create_database(self, name: str, *, owner: str) -> None:
        """Create a database owned by owner.

        Raises:
            PostgresError: If the database already exists or creation fails
        """
        validate_identifier(name, "database")
        validate_identifier(owner, "user")

        self._run_sql(
            f'CREATE DATABASE "{name}" OWNER "{owner}"',
            description=f"Create database '{name}'",
        )
        self.ctx.console.success(f"Database '{name}' created")

    def set_database_owner(self, name: str, owner: str) -> None:
        """Reassign an existing database to owner."""
        validate_identifier(name, "database")
        validate_identifier(owner, "user")

        self._run_sql(
            f'ALTER DATABASE "{name}" OWNER TO "{owner}"',
            description=f"Set owner of database '{name}' to '{owner}'",
        )
        self.ctx.console.info(f"Database '{name}' kept, owner set to '{owner}'")

    # =========================================================================
    # Extensions
    # =========================================================================

    def enable_extension(self, database: str, extension: str) -> None:
        """Enable an extension inside database (no-op if already enabled).

        Raises:
            PostgresError: If the extension cannot be created
        """
        validate_identifier(database, "database")
        validate_identifier(extension, "extension")

        self._run_sql(
            f'CREATE EXTENSION IF NOT EXISTS "{extension}"',
            database=database,
            description=f"Enable extension '{extension}' in '{database}'",
        )
        self.ctx.console.success(f"Extension '{extension}' enabled in '{database}'")
