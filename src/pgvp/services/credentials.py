"""Application credential generation and provisioning.

The generated password exists only in memory: it is sent to the server on
psql's stdin and shown once in the final report.
"""

import socket
from dataclasses import dataclass, field

from pgvp.core.config import ApplicationConfig
from pgvp.core.context import ExecutionContext
from pgvp.core.exceptions import ExecutionError, PostgresError
from pgvp.core.executor import PrivilegedExecutor
from pgvp.core.validation import generate_password
from pgvp.services.postgresql import PostgreSQLService


@dataclass(frozen=True)
class AppCredential:
    """Connection details for the application role."""

    username: str
    database: str
    password: str = field(repr=False)
    host: str
    port: int

    @property
    def dsn(self) -> str:
        # IPv6 literals need brackets in a URI authority
        host = f"[{self.host}]" if ":" in self.host else self.host
        return (
            f"postgresql://{self.username}:{self.password}"
            f"@{host}:{self.port}/{self.database}"
        )


def detect_host_address(executor: PrivilegedExecutor) -> str:
    """First address reported by `hostname -I`, else the hostname."""
    try:
        result = executor.run(["hostname", "-I"], check=False)
    except ExecutionError as e:
        executor.ctx.console.debug(f"hostname -I unavailable: {e.message}")
        return socket.gethostname()

    addresses = result.stdout.split()
    if result.success and addresses:
        return addresses[0]
    return socket.gethostname()


def generate_credential(
    app_config: ApplicationConfig,
    *,
    host: str,
    port: int,
) -> AppCredential:
    """Create a credential with a fresh 24-character password."""
    return AppCredential(
        username=app_config.user,
        database=app_config.database,
        password=generate_password(),
        host=host,
        port=port,
    )


class CredentialProvisioner:
    """Creates the application role, its database and the extension.

    By default an existing role or database is an error. With
    reuse_existing the role's password is reset, the database is kept
    and reassigned, and the extension is enabled if missing.
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        pg: PostgreSQLService,
        *,
        extension: str = "vector",
    ) -> None:
        self.ctx = ctx
        self.pg = pg
        self.extension = extension

    def apply(self, credential: AppCredential, *, reuse_existing: bool = False) -> None:
        """Run role, database and extension creation in that order.

        Raises:
            PostgresError: If any statement fails, or the role or database
                exists and reuse_existing is False
        """
        user = credential.username
        database = credential.database

        role_exists = self.pg.user_exists(user)
        db_exists = self.pg.database_exists(database)

        if not reuse_existing and (role_exists or db_exists):
            existing = []
            if role_exists:
                existing.append(f"role '{user}'")
            if db_exists:
                existing.append(f"database '{database}'")
            raise PostgresError(
                f"Already exists: {' and '.join(existing)}",
                hint="Re-run with --reuse-existing to reset the password and keep the data",
            )

        if role_exists:
            self.pg.alter_role_password(user, credential.password)
        else:
            self.pg.create_role(user, credential.password)

        if db_exists:
            self.pg.set_database_owner(database, user)
        else:
            self.pg.create_database(database, owner=user)

        self.pg.enable_extension(database, self.extension)
