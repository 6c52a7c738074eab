"""PostgreSQL and pgvector installation from the PGDG repository.

Provides:
- System update and prerequisite packages
- PGDG repository setup for EL
- Server, contrib and pgvector packages
- Cluster initialization
"""

import platform
from typing import Optional

from pgvp.core.config import PostgresConfig
from pgvp.core.context import ExecutionContext
from pgvp.core.exceptions import ExecutionError, PackageError
from pgvp.core.executor import PrivilegedExecutor


PGDG_REPO_URL = (
    "https://download.postgresql.org/pub/repos/yum/reporpms/"
    "EL-{release}-{arch}/pgdg-redhat-repo-latest.noarch.rpm"
)

PREREQUISITE_PACKAGES = ["wget", "curl", "gnupg2"]

# Package operations can take a while on a fresh host
DNF_TIMEOUT = 1800


class PackageInstaller:
    """Installs the PGDG server packages and initializes the cluster."""

    def __init__(
        self,
        ctx: ExecutionContext,
        executor: PrivilegedExecutor,
        postgres_config: PostgresConfig,
    ) -> None:
        self.ctx = ctx
        self.executor = executor
        self.config = postgres_config

    @property
    def server_packages(self) -> list[str]:
        v = self.config.version
        return [f"postgresql{v}-server", f"postgresql{v}-contrib", f"pgvector_{v}"]

    @property
    def repo_url(self) -> str:
        return PGDG_REPO_URL.format(
            release=self.config.el_release,
            arch=platform.machine() or "x86_64",
        )

    def install_all(self) -> None:
        """Run every installation step in order.

        Raises:
            PackageError: If any step fails
        """
        self.update_system()
        self.install_prerequisites()
        self.add_pgdg_repository()
        self.disable_builtin_module()
        self.install_server()
        self.init_cluster()
        self.ctx.console.success(
            f"PostgreSQL {self.config.version} with pgvector installed"
        )

    def update_system(self) -> None:
        self._dnf(["update", "-y"], "Updating system packages")

    def install_prerequisites(self) -> None:
        self._dnf(["install", "-y"] + PREREQUISITE_PACKAGES,
                  "Installing prerequisites")

    def add_pgdg_repository(self) -> None:
        self._dnf(["install", "-y", self.repo_url],
                  "Adding PostgreSQL (PGDG) repository")

    def disable_builtin_module(self) -> None:
        # The AppStream postgresql module shadows the PGDG packages
        self._dnf(["-qy", "module", "disable", "postgresql"],
                  "Disabling built-in PostgreSQL module")

    def install_server(self) -> None:
        self._dnf(["install", "-y"] + self.server_packages,
                  f"Installing PostgreSQL {self.config.version} and pgvector")

    def init_cluster(self) -> None:
        """Initialize the data directory unless it already holds a cluster."""
        data_dir = self.config.resolved_data_dir

        if not self.ctx.dry_run and (data_dir / "PG_VERSION").exists():
            self.ctx.console.info(f"Cluster already initialized in {data_dir}")
            return

        setup = self.config.bin_dir / f"postgresql-{self.config.version}-setup"
        self._run([str(setup), "initdb"], "Initializing database cluster")

    def _dnf(self, args: list[str], description: str) -> None:
        self._run(["dnf"] + args, description, timeout=DNF_TIMEOUT)

    def _run(
        self,
        command: list[str],
        description: str,
        timeout: Optional[int] = None,
    ) -> None:
        try:
            self.executor.run(command, description=description, timeout=timeout)
        except ExecutionError as e:
            raise PackageError(
                f"{description} failed",
                details=[e.message] + e.details,
                hint="Check network access and the dnf output above",
            ) from e
