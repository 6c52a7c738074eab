"""postgresql.conf and pg_hba.conf generation.

Provides:
- The directive document written to postgresql.conf
- The client authentication rule table
- Jinja2 rendering of both files
- Backup-then-write of the files in the data directory
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import NamedTuple, Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from pgvp.core.config import AccessConfig, PostgresConfig
from pgvp.core.context import ExecutionContext
from pgvp.core.executor import PrivilegedExecutor
from pgvp.core.validation import is_open_cidr
from pgvp.services.tuning import TuningProfile


POSTGRESQL_CONF = "postgresql.conf"
PG_HBA_CONF = "pg_hba.conf"

CONFIG_OWNER = "postgres"
CONFIG_GROUP = "postgres"
CONFIG_PERMISSIONS = 0o600

LOCAL_IPV4 = "127.0.0.1/32"
LOCAL_IPV6 = "::1/128"
AUTH_METHOD = "scram-sha-256"

_jinja_env = Environment(
    loader=PackageLoader("pgvp", "templates"),
    autoescape=select_autoescape(),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


def _quote(value: str) -> str:
    """Quote a string setting the way postgresql.conf expects."""
    return "'" + value.replace("'", "''") + "'"


# Settings that do not depend on the host
WAL_SETTINGS = [
    ("wal_buffers", "16MB"),
    ("max_wal_size", "4GB"),
    ("min_wal_size", "1GB"),
    ("checkpoint_timeout", "15min"),
    ("checkpoint_completion_target", "0.9"),
]

PLANNER_SETTINGS = [
    ("random_page_cost", "1.1"),
    ("effective_io_concurrency", "200"),
]

AUTOVACUUM_SETTINGS = [
    ("autovacuum", "on"),
    ("autovacuum_max_workers", "4"),
    ("autovacuum_naptime", "30s"),
]

LOGGING_SETTINGS = [
    ("log_min_duration_statement", "1000"),
    ("log_line_prefix", _quote("%m [%p] %q%u@%d ")),
    ("log_lock_waits", "on"),
]

SECURITY_SETTINGS = [
    ("timezone", _quote("UTC")),
    ("password_encryption", "scram-sha-256"),
]

EXTENSION_SETTINGS = [
    ("shared_preload_libraries", _quote("pg_stat_statements")),
]


@dataclass
class ConfigSection:
    """A titled group of directives."""

    title: str
    directives: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class ConfigDocument:
    """Ordered postgresql.conf directives."""

    sections: list[ConfigSection] = field(default_factory=list)

    @property
    def directives(self) -> list[tuple[str, str]]:
        """All directives in file order."""
        return [d for section in self.sections for d in section.directives]

    def as_dict(self) -> dict[str, str]:
        return dict(self.directives)


class AccessRule(NamedTuple):
    """A single pg_hba.conf line."""

    connection_type: str
    database: str
    user: str
    address: Optional[str]
    auth_method: str
    comment: Optional[str] = None


def build_config_document(
    profile: TuningProfile,
    postgres_config: PostgresConfig,
) -> ConfigDocument:
    """Combine the tuning profile with fixed policy settings."""
    tuned = profile.conf_values()

    return ConfigDocument(sections=[
        ConfigSection("Connections", [
            ("listen_addresses", _quote(postgres_config.listen_addresses)),
            ("port", str(postgres_config.port)),
            ("max_connections", tuned["max_connections"]),
        ]),
        ConfigSection("Memory", [
            ("shared_buffers", tuned["shared_buffers"]),
            ("effective_cache_size", tuned["effective_cache_size"]),
            ("maintenance_work_mem", tuned["maintenance_work_mem"]),
            ("work_mem", tuned["work_mem"]),
        ]),
        ConfigSection("Write-Ahead Log", list(WAL_SETTINGS)),
        ConfigSection("Planner", list(PLANNER_SETTINGS)),
        ConfigSection("Parallelism", [
            ("max_worker_processes", tuned["max_worker_processes"]),
            ("max_parallel_workers_per_gather", tuned["max_parallel_workers_per_gather"]),
            ("max_parallel_workers", tuned["max_parallel_workers"]),
        ]),
        ConfigSection("Autovacuum", list(AUTOVACUUM_SETTINGS)),
        ConfigSection("Logging", list(LOGGING_SETTINGS)),
        ConfigSection("Locale and Security", list(SECURITY_SETTINGS)),
        ConfigSection("Extensions", list(EXTENSION_SETTINGS)),
    ])


def build_access_rules(external_cidr: str = "0.0.0.0/0") -> list[AccessRule]:
    """Build the four client authentication rules, in match order."""
    return [
        AccessRule("local", "all", "all", None, "peer"),
        AccessRule("host", "all", "all", LOCAL_IPV4, AUTH_METHOD),
        AccessRule("host", "all", "all", LOCAL_IPV6, AUTH_METHOD),
        AccessRule(
            "host", "all", "all", external_cidr, AUTH_METHOD,
            comment=(
                "WARNING: remote password logins from "
                f"{external_cidr}. Restrict to your application hosts "
                "before production use."
            ),
        ),
    ]


def render_postgresql_conf(document: ConfigDocument) -> str:
    template = _jinja_env.get_template("postgresql/postgresql.conf.j2")
    return template.render(sections=document.sections)


def render_pg_hba(rules: list[AccessRule]) -> str:
    template = _jinja_env.get_template("postgresql/pg_hba.conf.j2")
    return template.render(rules=rules)


class ConfigWriter:
    """Writes postgresql.conf and pg_hba.conf into the data directory.

    Each existing file is first copied to <file>.backup.<YYYY-MM-DD>. A
    second run on the same day replaces that day's backup.
    """

    def __init__(self, ctx: ExecutionContext, executor: PrivilegedExecutor) -> None:
        self.ctx = ctx
        self.executor = executor

    def write(
        self,
        data_dir: Path,
        profile: TuningProfile,
        postgres_config: PostgresConfig,
        access_config: AccessConfig,
    ) -> list[Path]:
        """Back up and replace both configuration files.

        Returns:
            Paths of the backups taken

        Raises:
            ConfigWriteError: If a backup or write fails
        """
        document = build_config_document(profile, postgres_config)
        rules = build_access_rules(access_config.external_cidr)

        files = [
            (data_dir / POSTGRESQL_CONF, render_postgresql_conf(document)),
            (data_dir / PG_HBA_CONF, render_pg_hba(rules)),
        ]

        backups = []
        for path, content in files:
            backup = self.executor.backup_file(path)
            if backup is not None:
                backups.append(backup)

            self.executor.write_file(
                path,
                content,
                description=f"Writing {path.name}",
                permissions=CONFIG_PERMISSIONS,
                owner=CONFIG_OWNER,
                group=CONFIG_GROUP,
            )

        if is_open_cidr(access_config.external_cidr):
            self.ctx.console.warn(
                f"pg_hba.conf accepts password logins from {access_config.external_cidr}"
            )

        self.ctx.console.success("Configuration files written")
        return backups
