"""Configuration management using Pydantic.

Provides:
- Typed configuration models with validation
- YAML file loading with defaults
- Environment variable overrides for the application role/database
- Configuration initialization and display
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pgvp.core.exceptions import ConfigurationError
from pgvp.core.validation import validate_cidr, validate_identifier, validate_port


DEFAULT_CONFIG_PATH = Path("/etc/pgvp/config.yaml")

DEFAULT_APP_USER = "webui_user"
DEFAULT_APP_DATABASE = "open_webui_db"


class PostgresConfig(BaseModel):
    """PostgreSQL server settings (PGDG packages on EL)."""

    version: str = "16"
    port: int = 5432
    listen_addresses: str = "*"
    data_dir: Optional[Path] = None
    startup_wait: int = 5  # seconds to wait after start before connecting
    el_release: str = "8"

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        valid_versions = {"13", "14", "15", "16", "17"}
        if v not in valid_versions:
            raise ValueError(f"PostgreSQL version must be one of: {sorted(valid_versions)}")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        return validate_port(v)

    @field_validator("startup_wait")
    @classmethod
    def validate_startup_wait(cls, v: int) -> int:
        if not 0 <= v <= 300:
            raise ValueError("startup_wait must be between 0 and 300 seconds")
        return v

    @field_validator("el_release")
    @classmethod
    def validate_el_release(cls, v: str) -> str:
        if v not in {"8", "9"}:
            raise ValueError("el_release must be 8 or 9")
        return v

    @property
    def service_name(self) -> str:
        """systemd unit installed by the PGDG packages."""
        return f"postgresql-{self.version}"

    @property
    def resolved_data_dir(self) -> Path:
        """Data directory, defaulting to the PGDG layout."""
        return self.data_dir or Path(f"/var/lib/pgsql/{self.version}/data")

    @property
    def bin_dir(self) -> Path:
        """Directory holding the server binaries."""
        return Path(f"/usr/pgsql-{self.version}/bin")


class ApplicationConfig(BaseModel):
    """The application role and database created by the provisioner."""

    user: str = DEFAULT_APP_USER
    database: str = DEFAULT_APP_DATABASE
    extension: str = "vector"

    @field_validator("user")
    @classmethod
    def validate_user(cls, v: str) -> str:
        return validate_identifier(v, "user")

    @field_validator("database")
    @classmethod
    def validate_database(cls, v: str) -> str:
        return validate_identifier(v, "database")

    @field_validator("extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        return validate_identifier(v, "extension")


class AccessConfig(BaseModel):
    """Client authentication (pg_hba.conf) settings."""

    # Any address by default; narrow to the application host's CIDR
    # before exposing the server.
    external_cidr: str = "0.0.0.0/0"

    @field_validator("external_cidr")
    @classmethod
    def validate_external_cidr(cls, v: str) -> str:
        return validate_cidr(v)


class ProvisionConfig(BaseModel):
    """Root configuration model, loaded from /etc/pgvp/config.yaml."""

    # Shown as the connection host in the final report (auto-detected if unset)
    hostname: Optional[str] = None

    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    application: ApplicationConfig = Field(default_factory=ApplicationConfig)
    access: AccessConfig = Field(default_factory=AccessConfig)

    @classmethod
    def load(cls, path: Path) -> "ProvisionConfig":
        """Load configuration from YAML file.

        Raises:
            ConfigurationError: If file not found or invalid
        """
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                hint="Create it with: pgvp config init",
            )

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {path}",
                details=[str(e)],
            ) from e
        except PermissionError:
            raise ConfigurationError(
                f"Cannot read configuration file: {path}",
                hint="Check file permissions or run with sudo",
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping: {path}",
            )

        try:
            return cls(**data)
        except Exception as e:
            raise ConfigurationError(
                f"Invalid configuration: {path}",
                details=[str(e)],
            ) from e

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> "ProvisionConfig":
        """Load configuration, falling back to defaults if file doesn't exist."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if path.exists():
            return cls.load(path)
        return cls()

    def to_yaml(self) -> str:
        """Convert configuration to YAML string."""
        data = self.model_dump(mode="json", exclude_none=True)
        return yaml.dump(data, default_flow_style=False, sort_keys=False)


class EnvironmentOverrides(BaseSettings):
    """Overrides for the application settings, read from the environment."""

    model_config = SettingsConfigDict(extra="ignore")

    app_user: Optional[str] = Field(None, alias="PGVP_APP_USER")
    app_database: Optional[str] = Field(None, alias="PGVP_APP_DATABASE")


class AppConfig:
    """Configuration file merged with environment overrides.

    This is the object handed to every component; nothing reads the
    file or the environment after construction.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[ProvisionConfig] = None,
        overrides: Optional[EnvironmentOverrides] = None,
    ) -> None:
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        loaded = config or ProvisionConfig.load_or_default(self.config_path)
        self._config = _apply_overrides(loaded, overrides or EnvironmentOverrides())

    @property
    def config(self) -> ProvisionConfig:
        """Get the provisioning configuration."""
        return self._config

    @property
    def postgres(self) -> PostgresConfig:
        """Shortcut to PostgreSQL config."""
        return self._config.postgres

    @property
    def application(self) -> ApplicationConfig:
        """Shortcut to application config."""
        return self._config.application

    @property
    def access(self) -> AccessConfig:
        """Shortcut to access config."""
        return self._config.access


def _apply_overrides(
    config: ProvisionConfig,
    overrides: EnvironmentOverrides,
) -> ProvisionConfig:
    """Return a copy of config with environment overrides applied."""
    updates = {}
    if overrides.app_user:
        updates["user"] = overrides.app_user
    if overrides.app_database:
        updates["database"] = overrides.app_database

    if not updates:
        return config

    try:
        application = ApplicationConfig(
            **{**config.application.model_dump(), **updates}
        )
    except Exception as e:
        raise ConfigurationError(
            "Invalid PGVP_APP_USER / PGVP_APP_DATABASE override",
            details=[str(e)],
        ) from e

    return config.model_copy(update={"application": application})


def get_example_config() -> str:
    """Generate example configuration file content."""
    return f"""# pgvp configuration
# Edit before running `pgvp provision`. Every key is optional.

# Host shown in the connection report (defaults to this machine's hostname)
# hostname: db-01.internal

# Application role and database created at the end of provisioning.
# Can also be set with PGVP_APP_USER / PGVP_APP_DATABASE.
application:
  user: {DEFAULT_APP_USER}
  database: {DEFAULT_APP_DATABASE}
  extension: vector  # enabled inside the database

# PostgreSQL server (PGDG packages)
postgres:
  version: "16"
  port: 5432
  listen_addresses: "*"
  # data_dir: /var/lib/pgsql/16/data
  startup_wait: 5  # seconds
  el_release: "8"

# Client authentication
access:
  # WARNING: 0.0.0.0/0 accepts password logins from ANY IPv4 address.
  # Replace with the CIDR of your application hosts before production use.
  external_cidr: 0.0.0.0/0
"""


def init_config(path: Path, force: bool = False) -> None:
    """Initialize a new configuration file.

    Raises:
        ConfigurationError: If file exists and force is False
    """
    if path.exists() and not force:
        raise ConfigurationError(
            f"Configuration file already exists: {path}",
            hint="Use --force to overwrite",
        )

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(get_example_config())
    os.chmod(path, 0o600)
