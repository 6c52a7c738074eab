"""Custom exceptions for the provisioner.

Every error carries:
- A clear message
- An optional hint for resolution
- Optional details for debugging
- An exit code used by the CLI when it aborts the run
"""

from typing import Optional


class PgvpError(Exception):
    """Base exception for all provisioning errors.

    Attributes:
        message: Human-readable error description
        hint: Suggested action to resolve the error
        details: Additional context for debugging
        exit_code: Shell exit code (1-127)
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or []

    def __str__(self) -> str:
        return self.message


class ConfigurationError(PgvpError):
    """Configuration file or settings errors.

    Raised when:
    - Config file unreadable
    - Invalid YAML syntax
    - Invalid configuration values
    """
    exit_code = 2


class ValidationError(PgvpError):
    """Input validation errors.

    Raised when:
    - Invalid PostgreSQL identifiers
    - Invalid CIDR notation
    - Invalid port
    """
    exit_code = 3


class ExecutionError(PgvpError):
    """Command execution failures.

    Raised when a shell command or SQL statement returns non-zero.
    """
    exit_code = 5

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        return_code: Optional[int] = None,
        stderr: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        if not details:
            details = []
        if return_code is not None:
            details.append(f"Exit code: {return_code}")
        if stderr:
            details.append(f"Error output: {stderr.strip()}")
        super().__init__(message, hint=hint, details=details)
        self.command = command
        self.return_code = return_code
        self.stderr = stderr


class PrerequisiteError(PgvpError):
    """Missing prerequisites.

    Raised when:
    - Not running as root
    - Unsupported OS
    - Pre-flight checks fail
    """
    exit_code = 6


class DetectionError(PgvpError):
    """Host resource detection failed.

    Raised when total memory or CPU core count cannot be read. Always
    raised before anything on the host is modified.
    """
    exit_code = 8


class PackageError(PgvpError):
    """Package installation errors.

    Raised when:
    - dnf install/update fails
    - PGDG repository cannot be added
    - Cluster initialization fails
    """
    exit_code = 9


class PostgresError(PgvpError):
    """PostgreSQL-specific errors.

    Raised when:
    - Role, database or extension creation fails
    - Role or database already exists (without --reuse-existing)
    """
    exit_code = 10


class ConfigWriteError(PgvpError):
    """Configuration file write errors.

    Raised when postgresql.conf or pg_hba.conf (or their backups) cannot
    be written. Files written before the failure are left in place.
    """
    exit_code = 11

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.path = path


class ServiceError(PgvpError):
    """Systemd service errors.

    Raised when:
    - Start/stop/enable fails
    - Service does not accept connections after start
    """
    exit_code = 13

    def __init__(
        self,
        message: str,
        *,
        service: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.service = service
