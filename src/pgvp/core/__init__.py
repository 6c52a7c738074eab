"""Core framework components for the provisioner."""

from pgvp.core.exceptions import (
    PgvpError,
    ConfigurationError,
    ValidationError,
    ExecutionError,
    PrerequisiteError,
    DetectionError,
    PackageError,
    PostgresError,
    ConfigWriteError,
    ServiceError,
)

from pgvp.core.context import ExecutionContext, create_context
from pgvp.core.output import console, Console, Verbosity
from pgvp.core.config import AppConfig, ProvisionConfig
from pgvp.core.safety import PreflightRunner, run_preflight_checks
from pgvp.core.audit import AuditLogger, AuditEvent, AuditEventType, AuditResult, get_audit_logger
from pgvp.core.executor import PrivilegedExecutor, CommandResult

__all__ = [
    # Exceptions
    "PgvpError",
    "ConfigurationError",
    "ValidationError",
    "ExecutionError",
    "PrerequisiteError",
    "DetectionError",
    "PackageError",
    "PostgresError",
    "ConfigWriteError",
    "ServiceError",
    # Context
    "ExecutionContext",
    "create_context",
    # Output
    "console",
    "Console",
    "Verbosity",
    # Config
    "AppConfig",
    "ProvisionConfig",
    # Safety
    "PreflightRunner",
    "run_preflight_checks",
    # Audit
    "AuditLogger",
    "AuditEvent",
    "AuditEventType",
    "AuditResult",
    "get_audit_logger",
    # Executor
    "PrivilegedExecutor",
    "CommandResult",
]
