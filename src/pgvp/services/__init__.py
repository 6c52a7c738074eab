"""Service abstractions for interacting with the host and PostgreSQL."""

from pgvp.services.pgconfig import ConfigWriter
from pgvp.services.postgresql import PostgreSQLService
from pgvp.services.systemd import SystemdService
from pgvp.services.tuning import ResourceDetector, calculate_profile

__all__ = [
    "ConfigWriter",
    "PostgreSQLService",
    "ResourceDetector",
    "SystemdService",
    "calculate_profile",
]
