"""Systemd service abstraction.

Provides a safe interface for controlling the PostgreSQL unit.
"""

import time
from pathlib import Path
from typing import Optional

from pgvp.core.context import ExecutionContext
from pgvp.core.exceptions import ExecutionError, ServiceError
from pgvp.core.executor import PrivilegedExecutor


class SystemdService:
    """Safe interface for managing systemd services.

    All operations respect dry-run mode and log appropriately.
    """

    def __init__(self, ctx: ExecutionContext, executor: PrivilegedExecutor) -> None:
        """Initialize systemd service manager.

        Args:
            ctx: Execution context
            executor: Privileged executor
        """
        self.ctx = ctx
        self.executor = executor

    def start(self, service: str, *, description: Optional[str] = None) -> None:
        """Start a service.

        Raises:
            ServiceError: If service fails to start
        """
        self.ctx.console.step(description or f"Starting {service}")

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"systemctl start {service}")
            return

        try:
            self.executor.run(["systemctl", "start", service])
        except ExecutionError as e:
            raise ServiceError(
                f"Failed to start {service}",
                service=service,
                details=[e.message] + e.details,
                hint=f"Check logs: journalctl -xeu {service}",
            ) from e

    def stop(self, service: str, *, description: Optional[str] = None) -> None:
        """Stop a service.

        Raises:
            ServiceError: If service fails to stop
        """
        self.ctx.console.step(description or f"Stopping {service}")

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"systemctl stop {service}")
            return

        try:
            self.executor.run(["systemctl", "stop", service])
        except ExecutionError as e:
            raise ServiceError(
                f"Failed to stop {service}",
                service=service,
                details=[e.message] + e.details,
            ) from e

    def enable(
        self,
        service: str,
        *,
        start: bool = False,
        description: Optional[str] = None,
    ) -> None:
        """Enable a service to start on boot.

        Args:
            service: Service name
            start: Also start the service now
            description: Optional description for logging

        Raises:
            ServiceError: If the unit cannot be enabled
        """
        self.ctx.console.step(description or f"Enabling {service}")

        if self.ctx.dry_run:
            cmd = "systemctl enable --now" if start else "systemctl enable"
            self.ctx.console.dry_run_msg(f"{cmd} {service}")
            return

        args = ["systemctl", "enable"]
        if start:
            args.append("--now")
        args.append(service)

        try:
            self.executor.run(args)
        except ExecutionError as e:
            raise ServiceError(
                f"Failed to enable {service}",
                service=service,
                details=[e.message] + e.details,
                hint=f"Check logs: journalctl -xeu {service}",
            ) from e

    def wait_until_ready(
        self,
        service: str,
        *,
        bin_dir: Path,
        port: int,
        wait: int,
    ) -> None:
        """Wait a fixed time, then check the server accepts connections.

        Raises:
            ServiceError: If pg_isready reports the server is not ready
        """
        self.ctx.console.step(f"Waiting {wait}s for {service} to accept connections")

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"pg_isready -p {port}")
            return

        time.sleep(wait)

        result = self.executor.run(
            [str(bin_dir / "pg_isready"), "-p", str(port)],
            check=False,
        )
        if not result.success:
            raise ServiceError(
                f"{service} is not accepting connections after {wait}s",
                service=service,
                details=[result.stdout.strip() or result.stderr.strip()],
                hint=f"Check logs: journalctl -xeu {service}",
            )
