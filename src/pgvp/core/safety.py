"""Pre-flight checks run before anything on the host is modified.

Provides:
- Root privilege check
- EL-family OS check
- Free disk space check
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pgvp.core.exceptions import PrerequisiteError
from pgvp.core.output import console


class CheckResult(Enum):
    """Result of a pre-flight check."""
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


@dataclass(frozen=True)
class PreflightResult:
    """Immutable result of a pre-flight check."""
    check_name: str
    result: CheckResult
    message: str
    details: Optional[dict[str, Any]] = None
    remediation: Optional[str] = None


class PreflightCheck(ABC):
    """Base class for all pre-flight checks."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of the check."""
        ...

    @property
    @abstractmethod
    def critical(self) -> bool:
        """If True, failure blocks the run."""
        ...

    @abstractmethod
    def run(self) -> PreflightResult:
        """Execute the check and return result."""
        ...


class RootCheck(PreflightCheck):
    """Verify the process runs as root."""

    name = "Root Privileges"
    critical = True

    def run(self) -> PreflightResult:
        if os.geteuid() != 0:
            return PreflightResult(
                check_name=self.name,
                result=CheckResult.FAIL,
                message="Must be run as root",
                remediation="Run with: sudo pgvp provision",
            )
        return PreflightResult(
            check_name=self.name,
            result=CheckResult.PASS,
            message="Running with root privileges",
        )


class OSCompatibilityCheck(PreflightCheck):
    """Verify the OS is an EL-family distribution using dnf."""

    name = "OS Compatibility"
    critical = True

    SUPPORTED_IDS = frozenset({"rhel", "centos", "rocky", "almalinux", "ol"})
    OS_RELEASE = Path("/etc/os-release")

    def run(self) -> PreflightResult:
        os_release = self._parse_os_release()

        if os_release is None:
            return PreflightResult(
                check_name=self.name,
                result=CheckResult.FAIL,
                message=f"{self.OS_RELEASE} not found",
                remediation="This tool requires RHEL, CentOS, Rocky or AlmaLinux",
            )

        distro_id = os_release.get("ID", "").lower()
        id_like = set(os_release.get("ID_LIKE", "").lower().split())
        pretty_name = os_release.get("PRETTY_NAME", distro_id)
        version = os_release.get("VERSION_ID", "unknown")

        if distro_id not in self.SUPPORTED_IDS and not id_like & {"rhel", "centos"}:
            return PreflightResult(
                check_name=self.name,
                result=CheckResult.FAIL,
                message=f"Unsupported OS: {pretty_name}",
                details={"detected_os": distro_id, "version": version},
                remediation="This tool supports EL8-family distributions only",
            )

        return PreflightResult(
            check_name=self.name,
            result=CheckResult.PASS,
            message=f"OS: {pretty_name}",
            details={"distro": distro_id, "version": version},
        )

    def _parse_os_release(self) -> Optional[dict[str, str]]:
        try:
            with open(self.OS_RELEASE) as f:
                result = {}
                for line in f:
                    line = line.strip()
                    if "=" in line:
                        key, _, value = line.partition("=")
                        result[key] = value.strip('"').strip("'")
                return result
        except FileNotFoundError:
            return None


class DiskSpaceCheck(PreflightCheck):
    """Verify there is room for packages and the cluster."""

    name = "Disk Space"
    critical = False

    # Minimum free space requirements in GB
    REQUIREMENTS = {
        "/usr": 1.0,
        "/var": 2.0,
    }

    def run(self) -> PreflightResult:
        warnings = []
        details = {}

        for path, min_gb in self.REQUIREMENTS.items():
            if not os.path.exists(path):
                continue

            stat = os.statvfs(path)
            free_gb = (stat.f_bavail * stat.f_frsize) / (1024 ** 3)
            details[path] = {"free_gb": round(free_gb, 2), "required_gb": min_gb}

            if free_gb < min_gb:
                warnings.append(f"{path}: {free_gb:.1f}GB free, want {min_gb}GB")

        if warnings:
            return PreflightResult(
                check_name=self.name,
                result=CheckResult.WARN,
                message="Low disk space",
                details=details,
                remediation="; ".join(warnings),
            )

        return PreflightResult(
            check_name=self.name,
            result=CheckResult.PASS,
            message="Sufficient disk space available",
            details=details,
        )


class PreflightRunner:
    """Runs pre-flight checks in order."""

    DEFAULT_CHECKS: list[type[PreflightCheck]] = [
        RootCheck,
        OSCompatibilityCheck,
        DiskSpaceCheck,
    ]

    def __init__(
        self,
        checks: Optional[list[type[PreflightCheck]]] = None,
        skip_root_check: bool = False,
    ) -> None:
        check_classes = checks or self.DEFAULT_CHECKS
        if skip_root_check:
            check_classes = [c for c in check_classes if c is not RootCheck]
        self.checks = [c() for c in check_classes]

    def run_all(self, fail_fast: bool = True) -> list[PreflightResult]:
        """Run all checks, stopping at the first critical failure if fail_fast."""
        results = []

        for check in self.checks:
            result = check.run()
            results.append(result)

            if fail_fast and check.critical and result.result == CheckResult.FAIL:
                break

        return results

    def all_passed(self, results: list[PreflightResult]) -> bool:
        return not any(r.result == CheckResult.FAIL for r in results)

    def display_results(self, results: list[PreflightResult]) -> None:
        console.print()
        console.rule("Pre-flight Checks")

        for result in results:
            if result.result == CheckResult.PASS:
                status = "[green]PASS[/green]"
            elif result.result == CheckResult.WARN:
                status = "[yellow]WARN[/yellow]"
            else:
                status = "[red]FAIL[/red]"

            console.print(f"  {status} {result.check_name}: {result.message}")

            if result.remediation and result.result != CheckResult.PASS:
                console.print(f"        [dim]Fix: {result.remediation}[/dim]")

        console.print()


def run_preflight_checks(
    dry_run: bool = False,
    verbose: bool = False,
) -> bool:
    """Run pre-flight checks.

    In dry-run mode the root check is skipped so the plan can be
    previewed by an unprivileged user.

    Returns:
        True if all checks passed

    Raises:
        PrerequisiteError: If critical checks fail
    """
    runner = PreflightRunner(skip_root_check=dry_run)
    results = runner.run_all()

    if verbose:
        runner.display_results(results)

    for r in results:
        if r.result == CheckResult.WARN:
            console.warn(f"{r.check_name}: {r.remediation or r.message}")

    if not runner.all_passed(results):
        failures = [r for r in results if r.result == CheckResult.FAIL]
        details = [f"{r.check_name}: {r.message}" for r in failures]
        hint = next((r.remediation for r in failures if r.remediation), None)

        raise PrerequisiteError(
            "Pre-flight checks failed",
            details=details,
            hint=hint or "Fix the issues above and try again",
        )

    return True
