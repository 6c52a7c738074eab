"""Hardware detection and tuning derivation.

Provides:
- Host resource detection (memory, CPU cores)
- The resource-to-configuration policy (pure function)
- Display metadata for each derived parameter
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pgvp.core.context import ExecutionContext
from pgvp.core.exceptions import DetectionError


MEMINFO_PATH = Path("/proc/meminfo")

GIB = 1024 ** 3


@dataclass(frozen=True)
class HostResources:
    """Detected host resources."""

    total_memory_bytes: int
    cpu_core_count: int

    @property
    def total_memory_gb(self) -> int:
        """Total memory rounded down to whole gigabytes."""
        return self.total_memory_bytes // GIB


@dataclass(frozen=True)
class TuningParameter:
    """A single derived parameter with display metadata."""

    name: str
    value: int
    unit: str
    reason: str

    @property
    def conf_value(self) -> str:
        """Value as written to postgresql.conf (unit suffix appended)."""
        return f"{self.value}{self.unit}"


@dataclass(frozen=True)
class TuningProfile:
    """Configuration values derived from host resources."""

    shared_buffers_gb: int
    effective_cache_size_gb: int
    work_mem_mb: int
    maintenance_work_mem_mb: int
    max_connections: int
    max_worker_processes: int
    max_parallel_workers_per_gather: int
    max_parallel_workers: int

    def __post_init__(self) -> None:
        if self.shared_buffers_gb < 1:
            raise ValueError("shared_buffers_gb must be at least 1")

    @property
    def parameters(self) -> list[TuningParameter]:
        """Parameters in postgresql.conf order."""
        return [
            TuningParameter("max_connections", self.max_connections, "",
                            "4 per CPU core"),
            TuningParameter("shared_buffers", self.shared_buffers_gb, "GB",
                            "25% of RAM, at least 1GB"),
            TuningParameter("effective_cache_size", self.effective_cache_size_gb, "GB",
                            "75% of RAM"),
            TuningParameter("maintenance_work_mem", self.maintenance_work_mem_mb, "MB",
                            "64MB per GB of RAM"),
            TuningParameter("work_mem", self.work_mem_mb, "MB",
                            "4MB per GB of RAM"),
            TuningParameter("max_worker_processes", self.max_worker_processes, "",
                            "One per CPU core"),
            TuningParameter("max_parallel_workers_per_gather",
                            self.max_parallel_workers_per_gather, "",
                            "Half the CPU cores"),
            TuningParameter("max_parallel_workers", self.max_parallel_workers, "",
                            "One per CPU core"),
        ]

    def conf_values(self) -> dict[str, str]:
        """Map of parameter name to its postgresql.conf value."""
        return {p.name: p.conf_value for p in self.parameters}


def calculate_profile(resources: HostResources) -> TuningProfile:
    """Derive the tuning profile from host resources.

    Memory figures use whole gigabytes, so a 15.6GB host counts as 15.
    shared_buffers uses Python's round(), which rounds halves to even:
    M=10 gives 2GB, not 3GB.
    """
    mem_gb = resources.total_memory_gb
    cores = resources.cpu_core_count

    return TuningProfile(
        shared_buffers_gb=max(1, round(mem_gb * 0.25)),
        effective_cache_size_gb=mem_gb * 3 // 4,
        work_mem_mb=mem_gb * 4,
        maintenance_work_mem_mb=mem_gb * 64,
        max_connections=cores * 4,
        max_worker_processes=cores,
        max_parallel_workers_per_gather=cores // 2,
        max_parallel_workers=cores,
    )


class ResourceDetector:
    """Reads memory and CPU count from the running host.

    Detection is read-only and runs in dry-run mode too.
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        meminfo_path: Optional[Path] = None,
    ) -> None:
        self.ctx = ctx
        self.meminfo_path = meminfo_path or MEMINFO_PATH

    def detect(self) -> HostResources:
        """Detect host resources.

        Raises:
            DetectionError: If memory or CPU count cannot be determined
        """
        resources = HostResources(
            total_memory_bytes=self._read_memory_bytes(),
            cpu_core_count=self._read_cpu_count(),
        )
        self.ctx.console.verbose(
            f"Detected {resources.total_memory_gb}GB RAM, "
            f"{resources.cpu_core_count} CPU cores"
        )
        return resources

    def _read_memory_bytes(self) -> int:
        try:
            with open(self.meminfo_path) as f:
                for line in f:
                    if line.startswith("MemTotal:"):
                        # Format: "MemTotal:     16384000 kB"
                        return int(line.split()[1]) * 1024
        except OSError as e:
            raise DetectionError(
                f"Cannot read {self.meminfo_path}",
                details=[str(e)],
            ) from e
        except (ValueError, IndexError) as e:
            raise DetectionError(
                f"Malformed MemTotal line in {self.meminfo_path}",
                details=[str(e)],
            ) from e

        raise DetectionError(
            f"MemTotal not found in {self.meminfo_path}",
            hint="Is /proc mounted?",
        )

    def _read_cpu_count(self) -> int:
        count = os.cpu_count()
        if not count:
            raise DetectionError(
                "Cannot determine the number of CPU cores",
            )
        return count
