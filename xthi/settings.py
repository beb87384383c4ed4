"""
xthi settings.

Run-time knobs come from environment variables (so an `mpirun`/`srun`
launcher can inject them into every rank) and are then overridden by the
command line. Platform capabilities are resolved once at start-up and
decide which table columns exist.
"""

import os
import sys
from dataclasses import dataclass, replace
from typing import Optional

RECORD_SIZE = 128  # Bytes per thread record slot, terminator included
HOSTNAME_MAX_LENGTH = 64
INT_MAX_LENGTH = 11  # Enough for any signed 32-bit value
AFFINITY_MAX_LENGTH = 50
ACCELERATORS_MAX_LENGTH = 48


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def default_num_threads() -> int:
    """Worker pool size: OMP_NUM_THREADS, else the usable CPU count."""
    value = os.environ.get("OMP_NUM_THREADS", "").split(",")[0].strip()
    if value.isdigit() and int(value) > 0:
        return int(value)
    try:
        return len(os.sched_getaffinity(0))
    except (AttributeError, OSError):
        return os.cpu_count() or 1


@dataclass(frozen=True)
class FieldCaps:
    """Maximum characters kept for each record field before it is encoded."""

    hostname: int = HOSTNAME_MAX_LENGTH
    integer: int = INT_MAX_LENGTH
    affinity: int = AFFINITY_MAX_LENGTH
    accelerators: int = ACCELERATORS_MAX_LENGTH

    def for_arity(self, arity: int) -> tuple:
        caps = (
            self.hostname,
            self.integer,  # rank
            self.integer,  # thread
            self.integer,  # cpu
            self.integer,  # numa node
            self.affinity,
            self.accelerators,
        )
        return caps[:arity]


@dataclass(frozen=True)
class XthiSettings:
    """
    Settings for one xthi run.

    Notes:
    - `accelerators` fixes the record arity (7 instead of 6) for the whole run.
    - `chew_seconds` keeps every thread busy after the table is printed.
    """

    num_threads: int = 1
    chew_seconds: int = 0
    use_mpi: bool = True
    accelerators: bool = False
    log_level: str = "WARNING"
    slot_size: int = RECORD_SIZE
    field_caps: FieldCaps = FieldCaps()

    @property
    def arity(self) -> int:
        return 7 if self.accelerators else 6

    def override(self, **changes) -> "XthiSettings":
        """Return a copy with every non-None change applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def read_xthi_env() -> XthiSettings:
    """Build settings from XTHI_* / OMP_NUM_THREADS environment variables."""
    return XthiSettings(
        num_threads=default_num_threads(),
        use_mpi=not _env_flag("XTHI_NO_MPI"),
        accelerators=_env_flag("XTHI_ACCELERATORS"),
        log_level=os.environ.get("XTHI_LOG_LEVEL", "WARNING"),
    )


@dataclass(frozen=True)
class Capabilities:
    """Platform facts that choose the schema variant."""

    linux: bool
    numa: bool
    group: bool
    accelerators: bool


def detect_capabilities(
    settings: XthiSettings,
    group_active: bool,
    node_root: Optional[str] = None,
) -> Capabilities:
    linux = sys.platform.startswith("linux") and hasattr(os, "sched_getaffinity")
    node_root = node_root or "/sys/devices/system/node"
    numa = linux and os.path.isdir(node_root)
    return Capabilities(
        linux=linux,
        numa=numa,
        group=group_active,
        accelerators=settings.accelerators,
    )
