"""
Probes for the per-thread placement facts.

Every probe returns a sentinel instead of raising when the platform cannot
answer: -1 for integers, "-" or "None" for strings.
"""

import glob
import os
import re
import socket
import subprocess
import threading
from typing import Iterable, Optional

from xthi.log import get_logger

logger = get_logger("probes")

NO_AFFINITY = "-"
NO_ACCELERATORS = "None"

_UUID_RE = re.compile(r"\(UUID:\s*([^)\s]+)\)")


def short_hostname() -> str:
    """Host name with any domain suffix stripped at the first '.'."""
    return socket.gethostname().split(".", 1)[0]


def _stat_path() -> str:
    if os.path.exists("/proc/thread-self/stat"):
        return "/proc/thread-self/stat"
    return f"/proc/self/task/{threading.get_native_id()}/stat"


def parse_stat_processor(stat: str) -> int:
    """Extract the 'processor' field (39th) from a /proc/.../stat line."""
    # The command name may contain spaces, so count from the closing paren.
    fields = stat.rsplit(")", 1)[-1].split()
    return int(fields[36])


def current_cpu() -> int:
    """Logical CPU the calling thread last executed on."""
    try:
        with open(_stat_path(), "r") as f:
            return parse_stat_processor(f.read())
    except (OSError, IndexError, ValueError):
        return -1


def numa_node_of_cpu(cpu: int, cpu_root: str = "/sys/devices/system/cpu") -> int:
    """NUMA node containing the given CPU, -1 if unknown."""
    if cpu < 0:
        return -1
    for entry in glob.glob(os.path.join(cpu_root, f"cpu{cpu}", "node[0-9]*")):
        suffix = os.path.basename(entry)[len("node"):]
        if suffix.isdigit():
            return int(suffix)
    return -1


def cpuset_to_str(cpus: Iterable[int]) -> str:
    """
    Format a CPU set as a compact range list, e.g. {0, 2, 3, 4, 5, 9} -> "0,2-5,9".

    Runs of three or more CPUs collapse to "start-end"; a pair stays "a,b".
    """
    ordered = sorted(set(cpus))
    parts = []
    i = 0
    while i < len(ordered):
        j = i
        while j + 1 < len(ordered) and ordered[j + 1] == ordered[j] + 1:
            j += 1
        run = j - i
        if run == 0:
            parts.append(str(ordered[i]))
        elif run == 1:
            parts.append(f"{ordered[i]},{ordered[j]}")
        else:
            parts.append(f"{ordered[i]}-{ordered[j]}")
        i = j + 1
    return ",".join(parts)


def cpu_affinity() -> str:
    """CPU affinity of the calling thread as a range list."""
    try:
        return cpuset_to_str(os.sched_getaffinity(0))
    except (AttributeError, OSError):
        return NO_AFFINITY


def _ids_from_env(value: str) -> str:
    ids = [part.strip() for part in value.split(",") if part.strip()]
    return ";".join(ids) if ids else NO_ACCELERATORS


def _ids_from_nvidia_smi() -> Optional[str]:
    try:
        result = subprocess.run(
            ["nvidia-smi", "-L"], capture_output=True, text=True, timeout=5
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("nvidia-smi unavailable: %s", e)
        return None
    if result.returncode != 0:
        return None
    uuids = _UUID_RE.findall(result.stdout)
    return ";".join(uuids) if uuids else None


def accelerator_ids() -> str:
    """Accelerator devices visible to this process, ';'-separated."""
    visible = os.environ.get("CUDA_VISIBLE_DEVICES")
    if visible is not None:
        return _ids_from_env(visible)
    return _ids_from_nvidia_smi() or NO_ACCELERATORS
