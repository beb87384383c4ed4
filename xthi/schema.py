"""Column labels for the placement table."""

from typing import List, Optional

from xthi.settings import Capabilities

HOST = "Host"
MPI_RANK = "MPI-Rank"
OMP_THREAD = "OMP-Thread"
CPU = "CPU"
NUMA_NODE = "NUMA-Node"
CPU_AFFINITY = "CPU-Affinity"
ACCELERATORS = "Accelerators"


def build_headers(caps: Capabilities, num_threads: int) -> List[Optional[str]]:
    """
    Labels in record field order; None hides a column that is still collected.
    """
    headers = [
        HOST,
        MPI_RANK if caps.group else None,
        OMP_THREAD if num_threads > 1 else None,
        CPU if caps.linux else None,
        NUMA_NODE if caps.linux and caps.numa else None,
        CPU_AFFINITY if caps.linux else None,
    ]
    if caps.accelerators:
        headers.append(ACCELERATORS)
    return headers
