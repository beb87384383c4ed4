"""
xthi - report where every thread of every MPI rank actually runs.

Each worker thread records its host, rank, thread index, CPU, NUMA node,
CPU affinity and (optionally) visible accelerators; rank 0 gathers the
records and prints them as one aligned table.
"""

__version__ = "1.0.0"
