# MPI process-group lifecycle for xthi.
import mpi4py.rc
mpi4py.rc.initialize = False  # disable auto-initialize
mpi4py.rc.finalize = False    # disable auto-finalize
from mpi4py import MPI

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from xthi.log import get_logger

logger = get_logger("group")


@dataclass
class ProcessGroup:
    """Membership of this process in the MPI job."""

    comm: Any
    rank: int
    size: int
    node_rank: int = 0
    node_size: int = 1

    @property
    def is_root(self) -> bool:
        return self.rank == 0

    def send_block(self, block, dest: int, tag: int = 0) -> None:
        """Synchronous send of a raw byte buffer; returns once it is received."""
        self.comm.Ssend([block, MPI.BYTE], dest=dest, tag=tag)

    def recv_block(self, block, source: int, tag: int = 0) -> int:
        """Receive into `block` from `source`; return the number of bytes that arrived."""
        status = MPI.Status()
        self.comm.Recv([block, MPI.BYTE], source=source, tag=tag, status=status)
        return status.Get_count(MPI.BYTE)


@contextmanager
def joined_group() -> Iterator[ProcessGroup]:
    """Initialize MPI, yield the COMM_WORLD group, finalize on exit."""
    if not MPI.Is_initialized():
        MPI.Init()
    try:
        comm = MPI.COMM_WORLD
        node_comm = comm.Split_type(MPI.COMM_TYPE_SHARED)
        try:
            group = ProcessGroup(
                comm=comm,
                rank=comm.Get_rank(),
                size=comm.Get_size(),
                node_rank=node_comm.Get_rank(),
                node_size=node_comm.Get_size(),
            )
        finally:
            node_comm.Free()
        logger.debug(
            "joined group: rank %d of %d (node-local %d of %d)",
            group.rank, group.size, group.node_rank, group.node_size,
        )
        yield group
    finally:
        if not MPI.Is_finalized():
            MPI.Finalize()


def abort(group: ProcessGroup, code: int = 1) -> None:
    """Terminate every rank of the group."""
    group.comm.Abort(code)
