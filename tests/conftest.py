"""Shared fixtures: an in-process stand-in for an MPI process group."""

import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pytest

from xthi.record import RecordArena, ThreadRecord, encode_record
from xthi.settings import Capabilities, FieldCaps


class FakeFabric:
    """
    Point-to-point channels between fake ranks.

    A send only returns once the matching receive has taken the message,
    like MPI_Ssend.
    """

    def __init__(self, size: int):
        self.size = size
        self._channels: Dict[tuple, "queue.Queue"] = {}
        self._lock = threading.Lock()
        self.recv_order: List[int] = []

    def channel(self, source: int, dest: int, tag: int) -> "queue.Queue":
        with self._lock:
            return self._channels.setdefault((source, dest, tag), queue.Queue())

    def comm(self, rank: int) -> "FakeComm":
        return FakeComm(self, rank)

    def group(self, rank: int) -> "FakeGroup":
        return FakeGroup(comm=self.comm(rank), rank=rank, size=self.size)


class FakeComm:
    def __init__(self, fabric: Optional[FakeFabric], rank: int):
        self.fabric = fabric
        self.rank = rank
        self.aborted: Optional[int] = None

    def Get_rank(self) -> int:
        return self.rank

    def Get_size(self) -> int:
        return self.fabric.size if self.fabric else 1

    def Abort(self, code: int = 1) -> None:
        self.aborted = code


def copy_into(block: np.ndarray, payload: bytes) -> int:
    """Copy a raw message into a receive buffer the way MPI_Recv does."""
    if len(payload) > block.nbytes:
        raise OverflowError(f"message of {len(payload)} bytes truncated to {block.nbytes}")
    block.reshape(-1)[: len(payload)] = np.frombuffer(payload, dtype=np.uint8)
    return len(payload)


@dataclass
class FakeGroup:
    """ProcessGroup look-alike that moves raw bytes over a FakeFabric."""

    comm: Any
    rank: int
    size: int
    node_rank: int = 0
    node_size: int = 1

    @property
    def is_root(self) -> bool:
        return self.rank == 0

    def send_block(self, block, dest: int, tag: int = 0) -> None:
        delivered = threading.Event()
        self.comm.fabric.channel(self.rank, dest, tag).put((bytes(block), delivered))
        delivered.wait()

    def recv_block(self, block, source: int, tag: int = 0) -> int:
        payload, delivered = self.comm.fabric.channel(source, self.rank, tag).get()
        self.comm.fabric.recv_order.append(source)
        delivered.set()
        return copy_into(block, payload)


@dataclass
class ScriptedGroup:
    """Root-side group that replays canned raw messages per source rank."""

    size: int
    messages: Dict[int, Any] = field(default_factory=dict)
    rank: int = 0

    @property
    def is_root(self) -> bool:
        return self.rank == 0

    def recv_block(self, block, source: int, tag: int = 0) -> int:
        message = self.messages[source]
        if isinstance(message, Exception):
            raise message
        return copy_into(block, bytes(message))


SLOT = 128


def record_block(host: str, rank: int, num_threads: int, slot_size: int = SLOT) -> np.ndarray:
    """Encoded block for `num_threads` threads of one rank, cpu == thread."""
    arena = RecordArena(num_threads, slot_size)
    caps = FieldCaps().for_arity(6)
    for thread in range(num_threads):
        record = ThreadRecord(
            host=host,
            rank=rank,
            thread=thread,
            cpu=rank * num_threads + thread,
            numa_node=0,
            affinity=f"0-{num_threads * 2 - 1}",
        )
        arena.write(thread, encode_record(record.fields(), caps, slot_size))
    return arena.view(num_threads)


@pytest.fixture
def linux_caps() -> Capabilities:
    return Capabilities(linux=True, numa=True, group=False, accelerators=False)
