"""Per-rank record production: one worker thread, one record slot."""

import threading
from typing import Callable, List, Optional

import numpy as np

from xthi import probes
from xthi.log import get_logger
from xthi.record import RecordArena, ThreadRecord, encode_record
from xthi.settings import Capabilities, XthiSettings

logger = get_logger("producer")


def sample_thread(
    thread: int,
    rank: int,
    host: str,
    caps: Capabilities,
) -> ThreadRecord:
    """Collect the placement facts of the calling thread."""
    if caps.linux:
        cpu = probes.current_cpu()
        numa_node = probes.numa_node_of_cpu(cpu)
        affinity = probes.cpu_affinity()
    else:
        cpu, numa_node, affinity = -1, -1, probes.NO_AFFINITY
    return ThreadRecord(
        host=host,
        rank=rank,
        thread=thread,
        cpu=cpu,
        numa_node=numa_node,
        affinity=affinity,
        accelerators=probes.accelerator_ids() if caps.accelerators else None,
    )


def produce_local(
    settings: XthiSettings,
    caps: Capabilities,
    rank: int,
    sampler: Callable[[int, int, str, Capabilities], ThreadRecord] = sample_thread,
) -> np.ndarray:
    """
    Run the worker pool and return its records as a (num_threads, slot_size) block.

    All workers wait on a barrier before sampling so each one is a distinct,
    live thread at sample time.
    """
    num_threads = settings.num_threads
    arena = RecordArena(num_threads, settings.slot_size)
    field_caps = settings.field_caps.for_arity(settings.arity)
    host = probes.short_hostname()
    barrier = threading.Barrier(num_threads)
    errors: List[Optional[Exception]] = [None] * num_threads

    def worker(index: int) -> None:
        try:
            barrier.wait()
            record = sampler(index, rank, host, caps)
            arena.write(index, encode_record(record.fields(), field_caps, settings.slot_size))
        except Exception as e:
            errors[index] = e
            barrier.abort()

    threads = []
    for i in range(num_threads):
        t = threading.Thread(target=worker, args=(i,), name=f"xthi-worker-{i}", daemon=True)
        t.start()
        threads.append(t)

    for t in threads:
        t.join()

    # A broken barrier only reports that some other worker failed first.
    failures = [e for e in errors if e is not None]
    for e in failures:
        if not isinstance(e, threading.BrokenBarrierError):
            raise e
    if failures:
        raise failures[0]

    logger.debug("rank %d produced %d records", rank, num_threads)
    return arena.view(num_threads)
