"""
Gather every rank's record block onto rank 0.

Non-root ranks synchronously send their whole block once as raw bytes;
rank 0 receives from ranks 1..size-1 strictly in increasing order straight
into its slice of the table, so the table is always ordered by
(rank, thread). Every rank must run the same number of threads.
"""

from typing import TYPE_CHECKING, Optional

import numpy as np

from xthi.errors import AggregationError
from xthi.log import get_logger

if TYPE_CHECKING:
    from xthi.group import ProcessGroup

logger = get_logger("aggregator")

RECORD_TAG = 0
ROOT = 0


def send_block(local: np.ndarray, group: "ProcessGroup") -> None:
    """Blocking synchronous send of this rank's block to the root."""
    try:
        group.send_block(np.ascontiguousarray(local), ROOT, RECORD_TAG)
    except Exception as e:
        raise AggregationError(f"rank {group.rank} could not send its records: {e}", group.rank) from e


def receive_table(local: np.ndarray, group: "ProcessGroup") -> np.ndarray:
    """Assemble the full (size * num_threads, slot_size) table on the root."""
    num_threads, slot_size = local.shape
    table = np.empty((num_threads * group.size, slot_size), dtype=np.uint8)
    table[:num_threads] = local

    for source in range(1, group.size):
        dest = table[source * num_threads:(source + 1) * num_threads]
        try:
            received = group.recv_block(dest, source, RECORD_TAG)
        except Exception as e:
            # Includes a block larger than the slice (truncation).
            raise AggregationError(f"receive from rank {source} failed: {e}", source) from e
        if received != dest.nbytes:
            raise AggregationError(
                f"rank {source} sent {received} bytes, expected {dest.nbytes}", source
            )
        logger.debug("received %d records from rank %d", num_threads, source)

    return table


def gather_table(local: np.ndarray, group: Optional["ProcessGroup"]) -> Optional[np.ndarray]:
    """
    Return the full table on the root, None elsewhere.

    Without a process group the local block already is the whole table.
    """
    if group is None:
        return local
    if not group.is_root:
        send_block(local, group)
        return None
    return receive_table(local, group)
