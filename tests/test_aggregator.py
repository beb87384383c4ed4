"""Tests for gathering record blocks onto rank 0."""

import threading
import time

import numpy as np
import pytest

from xthi.aggregator import gather_table
from xthi.errors import AggregationError
from xthi.record import decode_table

from conftest import FakeFabric, FakeGroup, ScriptedGroup, record_block


def run_ranks(size, num_threads, send_delays=None):
    """Run gather_table on `size` fake ranks; return (fabric, per-rank results)."""
    fabric = FakeFabric(size)
    results = [None] * size
    errors = []
    send_delays = send_delays or {}

    def rank_main(rank):
        try:
            time.sleep(send_delays.get(rank, 0))
            results[rank] = gather_table(record_block("nodeA", rank, num_threads), fabric.group(rank))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=rank_main, args=(r,)) for r in range(size)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    assert not errors
    return fabric, results


def test_no_group_is_identity():
    local = record_block("node1", -1, 3)
    assert gather_table(local, None) is local


def test_two_ranks_two_threads():
    _, results = run_ranks(size=2, num_threads=2)

    table = results[0]
    assert table.shape == (4, 128)
    rows = decode_table(table, 6)
    assert [(row[1], row[2]) for row in rows] == [("0", "0"), ("0", "1"), ("1", "0"), ("1", "1")]
    assert all(row[0] == "nodeA" for row in rows)
    assert results[1] is None


def test_order_independent_of_delivery_timing():
    # Higher ranks send first; rank 0 still receives rank by rank.
    delays = {1: 0.15, 2: 0.1, 3: 0.05, 4: 0.0}
    fabric, results = run_ranks(size=5, num_threads=3, send_delays=delays)

    assert fabric.recv_order == [1, 2, 3, 4]
    rows = decode_table(results[0], 6)
    assert [int(row[1]) for row in rows] == [r for r in range(5) for _ in range(3)]
    assert [int(row[2]) for row in rows] == [t for _ in range(5) for t in range(3)]


def test_root_block_is_copied_not_sent():
    local = record_block("nodeA", 0, 2)
    table = gather_table(local, ScriptedGroup(size=1))
    assert np.array_equal(table, local)
    assert table is not local


def test_send_blocks_until_received():
    fabric = FakeFabric(2)
    finished = threading.Event()

    def sender():
        gather_table(record_block("nodeA", 1, 1), fabric.group(1))
        finished.set()

    t = threading.Thread(target=sender, daemon=True)
    t.start()
    assert not finished.wait(timeout=0.2)

    table = gather_table(record_block("nodeA", 0, 1), fabric.group(0))
    assert finished.wait(timeout=5)
    assert table.shape == (2, 128)


def test_short_block_is_fatal():
    local = record_block("nodeA", 0, 2)
    group = ScriptedGroup(size=2, messages={1: record_block("nodeA", 1, 1).tobytes()})
    with pytest.raises(AggregationError, match="sent 128 bytes, expected 256") as info:
        gather_table(local, group)
    assert info.value.rank == 1


def test_oversized_block_is_fatal():
    local = record_block("nodeA", 0, 1)
    group = ScriptedGroup(size=2, messages={1: record_block("nodeA", 1, 3).tobytes()})
    with pytest.raises(AggregationError) as info:
        gather_table(local, group)
    assert info.value.rank == 1


def test_empty_message_is_fatal():
    local = record_block("nodeA", 0, 2)
    with pytest.raises(AggregationError):
        gather_table(local, ScriptedGroup(size=2, messages={1: b""}))


def test_receive_failure_is_fatal():
    local = record_block("nodeA", 0, 1)
    group = ScriptedGroup(
        size=3,
        messages={1: record_block("nodeA", 1, 1).tobytes(), 2: RuntimeError("link down")},
    )
    with pytest.raises(AggregationError, match="rank 2"):
        gather_table(local, group)


def test_send_failure_is_fatal():
    class BrokenGroup(FakeGroup):
        def send_block(self, block, dest, tag=0):
            raise ConnectionError("peer unreachable")

    group = BrokenGroup(comm=None, rank=1, size=2)
    with pytest.raises(AggregationError):
        gather_table(record_block("nodeA", 1, 1), group)
