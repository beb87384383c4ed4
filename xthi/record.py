"""
Thread records and their fixed-size slot encoding.

A record is stored as ASCII text in one slot: fields separated by a single
space, the whole record NUL-terminated and NUL-padded to the slot size.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from xthi.errors import SchemaError

SEPARATOR = " "
TERMINATOR = b"\0"


@dataclass(slots=True, frozen=True)
class ThreadRecord:
    """Where one worker thread of one rank executed."""

    host: str
    rank: int  # -1 without a process group
    thread: int
    cpu: int  # -1 if unavailable
    numa_node: int  # -1 if unavailable
    affinity: str  # range list, "-" if unavailable
    accelerators: Optional[str] = None  # None when not reported

    def fields(self) -> List[str]:
        values = [
            self.host,
            str(self.rank),
            str(self.thread),
            str(self.cpu),
            str(self.numa_node),
            self.affinity,
        ]
        if self.accelerators is not None:
            values.append(self.accelerators)
        return values


def encode_record(fields: Sequence[str], caps: Sequence[int], slot_size: int) -> bytes:
    """
    Encode fields into exactly `slot_size` bytes.

    Each field is cut to its cap first; if the joined record still does not
    fit, its tail is dropped. The last byte of the slot is always a terminator.
    """
    if len(fields) != len(caps):
        raise SchemaError(f"record has {len(fields)} fields, schema has {len(caps)}")
    parts = []
    for value, cap in zip(fields, caps):
        if SEPARATOR in value or "\0" in value:
            raise SchemaError(f"field value {value!r} contains a separator")
        parts.append(value[:cap])
    data = SEPARATOR.join(parts).encode("ascii", errors="replace")
    data = data[: slot_size - 1]
    return data.ljust(slot_size, TERMINATOR)


def decode_record(slot, arity: int) -> List[str]:
    """
    Split one slot back into its fields.

    Fields lost to truncation come back as empty strings.
    """
    raw = bytes(slot).split(TERMINATOR, 1)[0]
    values = raw.decode("ascii", errors="replace").split(SEPARATOR)
    if len(values) > arity:
        raise SchemaError(f"record has {len(values)} fields, schema allows {arity}")
    return values + [""] * (arity - len(values))


class RecordArena:
    """
    Pre-sized buffer holding one slot per worker thread.

    Row `i` belongs to thread `i` only, so concurrent writers never overlap.
    """

    def __init__(self, max_threads: int, slot_size: int):
        self.slot_size = slot_size
        self.buffer = np.zeros((max_threads, slot_size), dtype=np.uint8)

    def write(self, index: int, payload: bytes) -> None:
        if len(payload) != self.slot_size:
            raise SchemaError(
                f"payload of {len(payload)} bytes does not match slot size {self.slot_size}"
            )
        self.buffer[index, :] = np.frombuffer(payload, dtype=np.uint8)

    def view(self, count: int) -> np.ndarray:
        """First `count` slots as one contiguous block."""
        return self.buffer[:count]


def decode_table(table: np.ndarray, arity: int) -> List[List[str]]:
    return [decode_record(row.tobytes(), arity) for row in table]
