"""
Render the gathered table as aligned "Label=value" lines.

Each displayed value is right-justified to the widest value in its column.
"""

import sys
from typing import List, Optional, Sequence, TextIO

import numpy as np

from xthi.errors import SchemaError
from xthi.record import decode_table


def column_widths(rows: Sequence[Sequence[str]], headers: Sequence[Optional[str]]) -> List[int]:
    widths = [0] * len(headers)
    for row in rows:
        if len(row) != len(headers):
            raise SchemaError(f"record has {len(row)} fields, headers have {len(headers)}")
        for i, (value, head) in enumerate(zip(row, headers)):
            if head is not None and len(value) > widths[i]:
                widths[i] = len(value)
    return widths


def format_record(
    row: Sequence[str],
    widths: Sequence[int],
    headers: Sequence[Optional[str]],
) -> str:
    # Displayed fields are separated by one space; no trailing space at line end.
    parts = []
    for value, width, head in zip(row, widths, headers):
        if head is None:
            continue
        if len(value) > width:
            raise SchemaError(f"{head} value {value!r} is wider than its column ({width})")
        parts.append(f"{head}={value.rjust(width)}")
    return " ".join(parts)


def render_rows(rows: Sequence[Sequence[str]], headers: Sequence[Optional[str]]) -> List[str]:
    widths = column_widths(rows, headers)
    return [format_record(row, widths, headers) for row in rows]


def output_records(
    table: np.ndarray,
    headers: Sequence[Optional[str]],
    stream: Optional[TextIO] = None,
) -> None:
    """
    Print every record of the table.

    Params:
    table: (count, slot_size) block of encoded records, in (rank, thread) order
    headers: one label per field, None suppresses that column
    """
    stream = stream or sys.stdout
    rows = decode_table(table, len(headers))
    for line in render_rows(rows, headers):
        stream.write(line + "\n")
    stream.flush()
