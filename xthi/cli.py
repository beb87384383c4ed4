"""
xthi command line.

Usage:
  mpirun -np 4 xthi [cpu_chew_seconds]
  OMP_NUM_THREADS=8 xthi --no-mpi
"""

import argparse
import sys
from typing import List, Optional, TextIO

from xthi import __version__
from xthi.aggregator import gather_table
from xthi.chew import chew_all
from xthi.errors import XthiError
from xthi.log import get_logger, setup_logger
from xthi.producer import produce_local
from xthi.renderer import output_records
from xthi.schema import build_headers
from xthi.settings import XthiSettings, detect_capabilities, read_xthi_env

logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        "xthi", description="Report where each thread of each MPI rank runs"
    )
    ap.add_argument("chew_seconds", nargs="?", type=int, default=None,
                    help="Keep all threads busy for this many seconds after reporting")
    ap.add_argument("--threads", type=int, default=None,
                    help="Worker threads per rank (default: OMP_NUM_THREADS or usable CPUs)")
    ap.add_argument("--no-mpi", dest="use_mpi", action="store_false", default=None,
                    help="Run as a single process without joining an MPI group")
    ap.add_argument("--accelerators", action="store_true", default=None,
                    help="Also report the accelerator devices visible to each rank")
    ap.add_argument("--log-level", default=None,
                    choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return ap


def settings_from_args(argv: Optional[List[str]] = None) -> XthiSettings:
    ap = build_parser()
    args = ap.parse_args(argv)
    if args.chew_seconds is not None and args.chew_seconds < 0:
        ap.error("CPU chew time must be positive")
    if args.threads is not None and args.threads < 1:
        ap.error("thread count must be at least 1")
    return read_xthi_env().override(
        chew_seconds=args.chew_seconds,
        num_threads=args.threads,
        use_mpi=args.use_mpi,
        accelerators=args.accelerators,
        log_level=args.log_level,
    )


def run_pipeline(settings: XthiSettings, group=None, stream: Optional[TextIO] = None) -> None:
    """Produce, gather and (on the root) print the placement table."""
    rank = group.rank if group is not None else -1
    caps = detect_capabilities(settings, group_active=group is not None)
    logger.debug("rank %d capabilities: %s", rank, caps)

    local = produce_local(settings, caps, rank)
    table = gather_table(local, group)
    if table is not None:
        headers = build_headers(caps, settings.num_threads)
        output_records(table, headers, stream)

    chew_all(settings.num_threads, settings.chew_seconds)


def run(settings: XthiSettings, stream: Optional[TextIO] = None) -> int:
    setup_logger(settings.log_level)

    if not settings.use_mpi:
        try:
            run_pipeline(settings, None, stream)
        except XthiError as e:
            logger.error("%s", e)
            return 1
        return 0

    from xthi.group import abort, joined_group

    with joined_group() as group:
        try:
            run_pipeline(settings, group, stream)
        except XthiError as e:
            logger.error("rank %d: %s", group.rank, e)
            abort(group, 1)
            return 1
        except Exception:
            logger.exception("rank %d: unexpected failure", group.rank)
            abort(group, 1)
            return 1
    return 0


def main() -> None:
    sys.exit(run(settings_from_args()))


if __name__ == "__main__":
    main()
