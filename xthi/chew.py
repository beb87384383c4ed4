"""
Keep the worker threads busy after reporting so their placement can be
watched with top, mpstat or sar.
"""

import threading
import time


def chew_cpu(duration_secs: float) -> int:
    """Burn CPU for (at least) the given number of seconds."""
    stop_time = time.time() + duration_secs
    s = 0
    while time.time() < stop_time:
        # Busy work
        s += sum(range(50000))
    return s


def chew_all(num_threads: int, duration_secs: float) -> None:
    """Run chew_cpu on `num_threads` threads and wait for all of them."""
    if duration_secs <= 0:
        return
    threads = []
    for i in range(max(1, num_threads)):
        t = threading.Thread(target=chew_cpu, args=(duration_secs,), name=f"xthi-chew-{i}", daemon=True)
        t.start()
        threads.append(t)

    for t in threads:
        t.join()
