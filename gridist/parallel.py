"""
Order-preserving parallel maps over a thread pool.

Pillow resampling and NumPy array maths release the GIL, so plain threads are
enough to keep every core busy on the cropping work.
"""

import os
from concurrent.futures import FIRST_EXCEPTION, Executor, Future, wait
from typing import Callable, Iterable, List, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def default_workers() -> int:
    """Same default as ThreadPoolExecutor itself."""
    return min(32, (os.cpu_count() or 1) + 4)


def map_all(fn: Callable[[T], R], items: Iterable[T], executor: Executor) -> List[R]:
    """
    Run fn over every item and return the results in item order.

    Every item is attempted even when some fail. Once all have finished, the
    error of the lowest failing item is raised.
    """
    futures = [executor.submit(fn, item) for item in items]
    wait(futures)
    first_error = _first_error(futures)
    if first_error is not None:
        raise first_error
    return [future.result() for future in futures]


def map_fail_fast(fn: Callable[[T], R], items: Iterable[T], executor: Executor) -> List[R]:
    """
    Run fn over every item and return the results in item order.

    Stops at the first failure: work that has not started yet is cancelled and
    the error is raised without waiting for the rest.
    """
    futures = [executor.submit(fn, item) for item in items]
    done, pending = wait(futures, return_when=FIRST_EXCEPTION)
    first_error = _first_error(f for f in futures if f in done)
    if first_error is not None:
        for future in pending:
            future.cancel()
        raise first_error
    return [future.result() for future in futures]


def _first_error(futures: Iterable[Future]) -> Optional[BaseException]:
    for future in futures:
        if not future.cancelled() and future.exception() is not None:
            return future.exception()
    return None
