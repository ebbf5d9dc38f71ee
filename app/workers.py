from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def fan_out(func: Callable[[T], R], items: Iterable[T], *, max_workers: int = 1) -> List[R]:
    """Apply ``func`` to every item on a bounded thread pool, keeping input order.

    ``func`` owns its error handling; an exception it lets escape propagates
    to the caller once the pool has drained.
    """
    work = list(items)
    if not work:
        return []
    workers = min(max(1, int(max_workers or 1)), len(work))
    if workers == 1:
        return [func(item) for item in work]
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="porters") as pool:
        return list(pool.map(func, work))
