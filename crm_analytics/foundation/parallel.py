"""Chunked multiprocessing for per-customer computations.

Per-customer scores (RFM, churn risk) are independent of each other, so large
customer lists can be split into contiguous chunks and handed to a process
pool. Chunks are merged back in submission order, which keeps the output
identical to a serial run.
"""

from __future__ import annotations

import logging
import multiprocessing
import os
from typing import Any, Callable, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_PARALLEL_THRESHOLD = 100_000


def map_in_chunks(
    func: Callable[..., list[R]],
    items: Sequence[T],
    *extra_args: Any,
    parallel: bool = True,
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD,
    n_workers: Optional[int] = None,
) -> list[R]:
    """Apply ``func(chunk, *extra_args)`` over ``items`` and concatenate.

    Parameters
    ----------
    func:
        Module-level (picklable) function taking a list of items followed by
        ``extra_args`` and returning one result per item.
    items:
        Items to process.
    parallel:
        Allow the process pool (default: True).
    parallel_threshold:
        Minimum number of items before the pool is used.
    n_workers:
        Number of worker processes. Defaults to the CPU count.
    """
    num_items = len(items)
    if not parallel or num_items < parallel_threshold:
        return func(list(items), *extra_args)

    workers = max(1, n_workers) if n_workers is not None else (os.cpu_count() or 1)
    chunk_size = max(1, -(-num_items // workers))
    chunks = [
        (list(items[i : i + chunk_size]), *extra_args)
        for i in range(0, num_items, chunk_size)
    ]
    logger.debug(
        f"Dispatching {num_items} items to {workers} workers in {len(chunks)} chunks"
    )
    with multiprocessing.Pool(processes=workers) as pool:
        chunk_results = pool.starmap(func, chunks)

    merged: list[R] = []
    for chunk_result in chunk_results:
        merged.extend(chunk_result)
    return merged
