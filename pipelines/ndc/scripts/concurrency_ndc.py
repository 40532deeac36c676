#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Process-pool helpers for the per-record linkage loop.

Each worker is hydrated once through the pool initializer (typically with the frozen reference
index) and then maps records independently; results come back in input order.
"""

from __future__ import annotations

import math
import multiprocessing
import os
from concurrent.futures import ProcessPoolExecutor
from typing import Callable, Iterable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

WORKERS_ENV = "NDC_MAX_WORKERS"


def _available_cpus() -> int:
    """Logical cpu count respecting scheduler affinity where the platform exposes it."""
    try:
        return len(os.sched_getaffinity(0))  # type: ignore[attr-defined]
    except (AttributeError, OSError):
        count = os.cpu_count()
        return count if isinstance(count, int) and count > 0 else 1


def _env_requested_workers() -> int | None:
    raw = os.getenv(WORKERS_ENV)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return max(value, 0)


def resolve_worker_count(explicit: int | None = None, task_size: int | None = None) -> int:
    """Worker count from NDC_MAX_WORKERS, then ``explicit``, then a size-based heuristic."""
    cpu_cap = _available_cpus()
    requested = _env_requested_workers()
    if requested is not None:
        return max(1, min(requested, cpu_cap))
    if explicit is not None:
        return max(1, min(explicit, cpu_cap))
    if cpu_cap <= 1 or not task_size or task_size < 5000:
        return 1
    # Roughly one worker per 25k records; index hydration dominates below that.
    return max(1, min(cpu_cap, max(2, math.ceil(task_size / 25000))))


def maybe_parallel_map(
    seq: Sequence[T] | Iterable[T],
    func: Callable[[T], R],
    *,
    max_workers: int | None = None,
    parallel_threshold: int = 5000,
    initializer: Callable[..., None] | None = None,
    initargs: tuple = (),
    chunksize: int | None = None,
) -> List[R]:
    """
    Apply ``func`` across ``seq``, using a process pool when the workload is large enough.

    ``initializer``/``initargs`` mirror ``ProcessPoolExecutor`` and run once per worker (or once
    in-process on the serial path). Restricted environments that refuse to spawn workers fall
    back to a fork context and finally to serial execution.
    """
    values = list(seq)
    count = len(values)
    if count == 0:
        return []

    workers = resolve_worker_count(explicit=max_workers, task_size=count)

    def _serial() -> List[R]:
        if initializer:
            initializer(*initargs)
        return [func(item) for item in values]

    if workers <= 1 or count < parallel_threshold:
        return _serial()

    computed_chunksize = chunksize or max(1, min(2000, count // (workers * 4)))

    def _run_with_executor(mp_ctx: multiprocessing.context.BaseContext | None = None) -> List[R]:
        with ProcessPoolExecutor(
            max_workers=workers,
            initializer=initializer,
            initargs=initargs,
            mp_context=mp_ctx,
        ) as executor:
            return list(executor.map(func, values, chunksize=computed_chunksize))

    try:
        return _run_with_executor()
    except (OSError, PermissionError):
        try:
            fork_ctx = multiprocessing.get_context("fork")
        except (AttributeError, ValueError):
            fork_ctx = None
        if fork_ctx is not None:
            try:
                return _run_with_executor(fork_ctx)
            except (OSError, PermissionError):
                pass
        return _serial()


__all__ = ["WORKERS_ENV", "maybe_parallel_map", "resolve_worker_count"]
