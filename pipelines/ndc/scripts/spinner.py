#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Console spinner used to report pipeline stages with elapsed time."""

from __future__ import annotations

import sys
import threading
import time
from typing import Callable, Optional, Tuple, TypeVar

T = TypeVar("T")

LabelType = str | Callable[[float], str]
FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"


def timed_stage(
    label: LabelType,
    func: Callable[[], T],
    completion_label: Optional[Callable[[float], str]] = None,
    *,
    quiet: bool = False,
) -> Tuple[T, float]:
    """
    Run func() while redrawing ``⠋ XXXX.XXs label`` on stdout and return ``(result, elapsed)``.

    The final line reads ``⣿ XXXX.XXs label`` (or ``✗`` when func raised, in which case the error
    is re-raised). ``label`` may be a callback(elapsed_seconds) -> str for live updates. With
    ``quiet`` the function simply runs with no console output.
    """
    if quiet:
        start = time.perf_counter()
        value = func()
        return value, time.perf_counter() - start

    done = threading.Event()
    result: list[T] = []
    err: list[BaseException] = []

    def worker() -> None:
        try:
            result.append(func())
        except BaseException as exc:  # noqa: BLE001
            err.append(exc)
        finally:
            done.set()

    def get_label(elapsed: float) -> str:
        return label(elapsed) if callable(label) else label

    start = time.perf_counter()
    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    idx = 0
    while not done.wait(0.1):
        elapsed = time.perf_counter() - start
        sys.stdout.write(f"\r{FRAMES[idx % len(FRAMES)]} {elapsed:7.2f}s {get_label(elapsed)}    ")
        sys.stdout.flush()
        idx += 1
    thread.join()
    elapsed = time.perf_counter() - start
    mark = "⣿" if not err else "✗"
    final_label = completion_label(elapsed) if completion_label else get_label(elapsed)
    sys.stdout.write(f"\r{mark} {elapsed:7.2f}s {final_label}    \n")
    sys.stdout.flush()
    if err:
        raise err[0]
    return result[0], elapsed


__all__ = ["timed_stage"]
