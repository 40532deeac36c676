#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Loader for the openFDA drug NDC export."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Iterator, List, Mapping, Optional

import ijson

from ..constants import DEFAULT_ROUTE_LIMIT, OPENFDA_STREAM_THRESHOLD_BYTES
from .models import ReferenceEntry


@dataclass
class ReferenceLoadSummary:
    items: int = 0
    skipped: int = 0
    unreadable: bool = False


def _result_items(payload: Any) -> List[Any]:
    """Accept either a top-level array or an object with a ``results`` array."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping) and isinstance(payload.get("results"), list):
        return payload["results"]
    return []


def _stream_result_items(handle: BinaryIO) -> Iterator[Any]:
    """Incrementally parse ``results`` items, falling back to a top-level array."""
    found = False
    for item in ijson.items(handle, "results.item", use_float=True):
        found = True
        yield item
    if found:
        return
    handle.seek(0)
    yield from ijson.items(handle, "item", use_float=True)


def iter_openfda_items(
    path: Path,
    summary: Optional[ReferenceLoadSummary] = None,
    *,
    stream_threshold: int = OPENFDA_STREAM_THRESHOLD_BYTES,
) -> Iterator[Mapping[str, Any]]:
    """
    Yield openFDA product objects one at a time.

    Files larger than ``stream_threshold`` bytes are parsed incrementally with ijson so the raw
    export is never held in memory; smaller files are decoded in one go.

    A file that cannot be decoded is reported on stderr and flagged on ``summary.unreadable``;
    callers discard whatever was yielded before the failure, so the run proceeds with an empty
    reference index and every price entry stays unmatched.
    """
    summary = summary if summary is not None else ReferenceLoadSummary()
    path = Path(path)
    try:
        if path.stat().st_size > stream_threshold:
            with path.open("rb") as handle:
                items: Iterable[Any] = _stream_result_items(handle)
                yield from _count_items(items, summary)
            return
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (json.JSONDecodeError, UnicodeDecodeError, ijson.JSONError) as exc:
        summary.unreadable = True
        summary.items = summary.skipped = 0
        print(f"! openFDA file {path} is unreadable ({exc}); continuing with an empty reference set.", file=sys.stderr)
        return
    yield from _count_items(_result_items(payload), summary)


def _count_items(items: Iterable[Any], summary: ReferenceLoadSummary) -> Iterator[Mapping[str, Any]]:
    for item in items:
        if not isinstance(item, Mapping):
            summary.skipped += 1
            continue
        summary.items += 1
        yield item


def iter_reference_entries(
    path: Path,
    *,
    route_limit: int = DEFAULT_ROUTE_LIMIT,
    summary: Optional[ReferenceLoadSummary] = None,
) -> Iterator[ReferenceEntry]:
    for item in iter_openfda_items(path, summary):
        yield ReferenceEntry.from_openfda(item, route_limit=route_limit)


__all__ = ["ReferenceLoadSummary", "iter_openfda_items", "iter_reference_entries"]
