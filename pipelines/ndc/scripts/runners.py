#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Runner functions for the NADAC ↔ openFDA linkage.

Called by the pipeline class and by main.py; each stage is reported through the spinner and
the optional timing hook.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional, TypeVar

import pandas as pd

from ..constants import METRICS_HISTORY_NAME, PIPELINE_OUTPUTS_DIR
from ...base import TimingHook
from .match_ndc import enrich_price_entries
from .outputs_ndc import write_outputs
from .prepare_ndc import load_price_entries
from .reference_data_ndc import ReferenceLoadSummary, iter_reference_entries
from .reference_index import ReferenceIndex, ReferenceIndexBuilder
from .settings import LinkageSettings
from .spinner import timed_stage

T = TypeVar("T")


def _stage(
    label: str,
    func: Callable[[], T],
    *,
    quiet: bool,
    timing_hook: Optional[TimingHook],
    completion_label: Optional[Callable[[float], str]] = None,
) -> T:
    value, elapsed = timed_stage(label, func, completion_label, quiet=quiet)
    if timing_hook:
        timing_hook(label, elapsed)
    return value


def _rate_label(verb: str, rows: int, elapsed: float) -> str:
    rate = rows / elapsed if elapsed > 0 else 0.0
    return f"{verb} {rows:,} NADAC entries ({rate:,.0f} rows/s)"


def build_index_from_file(
    reference_json: Optional[Path],
    settings: LinkageSettings,
    *,
    allow_missing: bool = False,
    summary: Optional[ReferenceLoadSummary] = None,
) -> ReferenceIndex:
    """Stream the openFDA export into a builder and freeze it. Linkage starts only after this returns."""
    builder = ReferenceIndexBuilder(settings.min_variant_length)
    if reference_json is None or not Path(reference_json).is_file():
        if not allow_missing:
            raise FileNotFoundError(f"openFDA NDC JSON not found: {reference_json}")
        return builder.build()
    summary = summary if summary is not None else ReferenceLoadSummary()
    builder.extend(iter_reference_entries(Path(reference_json), route_limit=settings.route_limit, summary=summary))
    index = builder.build()
    if summary.unreadable:
        # A streamed parse may fail after some items were indexed; drop them.
        return ReferenceIndexBuilder(settings.min_variant_length).build()
    return index


def run_linkage(
    price_table: Path,
    reference_json: Optional[Path],
    outputs_dir: Path,
    settings: Optional[LinkageSettings] = None,
    *,
    quiet: bool = False,
    timing_hook: Optional[TimingHook] = None,
    allow_missing_reference: bool = False,
) -> dict:
    """
    Load both datasets, link, filter, select and publish.

    Returns dict with results summary (counts, stats object, published artifact paths).
    """
    settings = settings or LinkageSettings()
    if not Path(price_table).is_file():
        raise FileNotFoundError(f"NADAC price table not found: {price_table}")

    ref_summary = ReferenceLoadSummary()
    index = _stage(
        "Build openFDA variant index",
        lambda: build_index_from_file(
            reference_json,
            settings,
            allow_missing=allow_missing_reference,
            summary=ref_summary,
        ),
        quiet=quiet,
        timing_hook=timing_hook,
    )
    entries = _stage("Load NADAC price entries", lambda: load_price_entries(price_table), quiet=quiet, timing_hook=timing_hook)
    enriched, stats = _stage(
        f"Match {len(entries):,} NADAC entries to openFDA by NDC",
        lambda: enrich_price_entries(entries, index, settings),
        quiet=quiet,
        timing_hook=timing_hook,
        completion_label=lambda elapsed, n=len(entries): _rate_label("Matched", n, elapsed),
    )
    artifacts = _stage(
        "Write enriched outputs",
        lambda: write_outputs(enriched, outputs_dir, settings),
        quiet=quiet,
        timing_hook=timing_hook,
    )

    if not quiet:
        print(f"• openFDA items: {ref_summary.items:,} (skipped {ref_summary.skipped:,}), variants indexed: {index.variant_count:,}")
        for line in stats.summary_lines():
            print(line)
        print(f"• Wrote {artifacts.chunk_count:,} chunks ({artifacts.total:,} records) to {artifacts.chunks_dir}")

    return {
        "total": stats.total,
        "matched": stats.matched,
        "matched_pct": stats.matched_pct,
        "reference_items": ref_summary.items,
        "reference_skipped": ref_summary.skipped,
        "variants_indexed": index.variant_count,
        "stats": stats,
        "artifacts": artifacts,
    }


def log_metrics(
    run_type: str,
    metrics: Dict[str, object],
    metrics_path: Optional[Path] = None,
) -> Path:
    """
    Append one timestamped metrics row to the history CSV.

    Args:
        run_type: Label for the run (e.g. ndc_linkage)
        metrics: Scalar metric values
        metrics_path: History file; defaults to the pipeline outputs directory
    """
    if metrics_path is None:
        metrics_path = PIPELINE_OUTPUTS_DIR / METRICS_HISTORY_NAME
    row = {
        "timestamp": datetime.now().isoformat(),
        "run_type": run_type,
        **metrics,
    }
    metrics_df = pd.DataFrame([row])
    if metrics_path.exists():
        metrics_df.to_csv(metrics_path, mode="a", header=False, index=False)
    else:
        metrics_path.parent.mkdir(parents=True, exist_ok=True)
        metrics_df.to_csv(metrics_path, index=False)
    return metrics_path


def get_metrics_summary(metrics_path: Optional[Path] = None) -> pd.DataFrame:
    """Return all historical metrics rows (empty frame when no history exists)."""
    if metrics_path is None:
        metrics_path = PIPELINE_OUTPUTS_DIR / METRICS_HISTORY_NAME
    if not metrics_path.exists():
        return pd.DataFrame()
    return pd.read_csv(metrics_path)


def print_metrics_comparison(metrics_path: Optional[Path] = None, last: int = 5) -> None:
    """Print the most recent runs per run type."""
    df = get_metrics_summary(metrics_path)
    if df.empty:
        print("No metrics history found.")
        return
    print("\n" + "=" * 60)
    print("METRICS HISTORY")
    print("=" * 60)
    for run_type in df["run_type"].unique():
        subset = df[df["run_type"] == run_type].tail(last)
        print(f"\n{str(run_type).upper()}:")
        print(subset.to_string(index=False))


__all__ = [
    "build_index_from_file",
    "run_linkage",
    "log_metrics",
    "get_metrics_summary",
    "print_metrics_comparison",
]
