#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
main.py: category-aware pipeline loader around the NADAC ↔ openFDA linkage.

Exports:
- prepare, run_linkage (re-exported from pipelines/ndc/scripts)
- run_all(nadac_csv, openfda_json, outdir, ...) -> PipelineResult
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from pipelines import (
    PipelineContext,
    PipelineOptions,
    PipelineResult,
    PipelineRunParams,
    get_pipeline,
    slugify_item_ref_code,
)
from pipelines.ndc.constants import (
    ITEM_REF_CODE,
    METRICS_HISTORY_NAME,
    NADAC_CSV_NAME,
    OPENFDA_JSON_NAME,
    PIPELINE_OUTPUTS_DIR,
    PIPELINE_RAW_DIR,
)
from pipelines.ndc.scripts.prepare_ndc import prepare  # re-exported for convenience
from pipelines.ndc.scripts.runners import print_metrics_comparison, run_linkage  # run_linkage re-exported for convenience


def _resolve_path(
    path: str | os.PathLike[str] | None,
    *,
    base_dir: Path,
    fallback_dir: Optional[Path] = None,
    default_name: Optional[str] = None,
) -> Optional[Path]:
    if path is None:
        if default_name is None:
            return None
        for directory in (base_dir, fallback_dir):
            if directory is not None and (directory / default_name).exists():
                return (directory / default_name).resolve()
        return base_dir / default_name

    candidate = Path(path)
    search_paths: list[Path] = []

    if candidate.is_absolute():
        search_paths.append(candidate)
    else:
        search_paths.append(Path.cwd() / candidate)
        search_paths.append(base_dir / candidate)
        if fallback_dir is not None:
            search_paths.append(fallback_dir / candidate)

    for option in search_paths:
        if option.exists():
            return option.resolve()

    # Fall back to the first search path even if it does not exist; the pipeline reports it.
    return search_paths[0].resolve()


def run_all(
    nadac_csv: str | os.PathLike[str] | None = None,
    openfda_json: str | os.PathLike[str] | None = None,
    outdir: str | os.PathLike[str] | None = None,
    *,
    item_ref_code: str = ITEM_REF_CODE,
    chunk_size: Optional[int] = None,
    min_variant_length: Optional[int] = None,
    workers: Optional[int] = None,
    compact_unmatched: bool = False,
    include_match_metadata: bool = False,
    allow_missing_reference: bool = False,
    skip_metrics: bool = False,
    quiet: bool = False,
    timings: Optional[List[Tuple[str, float]]] = None,
) -> PipelineResult:
    """Execute the registered pipeline for the requested ITEM_REF_CODE."""
    project_root = Path(__file__).resolve().parent
    slug = slugify_item_ref_code(item_ref_code)

    inputs_dir = Path(os.environ.get("PIPELINE_INPUTS_DIR", project_root / "inputs" / slug)).resolve()
    inputs_dir.mkdir(parents=True, exist_ok=True)

    if outdir is None:
        output_dir = Path(os.environ.get("PIPELINE_OUTPUTS_DIR", project_root / "outputs" / slug)).resolve()
    else:
        output_dir = Path(outdir).resolve()
    output_dir.mkdir(parents=True, exist_ok=True)

    pipeline = get_pipeline(item_ref_code)

    params = PipelineRunParams(
        price_csv=_resolve_path(nadac_csv, base_dir=PIPELINE_RAW_DIR, fallback_dir=inputs_dir, default_name=NADAC_CSV_NAME),
        reference_json=_resolve_path(openfda_json, base_dir=PIPELINE_RAW_DIR, fallback_dir=inputs_dir, default_name=OPENFDA_JSON_NAME),
    )
    context = PipelineContext(
        project_root=project_root,
        inputs_dir=inputs_dir,
        outputs_dir=output_dir,
    )
    extra: Dict[str, object] = {
        "compact_unmatched": compact_unmatched,
        "include_match_metadata": include_match_metadata,
        "allow_missing_reference": allow_missing_reference,
        "skip_metrics": skip_metrics,
    }
    if chunk_size is not None:
        extra["chunk_size"] = chunk_size
    if min_variant_length is not None:
        extra["min_variant_length"] = min_variant_length
    if workers is not None:
        extra["max_workers"] = workers
    options = PipelineOptions(quiet=quiet, extra=extra)

    def _hook(label: str, elapsed: float) -> None:
        if timings is not None:
            timings.append((label, elapsed))

    return pipeline.run(context, params, options, timing_hook=_hook)


def _print_timings(timings: Sequence[Tuple[str, float]]) -> None:
    if not timings:
        return
    width = max(len(label) for label, _ in timings)
    total = sum(elapsed for _, elapsed in timings)
    print("\n=== Timing summary ===")
    for label, elapsed in timings:
        print(f"{label.ljust(width)}  {elapsed:8.2f}s")
    print(f"{'Total'.ljust(width)}  {total:8.2f}s")


def _cli(argv: Optional[Sequence[str]] = None) -> None:
    """Parse CLI arguments and run the requested pipeline."""
    parser = argparse.ArgumentParser(description="Link NADAC pricing entries to openFDA products by NDC")
    parser.add_argument("--nadac", required=False, help=f"NADAC CSV (default: raw/{NADAC_CSV_NAME})")
    parser.add_argument("--openfda", required=False, help=f"openFDA NDC JSON (default: raw/{OPENFDA_JSON_NAME})")
    parser.add_argument("--outdir", required=False)
    parser.add_argument("--chunk-size", type=int, default=None, help="Records per published chunk (default: 4000)")
    parser.add_argument("--min-variant-length", type=int, default=None, help="Shortest leading-zero variant indexed (default: 5)")
    parser.add_argument("--workers", type=int, default=None, help="Process-pool workers for linkage")
    parser.add_argument("--compact-unmatched", action="store_true", help="Emit only description and NDC for unmatched rows")
    parser.add_argument("--include-match-metadata", action="store_true", help="Add variant/phase details to each match")
    parser.add_argument("--allow-missing-reference", action="store_true", help="Run with an empty reference set if the openFDA file is absent")
    parser.add_argument("--skip-metrics", action="store_true", help="Do not append to metrics_history.csv")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    parser.add_argument("--show-metrics", action="store_true", help="Print recent metrics_history.csv rows and exit")
    parser.add_argument(
        "--item-ref-code",
        required=False,
        default=ITEM_REF_CODE,
        help="ITEM_REF_CODE category to process (registered pipelines only)",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.show_metrics:
        outputs_dir = Path(args.outdir) if args.outdir else PIPELINE_OUTPUTS_DIR
        print_metrics_comparison(outputs_dir / METRICS_HISTORY_NAME)
        return

    timings: List[Tuple[str, float]] = []
    try:
        result = run_all(
            args.nadac,
            args.openfda,
            args.outdir,
            item_ref_code=args.item_ref_code,
            chunk_size=args.chunk_size,
            min_variant_length=args.min_variant_length,
            workers=args.workers,
            compact_unmatched=args.compact_unmatched,
            include_match_metadata=args.include_match_metadata,
            allow_missing_reference=args.allow_missing_reference,
            skip_metrics=args.skip_metrics,
            quiet=args.quiet,
            timings=timings,
        )
    except Exception as exc:  # noqa: BLE001
        print(f"! Linkage failed: {exc}", file=sys.stderr)
        sys.exit(1)

    if not args.quiet:
        _print_timings(timings)
        print(f"\nEnriched output: {result.enriched_json}")


__all__ = ["prepare", "run_linkage", "run_all"]


if __name__ == "__main__":
    _cli(sys.argv[1:])
