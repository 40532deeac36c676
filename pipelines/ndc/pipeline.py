#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Pipeline implementation for ITEM_REF_CODE == 'NdcPriceLinkage'."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Dict, Optional

from ..base import (
    BasePipeline,
    PipelineContext,
    PipelineOptions,
    PipelinePreparedInputs,
    PipelineResult,
    PipelineRunParams,
    TimingHook,
)
from ..registry import register_pipeline
from .constants import ITEM_REF_CODE, METRICS_HISTORY_NAME, PIPELINE_SLUG
from .scripts.prepare_ndc import PrepareSummary, prepare
from .scripts.runners import log_metrics, run_linkage
from .scripts.settings import LinkageSettings
from .scripts.spinner import timed_stage


@register_pipeline
class NdcLinkagePipeline(BasePipeline):
    """Links NADAC price rows to openFDA products by NDC and publishes the search artifacts."""

    item_ref_code = ITEM_REF_CODE
    display_name = "NDC Price Linkage"
    description = "Enriches NADAC pricing entries with openFDA product metadata via NDC variants."

    def __init__(self) -> None:
        self.prepare_summary: Optional[PrepareSummary] = None

    def prepare_inputs(
        self,
        context: PipelineContext,
        params: PipelineRunParams,
        options: PipelineOptions,
        *,
        timing_hook: Optional[TimingHook] = None,
    ) -> PipelinePreparedInputs:
        price_csv = Path(params.price_csv)
        if not price_csv.is_file():
            raise FileNotFoundError(f"NADAC CSV not found: {price_csv}")

        spinner = self._spinner(options)
        prepared_paths: Dict[str, Path] = {}

        def _prepare() -> None:
            out_path, summary = prepare(price_csv, context.inputs_dir)
            prepared_paths["price_table"] = out_path.resolve()
            self.prepare_summary = summary

        elapsed = self._run_stage(spinner, "Prepare NADAC inputs", _prepare, quiet=options.quiet)
        if timing_hook:
            timing_hook("Prepare NADAC inputs", elapsed)

        summary = self.prepare_summary
        if summary is not None and not options.quiet:
            print(
                f"• NADAC rows: {summary.rows:,} (skipped {summary.skipped:,}, "
                f"duplicates {summary.duplicates:,}, unique {summary.unique:,})"
            )

        reference = Path(params.reference_json).resolve() if params.reference_json else None
        return PipelinePreparedInputs(price_table=prepared_paths["price_table"], reference_json=reference)

    def match(
        self,
        context: PipelineContext,
        prepared: PipelinePreparedInputs,
        options: PipelineOptions,
        *,
        timing_hook: Optional[TimingHook] = None,
    ) -> PipelineResult:
        settings = LinkageSettings.from_options(options.extra)
        summary = run_linkage(
            prepared.price_table,
            prepared.reference_json,
            context.outputs_dir,
            settings,
            quiet=options.quiet,
            timing_hook=timing_hook,
            allow_missing_reference=options.flag("allow_missing_reference"),
        )
        artifacts = summary["artifacts"]
        metrics: Dict[str, object] = dict(summary["stats"].as_metrics())
        metrics["reference_items"] = summary["reference_items"]
        metrics["variants_indexed"] = summary["variants_indexed"]
        metrics["chunks"] = artifacts.chunk_count
        if self.prepare_summary is not None:
            metrics["prepared_duplicates"] = self.prepare_summary.duplicates
        return PipelineResult(
            enriched_json=artifacts.enriched_json,
            prepared=prepared,
            extras={
                "search_index": artifacts.search_index,
                "classification_map": artifacts.classification_map,
                "chunks_manifest": artifacts.manifest,
            },
            metrics=metrics,
        )

    def post_run(
        self,
        context: PipelineContext,
        result: PipelineResult,
        options: PipelineOptions,
        *,
        timing_hook: Optional[TimingHook] = None,
    ) -> None:
        if options.flag("skip_metrics"):
            return
        metrics_path = log_metrics(PIPELINE_SLUG, result.metrics, context.outputs_dir / METRICS_HISTORY_NAME)
        result.extras["metrics_history"] = metrics_path

    # ----------------------------
    # Helpers
    # ----------------------------
    @staticmethod
    def _spinner(options: PipelineOptions) -> Optional[Callable[[str, Callable[[], None]], float]]:
        spinner = options.extra.get("spinner")
        if callable(spinner):
            return spinner
        return None

    @staticmethod
    def _run_stage(
        spinner: Optional[Callable[[str, Callable[[], None]], float]],
        label: str,
        func: Callable[[], None],
        *,
        quiet: bool = False,
    ) -> float:
        if spinner:
            return spinner(label, func)
        if quiet:
            t0 = time.perf_counter()
            func()
            return time.perf_counter() - t0
        _, elapsed = timed_stage(label, func)
        return elapsed
