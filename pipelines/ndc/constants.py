#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Shared constants for the NdcPriceLinkage pipeline."""

from __future__ import annotations

import os
from pathlib import Path

from ..utils import slugify_item_ref_code

ITEM_REF_CODE: str = "NdcPriceLinkage"
PIPELINE_SLUG: str = slugify_item_ref_code(ITEM_REF_CODE)
PROJECT_ROOT: Path = Path(__file__).resolve().parents[2]
PIPELINE_RAW_DIR: Path = Path(os.environ.get("PIPELINE_RAW_DIR", PROJECT_ROOT / "raw"))
PIPELINE_INPUTS_DIR: Path = Path(os.environ.get("PIPELINE_INPUTS_DIR", PROJECT_ROOT / "inputs" / PIPELINE_SLUG))
PIPELINE_OUTPUTS_DIR: Path = Path(os.environ.get("PIPELINE_OUTPUTS_DIR", PROJECT_ROOT / "outputs" / PIPELINE_SLUG))

# Raw source file names as written by fetch_sources.py.
NADAC_CSV_NAME: str = "nadac-national-average-drug-acquisition-cst-medicaid.csv"
OPENFDA_JSON_NAME: str = "drug-ndc-openfda.json"
NADAC_PREPARED_NAME: str = "nadac_prepared.parquet"

# Published artifact layout consumed by the search front-end.
ENRICHED_JSON_NAME: str = "enriched_medicaid_openfda.json"
SEARCH_INDEX_NAME: str = "search-index-enriched.json"
CLASSIFICATION_MAP_NAME: str = "description-classification.json"
CHUNKS_DIR_NAME: str = "enriched-chunks"
CHUNKS_MANIFEST_NAME: str = "chunks-manifest.json"
CHUNK_FILENAME_TEMPLATE: str = "enriched-chunk-{index}.json"
METRICS_HISTORY_NAME: str = "metrics_history.csv"

# Tuned linkage defaults; see LinkageSettings for overrides.
DEFAULT_MIN_VARIANT_LENGTH: int = 5
DEFAULT_CHUNK_SIZE: int = 4000
DEFAULT_MIN_TOKEN_LENGTH: int = 3
DEFAULT_ROUTE_LIMIT: int = 5

# openFDA exports above this size are parsed incrementally.
OPENFDA_STREAM_THRESHOLD_BYTES: int = 10 * 1024 * 1024

__all__ = [
    "ITEM_REF_CODE",
    "PIPELINE_SLUG",
    "PROJECT_ROOT",
    "PIPELINE_RAW_DIR",
    "PIPELINE_INPUTS_DIR",
    "PIPELINE_OUTPUTS_DIR",
    "NADAC_CSV_NAME",
    "OPENFDA_JSON_NAME",
    "NADAC_PREPARED_NAME",
    "ENRICHED_JSON_NAME",
    "SEARCH_INDEX_NAME",
    "CLASSIFICATION_MAP_NAME",
    "CHUNKS_DIR_NAME",
    "CHUNKS_MANIFEST_NAME",
    "CHUNK_FILENAME_TEMPLATE",
    "METRICS_HISTORY_NAME",
    "DEFAULT_MIN_VARIANT_LENGTH",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_MIN_TOKEN_LENGTH",
    "DEFAULT_ROUTE_LIMIT",
    "OPENFDA_STREAM_THRESHOLD_BYTES",
]
