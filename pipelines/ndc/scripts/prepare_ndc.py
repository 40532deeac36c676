#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Pre-processing of the NADAC pricing CSV (Polars/Parquet-first)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import polars as pl

from ..constants import NADAC_PREPARED_NAME
from .models import PRICE_COLUMNS, PriceEntry
from .text_utils_ndc import PLACEHOLDER_VALUES

REQUIRED_COLUMNS = ("NDC Description", "NDC")


@dataclass(frozen=True)
class PrepareSummary:
    rows: int
    skipped: int
    duplicates: int
    unique: int


def _scan_input(path: str | os.PathLike[str]) -> pl.LazyFrame:
    """Scan CSV/Parquet into a LazyFrame with every CSV column kept as text."""
    if str(path).lower().endswith(".parquet"):
        return pl.scan_parquet(path)
    return pl.scan_csv(
        path,
        infer_schema_length=0,
        truncate_ragged_lines=True,
        ignore_errors=True,
        encoding="utf8-lossy",
    )


def _null_placeholders(column: str) -> pl.Expr:
    value = pl.col(column).cast(pl.Utf8).str.strip_chars()
    return (
        pl.when(value.str.to_lowercase().is_in(sorted(PLACEHOLDER_VALUES)))
        .then(pl.lit(None, dtype=pl.Utf8))
        .otherwise(value)
        .alias(column)
    )


def _prep_nadac(nadac_path: str | os.PathLike[str]) -> Tuple[pl.DataFrame, PrepareSummary]:
    """Load, trim, null-normalize and de-duplicate NADAC rows; first (description, NDC) wins."""
    try:
        scan = _scan_input(nadac_path)
        names = scan.collect_schema().names()
    except pl.exceptions.NoDataError as exc:
        raise ValueError(f"NADAC input is empty: {nadac_path}") from exc
    scan = scan.rename({name: name.strip() for name in names if name != name.strip()})
    names = [name.strip() for name in names]
    missing = [c for c in REQUIRED_COLUMNS if c not in names]
    if missing:
        raise ValueError(f"NADAC input missing required columns: {missing}")

    selected = scan.select(
        [
            pl.col(column).cast(pl.Utf8).alias(field_name)
            if column in names
            else pl.lit(None, dtype=pl.Utf8).alias(field_name)
            for column, field_name in PRICE_COLUMNS.items()
        ]
    )
    frame = selected.with_columns([_null_placeholders(f) for f in PRICE_COLUMNS.values()]).collect()
    rows = frame.height

    valid = frame.filter(pl.col("ndc_description").is_not_null() | pl.col("ndc").is_not_null())
    unique = valid.unique(subset=["ndc_description", "ndc"], keep="first", maintain_order=True)
    summary = PrepareSummary(
        rows=rows,
        skipped=rows - valid.height,
        duplicates=valid.height - unique.height,
        unique=unique.height,
    )
    return unique, summary


def prepare(nadac_path: str | os.PathLike[str], outdir: str | os.PathLike[str] = ".") -> Tuple[Path, PrepareSummary]:
    """Normalize the NADAC CSV and persist the unique rows as Parquet for the match stage."""
    os.makedirs(outdir, exist_ok=True)
    prepared, summary = _prep_nadac(nadac_path)
    out_path = Path(outdir) / NADAC_PREPARED_NAME
    prepared.write_parquet(out_path)
    return out_path, summary


def load_price_entries(path: str | os.PathLike[str]) -> List[PriceEntry]:
    """Read a prepared (or raw) NADAC table into ``PriceEntry`` records, preserving row order."""
    if str(path).lower().endswith(".parquet"):
        frame = pl.read_parquet(path)
    else:
        frame, _ = _prep_nadac(path)
    return [PriceEntry.from_row(row) for row in frame.iter_rows(named=True)]


__all__ = ["PrepareSummary", "prepare", "load_price_entries"]
