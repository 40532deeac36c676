#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Public artifacts for the search front-end: consolidated JSON, chunked copies with a manifest,
the description search index and the description -> classification map.

Everything is rendered into a staging directory under the outputs dir, cross-checked, and only
then moved into place, so a failed run never leaves a half-written manifest behind.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..constants import (
    CHUNK_FILENAME_TEMPLATE,
    CHUNKS_DIR_NAME,
    CHUNKS_MANIFEST_NAME,
    CLASSIFICATION_MAP_NAME,
    DEFAULT_CHUNK_SIZE,
    ENRICHED_JSON_NAME,
    SEARCH_INDEX_NAME,
)
from .models import ActiveIngredient, EnrichedRecord, MatchCandidate
from .settings import LinkageSettings

PublicRecord = Dict[str, Any]


class PartitionInvariantError(RuntimeError):
    """The rendered artifacts disagree with each other; nothing is published."""


@dataclass(frozen=True)
class PublishedArtifacts:
    enriched_json: Path
    search_index: Path
    classification_map: Path
    chunks_dir: Path
    manifest: Path
    total: int
    chunk_count: int


def format_active_ingredients(ingredients: Sequence[ActiveIngredient]) -> Optional[str]:
    """'NAME STRENGTH; NAME STRENGTH' summary; either half alone when the other is missing."""
    parts = []
    for ai in ingredients:
        left = ai.name or ai.strength or ""
        right = f" {ai.strength}" if ai.name and ai.strength else ""
        text = (left + right).strip()
        if text:
            parts.append(text)
    return "; ".join(parts) if parts else None


def active_ingredients_detailed(ingredients: Sequence[ActiveIngredient]) -> Optional[List[Dict[str, str]]]:
    out = []
    for ai in ingredients:
        if ai.is_empty:
            continue
        item = {}
        if ai.name is not None:
            item["name"] = ai.name
        if ai.strength is not None:
            item["strength"] = ai.strength
        out.append(item)
    return out or None


def format_match(candidate: MatchCandidate, *, include_metadata: bool = False) -> Dict[str, Any]:
    entry = candidate.entry
    payload: Dict[str, Any] = {}
    if include_metadata:
        payload.update(
            {
                "productNdc": entry.product_ndc,
                "normalizedProductNdc": candidate.variant,
                "matchedVariantType": candidate.kind.value,
                "matchMode": candidate.direction.value,
            }
        )
    payload.update(
        {
            "brandName": entry.brand_name,
            "genericName": entry.generic_name,
            "dosageForm": entry.dosage_form,
            "routes": list(entry.routes),
            "dosageStrength": format_active_ingredients(entry.active_ingredients),
            "activeIngredientsDetailed": active_ingredients_detailed(entry.active_ingredients),
            "labelerName": entry.labeler_name,
        }
    )
    if include_metadata:
        payload["bestMatch"] = candidate.best
    return {key: value for key, value in payload.items() if value is not None}


def format_record(
    record: EnrichedRecord,
    *,
    compact_unmatched: bool = False,
    include_match_metadata: bool = False,
) -> PublicRecord:
    price = record.price
    if not record.is_matched and compact_unmatched:
        compact = {"ndc_description": price.ndc_description, "ndc": price.ndc}
        return {key: value for key, value in compact.items() if value is not None}
    payload: PublicRecord = price.native_fields()
    if record.is_matched:
        payload["fdaMatches"] = [format_match(m, include_metadata=include_match_metadata) for m in record.matches]
    return payload


def build_search_index(records: Sequence[PublicRecord]) -> List[str]:
    return sorted({r["ndc_description"] for r in records if r.get("ndc_description")})


def build_classification_map(records: Sequence[PublicRecord]) -> Dict[str, str]:
    """Description -> classification tag; the first record carrying both wins."""
    mapping: Dict[str, str] = {}
    for r in records:
        desc = r.get("ndc_description")
        cls = r.get("classification_for_rate_setting")
        if desc and cls and desc not in mapping:
            mapping[desc] = cls
    return mapping


def partition_records(
    records: Sequence[PublicRecord],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Tuple[List[Sequence[PublicRecord]], Dict[str, Any]]:
    """Split into contiguous ``chunk_size`` slices and describe them in a manifest."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be a positive integer.")
    chunks: List[Sequence[PublicRecord]] = []
    meta: List[Dict[str, Any]] = []
    for start in range(0, len(records), chunk_size):
        piece = records[start:start + chunk_size]
        chunks.append(piece)
        meta.append({"filename": CHUNK_FILENAME_TEMPLATE.format(index=len(chunks)), "count": len(piece)})
    manifest = {
        "total": len(records),
        "chunkSize": chunk_size,
        "numberOfChunks": len(meta),
        "chunks": meta,
    }
    return chunks, manifest


def verify_consistency(
    records: Sequence[PublicRecord],
    chunks: Sequence[Sequence[PublicRecord]],
    manifest: Dict[str, Any],
    descriptions: Sequence[str],
    classification: Dict[str, str],
) -> None:
    """Raise ``PartitionInvariantError`` unless the four artifacts agree with each other."""
    counts = [c["count"] for c in manifest["chunks"]]
    if manifest["total"] != sum(counts) or manifest["total"] != len(records):
        raise PartitionInvariantError(
            f"manifest total {manifest['total']} != chunk sum {sum(counts)} / records {len(records)}"
        )
    if manifest["numberOfChunks"] != len(manifest["chunks"]) or len(chunks) != len(counts):
        raise PartitionInvariantError("numberOfChunks does not match the chunk list")
    if [len(c) for c in chunks] != counts:
        raise PartitionInvariantError("chunk sizes do not match the manifest")
    offset = 0
    for chunk in chunks:
        if list(chunk) != list(records[offset:offset + len(chunk)]):
            raise PartitionInvariantError(f"chunk starting at {offset} is not a slice of the consolidated output")
        offset += len(chunk)
    present = {r.get("ndc_description") for r in records if r.get("ndc_description")}
    stray = [d for d in descriptions if d not in present]
    if stray:
        raise PartitionInvariantError(f"search index holds {len(stray)} descriptions absent from the output")
    stray = [d for d in classification if d not in present]
    if stray:
        raise PartitionInvariantError(f"classification map holds {len(stray)} descriptions absent from the output")


def _dump_compact(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def _dump_pretty(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2)


def _write_text(path: Path, text: str) -> None:
    path.write_text(text, encoding="utf-8")


# The chunk directory carries the manifest the front-end reads first, so it goes in last.
PROMOTION_ORDER: Tuple[str, ...] = (
    ENRICHED_JSON_NAME,
    CLASSIFICATION_MAP_NAME,
    SEARCH_INDEX_NAME,
    CHUNKS_DIR_NAME,
)


def _discard(path: Path) -> None:
    if path.is_dir():
        shutil.rmtree(path)
    elif path.exists():
        path.unlink()


def _promote_all(staging: Path, outputs_dir: Path) -> None:
    """
    Move staged artifacts over ``outputs_dir`` in ``PROMOTION_ORDER``.

    The previous generation is parked inside ``staging`` while the swap runs. If any move fails,
    artifacts already promoted are rolled back so the outputs dir keeps the previous generation.
    """
    previous = staging / ".previous"
    previous.mkdir()
    touched: List[str] = []
    try:
        for name in PROMOTION_ORDER:
            dest = outputs_dir / name
            touched.append(name)
            if dest.exists():
                os.replace(dest, previous / name)
            os.replace(staging / name, dest)
    except OSError:
        for name in reversed(touched):
            dest = outputs_dir / name
            if (previous / name).exists():
                _discard(dest)
                os.replace(previous / name, dest)
            elif not (staging / name).exists():
                _discard(dest)
        raise


def write_outputs(
    records: Sequence[EnrichedRecord],
    outputs_dir: Path,
    settings: Optional[LinkageSettings] = None,
) -> PublishedArtifacts:
    """Render, verify and publish all artifacts for ``records`` into ``outputs_dir``."""
    settings = settings or LinkageSettings()
    outputs_dir = Path(outputs_dir)
    outputs_dir.mkdir(parents=True, exist_ok=True)

    public = [
        format_record(
            r,
            compact_unmatched=settings.compact_unmatched,
            include_match_metadata=settings.include_match_metadata,
        )
        for r in records
    ]
    descriptions = build_search_index(public)
    classification = build_classification_map(public)
    chunks, manifest = partition_records(public, settings.chunk_size)
    verify_consistency(public, chunks, manifest, descriptions, classification)

    staging = Path(tempfile.mkdtemp(prefix=".staging-", dir=outputs_dir))
    try:
        _write_text(staging / ENRICHED_JSON_NAME, _dump_compact(public))
        _write_text(staging / SEARCH_INDEX_NAME, _dump_pretty({"descriptions": descriptions}))
        _write_text(staging / CLASSIFICATION_MAP_NAME, _dump_compact(classification))
        chunk_dir = staging / CHUNKS_DIR_NAME
        chunk_dir.mkdir()
        for meta, chunk in zip(manifest["chunks"], chunks):
            _write_text(chunk_dir / meta["filename"], _dump_compact(list(chunk)))
        _write_text(chunk_dir / CHUNKS_MANIFEST_NAME, _dump_pretty(manifest))

        _promote_all(staging, outputs_dir)
    finally:
        shutil.rmtree(staging, ignore_errors=True)

    return PublishedArtifacts(
        enriched_json=outputs_dir / ENRICHED_JSON_NAME,
        search_index=outputs_dir / SEARCH_INDEX_NAME,
        classification_map=outputs_dir / CLASSIFICATION_MAP_NAME,
        chunks_dir=outputs_dir / CHUNKS_DIR_NAME,
        manifest=outputs_dir / CHUNKS_DIR_NAME / CHUNKS_MANIFEST_NAME,
        total=manifest["total"],
        chunk_count=manifest["numberOfChunks"],
    )


__all__ = [
    "PartitionInvariantError",
    "PublishedArtifacts",
    "format_active_ingredients",
    "active_ingredients_detailed",
    "format_match",
    "format_record",
    "build_search_index",
    "build_classification_map",
    "partition_records",
    "verify_consistency",
    "write_outputs",
]
