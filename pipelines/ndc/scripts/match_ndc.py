#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Link every NADAC price entry to openFDA products and aggregate run statistics."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .concurrency_ndc import maybe_parallel_map, resolve_worker_count
from .linkage import link_ndc
from .match_filters import filter_by_name_overlap, select_best_matches
from .models import EnrichedRecord, MatchDirection, PriceEntry, VariantKind
from .reference_index import ReferenceIndex
from .settings import LinkageSettings


@dataclass(frozen=True)
class RecordOutcome:
    """Per-record filter bookkeeping returned next to the enriched record."""

    raw_candidates: int = 0
    removed_empty_brand: int = 0
    removed_no_overlap: int = 0


def link_price_entry(
    entry: PriceEntry,
    index: ReferenceIndex,
    settings: Optional[LinkageSettings] = None,
) -> Tuple[EnrichedRecord, RecordOutcome]:
    """Resolve, filter and select matches for a single price entry."""
    settings = settings or LinkageSettings()
    candidates = link_ndc(entry.ndc, index)
    filtered = filter_by_name_overlap(
        entry.ndc_description,
        candidates,
        min_token_length=settings.min_token_length,
    )
    best = select_best_matches(filtered.kept)
    outcome = RecordOutcome(
        raw_candidates=len(candidates),
        removed_empty_brand=filtered.removed_empty_brand,
        removed_no_overlap=filtered.removed_no_overlap,
    )
    return EnrichedRecord(price=entry, matches=tuple(best)), outcome


@dataclass
class LinkageStats:
    total: int = 0
    matched: int = 0
    digits_links: int = 0
    zero_fill_links: int = 0
    forward_links: int = 0
    reverse_links: int = 0
    removed_empty_brand: int = 0
    removed_no_overlap: int = 0
    best_match_records: int = 0
    best_length_distribution: Counter = field(default_factory=Counter)
    best_brand_distribution: Counter = field(default_factory=Counter)

    def record(self, enriched: EnrichedRecord, outcome: RecordOutcome) -> None:
        self.total += 1
        self.removed_empty_brand += outcome.removed_empty_brand
        self.removed_no_overlap += outcome.removed_no_overlap
        if not enriched.is_matched:
            return
        self.matched += 1
        self.best_match_records += 1
        self.best_length_distribution[enriched.best_specificity] += 1
        for match in enriched.matches:
            if match.kind is VariantKind.ZERO_FILL:
                self.zero_fill_links += 1
            else:
                self.digits_links += 1
            if match.direction is MatchDirection.FORWARD:
                self.forward_links += 1
            else:
                self.reverse_links += 1
            if match.entry.brand_name:
                self.best_brand_distribution[match.entry.brand_name] += 1

    @property
    def matched_pct(self) -> float:
        return round(self.matched * 100 / self.total, 2) if self.total else 0.0

    def as_metrics(self) -> Dict[str, object]:
        """Scalar counters suitable for the metrics history CSV."""
        return {
            "total": self.total,
            "matched": self.matched,
            "matched_pct": self.matched_pct,
            "digits_links": self.digits_links,
            "zero_fill_links": self.zero_fill_links,
            "forward_links": self.forward_links,
            "reverse_links": self.reverse_links,
            "removed_empty_brand": self.removed_empty_brand,
            "removed_no_overlap": self.removed_no_overlap,
        }

    def summary_lines(self, top: int = 5) -> List[str]:
        lines = [
            f"• Matched {self.matched:,}/{self.total:,} ({self.matched_pct:.2f}%)",
            f"  Links by variant: digits={self.digits_links:,} zeroFill={self.zero_fill_links:,}",
            f"  Links by direction: forward={self.forward_links:,} reverse={self.reverse_links:,}",
            f"  Removed candidates: empty brand={self.removed_empty_brand:,} no token overlap={self.removed_no_overlap:,}",
        ]
        if self.best_length_distribution:
            dist = ", ".join(f"{length}:{count:,}" for length, count in sorted(self.best_length_distribution.items()))
            lines.append(f"  Best variant lengths: {dist}")
        if self.best_brand_distribution:
            brands = ", ".join(f"{brand} ({count:,})" for brand, count in self.best_brand_distribution.most_common(top))
            lines.append(f"  Top brands: {brands}")
        return lines


# Per-process worker state, filled by the pool initializer.
_WORKER_STATE: Dict[str, object] = {}


def _init_worker(index: ReferenceIndex, settings: LinkageSettings) -> None:
    _WORKER_STATE["index"] = index
    _WORKER_STATE["settings"] = settings


def _link_in_worker(entry: PriceEntry) -> Tuple[EnrichedRecord, RecordOutcome]:
    return link_price_entry(entry, _WORKER_STATE["index"], _WORKER_STATE["settings"])  # type: ignore[arg-type]


def enrich_price_entries(
    entries: Sequence[PriceEntry],
    index: ReferenceIndex,
    settings: Optional[LinkageSettings] = None,
) -> Tuple[List[EnrichedRecord], LinkageStats]:
    """
    Link all entries against a built index, preserving input order.

    Large inputs are spread over a process pool; each worker receives the index once.
    """
    settings = settings or LinkageSettings()
    workers = resolve_worker_count(explicit=settings.max_workers, task_size=len(entries))
    if workers <= 1:
        results = [link_price_entry(entry, index, settings) for entry in entries]
    else:
        results = maybe_parallel_map(
            entries,
            _link_in_worker,
            max_workers=workers,
            initializer=_init_worker,
            initargs=(index, settings),
        )
    stats = LinkageStats()
    enriched: List[EnrichedRecord] = []
    for record, outcome in results:
        stats.record(record, outcome)
        enriched.append(record)
    return enriched, stats


__all__ = [
    "RecordOutcome",
    "LinkageStats",
    "link_price_entry",
    "enrich_price_entries",
]
