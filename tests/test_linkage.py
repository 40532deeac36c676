#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Forward/reverse NDC linkage, name filtering and best-match selection."""

from __future__ import annotations

import pytest

from pipelines.ndc.scripts import concurrency_ndc, match_ndc
from pipelines.ndc.scripts.linkage import LinkPhase, TRANSITIONS, collect_candidates, link_ndc
from pipelines.ndc.scripts.match_filters import filter_by_name_overlap, select_best_matches
from pipelines.ndc.scripts.match_ndc import enrich_price_entries, link_price_entry
from pipelines.ndc.scripts.models import (
    MatchCandidate,
    MatchDirection,
    PriceEntry,
    ReferenceEntry,
    VariantKind,
)
from pipelines.ndc.scripts.reference_index import build_reference_index
from pipelines.ndc.scripts.settings import LinkageSettings


def _entry(product_ndc: str, brand: str | None = "Humulin") -> ReferenceEntry:
    return ReferenceEntry.from_product_ndc(product_ndc, brand_name=brand)


@pytest.fixture
def humulin_index():
    return build_reference_index([_entry("00002-3231-30")])


def test_forward_finds_every_contained_variant(humulin_index) -> None:
    candidates = link_ndc("00002323130", humulin_index)

    assert [c.variant for c in candidates] == [
        "2323130",
        "02323130",
        "002323130",
        "0002323130",
        "00002323130",
    ]
    assert {c.direction for c in candidates} == {MatchDirection.FORWARD}
    assert {c.kind for c in candidates} == {VariantKind.DIGITS}


def test_reverse_runs_when_forward_is_empty(humulin_index) -> None:
    candidates = link_ndc("23231", humulin_index)

    assert candidates
    assert {c.direction for c in candidates} == {MatchDirection.REVERSE}
    best = select_best_matches(candidates)
    assert [c.variant for c in best] == ["00002323130"]


def test_reverse_matches_zero_fill_variant() -> None:
    index = build_reference_index([_entry("12345-6789-12", "Lipitor")])

    candidates = link_ndc("23450678901", index)

    assert len(candidates) == 1
    (only,) = candidates
    assert only.direction is MatchDirection.REVERSE
    assert only.kind is VariantKind.ZERO_FILL
    assert only.variant == "1234506789012"
    assert only.specificity == 13


def test_reverse_skipped_when_forward_matches() -> None:
    # "0012345" forward-matches the short variant; the longer one must not be added by reverse.
    index = build_reference_index([_entry("0012345", "Alpha"), _entry("98-0012345-1", "Beta")])

    candidates = link_ndc("0012345", index)

    assert candidates
    assert {c.direction for c in candidates} == {MatchDirection.FORWARD}
    assert all(c.entry.brand_name == "Alpha" for c in candidates)


@pytest.mark.parametrize("ndc", [None, "", "N/A", "----"])
def test_ndc_without_digits_has_no_candidates(humulin_index, ndc) -> None:
    assert link_ndc(ndc, humulin_index) == []


def test_candidates_unique_per_entry_variant_kind(humulin_index) -> None:
    candidates = collect_candidates("00002323130", humulin_index)

    signatures = [c.signature for c in candidates]
    assert len(signatures) == len(set(signatures))


def test_transitions_only_reverse_after_empty_forward() -> None:
    assert TRANSITIONS[(LinkPhase.FORWARD, True)] is LinkPhase.DONE
    assert TRANSITIONS[(LinkPhase.FORWARD, False)] is LinkPhase.REVERSE
    assert TRANSITIONS[(LinkPhase.REVERSE, False)] is LinkPhase.DONE


def _candidate(variant: str, brand: str | None, entry_id: int = 0) -> MatchCandidate:
    return MatchCandidate(
        entry_id=entry_id,
        entry=_entry("00002-3231-30", brand),
        variant=variant,
        kind=VariantKind.DIGITS,
        direction=MatchDirection.FORWARD,
    )


def test_filter_counts_removal_reasons_separately() -> None:
    candidates = [
        _candidate("00002323130", "Humulin", 0),
        _candidate("00002323130", "   ", 1),
        _candidate("00002323130", None, 2),
        _candidate("00002323130", "Novolin", 3),
    ]

    result = filter_by_name_overlap("HUMULIN R U-100 VIAL", candidates)

    assert [c.entry_id for c in result.kept] == [0]
    assert result.removed_empty_brand == 2
    assert result.removed_no_overlap == 1
    assert result.removed == 3


def test_filter_ignores_short_tokens() -> None:
    # "MG" is shorter than three characters and cannot satisfy the overlap rule.
    result = filter_by_name_overlap("MG 10 TAB", [_candidate("00002323130", "MG")])

    assert result.kept == []
    assert result.removed_no_overlap == 1


def test_kept_candidates_share_a_token_with_description() -> None:
    result = filter_by_name_overlap(
        "lipitor 10mg tablet",
        [_candidate("00002323130", "LIPITOR"), _candidate("00002323130", "Zocor")],
    )

    assert [c.entry.brand_name for c in result.kept] == ["LIPITOR"]


def test_selector_keeps_only_longest_variants() -> None:
    candidates = [
        _candidate("002323130", "Humulin", 0),
        _candidate("00002323130", "Humulin", 1),
        _candidate("00002323130", "Humulin", 2),
    ]

    best = select_best_matches(candidates)

    assert [c.entry_id for c in best] == [1, 2]
    assert all(c.best for c in best)
    assert select_best_matches([]) == []


def test_link_price_entry_end_to_end(humulin_index) -> None:
    entry = PriceEntry(ndc_description="HUMULIN R U-100 VIAL", ndc="00002323130")

    record, outcome = link_price_entry(entry, humulin_index)

    assert record.is_matched
    assert record.best_specificity == 11
    assert outcome.raw_candidates == 5
    assert outcome.removed_no_overlap == 0


def test_link_price_entry_drops_unrelated_brand(humulin_index) -> None:
    entry = PriceEntry(ndc_description="ASPIRIN 81 MG TABLET", ndc="00002323130")

    record, outcome = link_price_entry(entry, humulin_index)

    assert not record.is_matched
    assert outcome.removed_no_overlap == 5


def test_enrich_preserves_order_and_counts(monkeypatch) -> None:
    monkeypatch.delenv("NDC_MAX_WORKERS", raising=False)
    index = build_reference_index([_entry("00002-3231-30"), _entry("12345-6789-12", "Lipitor")])
    entries = [
        PriceEntry(ndc_description="HUMULIN R U-100 VIAL", ndc="00002323130"),
        PriceEntry(ndc_description="UNKNOWN PRODUCT", ndc="99999999999"),
        PriceEntry(ndc_description="LIPITOR 10 MG TABLET", ndc="23450678901"),
    ]

    enriched, stats = enrich_price_entries(entries, index, LinkageSettings(max_workers=1))

    assert [r.price for r in enriched] == entries
    assert [r.is_matched for r in enriched] == [True, False, True]
    assert stats.total == 3
    assert stats.matched == 2
    assert stats.matched_pct == 66.67
    assert stats.forward_links == 1
    assert stats.reverse_links == 1
    assert stats.zero_fill_links == 1
    assert stats.best_length_distribution == {11: 1, 13: 1}
    assert stats.best_brand_distribution["Lipitor"] == 1


def test_enrich_process_pool_matches_serial(monkeypatch) -> None:
    monkeypatch.delenv("NDC_MAX_WORKERS", raising=False)
    monkeypatch.setattr(concurrency_ndc, "_available_cpus", lambda: 2)
    monkeypatch.setattr(match_ndc, "_WORKER_STATE", {})
    index = build_reference_index([_entry("00002-3231-30"), _entry("12345-6789-12", "Lipitor")])
    rows = [
        PriceEntry(ndc_description="HUMULIN R U-100 VIAL", ndc="00002323130"),
        PriceEntry(ndc_description="UNKNOWN PRODUCT", ndc="99999999999"),
        PriceEntry(ndc_description="LIPITOR 10 MG TABLET", ndc="23450678901"),
        PriceEntry(ndc_description="ASPIRIN 81 MG TABLET", ndc="00002323130"),
    ]
    entries = [rows[i % len(rows)] for i in range(6000)]

    serial, serial_stats = enrich_price_entries(entries, index, LinkageSettings(max_workers=1))
    pooled, pooled_stats = enrich_price_entries(entries, index, LinkageSettings(max_workers=2))

    # Workers were hydrated by the initializer, never the parent process.
    assert match_ndc._WORKER_STATE == {}
    assert pooled == serial
    assert pooled_stats == serial_stats
    assert pooled_stats.matched == 3000
