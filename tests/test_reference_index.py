#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Tests for the frozen openFDA variant index."""

from __future__ import annotations

import pickle

import pytest

from pipelines.ndc.scripts.models import ReferenceEntry, VariantKind
from pipelines.ndc.scripts.reference_index import (
    IndexFrozenError,
    ReferenceIndexBuilder,
    build_reference_index,
)


def _entry(product_ndc: str, brand: str = "Humulin") -> ReferenceEntry:
    return ReferenceEntry.from_product_ndc(product_ndc, brand_name=brand)


def test_entry_variants_are_bucketed_by_length() -> None:
    index = build_reference_index([_entry("00002-3231-30")])

    assert index.lengths == [7, 8, 9, 10, 11, 12, 13]
    assert [h.kind for h in index.lookup("00002323130")] == [VariantKind.DIGITS]
    assert [h.kind for h in index.lookup("0000203231030")] == [VariantKind.ZERO_FILL]
    assert [h.kind for h in index.lookup("2323130")] == [VariantKind.DIGITS]
    assert [h.kind for h in index.lookup("203231030")] == [VariantKind.ZERO_FILL]
    assert index.variant_count == 10


def test_same_string_from_both_hypotheses_is_indexed_once() -> None:
    # No hyphens: digits and zero-fill forms coincide.
    index = build_reference_index([_entry("12345")])

    hits = index.lookup("12345")
    assert len(hits) == 1
    assert hits[0].kind is VariantKind.DIGITS
    assert index.variant_count == 1


def test_shared_variant_lists_every_entry() -> None:
    index = build_reference_index([_entry("0012345", "Alpha"), _entry("012345", "Beta")])

    assert [h.entry_id for h in index.lookup("12345")] == [0, 1]
    assert [h.entry_id for h in index.lookup("012345")] == [0, 1]


def test_min_variant_length_bounds_stripping() -> None:
    index = build_reference_index([_entry("00002-3231-30")], min_variant_length=9)

    assert index.lookup("002323130")
    assert not index.lookup("02323130")
    assert min(index.lengths) == 9


def test_builder_is_frozen_after_build() -> None:
    builder = ReferenceIndexBuilder()
    builder.add(_entry("00002-3231-30"))
    builder.build()

    with pytest.raises(IndexFrozenError):
        builder.add(_entry("12345-6789-12"))
    with pytest.raises(IndexFrozenError):
        builder.build()


def test_builder_rejects_non_positive_min_length() -> None:
    with pytest.raises(ValueError):
        ReferenceIndexBuilder(0)


def test_empty_index_has_no_hits() -> None:
    index = ReferenceIndexBuilder().build()

    assert len(index) == 0
    assert index.automaton is None
    assert index.substring_hits("00002323130") == []


def test_substring_hits_sorted_by_length_then_offset() -> None:
    index = build_reference_index([_entry("00002-3231-30")])

    hits = index.substring_hits("00002323130")
    assert hits == [
        (7, 4, "2323130"),
        (8, 3, "02323130"),
        (9, 2, "002323130"),
        (10, 1, "0002323130"),
        (11, 0, "00002323130"),
    ]


def test_index_survives_pickling() -> None:
    index = build_reference_index([_entry("00002-3231-30")])

    restored = pickle.loads(pickle.dumps(index))
    assert restored.substring_hits("00002323130") == index.substring_hits("00002323130")
    assert restored.entries == index.entries
