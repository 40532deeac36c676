#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Length-bucketed lookup of every normalized openFDA product-code variant.

The index is assembled by ``ReferenceIndexBuilder`` (entries may be streamed in one by one) and
frozen by ``build()``; the resulting ``ReferenceIndex`` is never mutated, so lookups from any
number of workers are safe. Alongside the buckets it carries an Aho–Corasick automaton over the
same variant strings, used to enumerate every indexed variant occurring inside a pricing NDC.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

import ahocorasick  # type: ignore

from ..constants import DEFAULT_MIN_VARIANT_LENGTH
from .models import ReferenceEntry, VariantKind
from .text_utils_ndc import leading_zero_variants


class IndexedVariant(NamedTuple):
    entry_id: int
    variant: str
    kind: VariantKind


class IndexFrozenError(RuntimeError):
    """Raised when a builder is reused after ``build()`` froze its contents."""


@dataclass(frozen=True)
class ReferenceIndex:
    """Read-only variant index: length -> variant -> entries that produced it."""

    entries: Tuple[ReferenceEntry, ...] = ()
    by_length: Dict[int, Dict[str, Tuple[IndexedVariant, ...]]] = field(default_factory=dict)
    automaton: Optional[ahocorasick.Automaton] = None
    min_variant_length: int = DEFAULT_MIN_VARIANT_LENGTH

    @property
    def lengths(self) -> List[int]:
        return sorted(self.by_length)

    @property
    def variant_count(self) -> int:
        return sum(len(bucket) for bucket in self.by_length.values())

    def __len__(self) -> int:
        return len(self.entries)

    def lookup(self, variant: str) -> Tuple[IndexedVariant, ...]:
        return self.by_length.get(len(variant), {}).get(variant, ())

    def substring_hits(self, digits: str) -> List[Tuple[int, int, str]]:
        """
        Every indexed variant occurring inside ``digits`` as ``(length, start, variant)``.

        Sorted by length then start offset, i.e. the order of scanning each length bucket's
        window left to right, shortest lengths first.
        """
        if self.automaton is None or not digits:
            return []
        hits = set()
        for end, variant in self.automaton.iter(digits):
            length = len(variant)
            hits.add((length, end - length + 1, variant))
        return sorted(hits)


class ReferenceIndexBuilder:
    """Accumulates reference entries and freezes them into a ``ReferenceIndex``."""

    def __init__(self, min_variant_length: int = DEFAULT_MIN_VARIANT_LENGTH) -> None:
        if min_variant_length < 1:
            raise ValueError("min_variant_length must be positive.")
        self.min_variant_length = min_variant_length
        self._entries: List[ReferenceEntry] = []
        self._by_length: Dict[int, Dict[str, List[IndexedVariant]]] = {}
        self._built = False

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, entry: ReferenceEntry) -> int:
        """Register one entry under all of its variants; returns the entry id."""
        if self._built:
            raise IndexFrozenError("ReferenceIndexBuilder.add() called after build().")
        entry_id = len(self._entries)
        self._entries.append(entry)
        # Same string from both hypotheses is indexed once, under the first (digits) kind.
        seen: Set[str] = set()
        for normalized, kind in entry.normalized_forms():
            for variant in leading_zero_variants(normalized, self.min_variant_length):
                if variant in seen:
                    continue
                seen.add(variant)
                bucket = self._by_length.setdefault(len(variant), {})
                bucket.setdefault(variant, []).append(IndexedVariant(entry_id, variant, kind))
        return entry_id

    def extend(self, entries: Iterable[ReferenceEntry]) -> "ReferenceIndexBuilder":
        for entry in entries:
            self.add(entry)
        return self

    def build(self) -> ReferenceIndex:
        if self._built:
            raise IndexFrozenError("ReferenceIndexBuilder.build() may only be called once.")
        self._built = True
        by_length = {
            length: {variant: tuple(hits) for variant, hits in bucket.items()}
            for length, bucket in sorted(self._by_length.items())
        }
        automaton: Optional[ahocorasick.Automaton] = None
        if by_length:
            automaton = ahocorasick.Automaton()
            for bucket in by_length.values():
                for variant in bucket:
                    automaton.add_word(variant, variant)
            automaton.make_automaton()
        return ReferenceIndex(
            entries=tuple(self._entries),
            by_length=by_length,
            automaton=automaton,
            min_variant_length=self.min_variant_length,
        )


def build_reference_index(
    entries: Iterable[ReferenceEntry],
    *,
    min_variant_length: int = DEFAULT_MIN_VARIANT_LENGTH,
) -> ReferenceIndex:
    """Consume ``entries`` once and return the frozen index."""
    return ReferenceIndexBuilder(min_variant_length).extend(entries).build()


__all__ = [
    "IndexedVariant",
    "IndexFrozenError",
    "ReferenceIndex",
    "ReferenceIndexBuilder",
    "build_reference_index",
]
