#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Resolve a pricing NDC against the reference variant index.

Two phases run as a small state machine:

* FORWARD: every indexed variant that occurs inside the pricing digits (variant length <= NDC length).
* REVERSE: entered only when FORWARD found nothing; every longer variant that contains the whole
  pricing digits.

Matches are unique per (entry id, variant, kind) across both phases.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Set, Tuple

from .models import MatchCandidate, MatchDirection, VariantKind
from .reference_index import IndexedVariant, ReferenceIndex
from .text_utils_ndc import normalize_price_ndc


class LinkPhase(Enum):
    FORWARD = "forward"
    REVERSE = "reverse"
    DONE = "done"


# (phase, phase produced matches) -> next phase
TRANSITIONS: Dict[Tuple[LinkPhase, bool], LinkPhase] = {
    (LinkPhase.FORWARD, True): LinkPhase.DONE,
    (LinkPhase.FORWARD, False): LinkPhase.REVERSE,
    (LinkPhase.REVERSE, True): LinkPhase.DONE,
    (LinkPhase.REVERSE, False): LinkPhase.DONE,
}

Signature = Tuple[int, str, VariantKind]


def _emit(
    hits: Tuple[IndexedVariant, ...],
    index: ReferenceIndex,
    direction: MatchDirection,
    seen: Set[Signature],
    out: List[MatchCandidate],
) -> int:
    added = 0
    for hit in hits:
        sig = (hit.entry_id, hit.variant, hit.kind)
        if sig in seen:
            continue
        seen.add(sig)
        out.append(
            MatchCandidate(
                entry_id=hit.entry_id,
                entry=index.entries[hit.entry_id],
                variant=hit.variant,
                kind=hit.kind,
                direction=direction,
            )
        )
        added += 1
    return added


def forward_matches(digits: str, index: ReferenceIndex, seen: Set[Signature], out: List[MatchCandidate]) -> int:
    """Variants of length <= len(digits) found inside ``digits``, shortest length first, left to right."""
    added = 0
    for _length, _start, variant in index.substring_hits(digits):
        added += _emit(index.lookup(variant), index, MatchDirection.FORWARD, seen, out)
    return added


def reverse_matches(digits: str, index: ReferenceIndex, seen: Set[Signature], out: List[MatchCandidate]) -> int:
    """Variants longer than ``digits`` that contain it, shortest length first, bucket order."""
    added = 0
    n = len(digits)
    for length in index.lengths:
        if length <= n:
            continue
        for variant, hits in index.by_length[length].items():
            if digits in variant:
                added += _emit(hits, index, MatchDirection.REVERSE, seen, out)
    return added


def collect_candidates(digits: str, index: ReferenceIndex) -> List[MatchCandidate]:
    """Run the forward/reverse state machine for already-normalized pricing digits."""
    candidates: List[MatchCandidate] = []
    if not digits:
        return candidates
    seen: Set[Signature] = set()
    phase = LinkPhase.FORWARD
    while phase is not LinkPhase.DONE:
        if phase is LinkPhase.FORWARD:
            found = forward_matches(digits, index, seen, candidates)
        else:
            found = reverse_matches(digits, index, seen, candidates)
        phase = TRANSITIONS[(phase, found > 0)]
    return candidates


def link_ndc(ndc: str | None, index: ReferenceIndex) -> List[MatchCandidate]:
    """Normalize a raw pricing NDC and collect its candidates."""
    return collect_candidates(normalize_price_ndc(ndc), index)


__all__ = [
    "LinkPhase",
    "TRANSITIONS",
    "forward_matches",
    "reverse_matches",
    "collect_candidates",
    "link_ndc",
]
