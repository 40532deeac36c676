#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Post-linkage filtering: brand/description token overlap, then longest-variant selection."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Sequence

from ..constants import DEFAULT_MIN_TOKEN_LENGTH
from .models import MatchCandidate
from .text_utils_ndc import normalize_whitespace_lower, tokenize_words


@dataclass
class FilterResult:
    """Survivors of the name filter plus per-reason removal counts."""

    kept: List[MatchCandidate] = field(default_factory=list)
    removed_empty_brand: int = 0
    removed_no_overlap: int = 0

    @property
    def removed(self) -> int:
        return self.removed_empty_brand + self.removed_no_overlap


def filter_by_name_overlap(
    description: str | None,
    candidates: Sequence[MatchCandidate],
    *,
    min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH,
) -> FilterResult:
    """Drop candidates with a blank brand name or no brand token shared with the description."""
    result = FilterResult()
    if not candidates:
        return result
    desc_tokens = set(tokenize_words(description, min_token_length))
    for cand in candidates:
        brand = cand.entry.brand_name
        if not normalize_whitespace_lower(brand):
            result.removed_empty_brand += 1
            continue
        if not any(tok in desc_tokens for tok in tokenize_words(brand, min_token_length)):
            result.removed_no_overlap += 1
            continue
        result.kept.append(cand)
    return result


def select_best_matches(candidates: Sequence[MatchCandidate]) -> List[MatchCandidate]:
    """Keep the candidates whose variant is longest, in their incoming order, marked best."""
    if not candidates:
        return []
    top = max(c.specificity for c in candidates)
    return [replace(c, best=True) for c in candidates if c.specificity == top]


__all__ = ["FilterResult", "filter_by_name_overlap", "select_best_matches"]
