#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Identifier and description normalization helpers shared by ingestion and linkage."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from ..constants import DEFAULT_MIN_TOKEN_LENGTH, DEFAULT_MIN_VARIANT_LENGTH

NON_DIGIT_RX = re.compile(r"[^0-9]+")
WHITESPACE_RX = re.compile(r"\s+")
TOKEN_SPLIT_RX = re.compile(r"[^a-z0-9]+")

# Upstream "no value" markers, compared case-insensitively after trimming.
PLACEHOLDER_VALUES = frozenset({"", "null", "none", "n/a", "na", "no data"})


def clean_optional(value: object) -> Optional[str]:
    """Trim a raw cell and map empty/placeholder markers to None."""
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in PLACEHOLDER_VALUES:
        return None
    return text


def normalize_whitespace_lower(s: Optional[str]) -> str:
    """Lowercase and collapse whitespace runs to single spaces."""
    if not s:
        return ""
    return WHITESPACE_RX.sub(" ", str(s).lower()).strip()


def tokenize_words(s: Optional[str], min_length: int = DEFAULT_MIN_TOKEN_LENGTH) -> List[str]:
    """Split text into lowercase alphanumeric tokens, dropping short ones."""
    return [t for t in TOKEN_SPLIT_RX.split(normalize_whitespace_lower(s)) if t and len(t) >= min_length]


def normalize_price_ndc(ndc: Optional[str]) -> str:
    """Digits-only form of a pricing NDC; leading zeros are kept."""
    if not ndc:
        return ""
    return NON_DIGIT_RX.sub("", str(ndc))


def reference_ndc_digits(product_ndc: Optional[str]) -> str:
    """Digits-only form of an openFDA product code (hyphens dropped)."""
    if not product_ndc:
        return ""
    return NON_DIGIT_RX.sub("", str(product_ndc).replace("-", ""))


def reference_ndc_zero_fill(product_ndc: Optional[str]) -> str:
    """Zero-fill form of an openFDA product code: every hyphen becomes a literal '0'."""
    if not product_ndc:
        return ""
    return NON_DIGIT_RX.sub("", str(product_ndc).replace("-", "0"))


def leading_zero_variants(value: str, min_length: int = DEFAULT_MIN_VARIANT_LENGTH) -> List[str]:
    """
    Return ``value`` followed by each prefix-stripped form obtained by dropping a leading '0'.

    Stripping stops once the string no longer starts with '0' or its length is at or below
    ``min_length``, so no stripped variant is shorter than ``min_length``.

    >>> leading_zero_variants("00002323130")
    ['00002323130', '0002323130', '002323130', '02323130', '2323130']
    """
    value = (value or "").strip()
    if not value:
        return []
    variants = [value]
    current = value
    while len(current) > min_length and current[0] == "0":
        current = current[1:]
        variants.append(current)
    return variants


def unique_list(values: Iterable[object], limit: int) -> List[str]:
    """Trimmed, de-duplicated, order-preserving list truncated to ``limit`` items."""
    seen = set()
    out: List[str] = []
    for value in values or ():
        text = clean_optional(value)
        if text is None or text in seen:
            continue
        seen.add(text)
        out.append(text)
        if len(out) >= limit:
            break
    return out


__all__ = [
    "PLACEHOLDER_VALUES",
    "clean_optional",
    "normalize_whitespace_lower",
    "tokenize_words",
    "normalize_price_ndc",
    "reference_ndc_digits",
    "reference_ndc_zero_fill",
    "leading_zero_variants",
    "unique_list",
]
