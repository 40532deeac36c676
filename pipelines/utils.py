#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Utility helpers shared across pipeline runner entry points."""

from __future__ import annotations

import re


def slugify_item_ref_code(item_ref_code: str) -> str:
    """Convert an item reference code like 'NdcPriceLinkage' into a slug ('ndc_price_linkage')."""
    if not item_ref_code:
        raise ValueError("item_ref_code must be a non-empty string.")
    return re.sub(r"(?<!^)(?=[A-Z])", "_", item_ref_code).lower()


__all__ = ["slugify_item_ref_code"]
