#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Typed records flowing through the NADAC ↔ openFDA linkage."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from ..constants import DEFAULT_ROUTE_LIMIT
from .text_utils_ndc import (
    clean_optional,
    reference_ndc_digits,
    reference_ndc_zero_fill,
    unique_list,
)


class VariantKind(str, Enum):
    """Formatting hypothesis that produced a reference variant."""

    DIGITS = "digits"
    ZERO_FILL = "zeroFill"


class MatchDirection(str, Enum):
    """Which side of the containment test held the other."""

    FORWARD = "forward"
    REVERSE = "reverse"


@dataclass(frozen=True)
class ActiveIngredient:
    name: Optional[str] = None
    strength: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.name is None and self.strength is None


def _first_present(item: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None:
            return value
    return None


@dataclass(frozen=True)
class ReferenceEntry:
    """One openFDA drug NDC product with its normalized identifier forms."""

    product_ndc: str
    ndc_digits: str
    ndc_zero_fill: str
    brand_name: Optional[str] = None
    generic_name: Optional[str] = None
    dosage_form: Optional[str] = None
    routes: Tuple[str, ...] = ()
    labeler_name: Optional[str] = None
    active_ingredients: Tuple[ActiveIngredient, ...] = ()

    @classmethod
    def from_product_ndc(cls, product_ndc: Optional[str], **attrs: Any) -> "ReferenceEntry":
        raw = clean_optional(product_ndc) or ""
        return cls(
            product_ndc=raw,
            ndc_digits=reference_ndc_digits(raw),
            ndc_zero_fill=reference_ndc_zero_fill(raw),
            **attrs,
        )

    @classmethod
    def from_openfda(cls, item: Mapping[str, Any], route_limit: int = DEFAULT_ROUTE_LIMIT) -> "ReferenceEntry":
        """Build an entry from an openFDA result object (snake_case or camelCase keys)."""
        route_raw = item.get("route")
        if isinstance(route_raw, (list, tuple)):
            routes = unique_list(route_raw, route_limit)
        else:
            routes = unique_list([route_raw], route_limit)
        ingredients_raw = item.get("active_ingredients")
        ingredients = []
        if isinstance(ingredients_raw, list):
            for ai in ingredients_raw:
                if not isinstance(ai, Mapping):
                    continue
                ingredients.append(
                    ActiveIngredient(name=clean_optional(ai.get("name")), strength=clean_optional(ai.get("strength")))
                )
        return cls.from_product_ndc(
            _first_present(item, "product_ndc", "productNdc"),
            brand_name=clean_optional(_first_present(item, "brand_name", "brandName")),
            generic_name=clean_optional(_first_present(item, "generic_name", "genericName")),
            dosage_form=clean_optional(_first_present(item, "dosage_form", "dosageForm")),
            routes=tuple(routes),
            labeler_name=clean_optional(_first_present(item, "labeler_name", "labelerName")),
            active_ingredients=tuple(ingredients),
        )

    def normalized_forms(self) -> Tuple[Tuple[str, VariantKind], ...]:
        return (
            (self.ndc_digits, VariantKind.DIGITS),
            (self.ndc_zero_fill, VariantKind.ZERO_FILL),
        )


# NADAC CSV header -> PriceEntry field. Field order is also the public output key order.
PRICE_COLUMNS: Dict[str, str] = {
    "NDC Description": "ndc_description",
    "NDC": "ndc",
    "NADAC Per Unit": "nadac_per_unit",
    "Effective Date": "effective_date",
    "Pricing Unit": "pricing_unit",
    "Pharmacy Type Indicator": "pharmacy_type_indicator",
    "OTC": "otc",
    "Explanation Code": "explanation_code",
    "Classification for Rate Setting": "classification_for_rate_setting",
    "Corresponding Generic Drug NADAC Per Unit": "corresponding_generic_drug_nadac_per_unit",
    "Corresponding Generic Drug Effective Date": "corresponding_generic_drug_effective_date",
    "As of Date": "as_of_date",
}


@dataclass(frozen=True)
class PriceEntry:
    """
    One NADAC row, unique by (description, NDC).

    Prices and dates are kept as the source text so re-serialization is byte-stable.
    """

    ndc_description: Optional[str]
    ndc: Optional[str]
    nadac_per_unit: Optional[str] = None
    effective_date: Optional[str] = None
    pricing_unit: Optional[str] = None
    pharmacy_type_indicator: Optional[str] = None
    otc: Optional[str] = None
    explanation_code: Optional[str] = None
    classification_for_rate_setting: Optional[str] = None
    corresponding_generic_drug_nadac_per_unit: Optional[str] = None
    corresponding_generic_drug_effective_date: Optional[str] = None
    as_of_date: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PriceEntry":
        """Build from a row keyed by field names; placeholders become None."""
        return cls(**{f.name: clean_optional(row.get(f.name)) for f in fields(cls)})

    def native_fields(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass(frozen=True)
class MatchCandidate:
    """A reference entry reached through one normalized variant of its product code."""

    entry_id: int
    entry: ReferenceEntry
    variant: str
    kind: VariantKind
    direction: MatchDirection
    best: bool = False

    @property
    def specificity(self) -> int:
        return len(self.variant)

    @property
    def signature(self) -> Tuple[int, str, VariantKind]:
        return (self.entry_id, self.variant, self.kind)


@dataclass(frozen=True)
class EnrichedRecord:
    """A price entry with its best-tier matches, best first."""

    price: PriceEntry
    matches: Tuple[MatchCandidate, ...] = ()

    @property
    def is_matched(self) -> bool:
        return bool(self.matches)

    @property
    def best_specificity(self) -> int:
        return self.matches[0].specificity if self.matches else 0


__all__ = [
    "VariantKind",
    "MatchDirection",
    "ActiveIngredient",
    "ReferenceEntry",
    "PRICE_COLUMNS",
    "PriceEntry",
    "MatchCandidate",
    "EnrichedRecord",
]
