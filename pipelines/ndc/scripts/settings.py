#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Tunable linkage parameters resolved from pipeline options, environment, then defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ..constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MIN_TOKEN_LENGTH,
    DEFAULT_MIN_VARIANT_LENGTH,
    DEFAULT_ROUTE_LIMIT,
)


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from exc


def _pick_int(extra: Mapping[str, object], key: str, env_name: Optional[str], default: int) -> int:
    value = extra.get(key)
    if value is not None:
        return int(value)  # type: ignore[arg-type]
    if env_name:
        env_value = _env_int(env_name)
        if env_value is not None:
            return env_value
    return default


@dataclass(frozen=True)
class LinkageSettings:
    """Knobs for variant expansion, name filtering, output shape and partitioning."""

    min_variant_length: int = DEFAULT_MIN_VARIANT_LENGTH
    chunk_size: int = DEFAULT_CHUNK_SIZE
    min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH
    route_limit: int = DEFAULT_ROUTE_LIMIT
    compact_unmatched: bool = False
    include_match_metadata: bool = False
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("min_variant_length", "chunk_size", "min_token_length", "route_limit"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be a positive integer.")

    @classmethod
    def from_options(cls, extra: Optional[Mapping[str, object]] = None) -> "LinkageSettings":
        """
        Resolve settings from ``PipelineOptions.extra``.

        NDC_MIN_VARIANT_LENGTH and NDC_CHUNK_SIZE override the defaults when the option is absent.
        """
        extra = extra or {}
        max_workers = extra.get("max_workers")
        return cls(
            min_variant_length=_pick_int(extra, "min_variant_length", "NDC_MIN_VARIANT_LENGTH", DEFAULT_MIN_VARIANT_LENGTH),
            chunk_size=_pick_int(extra, "chunk_size", "NDC_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
            min_token_length=_pick_int(extra, "min_token_length", None, DEFAULT_MIN_TOKEN_LENGTH),
            route_limit=_pick_int(extra, "route_limit", None, DEFAULT_ROUTE_LIMIT),
            compact_unmatched=bool(extra.get("compact_unmatched", False)),
            include_match_metadata=bool(extra.get("include_match_metadata", False)),
            max_workers=int(max_workers) if max_workers is not None else None,  # type: ignore[arg-type]
        )


__all__ = ["LinkageSettings"]
