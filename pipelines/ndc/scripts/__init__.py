#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Exports convenience aliases for NdcPriceLinkage pipeline modules."""

from .linkage import link_ndc
from .match_ndc import LinkageStats, enrich_price_entries, link_price_entry
from .outputs_ndc import PartitionInvariantError, partition_records, write_outputs
from .prepare_ndc import load_price_entries, prepare
from .reference_index import ReferenceIndex, ReferenceIndexBuilder, build_reference_index
from .runners import run_linkage
from .settings import LinkageSettings

__all__ = [
    "prepare",
    "load_price_entries",
    "ReferenceIndex",
    "ReferenceIndexBuilder",
    "build_reference_index",
    "link_ndc",
    "link_price_entry",
    "enrich_price_entries",
    "LinkageStats",
    "LinkageSettings",
    "PartitionInvariantError",
    "partition_records",
    "write_outputs",
    "run_linkage",
]
