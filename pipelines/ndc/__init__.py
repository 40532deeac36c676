#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""NADAC ↔ openFDA NDC price linkage pipeline implementation."""

from .pipeline import NdcLinkagePipeline

__all__ = ["NdcLinkagePipeline"]
