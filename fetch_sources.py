#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Download the raw NADAC pricing CSV and the openFDA drug NDC export into ``raw/``.

Usage:
    python fetch_sources.py [--outdir raw] [--skip-nadac] [--skip-openfda]
"""

from __future__ import annotations

import argparse
import sys
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from pipelines.ndc.constants import NADAC_CSV_NAME, OPENFDA_JSON_NAME, PIPELINE_RAW_DIR

MEDICAID_META_URL = "https://data.medicaid.gov/api/1/metastore/schemas/dataset/items"
OPENFDA_ZIP_URL = "https://download.open.fda.gov/drug/ndc/drug-ndc-0001-of-0001.json.zip"
NADAC_TITLE_PREFIX = "NADAC (National Average Drug Acquisition Cost)"

HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; ndc-price-linkage/1.0)"
}

DEFAULT_TIMEOUT = 120
CHUNK_BYTES = 1 << 20


def _modified_key(item: Mapping[str, Any]) -> datetime:
    raw = str(item.get("modified") or "")
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return datetime.min


def pick_latest_nadac(items: Sequence[Mapping[str, Any]]) -> str:
    """Return the CSV download URL of the most recently modified NADAC dataset."""
    nadac = [it for it in items if str(it.get("title") or "").startswith(NADAC_TITLE_PREFIX)]
    if not nadac:
        raise RuntimeError("No NADAC items found in Medicaid metadata.")
    latest = max(nadac, key=_modified_key)
    distributions: List[Dict[str, Any]] = latest.get("distribution") or []
    for dist in distributions:
        if str(dist.get("format") or "").lower() == "csv" and dist.get("downloadURL"):
            return str(dist["downloadURL"])
    raise RuntimeError("No CSV distribution found for the latest NADAC item.")


def download_to_file(session: requests.Session, url: str, dest: Path, *, timeout: int = DEFAULT_TIMEOUT) -> Path:
    dest.parent.mkdir(parents=True, exist_ok=True)
    with session.get(url, headers=HEADERS, timeout=timeout, stream=True, allow_redirects=True) as response:
        response.raise_for_status()
        with dest.open("wb") as handle:
            for chunk in response.iter_content(chunk_size=CHUNK_BYTES):
                if chunk:
                    handle.write(chunk)
    return dest


def fetch_latest_nadac(session: requests.Session, outdir: Path, *, timeout: int = DEFAULT_TIMEOUT) -> Path:
    print("Fetching Medicaid dataset metadata...")
    response = session.get(MEDICAID_META_URL, headers=HEADERS, timeout=timeout)
    response.raise_for_status()
    payload = response.json()
    url = pick_latest_nadac(payload if isinstance(payload, list) else [])
    print(f"Downloading NADAC CSV: {url}")
    out = download_to_file(session, url, outdir / NADAC_CSV_NAME, timeout=timeout)
    print(f"Saved: {out}")
    return out


def extract_first_json(archive: Path, dest: Path) -> Optional[Path]:
    """Copy the first ``.json`` member of ``archive`` to ``dest``; None when there is none."""
    with zipfile.ZipFile(archive) as zf:
        for name in zf.namelist():
            if name.lower().endswith(".json"):
                with zf.open(name) as src, dest.open("wb") as out:
                    while True:
                        block = src.read(CHUNK_BYTES)
                        if not block:
                            break
                        out.write(block)
                return dest
    return None


def fetch_openfda_ndc(session: requests.Session, outdir: Path, *, timeout: int = DEFAULT_TIMEOUT) -> Path:
    print(f"Downloading openFDA NDC archive: {OPENFDA_ZIP_URL}")
    tmp_zip = outdir / "drug-ndc.zip"
    download_to_file(session, OPENFDA_ZIP_URL, tmp_zip, timeout=timeout)
    try:
        out = extract_first_json(tmp_zip, outdir / OPENFDA_JSON_NAME)
    finally:
        tmp_zip.unlink(missing_ok=True)
    if out is None:
        raise RuntimeError("openFDA archive did not contain a JSON member.")
    print(f"Saved: {out}")
    return out


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Download NADAC and openFDA NDC source files.")
    parser.add_argument("--outdir", type=Path, default=PIPELINE_RAW_DIR, help="Destination directory (default: raw/).")
    parser.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT, help="Per-request timeout in seconds.")
    parser.add_argument("--skip-nadac", action="store_true", help="Do not download the NADAC CSV.")
    parser.add_argument("--skip-openfda", action="store_true", help="Do not download the openFDA export.")
    args = parser.parse_args(list(argv) if argv is not None else None)

    outdir: Path = args.outdir
    outdir.mkdir(parents=True, exist_ok=True)
    try:
        with requests.Session() as session:
            if not args.skip_nadac:
                fetch_latest_nadac(session, outdir, timeout=args.timeout)
            if not args.skip_openfda:
                fetch_openfda_ndc(session, outdir, timeout=args.timeout)
    except (requests.RequestException, RuntimeError, OSError, zipfile.BadZipFile, ValueError) as exc:
        print(f"! Fetch failed: {exc}", file=sys.stderr)
        sys.exit(1)
    print("Fetch complete. Run: python main.py")


if __name__ == "__main__":
    main(sys.argv[1:])
