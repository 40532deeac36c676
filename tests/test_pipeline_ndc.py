#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""End-to-end runs of the NdcPriceLinkage pipeline through the registry and CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

import main
from pipelines import (
    PIPELINE_REGISTRY,
    PipelineContext,
    PipelineOptions,
    PipelineRunParams,
    get_pipeline,
    list_pipelines,
)
from pipelines.ndc import NdcLinkagePipeline
from pipelines.ndc.scripts.runners import get_metrics_summary, log_metrics, run_linkage

NADAC_CSV = (
    "NDC Description,NDC,NADAC Per Unit,Effective Date,Classification for Rate Setting\n"
    "HUMULIN R U-100 VIAL,00002323130,15.25,2024-01-03,B\n"
    "LIPITOR 10 MG TABLET,23450678901,4.51,2024-01-03,B\n"
    "ASPIRIN 81 MG TABLET,00002323130,0.02,2024-01-03,G\n"
    "UNKNOWN PRODUCT,99999999999,1.00,2024-01-03,G\n"
    "HUMULIN R U-100 VIAL,00002323130,15.99,2024-01-03,B\n"
)

OPENFDA = {
    "results": [
        {"product_ndc": "00002-3231-30", "brand_name": "Humulin R", "route": ["SUBCUTANEOUS"]},
        {"product_ndc": "12345-6789-12", "brand_name": "Lipitor", "route": "ORAL"},
        {"product_ndc": "55555-5555-55", "brand_name": ""},
    ]
}


@pytest.fixture(autouse=True)
def _serial(monkeypatch):
    monkeypatch.setenv("NDC_MAX_WORKERS", "1")
    monkeypatch.delenv("NDC_CHUNK_SIZE", raising=False)
    monkeypatch.delenv("NDC_MIN_VARIANT_LENGTH", raising=False)


@pytest.fixture
def sources(tmp_path: Path):
    nadac = tmp_path / "raw" / "nadac.csv"
    openfda = tmp_path / "raw" / "openfda.json"
    nadac.parent.mkdir()
    nadac.write_text(NADAC_CSV, encoding="utf-8")
    openfda.write_text(json.dumps(OPENFDA), encoding="utf-8")
    return nadac, openfda


def _context(tmp_path: Path) -> PipelineContext:
    return PipelineContext(
        project_root=tmp_path,
        inputs_dir=tmp_path / "inputs",
        outputs_dir=tmp_path / "outputs",
    )


def test_pipeline_is_registered() -> None:
    assert PIPELINE_REGISTRY["NdcPriceLinkage"] is NdcLinkagePipeline
    assert isinstance(get_pipeline("NdcPriceLinkage"), NdcLinkagePipeline)
    with pytest.raises(KeyError):
        get_pipeline("DoesNotExist")


def test_pipeline_run_publishes_artifacts(tmp_path: Path, sources) -> None:
    nadac, openfda = sources
    timings = []
    pipeline = get_pipeline("NdcPriceLinkage")

    result = pipeline.run(
        _context(tmp_path),
        PipelineRunParams(price_csv=nadac, reference_json=openfda),
        PipelineOptions(quiet=True, extra={"chunk_size": 2}),
        timing_hook=lambda label, elapsed: timings.append(label),
    )

    records = json.loads(result.enriched_json.read_text(encoding="utf-8"))
    assert [r["ndc_description"] for r in records] == [
        "HUMULIN R U-100 VIAL",
        "LIPITOR 10 MG TABLET",
        "ASPIRIN 81 MG TABLET",
        "UNKNOWN PRODUCT",
    ]
    assert records[0]["fdaMatches"][0]["brandName"] == "Humulin R"
    assert records[0]["nadac_per_unit"] == "15.25"
    assert records[1]["fdaMatches"] == [{"brandName": "Lipitor", "routes": ["ORAL"]}]
    assert "fdaMatches" not in records[2]
    assert "fdaMatches" not in records[3]

    manifest = json.loads(result.extras["chunks_manifest"].read_text(encoding="utf-8"))
    assert manifest["total"] == 4
    assert [c["count"] for c in manifest["chunks"]] == [2, 2]

    assert result.metrics["matched"] == 2
    assert result.metrics["reverse_links"] == 1
    assert result.metrics["prepared_duplicates"] == 1
    assert (tmp_path / "inputs" / "nadac_prepared.parquet").is_file()
    assert result.extras["metrics_history"].is_file()
    assert "Prepare NADAC inputs" in timings


def test_pipeline_missing_price_csv(tmp_path: Path) -> None:
    pipeline = get_pipeline("NdcPriceLinkage")

    with pytest.raises(FileNotFoundError):
        pipeline.run(
            _context(tmp_path),
            PipelineRunParams(price_csv=tmp_path / "missing.csv"),
            PipelineOptions(quiet=True),
        )
    assert not (tmp_path / "outputs").exists()


def test_missing_reference_requires_opt_in(tmp_path: Path, sources) -> None:
    nadac, _ = sources
    pipeline = get_pipeline("NdcPriceLinkage")
    params = PipelineRunParams(price_csv=nadac, reference_json=tmp_path / "absent.json")

    with pytest.raises(FileNotFoundError):
        pipeline.run(_context(tmp_path), params, PipelineOptions(quiet=True, extra={"skip_metrics": True}))

    result = pipeline.run(
        _context(tmp_path),
        params,
        PipelineOptions(quiet=True, extra={"allow_missing_reference": True, "skip_metrics": True}),
    )
    records = json.loads(result.enriched_json.read_text(encoding="utf-8"))
    assert len(records) == 4
    assert not any("fdaMatches" in r for r in records)
    assert "metrics_history" not in result.extras


def test_unreadable_reference_is_a_valid_empty_run(tmp_path: Path, sources) -> None:
    nadac, openfda = sources
    openfda.write_text("[{broken", encoding="utf-8")

    summary = run_linkage(nadac, openfda, tmp_path / "out", quiet=True)

    assert summary["total"] == 4
    assert summary["matched"] == 0
    assert summary["variants_indexed"] == 0


def test_run_linkage_prints_summary(tmp_path: Path, sources, capsys) -> None:
    nadac, openfda = sources

    run_linkage(nadac, openfda, tmp_path / "out")

    out = capsys.readouterr().out
    assert "Matched 2/4 (50.00%)" in out
    assert "empty brand" in out
    assert "Matched 4 NADAC entries (" in out


def test_metrics_history_appends(tmp_path: Path) -> None:
    path = tmp_path / "metrics_history.csv"

    log_metrics("ndc_price_linkage", {"total": 4, "matched": 2}, path)
    log_metrics("ndc_price_linkage", {"total": 5, "matched": 3}, path)

    history = get_metrics_summary(path)
    assert list(history["matched"]) == [2, 3]
    assert set(history["run_type"]) == {"ndc_price_linkage"}
    assert get_metrics_summary(tmp_path / "none.csv").empty


def test_cli_run_all(tmp_path: Path, sources, monkeypatch) -> None:
    nadac, openfda = sources
    monkeypatch.setenv("PIPELINE_INPUTS_DIR", str(tmp_path / "inputs"))

    result = main.run_all(
        nadac,
        openfda,
        tmp_path / "out",
        include_match_metadata=True,
        compact_unmatched=True,
        skip_metrics=True,
        quiet=True,
    )

    records = json.loads(result.enriched_json.read_text(encoding="utf-8"))
    assert records[0]["fdaMatches"][0]["matchMode"] == "forward"
    assert records[1]["fdaMatches"][0]["matchedVariantType"] == "zeroFill"
    assert records[3] == {"ndc_description": "UNKNOWN PRODUCT", "ndc": "99999999999"}


def test_cli_failure_exits_with_status_1(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("PIPELINE_INPUTS_DIR", str(tmp_path / "inputs"))

    with pytest.raises(SystemExit) as excinfo:
        main._cli(["--nadac", str(tmp_path / "missing.csv"), "--outdir", str(tmp_path / "out"), "--quiet"])

    assert excinfo.value.code == 1
    assert "Linkage failed" in capsys.readouterr().err


def test_list_pipelines_includes_linkage() -> None:
    assert any(isinstance(p, NdcLinkagePipeline) for p in list_pipelines())


def test_cli_show_metrics(tmp_path: Path, capsys) -> None:
    log_metrics("ndc_price_linkage", {"total": 4, "matched": 2}, tmp_path / "metrics_history.csv")

    main._cli(["--show-metrics", "--outdir", str(tmp_path)])

    out = capsys.readouterr().out
    assert "METRICS HISTORY" in out
    assert "NDC_PRICE_LINKAGE" in out
