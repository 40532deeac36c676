#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Resolution of linkage settings and worker counts from options and environment."""

from __future__ import annotations

import pytest

from pipelines.ndc.scripts.concurrency_ndc import maybe_parallel_map, resolve_worker_count
from pipelines.ndc.scripts.settings import LinkageSettings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("NDC_MIN_VARIANT_LENGTH", "NDC_CHUNK_SIZE", "NDC_MAX_WORKERS"):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = LinkageSettings.from_options({})

    assert settings.min_variant_length == 5
    assert settings.chunk_size == 4000
    assert settings.min_token_length == 3
    assert not settings.compact_unmatched
    assert not settings.include_match_metadata
    assert settings.max_workers is None


def test_environment_overrides_defaults(monkeypatch) -> None:
    monkeypatch.setenv("NDC_CHUNK_SIZE", "250")
    monkeypatch.setenv("NDC_MIN_VARIANT_LENGTH", "7")

    settings = LinkageSettings.from_options(None)

    assert settings.chunk_size == 250
    assert settings.min_variant_length == 7


def test_options_override_environment(monkeypatch) -> None:
    monkeypatch.setenv("NDC_CHUNK_SIZE", "250")

    settings = LinkageSettings.from_options({"chunk_size": 10, "compact_unmatched": True, "max_workers": 2})

    assert settings.chunk_size == 10
    assert settings.compact_unmatched
    assert settings.max_workers == 2


def test_bad_environment_value(monkeypatch) -> None:
    monkeypatch.setenv("NDC_CHUNK_SIZE", "lots")

    with pytest.raises(ValueError, match="NDC_CHUNK_SIZE"):
        LinkageSettings.from_options({})


@pytest.mark.parametrize("field", ["chunk_size", "min_variant_length", "min_token_length", "route_limit"])
def test_non_positive_values_rejected(field: str) -> None:
    with pytest.raises(ValueError):
        LinkageSettings(**{field: 0})


def test_worker_env_wins(monkeypatch) -> None:
    monkeypatch.setenv("NDC_MAX_WORKERS", "1")

    assert resolve_worker_count(explicit=8, task_size=1_000_000) == 1


def test_small_workloads_stay_serial() -> None:
    assert resolve_worker_count(task_size=100) == 1


def _square(value: int) -> int:
    return value * value


def test_serial_map_runs_initializer() -> None:
    calls = []

    result = maybe_parallel_map([1, 2, 3], _square, max_workers=1, initializer=calls.append, initargs=("init",))

    assert result == [1, 4, 9]
    assert calls == ["init"]
    assert maybe_parallel_map([], _square) == []
