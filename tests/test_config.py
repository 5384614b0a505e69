"""Tests for typed YAML configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from placelens.config import AppConfig, load_config


def test_defaults(default_config):
    cfg = default_config
    assert cfg.data.source == "local"
    assert cfg.layers.max_trade_areas == 10
    assert cfg.layers.trade_area_levels == (30, 50, 70)
    assert cfg.layers.density_buckets == 5
    assert cfg.filters.default_radius_m == 1800.0
    assert cfg.filters.show_nearby_places is False
    assert cfg.preview.background == "white"
    assert cfg.store.url is None


def test_load_config_resolves_paths_relative_to_file(config_file: Path):
    cfg = load_config(config_file)
    root = config_file.parent.resolve()
    assert cfg.paths.places == root / "data" / "places.json"
    assert cfg.paths.output_dir == root / "build"
    assert cfg.filters.show_nearby_places is True
    assert cfg.source_path == config_file.resolve()


def test_empty_config_file_uses_defaults(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path).layers.max_trade_areas == 10


def test_missing_config_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_top_level_must_be_mapping(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_levels_are_sorted():
    cfg = AppConfig.from_mapping({"layers": {"trade_area_levels": [70, 30]}})
    assert cfg.layers.trade_area_levels == (30, 70)


@pytest.mark.parametrize(
    "raw",
    [
        {"data": {"source": "ftp"}},
        {"layers": {"max_trade_areas": 0}},
        {"layers": {"max_trade_areas": "10"}},
        {"layers": {"trade_area_levels": []}},
        {"layers": {"trade_area_levels": [30, 30]}},
        {"layers": {"trade_area_levels": [0, 50]}},
        {"layers": {"density_buckets": 4}},
        {"filters": {"default_radius_m": -5}},
        {"filters": {"show_nearby_places": "yes"}},
        {"preview": {"background": "neon"}},
        {"preview": {"padding_ratio": -0.1}},
        {"store": {"request_timeout_s": 0}},
        {"paths": "data"},
    ],
)
def test_invalid_values_raise(raw):
    with pytest.raises(ValueError):
        AppConfig.from_mapping(raw)


def test_store_api_key_from_environment(monkeypatch):
    cfg = AppConfig.from_mapping(
        {"store": {"url": "https://example.test/", "api_key_env": "PLACELENS_TEST_KEY"}}
    )
    monkeypatch.delenv("PLACELENS_TEST_KEY", raising=False)
    assert cfg.store.api_key is None
    monkeypatch.setenv("PLACELENS_TEST_KEY", " secret ")
    assert cfg.store.api_key == "secret"
    assert cfg.store.url == "https://example.test"
