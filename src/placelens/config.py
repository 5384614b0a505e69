"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .models import DEFAULT_RADIUS_M, DEFAULT_TRADE_AREA_LEVELS
from .registry import DEFAULT_MAX_TRADE_AREAS

DENSITY_BUCKETS = 5


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool for '{field_name}'")
    return value


def _int_list(value: Any, field_name: str) -> tuple[int, ...]:
    if not isinstance(value, list) or not value:
        raise ValueError(f"Expected non-empty list for '{field_name}'")
    return tuple(_int(item, f"{field_name}[{idx}]") for idx, item in enumerate(value))


def _optional_path(value: Any, field_name: str, root_dir: Path) -> Path | None:
    if value is None:
        return None
    return _path_from_cfg(value, field_name, root_dir)


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class DataConfig:
    source: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> DataConfig:
        source = _str(raw.get("source", "local"), "data.source").casefold()
        allowed = {"local", "store"}
        if source not in allowed:
            raise ValueError("data.source must be one of: " + ", ".join(sorted(allowed)))
        return cls(source=source)


@dataclass(frozen=True, slots=True)
class PathsConfig:
    places: Path | None
    trade_areas: Path | None
    home_zipcodes: Path | None
    zipcodes: Path | None
    output_dir: Path
    logs_dir: Path

    @property
    def data_files(self) -> tuple[Path, ...]:
        return tuple(
            path
            for path in (self.places, self.trade_areas, self.home_zipcodes, self.zipcodes)
            if path is not None
        )

    @property
    def build_directories(self) -> tuple[Path, ...]:
        return (self.output_dir, self.logs_dir)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            places=_optional_path(raw.get("places"), "paths.places", root_dir),
            trade_areas=_optional_path(raw.get("trade_areas"), "paths.trade_areas", root_dir),
            home_zipcodes=_optional_path(
                raw.get("home_zipcodes"), "paths.home_zipcodes", root_dir
            ),
            zipcodes=_optional_path(raw.get("zipcodes"), "paths.zipcodes", root_dir),
            output_dir=_path_from_cfg(raw.get("output_dir", "build"), "paths.output_dir", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir", "build/logs"), "paths.logs_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class StoreConfig:
    url: str | None
    api_key_env: str
    request_timeout_s: int
    user_agent: str

    @property
    def api_key(self) -> str | None:
        value = os.environ.get(self.api_key_env)
        return value.strip() if value and value.strip() else None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> StoreConfig:
        url_raw = raw.get("url")
        timeout = _int(raw.get("request_timeout_s", 30), "store.request_timeout_s")
        if timeout <= 0:
            raise ValueError("store.request_timeout_s must be > 0")
        return cls(
            url=_str(url_raw, "store.url").rstrip("/") if url_raw is not None else None,
            api_key_env=_str(raw.get("api_key_env", "PLACELENS_STORE_KEY"), "store.api_key_env"),
            request_timeout_s=timeout,
            user_agent=_str(raw.get("user_agent", "placelens/0.1"), "store.user_agent"),
        )


@dataclass(frozen=True, slots=True)
class LayersConfig:
    max_trade_areas: int
    trade_area_levels: tuple[int, ...]
    density_buckets: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LayersConfig:
        max_trade_areas = _int(
            raw.get("max_trade_areas", DEFAULT_MAX_TRADE_AREAS), "layers.max_trade_areas"
        )
        if max_trade_areas < 1:
            raise ValueError("layers.max_trade_areas must be >= 1")
        levels = _int_list(
            raw.get("trade_area_levels", list(DEFAULT_TRADE_AREA_LEVELS)),
            "layers.trade_area_levels",
        )
        if len(set(levels)) != len(levels):
            raise ValueError("layers.trade_area_levels must not contain duplicates")
        if any(level <= 0 or level >= 100 for level in levels):
            raise ValueError("layers.trade_area_levels must be percentages between 1 and 99")
        buckets = _int(raw.get("density_buckets", DENSITY_BUCKETS), "layers.density_buckets")
        if buckets != DENSITY_BUCKETS:
            raise ValueError(f"layers.density_buckets is fixed at {DENSITY_BUCKETS}")
        return cls(
            max_trade_areas=max_trade_areas,
            trade_area_levels=tuple(sorted(levels)),
            density_buckets=buckets,
        )


@dataclass(frozen=True, slots=True)
class FiltersConfig:
    default_radius_m: float
    show_nearby_places: bool

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> FiltersConfig:
        radius = _float(raw.get("default_radius_m", DEFAULT_RADIUS_M), "filters.default_radius_m")
        if not math.isfinite(radius) or radius < 0:
            raise ValueError("filters.default_radius_m must be a finite number >= 0")
        return cls(
            default_radius_m=radius,
            show_nearby_places=_bool(
                raw.get("show_nearby_places", False), "filters.show_nearby_places"
            ),
        )


@dataclass(frozen=True, slots=True)
class PreviewConfig:
    width_px: int
    height_px: int
    dpi: int
    background: str
    format: str
    padding_ratio: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> PreviewConfig:
        background = _str(raw.get("background", "white"), "preview.background").casefold()
        allowed = {"white", "google_flat", "satellite"}
        if background not in allowed:
            raise ValueError("preview.background must be one of: " + ", ".join(sorted(allowed)))
        padding_ratio = _float(raw.get("padding_ratio", 0.08), "preview.padding_ratio")
        if padding_ratio < 0:
            raise ValueError("preview.padding_ratio must be >= 0")
        return cls(
            width_px=_int(raw.get("width_px", 1200), "preview.width_px"),
            height_px=_int(raw.get("height_px", 900), "preview.height_px"),
            dpi=_int(raw.get("dpi", 150), "preview.dpi"),
            background=background,
            format=_str(raw.get("format", "png"), "preview.format"),
            padding_ratio=padding_ratio,
        )


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path | None
    data: DataConfig
    paths: PathsConfig
    store: StoreConfig
    layers: LayersConfig
    filters: FiltersConfig
    preview: PreviewConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path | None = None) -> AppConfig:
        root_dir = source_path.parent.resolve() if source_path is not None else Path.cwd()
        return cls(
            source_path=source_path.resolve() if source_path is not None else None,
            data=DataConfig.from_mapping(_mapping(raw.get("data"), "data")),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            store=StoreConfig.from_mapping(_mapping(raw.get("store"), "store")),
            layers=LayersConfig.from_mapping(_mapping(raw.get("layers"), "layers")),
            filters=FiltersConfig.from_mapping(_mapping(raw.get("filters"), "filters")),
            preview=PreviewConfig.from_mapping(_mapping(raw.get("preview"), "preview")),
        )

    @classmethod
    def default(cls) -> AppConfig:
        return cls.from_mapping({})


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
