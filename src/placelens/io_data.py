"""Local dataset loading for places, trade areas and zipcode geometry."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import yaml

from .models import HomeZipcodeArea, Place, TradeAreaRecord
from .records import (
    join_home_zipcodes,
    parse_locations,
    parse_places,
    parse_trade_areas,
    parse_zipcode_polygons,
)

_STRUCTURED_SUFFIXES = {".json", ".yaml", ".yml"}

_LOGGER = logging.getLogger("placelens.io_data")


def read_structured(path: Path) -> Any:
    """Read a JSON or YAML document."""
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        if path.suffix.lower() == ".json":
            return json.load(fh)
        return yaml.safe_load(fh)


def _read_rows(path: Path, what: str) -> list[Mapping[str, Any]]:
    raw = read_structured(path)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"Expected list of {what} records in {path}")
    rows: list[Mapping[str, Any]] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise ValueError(f"Expected mapping at index {idx} in {path}")
        rows.append(item)
    return rows


def _first_existing_column(columns: Iterable[str], candidates: Sequence[str]) -> str | None:
    existing = {col.lower(): col for col in columns}
    for candidate in candidates:
        match = existing.get(candidate.lower())
        if match:
            return match
    return None


class LocalDataRepository:
    """File-backed stand-in for the hosted data store.

    Trade-area and home-zipcode files are read once and indexed by place id;
    zipcode geometry may be a JSON list of `{id, polygon}` rows or any vector
    file GeoPandas can read.
    """

    ZIPCODE_ID_COLUMNS = ("id", "zipcode", "zip", "zcta5ce20", "zcta5ce10", "geoid20", "geoid10")

    def __init__(
        self,
        *,
        places_path: Path | None,
        trade_areas_path: Path | None = None,
        home_zipcodes_path: Path | None = None,
        zipcodes_path: Path | None = None,
    ) -> None:
        self.places_path = places_path
        self.trade_areas_path = trade_areas_path
        self.home_zipcodes_path = home_zipcodes_path
        self.zipcodes_path = zipcodes_path
        self._trade_areas: dict[str, list[TradeAreaRecord]] | None = None
        self._locations: dict[str, dict[str, float]] | None = None
        self._zipcodes: dict[str, Any] | None = None

    @classmethod
    def from_config(cls, cfg: Any) -> LocalDataRepository:
        return cls(
            places_path=cfg.paths.places,
            trade_areas_path=cfg.paths.trade_areas,
            home_zipcodes_path=cfg.paths.home_zipcodes,
            zipcodes_path=cfg.paths.zipcodes,
        )

    def load_places(self) -> list[Place]:
        if self.places_path is None:
            raise ValueError("No places file configured (paths.places)")
        places = parse_places(_read_rows(self.places_path, "place"))
        _LOGGER.info("Loaded %d places from %s", len(places), self.places_path)
        return places

    def trade_areas_for(self, place_id: str) -> list[TradeAreaRecord] | None:
        if self._trade_areas is None:
            self._trade_areas = {}
            if self.trade_areas_path is not None:
                for record in parse_trade_areas(_read_rows(self.trade_areas_path, "trade area")):
                    self._trade_areas.setdefault(record.place_id, []).append(record)
        return self._trade_areas.get(place_id) or None

    def home_zipcode_weights_for(self, place_id: str) -> dict[str, float] | None:
        if self._locations is None:
            self._locations = {}
            if self.home_zipcodes_path is not None:
                rows = _read_rows(self.home_zipcodes_path, "home zipcode")
                for row in rows:
                    owner = row.get("place_id")
                    if owner is None:
                        continue
                    self._locations[str(owner)] = parse_locations(row.get("locations"))
        return self._locations.get(place_id) or None

    def home_zipcodes_for(self, place_id: str) -> list[HomeZipcodeArea] | None:
        weights = self.home_zipcode_weights_for(place_id)
        if not weights:
            return None
        polygons = self.zipcode_polygons()
        areas = join_home_zipcodes(weights, polygons)
        return areas or None

    def zipcode_polygons(self) -> dict[str, Any]:
        if self._zipcodes is not None:
            return self._zipcodes
        if self.zipcodes_path is None:
            self._zipcodes = {}
        elif self.zipcodes_path.suffix.lower() in _STRUCTURED_SUFFIXES:
            self._zipcodes = parse_zipcode_polygons(_read_rows(self.zipcodes_path, "zipcode"))
        else:
            self._zipcodes = self._read_vector_zipcodes(self.zipcodes_path)
        _LOGGER.info("Loaded %d zipcode polygons", len(self._zipcodes))
        return self._zipcodes

    def _read_vector_zipcodes(self, path: Path) -> dict[str, Any]:
        gpd = self._require_geopandas()
        frame = gpd.read_file(path)
        if frame.crs is not None and frame.crs.to_epsg() != 4326:
            frame = frame.to_crs(epsg=4326)
        id_col = _first_existing_column(frame.columns, self.ZIPCODE_ID_COLUMNS)
        if id_col is None:
            cols = ", ".join(str(c) for c in frame.columns)
            raise ValueError(f"Could not detect zipcode id column in {path}. Available columns: {cols}")
        polygons: dict[str, Any] = {}
        for zipcode_id, geometry in zip(frame[id_col].tolist(), frame.geometry.tolist()):
            if zipcode_id is None or geometry is None or geometry.is_empty:
                continue
            polygons[str(zipcode_id).strip()] = dict(geometry.__geo_interface__)
        return polygons

    @staticmethod
    def _require_geopandas() -> Any:
        try:
            import geopandas as gpd
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError("geopandas is required for reading vector zipcode files") from exc
        return gpd
