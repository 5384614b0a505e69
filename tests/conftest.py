"""Shared test fixtures."""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

import pytest

from placelens.config import AppConfig
from placelens.models import Place, TradeAreaRecord

# One meter of latitude in degrees on the sphere used by haversine.
DEG_PER_M = math.degrees(1.0 / 6_371_000.0)


def square(lon: float, lat: float, half: float = 0.005) -> dict[str, Any]:
    """Closed GeoJSON polygon centered on (lon, lat)."""
    return {
        "type": "Polygon",
        "coordinates": [
            [
                [lon - half, lat - half],
                [lon + half, lat - half],
                [lon + half, lat + half],
                [lon - half, lat + half],
                [lon - half, lat - half],
            ]
        ],
    }


def make_place(
    place_id: str,
    *,
    lon: float = 0.0,
    lat: float = 0.0,
    category: str = "Coffee Shops",
    reference: bool = False,
    trade_areas: bool = True,
    home_zipcodes: bool = True,
) -> Place:
    return Place(
        id=place_id,
        name=f"Place {place_id}",
        longitude=lon,
        latitude=lat,
        category=category,
        trade_area_available=trade_areas,
        home_zipcodes_available=home_zipcodes,
        is_reference_place=reference,
    )


@pytest.fixture
def reference_place() -> Place:
    return make_place("ref", reference=True)


@pytest.fixture
def places(reference_place: Place) -> list[Place]:
    return [
        reference_place,
        make_place("near", lat=500 * DEG_PER_M),
        make_place("far", lat=1500 * DEG_PER_M),
        make_place("bakery", lon=300 * DEG_PER_M, category="Bakeries"),
    ]


@pytest.fixture
def trade_area_records() -> list[TradeAreaRecord]:
    return [
        TradeAreaRecord(place_id="ref", level=30, polygon=square(0.0, 0.0, 0.002)),
        TradeAreaRecord(place_id="ref", level=50, polygon=square(0.0, 0.0, 0.004)),
        TradeAreaRecord(place_id="ref", level=70, polygon=square(0.0, 0.0, 0.008)),
    ]


@pytest.fixture
def default_config() -> AppConfig:
    return AppConfig.default()


def _write_json(path: Path, payload: Any) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Local dataset: reference place, two competitors, one far away."""
    root = tmp_path / "data"
    root.mkdir()
    _write_json(
        root / "places.json",
        [
            {
                "id": "ref",
                "name": "My Coffee",
                "longitude": 0.0,
                "latitude": 0.0,
                "sub_category": "Coffee Shops",
                "istradeareaavailable": True,
                "ishomezipcodesavailable": True,
                "ismyplace": True,
            },
            {
                "id": "near",
                "name": "Near Coffee",
                "longitude": 0.0,
                "latitude": 0.004,
                "sub_category": "Coffee Shops",
                "istradeareaavailable": True,
                "ishomezipcodesavailable": True,
                "ismyplace": False,
            },
            {
                "id": "far",
                "name": "Far Coffee",
                "longitude": 0.0,
                "latitude": 0.5,
                "sub_category": "Coffee Shops",
                "istradeareaavailable": False,
                "ishomezipcodesavailable": False,
                "ismyplace": False,
            },
        ],
    )
    _write_json(
        root / "trade_areas.json",
        [
            {"pid": "ref", "trade_area": 30, "polygon": square(0.0, 0.0, 0.002)},
            {"pid": "ref", "trade_area": 50, "polygon": json.dumps(square(0.0, 0.0, 0.004))},
            {"pid": "ref", "trade_area": 70, "polygon": square(0.0, 0.0, 0.008)},
            {"pid": "near", "trade_area": 30, "polygon": square(0.0, 0.004, 0.002)},
        ],
    )
    _write_json(
        root / "home_zipcodes.json",
        [
            {
                "place_id": "ref",
                "locations": [{"10001": "40.0"}, {"10002": "25.5"}, {"10003": "10"}],
            },
            {"place_id": "near", "locations": json.dumps({"10001": "5", "10003": "7"})},
        ],
    )
    _write_json(
        root / "zipcodes.json",
        [
            {"id": "10001", "polygon": square(0.01, 0.01)},
            {"id": "10002", "polygon": square(-0.01, 0.01)},
            {"id": "10003", "polygon": square(0.01, -0.01)},
        ],
    )
    return root


@pytest.fixture
def config_file(tmp_path: Path, data_dir: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        "\n".join(
            [
                "paths:",
                "  places: data/places.json",
                "  trade_areas: data/trade_areas.json",
                "  home_zipcodes: data/home_zipcodes.json",
                "  zipcodes: data/zipcodes.json",
                "  output_dir: build",
                "  logs_dir: build/logs",
                "filters:",
                "  default_radius_m: 1800",
                "  show_nearby_places: true",
                "",
            ]
        ),
        encoding="utf-8",
    )
    return path
