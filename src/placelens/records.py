"""Parsing of raw store rows into trade-area and home-zipcode records."""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Iterable, Mapping, Sequence

from .models import DEFAULT_TRADE_AREA_LEVELS, HomeZipcodeArea, Place, TradeAreaRecord

_LOGGER = logging.getLogger("placelens.records")


def _decode_json_text(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


def parse_level(value: Any, default: int = DEFAULT_TRADE_AREA_LEVELS[0]) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        pass
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return int(number) if math.isfinite(number) else default


def parse_trade_areas(rows: Iterable[Mapping[str, Any]]) -> list[TradeAreaRecord]:
    """Convert store rows (`pid`, `trade_area`, `polygon`) into records.

    Rows without a polygon or place id are skipped. Polygon text is kept as
    is; decoding and validation happen at composition time.
    """
    records: list[TradeAreaRecord] = []
    for row in rows:
        place_id = row.get("pid", row.get("place_id"))
        polygon = row.get("polygon")
        if place_id is None or polygon is None:
            _LOGGER.debug("Skipping trade-area row without pid/polygon")
            continue
        records.append(
            TradeAreaRecord(
                place_id=str(place_id),
                level=parse_level(row.get("trade_area", row.get("level"))),
                polygon=polygon,
            )
        )
    return records


def parse_weight(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return math.nan
    try:
        return float(str(value).strip().rstrip("%"))
    except (TypeError, ValueError, OverflowError):
        return math.nan


def parse_locations(raw: Any) -> dict[str, float]:
    """Flatten home-zipcode `locations` into `zipcode_id -> weight`.

    The store holds either a mapping, a list of single-entry mappings, or
    the JSON text of either. Weights are usually strings.
    """
    decoded = _decode_json_text(raw)
    chunks: Sequence[Any]
    if isinstance(decoded, Mapping):
        chunks = [decoded]
    elif isinstance(decoded, list):
        chunks = decoded
    else:
        return {}

    weights: dict[str, float] = {}
    for chunk in chunks:
        if not isinstance(chunk, Mapping):
            continue
        for zipcode_id, weight in chunk.items():
            weights[str(zipcode_id)] = parse_weight(weight)
    return weights


def parse_zipcode_polygons(rows: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    polygons: dict[str, Any] = {}
    for row in rows:
        zipcode_id = row.get("id")
        polygon = row.get("polygon")
        if zipcode_id is None or polygon is None:
            continue
        polygons[str(zipcode_id)] = polygon
    return polygons


def join_home_zipcodes(
    weights: Mapping[str, float],
    polygons: Mapping[str, Any],
) -> list[HomeZipcodeArea]:
    """Join weights with zipcode polygons; zipcodes without a polygon drop out.

    Output follows the weight mapping's order.
    """
    areas: list[HomeZipcodeArea] = []
    missing = 0
    for zipcode_id, weight in weights.items():
        polygon = polygons.get(zipcode_id)
        if polygon is None:
            missing += 1
            continue
        areas.append(HomeZipcodeArea(zipcode_id=zipcode_id, polygon=polygon, weight=weight))
    if missing:
        _LOGGER.debug("%d home zipcodes have no polygon", missing)
    return areas


def parse_places(rows: Iterable[Mapping[str, Any]]) -> list[Place]:
    """Build a place set, enforcing a single reference place and unique ids."""
    places: list[Place] = []
    seen_ids: set[str] = set()
    reference_id: str | None = None
    for idx, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise ValueError(f"Expected mapping for place at index {idx}")
        place = Place.from_mapping(row)
        if place.id in seen_ids:
            raise ValueError(f"Duplicate place id '{place.id}'")
        if place.is_reference_place:
            if reference_id is not None:
                raise ValueError(
                    f"More than one reference place: '{reference_id}' and '{place.id}'"
                )
            reference_id = place.id
        seen_ids.add(place.id)
        places.append(place)
    return places


def find_reference_place(places: Iterable[Place]) -> Place | None:
    for place in places:
        if place.is_reference_place:
            return place
    return None
