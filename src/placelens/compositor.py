"""Assemble render-ready map layers from places, overlays and filters."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Iterable, Sequence

from .classify import DEFAULT_NUM_BUCKETS, classify_keyed
from .geometry import haversine_distance_m, normalize_polygon, ring_as_tuple
from .models import (
    DEFAULT_TRADE_AREA_LEVELS,
    LAYER_HOME_ZIPCODES,
    LAYER_PLACES,
    LAYER_TRADE_AREA,
    Color,
    HomeZipcodeArea,
    LayerDescriptor,
    Place,
    PlaceFilters,
    PlaceMarker,
    PolygonFeature,
    RegistryEntry,
    Selection,
    TradeAreaLevel,
    TradeAreaRecord,
)

PLACES_LAYER_ID = "places-layer"

TRADE_AREA_COLORS: tuple[Color, ...] = (
    (255, 99, 71),
    (54, 162, 235),
    (75, 192, 192),
    (255, 206, 84),
    (153, 102, 255),
    (255, 159, 64),
    (199, 199, 199),
    (83, 102, 255),
    (255, 99, 132),
    (54, 235, 162),
)

# Indexed by density bucket, lowest share first.
HOME_ZIPCODE_COLORS: tuple[Color, ...] = (
    (255, 206, 84),
    (255, 159, 64),
    (255, 99, 132),
    (153, 102, 255),
    (201, 203, 207),
)

REFERENCE_PLACE_COLOR: Color = (220, 38, 38)
NEARBY_PLACE_COLOR: Color = (37, 99, 235)

HOME_ZIPCODE_OPACITY = 0.5
PLACES_OPACITY = 1.0
_MIN_LEVEL_OPACITY = 0.3
_MAX_LEVEL_OPACITY = 0.7

_LOGGER = logging.getLogger("placelens.compositor")


def stable_hash(text: str) -> int:
    """Polynomial (x31) string hash, kept in 32 bits so it is process-stable."""
    value = 0
    for char in text:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    return value


def place_color(place_id: str, palette: Sequence[Color] = TRADE_AREA_COLORS) -> Color:
    return palette[stable_hash(place_id) % len(palette)]


def level_opacity(level: int, levels: Sequence[int] = DEFAULT_TRADE_AREA_LEVELS) -> float:
    """Higher percentile level (tighter polygon) gets higher opacity."""
    ordered = sorted(set(levels) | {level})
    if len(ordered) == 1:
        return _MAX_LEVEL_OPACITY
    rank = ordered.index(level)
    step = (_MAX_LEVEL_OPACITY - _MIN_LEVEL_OPACITY) / (len(ordered) - 1)
    return round(_MIN_LEVEL_OPACITY + rank * step, 4)


def _selected_levels(trade_area_levels: Iterable[Any]) -> tuple[set[int], tuple[int, ...]]:
    selected: set[int] = set()
    all_levels: list[int] = []
    for item in trade_area_levels:
        if isinstance(item, TradeAreaLevel):
            level, is_selected = item.level, item.selected
        else:
            level, is_selected = int(item), True
        all_levels.append(level)
        if is_selected:
            selected.add(level)
    return selected, tuple(sorted(set(all_levels)))


def _entries(registry: Any) -> tuple[RegistryEntry, ...]:
    snapshot = getattr(registry, "snapshot", None)
    if callable(snapshot):
        return tuple(snapshot())
    return tuple(registry)


def compose(
    places: Sequence[Place],
    reference_place: Place | None,
    registry: Any,
    filters: PlaceFilters,
    selection: Selection,
    *,
    trade_area_levels: Iterable[Any] = DEFAULT_TRADE_AREA_LEVELS,
    num_buckets: int = DEFAULT_NUM_BUCKETS,
) -> list[LayerDescriptor]:
    """Produce layer descriptors: trade areas, home zipcodes, then places.

    Polygon layers are always emitted before the point layer so markers are
    drawn on top. Output depends only on the arguments.
    """
    entries = _entries(registry)
    layers: list[LayerDescriptor] = []

    if selection.show_trade_areas:
        selected, known_levels = _selected_levels(trade_area_levels)
        for entry in entries:
            if entry.type != LAYER_TRADE_AREA or not entry.visible or not entry.data:
                continue
            layers.extend(_trade_area_layers(entry, selected, known_levels))

    if selection.show_home_zipcodes:
        entry = next(
            (
                item
                for item in entries
                if item.type == LAYER_HOME_ZIPCODES and item.visible and item.data
            ),
            None,
        )
        if entry is not None:
            layer = _home_zipcode_layer(entry, num_buckets)
            if layer is not None:
                layers.append(layer)

    places_layer = _places_layer(places, reference_place, filters)
    if places_layer is not None:
        layers.append(places_layer)
    return layers


def _trade_area_layers(
    entry: RegistryEntry,
    selected_levels: set[int],
    known_levels: Sequence[int],
) -> list[LayerDescriptor]:
    by_level: dict[int, list[TradeAreaRecord]] = defaultdict(list)
    for record in entry.data:
        if isinstance(record, TradeAreaRecord):
            by_level[record.level].append(record)

    color = entry.color or place_color(entry.place_id)
    layers: list[LayerDescriptor] = []
    for level in sorted(by_level):
        if level not in selected_levels:
            continue
        features: list[PolygonFeature] = []
        for idx, record in enumerate(by_level[level]):
            ring = normalize_polygon(record.polygon)
            if not ring:
                _LOGGER.debug(
                    "Dropped invalid trade-area polygon %s level=%d #%d", entry.id, level, idx
                )
                continue
            features.append(
                PolygonFeature(
                    key=f"{entry.place_id}-{level}-{idx}",
                    ring=ring_as_tuple(ring),
                    fill_color=color,
                )
            )
        if not features:
            continue
        layers.append(
            LayerDescriptor(
                id=f"trade-area-{entry.id}-level-{level}",
                type=LAYER_TRADE_AREA,
                place_id=entry.place_id,
                place_name=entry.place_name,
                visible=entry.visible,
                fill_color=color,
                line_color=color,
                opacity=level_opacity(level, known_levels),
                level=level,
                features=tuple(features),
            )
        )
    return layers


def _home_zipcode_layer(entry: RegistryEntry, num_buckets: int) -> LayerDescriptor | None:
    areas = [item for item in entry.data if isinstance(item, HomeZipcodeArea)]
    classified = classify_keyed(((area, area.weight) for area in areas), num_buckets)

    features: list[PolygonFeature] = []
    for area, weight, bucket in classified:
        ring = normalize_polygon(area.polygon)
        if not ring:
            _LOGGER.debug("Dropped invalid zipcode polygon %s", area.zipcode_id)
            continue
        color = HOME_ZIPCODE_COLORS[min(bucket, len(HOME_ZIPCODE_COLORS) - 1)]
        features.append(
            PolygonFeature(
                key=area.zipcode_id,
                ring=ring_as_tuple(ring),
                fill_color=color,
                weight=weight,
                bucket=bucket,
            )
        )
    if not features:
        return None
    return LayerDescriptor(
        id=f"home-zipcodes-{entry.id}",
        type=LAYER_HOME_ZIPCODES,
        place_id=entry.place_id,
        place_name=entry.place_name,
        visible=entry.visible,
        fill_color=HOME_ZIPCODE_COLORS[0],
        line_color=HOME_ZIPCODE_COLORS[0],
        opacity=HOME_ZIPCODE_OPACITY,
        features=tuple(features),
    )


def nearby_places(
    places: Sequence[Place],
    reference_place: Place,
    filters: PlaceFilters,
) -> list[Place]:
    """Places within the radius of the reference place, filtered by category."""
    out: list[Place] = []
    for place in places:
        if place.id == reference_place.id or place.is_reference_place:
            continue
        distance = haversine_distance_m(
            reference_place.latitude,
            reference_place.longitude,
            place.latitude,
            place.longitude,
        )
        if distance > filters.radius_m:
            continue
        if filters.categories and place.category not in filters.categories:
            continue
        out.append(place)
    return out


def _places_layer(
    places: Sequence[Place],
    reference_place: Place | None,
    filters: PlaceFilters,
) -> LayerDescriptor | None:
    if reference_place is None:
        return None
    markers = [PlaceMarker(place=reference_place, is_reference=True)]
    if filters.show_nearby_places:
        markers.extend(
            PlaceMarker(place=place, is_reference=False)
            for place in nearby_places(places, reference_place, filters)
        )
    return LayerDescriptor(
        id=PLACES_LAYER_ID,
        type=LAYER_PLACES,
        fill_color=NEARBY_PLACE_COLOR,
        line_color=REFERENCE_PLACE_COLOR,
        opacity=PLACES_OPACITY,
        places=tuple(markers),
    )
