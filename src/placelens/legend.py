"""Legend entries derived from composed layers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

from .classify import DEFAULT_NUM_BUCKETS
from .compositor import HOME_ZIPCODE_COLORS, NEARBY_PLACE_COLOR, REFERENCE_PLACE_COLOR
from .models import LAYER_HOME_ZIPCODES, LAYER_PLACES, LAYER_TRADE_AREA, Color, LayerDescriptor

# Used when the home-zipcode layer has no weights to derive ranges from.
_STATIC_DENSITY_LABELS = (
    "Low density",
    "Low-medium density",
    "Medium density",
    "Medium-high density",
    "High density",
)


@dataclass(frozen=True, slots=True)
class LegendItem:
    section: str
    label: str
    color: Color
    description: str = ""
    opacity: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "section": self.section,
            "label": self.label,
            "color": list(self.color),
            "description": self.description,
            "opacity": self.opacity,
        }


def build_legend(layers: Sequence[LayerDescriptor]) -> list[LegendItem]:
    items: list[LegendItem] = []
    for layer in layers:
        if layer.type == LAYER_TRADE_AREA:
            items.append(
                LegendItem(
                    section=LAYER_TRADE_AREA,
                    label=f"{layer.place_name or layer.place_id} - {layer.level}%",
                    color=layer.fill_color,
                    description=f"{layer.level}% of customers",
                    opacity=layer.opacity,
                )
            )
        elif layer.type == LAYER_HOME_ZIPCODES:
            items.extend(_home_zipcode_items(layer))
        elif layer.type == LAYER_PLACES:
            items.extend(_place_items(layer))
    return items


def _home_zipcode_items(layer: LayerDescriptor) -> list[LegendItem]:
    ranges = _feature_bucket_ranges(layer)
    has_weights = any(bounds is not None for bounds in ranges)
    items: list[LegendItem] = []
    step = 100 // DEFAULT_NUM_BUCKETS
    for bucket, color in enumerate(HOME_ZIPCODE_COLORS):
        bounds = ranges[bucket] if bucket < len(ranges) else None
        if bounds is None:
            description = _STATIC_DENSITY_LABELS[bucket] if not has_weights else "no zipcodes"
        else:
            description = f"{bounds[0]:.1f}%-{bounds[1]:.1f}%"
        items.append(
            LegendItem(
                section=LAYER_HOME_ZIPCODES,
                label=f"{bucket * step}-{(bucket + 1) * step}%",
                color=color,
                description=description,
                opacity=layer.opacity,
            )
        )
    return items


def _feature_bucket_ranges(layer: LayerDescriptor) -> list[tuple[float, float] | None]:
    """Min/max weight of the features drawn in each bucket."""
    ranges: list[tuple[float, float] | None] = [None] * DEFAULT_NUM_BUCKETS
    for feature in layer.features:
        if feature.bucket is None or feature.weight is None or math.isnan(feature.weight):
            continue
        if not 0 <= feature.bucket < DEFAULT_NUM_BUCKETS:
            continue
        current = ranges[feature.bucket]
        if current is None:
            ranges[feature.bucket] = (feature.weight, feature.weight)
        else:
            ranges[feature.bucket] = (min(current[0], feature.weight), max(current[1], feature.weight))
    return ranges


def _place_items(layer: LayerDescriptor) -> list[LegendItem]:
    items: list[LegendItem] = []
    reference = next((marker for marker in layer.places if marker.is_reference), None)
    if reference is not None:
        items.append(
            LegendItem(
                section=LAYER_PLACES,
                label="My Place",
                color=REFERENCE_PLACE_COLOR,
                description=reference.place.name,
            )
        )
    nearby = sum(1 for marker in layer.places if not marker.is_reference)
    if nearby:
        items.append(
            LegendItem(
                section=LAYER_PLACES,
                label="Nearby places",
                color=NEARBY_PLACE_COLOR,
                description=f"{nearby} within radius",
            )
        )
    return items


def format_legend_lines(items: Sequence[LegendItem]) -> list[str]:
    lines: list[str] = []
    for item in items:
        rgb = ",".join(str(channel) for channel in item.color)
        lines.append(f"[{item.section}] {item.label} rgb({rgb}) {item.description}".rstrip())
    return lines
