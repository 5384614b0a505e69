"""Domain models shared across layer composition modules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping

LAYER_PLACES = "places"
LAYER_TRADE_AREA = "trade-area"
LAYER_HOME_ZIPCODES = "home-zipcodes"

# Data types the customer-analysis view can switch between.
DATA_TYPES = (LAYER_TRADE_AREA, LAYER_HOME_ZIPCODES)

DEFAULT_TRADE_AREA_LEVELS = (30, 50, 70)
DEFAULT_RADIUS_M = 1800.0

Color = tuple[int, int, int]
Ring = list[list[float]]


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _optional_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _require_coordinate(value: Any, field_name: str, limit: float) -> float:
    if isinstance(value, bool):
        raise ValueError(f"Expected numeric value for '{field_name}'")
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValueError(f"Expected numeric value for '{field_name}'") from exc
    if not math.isfinite(number) or number < -limit or number > limit:
        raise ValueError(f"{field_name} must be between {-limit:g} and {limit:g}")
    return number


def _flag(data: Mapping[str, Any], *names: str) -> bool:
    for name in names:
        if name in data:
            value = data[name]
            if isinstance(value, str):
                return value.strip().casefold() in {"1", "true", "yes", "y", "t"}
            return bool(value)
    return False


def _first_present(data: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None


@dataclass(frozen=True, slots=True)
class Place:
    """Business location loaded once from the data store."""

    id: str
    name: str
    longitude: float
    latitude: float
    category: str = ""
    street_address: str = ""
    city: str = ""
    state: str = ""
    trade_area_available: bool = False
    home_zipcodes_available: bool = False
    is_reference_place: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Place:
        raw_id = data.get("id")
        if raw_id is None or (isinstance(raw_id, str) and not raw_id.strip()):
            raise ValueError("Expected non-empty value for 'id'")
        return cls(
            id=str(raw_id).strip(),
            name=_require_str(data.get("name"), "name"),
            longitude=_require_coordinate(data.get("longitude"), "longitude", 180.0),
            latitude=_require_coordinate(data.get("latitude"), "latitude", 90.0),
            category=_optional_str(_first_present(data, "category", "sub_category")),
            street_address=_optional_str(data.get("street_address")),
            city=_optional_str(data.get("city")),
            state=_optional_str(data.get("state")),
            trade_area_available=_flag(data, "trade_area_available", "istradeareaavailable"),
            home_zipcodes_available=_flag(
                data, "home_zipcodes_available", "ishomezipcodesavailable"
            ),
            is_reference_place=_flag(data, "is_reference_place", "ismyplace"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "street_address": self.street_address,
            "city": self.city,
            "state": self.state,
            "longitude": self.longitude,
            "latitude": self.latitude,
            "category": self.category,
            "trade_area_available": self.trade_area_available,
            "home_zipcodes_available": self.home_zipcodes_available,
            "is_reference_place": self.is_reference_place,
        }


@dataclass(frozen=True, slots=True)
class TradeAreaRecord:
    """One trade-area polygon of a place at a percentile level."""

    place_id: str
    level: int
    polygon: Any


@dataclass(frozen=True, slots=True)
class HomeZipcodeArea:
    """Home-zipcode weight joined with the zipcode polygon."""

    zipcode_id: str
    polygon: Any
    weight: float


@dataclass(frozen=True, slots=True)
class PlaceFilters:
    radius_m: float = DEFAULT_RADIUS_M
    categories: frozenset[str] = frozenset()
    show_nearby_places: bool = False


@dataclass(frozen=True, slots=True)
class Selection:
    selected_data_type: str = LAYER_TRADE_AREA
    show_trade_areas: bool = True
    show_home_zipcodes: bool = True


@dataclass(frozen=True, slots=True)
class TradeAreaLevel:
    level: int
    selected: bool = True


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    """Stored record of an overlay the user requested."""

    id: str
    type: str
    place_id: str
    place_name: str
    data: tuple[Any, ...] = ()
    color: Color | None = None
    visible: bool = True
    timestamp: float = 0.0


@dataclass(frozen=True, slots=True)
class PlaceMarker:
    place: Place
    is_reference: bool

    def to_dict(self) -> dict[str, Any]:
        payload = self.place.to_dict()
        payload["is_reference"] = self.is_reference
        return payload


@dataclass(frozen=True, slots=True)
class PolygonFeature:
    """Validated closed ring plus its per-feature style."""

    key: str
    ring: tuple[tuple[float, float], ...]
    fill_color: Color
    weight: float | None = None
    bucket: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "ring": [list(point) for point in self.ring],
            "fill_color": list(self.fill_color),
            "weight": self.weight,
            "bucket": self.bucket,
        }


@dataclass(frozen=True, slots=True)
class LayerDescriptor:
    """Render-ready layer regenerated on every composition."""

    id: str
    type: str
    fill_color: Color
    line_color: Color
    opacity: float
    visible: bool = True
    place_id: str | None = None
    place_name: str | None = None
    level: int | None = None
    places: tuple[PlaceMarker, ...] = ()
    features: tuple[PolygonFeature, ...] = field(default_factory=tuple)

    @property
    def size(self) -> int:
        return len(self.places) if self.type == LAYER_PLACES else len(self.features)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "place_id": self.place_id,
            "place_name": self.place_name,
            "visible": self.visible,
            "fill_color": list(self.fill_color),
            "line_color": list(self.line_color),
            "opacity": self.opacity,
            "level": self.level,
        }
        if self.type == LAYER_PLACES:
            payload["places"] = [marker.to_dict() for marker in self.places]
        else:
            payload["features"] = [feature.to_dict() for feature in self.features]
        return payload
