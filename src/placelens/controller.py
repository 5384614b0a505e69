"""Single-owner map state: places, overlays, filters and selection."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import replace
from typing import Callable, Iterable, Sequence

from .compositor import compose, place_color
from .config import AppConfig
from .models import (
    DATA_TYPES,
    LAYER_HOME_ZIPCODES,
    LAYER_TRADE_AREA,
    HomeZipcodeArea,
    LayerDescriptor,
    Place,
    PlaceFilters,
    RegistryEntry,
    Selection,
    TradeAreaLevel,
    TradeAreaRecord,
)
from .records import find_reference_place
from .registry import REMOVED, AddResult, LayerRegistry, layer_id

_LOGGER = logging.getLogger("placelens.controller")


def _validate_radius(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"radius_m must be a number, got {value!r}")
    radius = float(value)
    if not math.isfinite(radius) or radius < 0:
        raise ValueError(f"radius_m must be a finite number >= 0, got {value!r}")
    return radius


class MapController:
    """Owns the registry and the filter/selection state fed to `compose`.

    All mutations go through this object; `compose` reads a registry
    snapshot so it never observes a half-applied change.
    """

    def __init__(
        self,
        cfg: AppConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cfg = cfg or AppConfig.default()
        self._clock = clock
        self.registry = LayerRegistry(max_trade_areas=self.cfg.layers.max_trade_areas)
        self.places: tuple[Place, ...] = ()
        self.reference_place: Place | None = None
        self.filters = PlaceFilters(
            radius_m=self.cfg.filters.default_radius_m,
            show_nearby_places=self.cfg.filters.show_nearby_places,
        )
        self.selection = Selection()
        self.trade_area_levels: tuple[TradeAreaLevel, ...] = tuple(
            TradeAreaLevel(level=level, selected=True)
            for level in self.cfg.layers.trade_area_levels
        )

    def load_places(self, places: Sequence[Place]) -> None:
        references = [place for place in places if place.is_reference_place]
        if len(references) > 1:
            raise ValueError(
                "Place set has more than one reference place: "
                + ", ".join(place.id for place in references)
            )
        self.places = tuple(places)
        self.reference_place = find_reference_place(self.places)
        _LOGGER.info(
            "Loaded %d places (reference=%s)",
            len(self.places),
            self.reference_place.id if self.reference_place else "none",
        )

    def place_by_id(self, place_id: str) -> Place | None:
        for place in self.places:
            if place.id == place_id:
                return place
        return None

    def categories(self) -> list[str]:
        return sorted({place.category for place in self.places if place.category})

    def update_filters(
        self,
        *,
        radius_m: object = None,
        categories: Iterable[str] | None = None,
        show_nearby_places: bool | None = None,
    ) -> PlaceFilters:
        updated = self.filters
        if radius_m is not None:
            updated = replace(updated, radius_m=_validate_radius(radius_m))
        if categories is not None:
            if isinstance(categories, str):
                raise ValueError("categories must be a collection of strings")
            updated = replace(updated, categories=frozenset(str(item) for item in categories))
        if show_nearby_places is not None:
            updated = replace(updated, show_nearby_places=bool(show_nearby_places))
        self.filters = updated
        return updated

    def set_trade_area_level(self, level: int, selected: bool) -> None:
        self.trade_area_levels = tuple(
            replace(item, selected=selected) if item.level == level else item
            for item in self.trade_area_levels
        )

    def set_all_trade_area_levels(self, selected: bool) -> None:
        self.trade_area_levels = tuple(
            replace(item, selected=selected) for item in self.trade_area_levels
        )

    def toggle_show_trade_areas(self) -> None:
        self.selection = replace(
            self.selection, show_trade_areas=not self.selection.show_trade_areas
        )

    def toggle_show_home_zipcodes(self) -> None:
        self.selection = replace(
            self.selection, show_home_zipcodes=not self.selection.show_home_zipcodes
        )

    def set_selected_data_type(self, data_type: str) -> None:
        if data_type not in DATA_TYPES:
            raise ValueError(f"Unknown data type '{data_type}'")
        previous = self.selection.selected_data_type
        self.selection = replace(self.selection, selected_data_type=data_type)
        if previous != data_type:
            reference_id = self.reference_place.id if self.reference_place else None
            self.registry.apply_data_type_transition(data_type, reference_id)

    def request_trade_areas(
        self,
        place: Place,
        records: Sequence[TradeAreaRecord] | None,
    ) -> AddResult | None:
        """Toggle the trade-area overlay of a place with fetched records.

        `None` (a failed or empty fetch) leaves the registry untouched unless
        the overlay is already shown, in which case it is toggled off.
        """
        entry_id = layer_id(LAYER_TRADE_AREA, place.id)
        if entry_id in self.registry:
            self.registry.remove(entry_id)
            return AddResult(accepted=True, outcome=REMOVED, evicted=(entry_id,))
        if not records:
            _LOGGER.warning("No trade-area data for place %s", place.id)
            return None
        entry = RegistryEntry(
            id=entry_id,
            type=LAYER_TRADE_AREA,
            place_id=place.id,
            place_name=place.name,
            data=tuple(records),
            color=place_color(place.id),
            visible=True,
            timestamp=self._clock(),
        )
        return self.registry.add(entry)

    def request_home_zipcodes(
        self,
        place: Place,
        areas: Sequence[HomeZipcodeArea] | None,
    ) -> AddResult | None:
        entry_id = layer_id(LAYER_HOME_ZIPCODES, place.id)
        if entry_id in self.registry:
            self.registry.remove(entry_id)
            return AddResult(accepted=True, outcome=REMOVED, evicted=(entry_id,))
        if not areas:
            _LOGGER.warning("No home-zipcode data for place %s", place.id)
            return None
        entry = RegistryEntry(
            id=entry_id,
            type=LAYER_HOME_ZIPCODES,
            place_id=place.id,
            place_name=place.name,
            data=tuple(areas),
            visible=True,
            timestamp=self._clock(),
        )
        return self.registry.add(entry)

    def compose(self) -> list[LayerDescriptor]:
        return compose(
            self.places,
            self.reference_place,
            self.registry.snapshot(),
            self.filters,
            self.selection,
            trade_area_levels=self.trade_area_levels,
            num_buckets=self.cfg.layers.density_buckets,
        )
