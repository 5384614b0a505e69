"""Session files: replay user selections against a map controller."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from .controller import MapController
from .io_data import read_structured
from .models import DATA_TYPES, HomeZipcodeArea, Place, TradeAreaRecord


class DataSource(Protocol):
    def load_places(self) -> list[Place]: ...

    def trade_areas_for(self, place_id: str) -> list[TradeAreaRecord] | None: ...

    def home_zipcodes_for(self, place_id: str) -> list[HomeZipcodeArea] | None: ...


@dataclass(frozen=True, slots=True)
class SessionSpec:
    """User selections recorded in a session YAML/JSON file."""

    data_type: str = "trade-area"
    show_trade_areas: bool = True
    show_home_zipcodes: bool = True
    radius_m: Any = None
    categories: tuple[str, ...] | None = None
    show_nearby_places: bool | None = None
    selected_levels: tuple[int, ...] | None = None
    trade_area_place_ids: tuple[str, ...] = ()
    home_zipcodes_place_id: str | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> SessionSpec:
        filters = raw.get("filters") or {}
        selection = raw.get("selection") or {}
        if not isinstance(filters, Mapping):
            raise ValueError("Expected mapping for 'filters'")
        if not isinstance(selection, Mapping):
            raise ValueError("Expected mapping for 'selection'")

        data_type = str(selection.get("data_type", "trade-area")).strip()
        if data_type not in DATA_TYPES:
            raise ValueError(f"selection.data_type must be one of: {', '.join(DATA_TYPES)}")

        categories_raw = filters.get("categories")
        categories: tuple[str, ...] | None = None
        if categories_raw is not None:
            if not isinstance(categories_raw, list):
                raise ValueError("Expected list for 'filters.categories'")
            categories = tuple(str(item) for item in categories_raw)

        levels_raw = raw.get("trade_area_levels")
        levels: tuple[int, ...] | None = None
        if levels_raw is not None:
            if not isinstance(levels_raw, list):
                raise ValueError("Expected list for 'trade_area_levels'")
            levels = tuple(int(item) for item in levels_raw)

        trade_areas_raw = raw.get("trade_areas") or []
        if not isinstance(trade_areas_raw, list):
            raise ValueError("Expected list of place ids for 'trade_areas'")
        home_raw = raw.get("home_zipcodes")

        nearby = filters.get("show_nearby_places")
        return cls(
            data_type=data_type,
            show_trade_areas=bool(selection.get("show_trade_areas", True)),
            show_home_zipcodes=bool(selection.get("show_home_zipcodes", True)),
            radius_m=filters.get("radius_m"),
            categories=categories,
            show_nearby_places=None if nearby is None else bool(nearby),
            selected_levels=levels,
            trade_area_place_ids=tuple(str(item) for item in trade_areas_raw),
            home_zipcodes_place_id=None if home_raw is None else str(home_raw),
        )


@dataclass(slots=True)
class SessionReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


def load_session(path: Path) -> SessionSpec:
    raw = read_structured(path)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in session file {path}")
    return SessionSpec.from_mapping(raw)


def apply_session(
    controller: MapController,
    spec: SessionSpec,
    source: DataSource,
) -> SessionReport:
    """Replay a session in UI order: filters, view switch, then overlay requests."""
    report = SessionReport()
    try:
        controller.update_filters(
            radius_m=spec.radius_m,
            categories=spec.categories,
            show_nearby_places=spec.show_nearby_places,
        )
    except ValueError as exc:
        report.add_error(f"Invalid filters: {exc}")
        return report

    if spec.selected_levels is not None:
        wanted = set(spec.selected_levels)
        known = {item.level for item in controller.trade_area_levels}
        for level in sorted(known):
            controller.set_trade_area_level(level, level in wanted)
        unknown = sorted(wanted - known)
        if unknown:
            report.add_warning(f"Ignoring unknown trade-area levels: {unknown}")

    if controller.selection.show_trade_areas != spec.show_trade_areas:
        controller.toggle_show_trade_areas()
    if controller.selection.show_home_zipcodes != spec.show_home_zipcodes:
        controller.toggle_show_home_zipcodes()
    controller.set_selected_data_type(spec.data_type)

    for place_id in spec.trade_area_place_ids:
        place = _resolve_place(controller, place_id, report)
        if place is None:
            continue
        if not place.trade_area_available:
            report.add_warning(f"Trade areas are not available for {place_id}")
            continue
        result = controller.request_trade_areas(place, source.trade_areas_for(place_id))
        if result is None:
            report.add_warning(f"No trade-area data for {place_id}")
        elif result.capacity_exceeded:
            report.add_warning(
                f"Trade-area limit ({controller.registry.max_trade_areas}) reached; "
                f"skipped {place_id}"
            )
        else:
            report.add_info(f"Trade areas {result.outcome} for {place_id}")

    if spec.home_zipcodes_place_id is not None:
        place_id = spec.home_zipcodes_place_id
        place = _resolve_place(controller, place_id, report)
        if place is not None:
            if not place.home_zipcodes_available:
                report.add_warning(f"Home zipcodes are not available for {place_id}")
            else:
                result = controller.request_home_zipcodes(place, source.home_zipcodes_for(place_id))
                if result is None:
                    report.add_warning(f"No home-zipcode data for {place_id}")
                else:
                    report.add_info(f"Home zipcodes {result.outcome} for {place_id}")

    report.add_info(f"Registry holds {len(controller.registry)} overlay layers")
    return report


def _resolve_place(
    controller: MapController,
    place_id: str,
    report: SessionReport,
) -> Place | None:
    place = controller.place_by_id(place_id)
    if place is None:
        report.add_error(f"Unknown place id '{place_id}'")
    return place


def format_session_lines(report: SessionReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    if report.ok:
        lines.append("[OK] Session applied with no errors.")
    return lines
