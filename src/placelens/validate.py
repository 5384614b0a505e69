"""Validation layer for config and input datasets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from .config import AppConfig
from .geometry import normalize_polygon
from .io_data import LocalDataRepository
from .models import Place
from .util import format_id_list


@dataclass(slots=True)
class ValidationReport:
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


class Validator:
    """Checks local data files against what composition expects."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    def run(self) -> ValidationReport:
        report = ValidationReport()
        report.add_info(
            f"Layers: max_trade_areas={self.cfg.layers.max_trade_areas}, "
            f"levels={list(self.cfg.layers.trade_area_levels)}"
        )
        if self.cfg.data.source == "store":
            self._validate_store(report)
            return report

        self._validate_config_paths(report)
        repo = LocalDataRepository.from_config(self.cfg)
        places = self._validate_places(report, repo)
        if not places:
            return report
        self._validate_trade_areas(report, repo, places)
        self._validate_home_zipcodes(report, repo, places)
        return report

    def _validate_store(self, report: ValidationReport) -> None:
        if not self.cfg.store.url:
            report.add_error("data.source is 'store' but store.url is not configured")
        if self.cfg.store.api_key is None:
            report.add_warning(f"Store API key env var ${self.cfg.store.api_key_env} is not set")

    def _validate_config_paths(self, report: ValidationReport) -> None:
        if self.cfg.paths.places is None:
            report.add_error("paths.places is required for the local data source")
        for path in self.cfg.paths.data_files:
            if not path.exists():
                report.add_error(f"Missing data file: {path}")

    def _validate_places(self, report: ValidationReport, repo: LocalDataRepository) -> list[Place]:
        if repo.places_path is None or not repo.places_path.exists():
            return []
        try:
            places = repo.load_places()
        except Exception as exc:
            report.add_error(f"Failed parsing places file '{repo.places_path}': {exc}")
            return []
        if not places:
            report.add_error(f"Places file is empty: {repo.places_path}")
            return []
        report.add_info(f"Loaded {len(places)} places from {repo.places_path}")
        if not any(place.is_reference_place for place in places):
            report.add_warning("No reference place flagged; the places layer will be empty")
        return places

    def _validate_trade_areas(
        self,
        report: ValidationReport,
        repo: LocalDataRepository,
        places: list[Place],
    ) -> None:
        if repo.trade_areas_path is None or not repo.trade_areas_path.exists():
            return
        known_levels = set(self.cfg.layers.trade_area_levels)
        total = invalid = 0
        missing: list[str] = []
        unexpected_levels: set[int] = set()
        try:
            for place in places:
                records = repo.trade_areas_for(place.id) or []
                if place.trade_area_available and not records:
                    missing.append(place.id)
                for record in records:
                    total += 1
                    if record.level not in known_levels:
                        unexpected_levels.add(record.level)
                    if not normalize_polygon(record.polygon):
                        invalid += 1
        except Exception as exc:
            report.add_error(f"Failed parsing trade areas '{repo.trade_areas_path}': {exc}")
            return
        report.add_info(f"Checked {total} trade-area polygons")
        if missing:
            report.add_warning(
                f"Places flagged with trade areas but without records: {format_id_list(missing)}"
            )
        if invalid:
            report.add_warning(f"{invalid} trade-area polygons are invalid and will be dropped")
        if unexpected_levels:
            report.add_warning(
                f"Trade-area levels not in config will never render: {sorted(unexpected_levels)}"
            )

    def _validate_home_zipcodes(
        self,
        report: ValidationReport,
        repo: LocalDataRepository,
        places: list[Place],
    ) -> None:
        if repo.home_zipcodes_path is None or not repo.home_zipcodes_path.exists():
            return
        try:
            polygons = repo.zipcode_polygons()
            unmatched = 0
            for place in places:
                weights = repo.home_zipcode_weights_for(place.id)
                if not weights:
                    continue
                unmatched += sum(1 for zipcode_id in weights if zipcode_id not in polygons)
        except Exception as exc:
            report.add_error(f"Failed loading home zipcodes: {exc}")
            return
        report.add_info(f"Loaded {len(polygons)} zipcode polygons")
        invalid = _count_invalid(polygons.values())
        if invalid:
            report.add_warning(f"{invalid} zipcode polygons are invalid and will be dropped")
        if unmatched:
            report.add_warning(f"{unmatched} home-zipcode weights have no matching polygon")


def _count_invalid(polygons: Iterable[Any]) -> int:
    return sum(1 for polygon in polygons if not normalize_polygon(polygon))


def format_report_lines(report: ValidationReport) -> Iterable[str]:
    for info in report.infos:
        yield f"[INFO] {info}"
    for warning in report.warnings:
        yield f"[WARN] {warning}"
    for error in report.errors:
        yield f"[ERROR] {error}"
    if report.ok:
        yield "[OK] Validation completed with no errors."
