"""Tests for session and layer export."""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from placelens.controller import MapController
from placelens.export import CSV_HEADER, registry_csv, session_summary, write_export, write_layers


@pytest.fixture
def controller(places, reference_place, trade_area_records) -> MapController:
    ctrl = MapController()
    ctrl.load_places(places)
    ctrl.update_filters(categories=["Coffee Shops", "Bakeries"])
    ctrl.request_trade_areas(reference_place, trade_area_records)
    ctrl.registry.toggle_visibility("trade-area-ref")
    return ctrl


def test_session_summary(controller):
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    summary = session_summary(controller, now=now)
    assert summary["timestamp"] == "2024-05-01T00:00:00+00:00"
    assert summary["my_place"]["id"] == "ref"
    assert summary["filters"]["categories"] == ["Bakeries", "Coffee Shops"]
    assert summary["active_layers"][0]["data_count"] == 3
    assert summary["active_layers"][0]["visible"] is False


def test_registry_csv(controller):
    rows = list(csv.reader(io.StringIO(registry_csv(controller))))
    assert tuple(rows[0]) == CSV_HEADER
    assert rows[1] == ["trade-area", "Place ref", "ref", "3", "No"]


def test_write_export_formats(controller, tmp_path: Path):
    json_path = write_export(controller, tmp_path / "out" / "export.json", fmt="json")
    assert json.loads(json_path.read_text(encoding="utf-8"))["selection"]["data_type"] == "trade-area"

    csv_path = write_export(controller, tmp_path / "export.csv", fmt="CSV")
    assert csv_path.read_text(encoding="utf-8").startswith("Type,Place Name")

    with pytest.raises(ValueError):
        write_export(controller, tmp_path / "export.xml", fmt="xml")


def test_write_layers(controller, tmp_path: Path):
    controller.registry.toggle_visibility("trade-area-ref")
    path = write_layers(controller.compose(), tmp_path / "layers.json")
    payload = json.loads(path.read_text(encoding="utf-8"))
    types = [layer["type"] for layer in payload["layers"]]
    assert types == ["trade-area", "trade-area", "trade-area", "places"]
    assert "features" in payload["layers"][0]
    assert "places" in payload["layers"][-1]
