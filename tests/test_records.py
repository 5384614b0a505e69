"""Tests for parsing store rows into records."""

from __future__ import annotations

import json
import math

import pytest

from conftest import square
from placelens.records import (
    find_reference_place,
    join_home_zipcodes,
    parse_level,
    parse_locations,
    parse_places,
    parse_trade_areas,
    parse_weight,
    parse_zipcode_polygons,
)


@pytest.mark.parametrize(
    "raw, expected",
    [(30, 30), ("50", 50), (" 70 ", 70), (70.0, 70), ("abc", 30), (None, 30), (True, 30)],
)
def test_parse_level(raw, expected):
    assert parse_level(raw) == expected


def test_parse_trade_areas_skips_incomplete_rows():
    rows = [
        {"pid": "p1", "trade_area": "30", "polygon": square(0.0, 0.0)},
        {"pid": "p1", "trade_area": 50, "polygon": None},
        {"trade_area": 50, "polygon": square(0.0, 0.0)},
        {"place_id": "p2", "level": 70, "polygon": "{}"},
    ]
    records = parse_trade_areas(rows)
    assert [(record.place_id, record.level) for record in records] == [("p1", 30), ("p2", 70)]


@pytest.mark.parametrize("raw, expected", [("12.5", 12.5), ("40%", 40.0), (7, 7.0), (10**400, math.inf)])
def test_parse_weight(raw, expected):
    assert parse_weight(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "n/a", True])
def test_parse_weight_invalid_is_nan(raw):
    assert math.isnan(parse_weight(raw))


class TestParseLocations:
    def test_list_of_single_entry_mappings(self):
        assert parse_locations([{"10001": "40"}, {"10002": "2.5"}]) == {"10001": 40.0, "10002": 2.5}

    def test_plain_mapping(self):
        assert parse_locations({"10001": 1}) == {"10001": 1.0}

    def test_json_text(self):
        assert parse_locations(json.dumps([{"10001": "3"}])) == {"10001": 3.0}

    @pytest.mark.parametrize("raw", [None, "garbage", 5, ["x"]])
    def test_unusable_input(self, raw):
        assert parse_locations(raw) == {}


def test_join_home_zipcodes_drops_zipcodes_without_polygon():
    weights = {"b": 2.0, "a": 1.0, "c": 3.0}
    polygons = parse_zipcode_polygons(
        [{"id": "a", "polygon": square(0.0, 0.0)}, {"id": "b", "polygon": square(1.0, 1.0)}, {"id": "x"}]
    )
    areas = join_home_zipcodes(weights, polygons)
    assert [(area.zipcode_id, area.weight) for area in areas] == [("b", 2.0), ("a", 1.0)]


class TestParsePlaces:
    def row(self, place_id, **extra):
        base = {"id": place_id, "name": f"Place {place_id}", "longitude": 1.0, "latitude": 2.0}
        base.update(extra)
        return base

    def test_store_column_names(self):
        places = parse_places(
            [
                self.row(
                    "p1",
                    sub_category="Coffee Shops",
                    istradeareaavailable=True,
                    ishomezipcodesavailable="false",
                    ismyplace=True,
                )
            ]
        )
        place = places[0]
        assert place.category == "Coffee Shops"
        assert place.trade_area_available is True
        assert place.home_zipcodes_available is False
        assert find_reference_place(places) is place

    def test_duplicate_ids_raise(self):
        with pytest.raises(ValueError):
            parse_places([self.row("p1"), self.row("p1")])

    def test_two_reference_places_raise(self):
        with pytest.raises(ValueError):
            parse_places([self.row("p1", ismyplace=True), self.row("p2", ismyplace=True)])

    @pytest.mark.parametrize(
        "override",
        [{"latitude": 95}, {"longitude": "east"}, {"longitude": 10**400}, {"name": ""}, {"id": None}],
    )
    def test_invalid_rows_raise(self, override):
        with pytest.raises(ValueError):
            parse_places([self.row("p1", **override)])

    def test_no_reference_place(self):
        assert find_reference_place(parse_places([self.row("p1")])) is None
