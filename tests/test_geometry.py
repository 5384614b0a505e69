"""Tests for ring extraction, validation and haversine distance."""

from __future__ import annotations

import json
import math

import pytest

from conftest import square
from placelens.geometry import (
    extract_ring,
    haversine_distance_m,
    normalize_polygon,
    validate_ring,
)

OPEN_TRIANGLE = [[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]]


class TestExtractRing:
    def test_polygon_returns_exterior_ring(self):
        polygon = {
            "type": "Polygon",
            "coordinates": [OPEN_TRIANGLE, [[0.1, 0.1], [0.2, 0.1], [0.1, 0.2]]],
        }
        assert extract_ring(polygon) == OPEN_TRIANGLE

    def test_multipolygon_returns_first_ring_of_first_polygon(self):
        polygon = {
            "type": "MultiPolygon",
            "coordinates": [[OPEN_TRIANGLE], [[[5.0, 5.0], [6.0, 5.0], [5.0, 6.0]]]],
        }
        assert extract_ring(polygon) == OPEN_TRIANGLE

    def test_type_tag_is_case_insensitive(self):
        assert extract_ring({"type": "polygon", "coordinates": [OPEN_TRIANGLE]}) == OPEN_TRIANGLE

    def test_json_text_is_decoded(self):
        assert extract_ring(json.dumps(square(0.0, 0.0))) == square(0.0, 0.0)["coordinates"][0]

    def test_raw_ring_and_raw_ring_set(self):
        assert extract_ring(OPEN_TRIANGLE) == OPEN_TRIANGLE
        assert extract_ring([OPEN_TRIANGLE]) == OPEN_TRIANGLE

    def test_tuples_become_lists(self):
        assert extract_ring(((0.0, 0.0), (1.0, 0.0), (0.0, 1.0))) == OPEN_TRIANGLE

    @pytest.mark.parametrize(
        "polygon",
        [
            None,
            "not json",
            "",
            42,
            {},
            {"type": "Polygon"},
            {"type": "Polygon", "coordinates": []},
            {"type": "MultiPolygon", "coordinates": [[]]},
            [],
        ],
    )
    def test_malformed_input_yields_empty_ring(self, polygon):
        assert extract_ring(polygon) == []


class TestValidateRing:
    def test_open_ring_is_closed(self):
        ring = validate_ring(OPEN_TRIANGLE)
        assert len(ring) == len(OPEN_TRIANGLE) + 1
        assert ring[0] == ring[-1]

    def test_closed_ring_keeps_its_length(self):
        closed = OPEN_TRIANGLE + [OPEN_TRIANGLE[0]]
        ring = validate_ring(closed)
        assert ring == closed

    @pytest.mark.parametrize(
        "ring",
        [
            [],
            [[0.0, 0.0]],
            [[0.0, 0.0], [1.0, 1.0]],
            [[0.0, 0.0], [1.0, 1.0], [200.0, 0.0]],
            [[0.0, 0.0], [1.0, 1.0], [0.0, 95.0]],
            [[0.0, 0.0], [1.0, 1.0], ["a", "b"]],
            [[0.0, 0.0], [1.0, 1.0], [math.nan, 0.0]],
            [[0.0, 0.0], [1.0, 1.0], [math.inf, 0.0]],
            [[0.0, 0.0], [1.0, 1.0], [0.5]],
            [[0.0, 0.0], [1.0, 1.0], [10**400, 0.0]],
        ],
    )
    def test_fewer_than_three_valid_points_is_empty(self, ring):
        assert validate_ring(ring) == []

    def test_invalid_points_are_dropped(self):
        ring = validate_ring([[0.0, 0.0], [None, 1.0], [1.0, 0.0], [True, 0.0], [0.0, 1.0]])
        assert ring == [[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [0.0, 0.0]]

    def test_bounds_are_inclusive(self):
        ring = validate_ring([[-180.0, -90.0], [180.0, -90.0], [180.0, 90.0]])
        assert len(ring) == 4

    def test_non_sequence_is_empty(self):
        assert validate_ring(None) == []
        assert validate_ring("ring") == []


def test_normalize_polygon_chains_extract_and_validate():
    ring = normalize_polygon(json.dumps({"type": "Polygon", "coordinates": [OPEN_TRIANGLE]}))
    assert ring[0] == ring[-1]
    assert len(ring) == 4
    assert normalize_polygon({"type": "Polygon", "coordinates": [[[0, 0], [1, 1]]]}) == []


def test_huge_integer_coordinate_in_json_text_is_invalid():
    digits = "1" + "0" * 400
    text = '{"type": "Polygon", "coordinates": [[[' + digits + ', 0], [1, 0], [1, 1]]]}'
    assert normalize_polygon(text) == []


class TestHaversine:
    @pytest.mark.parametrize("lat, lon", [(0.0, 0.0), (39.8, -89.65), (-33.9, 151.2), (89.9, 179.9)])
    def test_same_point_is_zero(self, lat, lon):
        assert haversine_distance_m(lat, lon, lat, lon) == 0.0

    @pytest.mark.parametrize(
        "a, b",
        [((0.0, 0.0), (0.01, 0.02)), ((40.7, -74.0), (34.05, -118.25)), ((-10.0, 170.0), (10.0, -170.0))],
    )
    def test_symmetry(self, a, b):
        assert haversine_distance_m(*a, *b) == pytest.approx(haversine_distance_m(*b, *a))

    def test_one_degree_of_latitude(self):
        expected = 6_371_000.0 * math.pi / 180.0
        assert haversine_distance_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(expected)

    def test_antipodal_points(self):
        assert haversine_distance_m(0.0, 0.0, 0.0, 180.0) == pytest.approx(6_371_000.0 * math.pi)

    @pytest.mark.parametrize(
        "args",
        [
            (math.nan, 0.0, 0.0, 0.0),
            (0.0, math.inf, 0.0, 0.0),
            (None, 0.0, 0.0, 0.0),
            ("x", 0, 0, 0),
            (10**400, 0, 0, 0),
        ],
    )
    def test_bad_input_is_infinitely_far(self, args):
        assert haversine_distance_m(*args) == math.inf
