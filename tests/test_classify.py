"""Tests for nearest-rank percentile bucketing."""

from __future__ import annotations

import math

import pytest

from placelens.classify import (
    bucket_ranges,
    classify,
    classify_keyed,
    percentile_thresholds,
    percentile_value,
)


def test_percentile_value_nearest_rank():
    values = [10, 20, 30, 40, 50]
    assert percentile_value(values, 20) == 10
    assert percentile_value(values, 40) == 20
    assert percentile_value(values, 100) == 50
    assert percentile_value(values, 0) == 10


def test_percentile_value_empty_raises():
    with pytest.raises(ValueError):
        percentile_value([], 50)


def test_thresholds_for_five_buckets():
    assert percentile_thresholds([10, 20, 30, 40, 50]) == (10, 20, 30, 40)
    assert percentile_thresholds([]) == ()


def test_five_weights_fill_five_buckets():
    buckets = classify([10, 20, 30, 40, 50], 5)
    assert buckets == [0, 1, 2, 3, 4]


def test_buckets_are_monotonic_in_weight():
    weights = [3.5, 40.0, 12.0, 0.5, 22.0, 22.0, 7.0, 90.0, 15.0]
    buckets = classify(weights, 5)
    pairs = sorted(zip(weights, buckets))
    assert all(a[1] <= b[1] for a, b in zip(pairs, pairs[1:]))
    assert buckets[weights.index(max(weights))] == 4


def test_output_follows_input_order():
    assert classify([50, 10, 30, 20, 40]) == [4, 0, 2, 1, 3]


def test_nan_weights_are_excluded():
    assert classify([10, math.nan, 20, "n/a", None, 30]) == [0, 1, 3]
    assert classify([math.nan]) == []
    assert classify([]) == []


def test_equal_weights_share_the_lowest_bucket():
    assert classify([5, 5, 5, 5]) == [0, 0, 0, 0]


def test_single_weight_lands_in_first_bucket():
    assert classify([42.0]) == [0]


def test_classify_keyed_keeps_keys():
    result = classify_keyed([("a", "10"), ("b", 50), ("c", math.nan)])
    assert [(key, bucket) for key, _, bucket in result] == [("a", 0), ("b", 2)]
    assert result[0][1] == 10.0


def test_bucket_ranges():
    ranges = bucket_ranges([10, 20, 30, 40, 50, 45])
    assert ranges == [(10.0, 20.0), (30.0, 30.0), (40.0, 40.0), (45.0, 45.0), (50.0, 50.0)]


def test_bucket_ranges_marks_empty_buckets():
    assert bucket_ranges([5, 5]) == [(5.0, 5.0), None, None, None, None]


def test_weight_too_large_for_float_is_excluded():
    assert classify([10**400, 1]) == [0]
