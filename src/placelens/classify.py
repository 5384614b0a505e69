"""Percentile-bucket classification for choropleth coloring."""

from __future__ import annotations

import math
from typing import Any, Iterable, Sequence

DEFAULT_NUM_BUCKETS = 5


def _as_weight(value: Any) -> float:
    if isinstance(value, bool):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return math.nan


def percentile_value(sorted_values: Sequence[float], percentile: float) -> float:
    """Nearest-rank percentile over an ascending sequence."""
    n = len(sorted_values)
    if n == 0:
        raise ValueError("percentile of empty sequence")
    index = math.ceil((percentile / 100.0) * n) - 1
    index = max(0, min(index, n - 1))
    return sorted_values[index]


def percentile_thresholds(
    sorted_values: Sequence[float],
    num_buckets: int = DEFAULT_NUM_BUCKETS,
) -> tuple[float, ...]:
    """Upper bounds of buckets 0..num_buckets-2 (p20/p40/p60/p80 for 5)."""
    if num_buckets < 1:
        raise ValueError("num_buckets must be >= 1")
    if not sorted_values:
        return ()
    return tuple(
        percentile_value(sorted_values, 100.0 * k / num_buckets)
        for k in range(1, num_buckets)
    )


def _bucket_for(value: float, thresholds: Sequence[float]) -> int:
    for idx, threshold in enumerate(thresholds):
        if value <= threshold:
            return idx
    return len(thresholds)


def classify(weights: Iterable[Any], num_buckets: int = DEFAULT_NUM_BUCKETS) -> list[int]:
    """Assign each finite weight a percentile bucket, in input order.

    NaN (and non-numeric) weights are excluded from both the ranking and
    the output, so the result can be shorter than the input.
    """
    return [bucket for _, _, bucket in classify_keyed(enumerate(weights), num_buckets)]


def classify_keyed(
    items: Iterable[tuple[Any, Any]],
    num_buckets: int = DEFAULT_NUM_BUCKETS,
) -> list[tuple[Any, float, int]]:
    """Classify `(key, weight)` pairs, returning `(key, weight, bucket)`."""
    valid: list[tuple[Any, float]] = []
    for key, raw in items:
        weight = _as_weight(raw)
        if math.isnan(weight):
            continue
        valid.append((key, weight))
    if not valid:
        return []

    thresholds = percentile_thresholds(sorted(weight for _, weight in valid), num_buckets)
    return [(key, weight, _bucket_for(weight, thresholds)) for key, weight in valid]


def bucket_ranges(
    weights: Iterable[Any],
    num_buckets: int = DEFAULT_NUM_BUCKETS,
) -> list[tuple[float, float] | None]:
    """Min/max weight that landed in each bucket (None for empty buckets)."""
    ranges: list[tuple[float, float] | None] = [None] * num_buckets
    for _, weight, bucket in classify_keyed(enumerate(weights), num_buckets):
        current = ranges[bucket]
        if current is None:
            ranges[bucket] = (weight, weight)
        else:
            ranges[bucket] = (min(current[0], weight), max(current[1], weight))
    return ranges
