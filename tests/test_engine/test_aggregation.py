"""Tests for batch target aggregation."""

import pytest

from tunegraph.core.aggregation import AggregationPolicy, aggregate, mode_of, round_half_up
from tunegraph.utils.errors import InvalidInputError

TEMPI = [100.0, 110.0, 120.0]


class TestAggregate:
    def test_average(self):
        assert aggregate(TEMPI, AggregationPolicy.AVERAGE) == 110.0

    def test_min_max(self):
        assert aggregate(TEMPI, AggregationPolicy.MIN) == 100.0
        assert aggregate(TEMPI, AggregationPolicy.MAX) == 120.0

    def test_mode_rounds_values(self):
        assert aggregate([120.2, 119.8, 100.0], AggregationPolicy.MODE) == 120.0

    def test_mode_rounds_halves_up(self):
        assert aggregate([100.5, 101.0, 99.0], AggregationPolicy.MODE) == 101.0

    def test_mode_tie_goes_to_smallest(self):
        assert aggregate([120.0, 100.0, 110.0], AggregationPolicy.MODE) == 100.0

    def test_custom(self):
        assert aggregate(TEMPI, AggregationPolicy.CUSTOM, custom_value=128) == 128.0

    def test_custom_without_values(self):
        assert aggregate([], AggregationPolicy.CUSTOM, custom_value=90.0) == 90.0

    @pytest.mark.parametrize("custom_value", [None, float("nan")])
    def test_custom_requires_finite_value(self, custom_value):
        with pytest.raises(InvalidInputError):
            aggregate(TEMPI, AggregationPolicy.CUSTOM, custom_value=custom_value)

    def test_empty_values(self):
        assert aggregate([], AggregationPolicy.AVERAGE) is None

    def test_policy_by_name(self):
        assert aggregate(TEMPI, "max") == 120.0

    def test_scale_policy_is_not_numeric(self):
        with pytest.raises(InvalidInputError):
            aggregate(TEMPI, AggregationPolicy.NEAREST_SCALE_NOTE)


def test_mode_of_strings():
    assert mode_of(["C", "A", "A", "C", "E"]) == "A"


@pytest.mark.parametrize("value, expected", [
    (100.5, 101),
    (101.5, 102),
    (100.49, 100),
    (-0.5, 0),
])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
