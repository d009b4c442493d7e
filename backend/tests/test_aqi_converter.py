"""
Tests for the PM2.5 -> AQI converter.

Tests cover:
- The breakpoint table itself: contiguous, ordered, increasing
- Boundary value analysis: both sides of every breakpoint
- Rounding of the input to one decimal (half-up)
- Above the table: not clamped, flagged as saturated
- Error scenarios: negative and non-finite input
- Monotonicity and determinism
"""

import math

import pytest

from aqi_server.exceptions import ConversionError, OutOfDomainError
from aqi_server.services.aqi_converter import (
    PM25_BREAKPOINTS,
    convert,
    convert_detailed,
    find_breakpoint,
    round_concentration,
)


class TestBreakpointTable:
    """The fixed table must be well formed."""

    def test_six_entries_starting_at_zero(self):
        assert len(PM25_BREAKPOINTS) == 6
        assert PM25_BREAKPOINTS[0].pm_low == 0.0
        assert PM25_BREAKPOINTS[0].aqi_low == 0

    def test_each_entry_is_increasing(self):
        for bp in PM25_BREAKPOINTS:
            assert bp.pm_low < bp.pm_high
            assert bp.aqi_low < bp.aqi_high

    def test_entries_are_contiguous(self):
        for lower, upper in zip(PM25_BREAKPOINTS, PM25_BREAKPOINTS[1:]):
            assert upper.pm_low == pytest.approx(lower.pm_high + 0.1)
            assert upper.aqi_low == lower.aqi_high + 1

    def test_breakpoints_are_immutable(self):
        with pytest.raises(Exception):
            PM25_BREAKPOINTS[0].pm_high = 12.0


class TestConvert:
    """Test suite for convert()."""

    # ==================== Boundary Values ====================

    @pytest.mark.parametrize(
        "pm25, expected",
        [
            (0.0, 0),
            (9.0, 50),
            (9.1, 51),
            (35.4, 100),
            (35.5, 101),
            (55.4, 150),
            (55.5, 151),
            (125.4, 200),
            (125.5, 201),
            (225.4, 300),
            (225.5, 301),
            (500.0, 500),
        ],
    )
    def test_breakpoint_boundaries(self, pm25, expected):
        assert convert(pm25) == expected

    def test_boundary_belongs_to_lower_interval(self):
        assert find_breakpoint(9.0).aqi_high == 50
        assert find_breakpoint(35.4).aqi_high == 100

    # ==================== Equivalence Classes ====================

    def test_value_inside_second_interval(self):
        # 49 / 26.3 * 2.9 + 51 = 56.40...
        assert convert(12.0) == 56

    def test_clean_air(self):
        assert convert(4.5) == 25

    # ==================== Rounding ====================

    def test_input_rounds_half_up(self):
        assert round_concentration(12.35) == 12.4
        assert round_concentration(12.34) == 12.3
        assert round_concentration(9.05) == 9.1

    def test_input_is_rounded_before_lookup(self):
        # 9.04 -> 9.0 (first row), 9.05 -> 9.1 (second row)
        assert convert(9.04) == 50
        assert convert(9.05) == 51

    def test_output_rounds_to_nearest(self):
        assert convert(0.9) == 5
        assert convert(0.1) == 1  # 0.555...
        assert convert(0.2) == 1  # 1.111...

    def test_tiny_negative_rounds_to_zero(self):
        assert convert(-0.04) == 0

    # ==================== Above The Table ====================

    def test_above_table_is_not_clamped(self):
        # 199 / 274.5 * 374.5 + 301 = 572.495...
        assert convert(600.0) == 572
        assert convert(600.0) > 500

    def test_above_table_is_flagged_saturated(self):
        result = convert_detailed(600.0)
        assert result.saturated is True
        assert result.aqi == 572

    def test_top_of_table_is_not_saturated(self):
        result = convert_detailed(500.0)
        assert result.saturated is False
        assert result.aqi == 500

    def test_detailed_reports_rounded_input(self):
        assert convert_detailed(12.04).pm25 == 12.0

    # ==================== Error Scenarios ====================

    def test_negative_is_out_of_domain(self):
        with pytest.raises(OutOfDomainError) as exc_info:
            convert(-1.0)
        assert exc_info.value.pm25 == -1.0

    def test_out_of_domain_is_a_conversion_error(self):
        with pytest.raises(ConversionError):
            convert(-0.05)

    @pytest.mark.parametrize("pm25", [math.nan, math.inf, -math.inf])
    def test_non_finite_is_out_of_domain(self, pm25):
        with pytest.raises(OutOfDomainError):
            convert(pm25)

    # ==================== Properties ====================

    def test_monotonic_and_non_negative(self):
        previous = convert(0.0)
        for tenths in range(1, 7001):
            current = convert(tenths / 10)
            assert current >= 0
            assert current >= previous, f"AQI dropped at {tenths / 10}"
            previous = current

    def test_same_input_same_output(self):
        assert convert(87.3) == convert(87.3)
        assert convert_detailed(87.3) == convert_detailed(87.3)
