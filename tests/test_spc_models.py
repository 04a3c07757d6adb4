"""Unit tests for SPC Pydantic models.

Tests for SPCDataPoint, SPCOptions, SPCResult and the request envelopes.
"""

import math

import pytest
from pydantic import ValidationError

from spc_service.models.entries import EntriesComputeInput, MetricEntry
from spc_service.models.spc import (
    SPCComputeInput,
    SPCDataPoint,
    SPCMovingRangePoint,
    SPCOptions,
    SPCPoint,
    SPCResult,
)


class TestSPCDataPoint:
    """Tests for SPCDataPoint validation."""

    def test_value_only(self):
        point = SPCDataPoint(period="2025-01", value=8.5)
        assert point.numerator is None
        assert point.denominator is None

    def test_with_numerator_and_denominator(self):
        point = SPCDataPoint(period="2025-01", value=92, numerator=460, denominator=500)
        assert point.numerator == 460
        assert point.denominator == 500

    def test_negative_value_allowed(self):
        """Continuous measurements may be negative."""
        point = SPCDataPoint(period="2025-01", value=-3.2)
        assert point.value == -3.2

    def test_negative_denominator_rejected(self):
        with pytest.raises(ValidationError):
            SPCDataPoint(period="2025-01", value=1, denominator=-5)

    def test_negative_numerator_rejected(self):
        with pytest.raises(ValidationError):
            SPCDataPoint(period="2025-01", value=1, numerator=-1, denominator=5)

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_value_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            SPCDataPoint(period="2025-01", value=value)
        assert "finite" in str(exc_info.value)

    def test_missing_period_rejected(self):
        with pytest.raises(ValidationError):
            SPCDataPoint(value=1)


class TestSPCOptions:
    """Tests for SPCOptions validation."""

    def test_defaults(self):
        options = SPCOptions()
        assert options.sigma_level == 3
        assert options.baseline_start is None
        assert options.baseline_end is None

    @pytest.mark.parametrize("level", [1, 2, 3])
    def test_supported_sigma_levels(self, level):
        assert SPCOptions(sigma_level=level).sigma_level == level

    @pytest.mark.parametrize("level", [0, 4, 6])
    def test_unsupported_sigma_levels_rejected(self, level):
        with pytest.raises(ValidationError):
            SPCOptions(sigma_level=level)

    def test_camel_case_aliases(self):
        options = SPCOptions.model_validate(
            {"sigmaLevel": 2, "baselineStart": "2025-01", "baselineEnd": "2025-06"}
        )
        assert options.sigma_level == 2
        assert options.baseline_start == "2025-01"
        assert options.baseline_end == "2025-06"

    def test_snake_case_names_accepted(self):
        options = SPCOptions.model_validate({"sigma_level": 1, "baseline_end": "2025-03"})
        assert options.sigma_level == 1
        assert options.baseline_end == "2025-03"


class TestSPCResult:
    """Tests for result serialization."""

    def test_dump_uses_camel_case(self):
        result = SPCResult(
            chart_type="i-mr",
            center_line=10.0,
            points=[
                SPCPoint(period="P1", value=10.0, ucl=12.0, lcl=8.0, center_line=10.0)
            ],
            moving_range=[],
            supports_variable_limits=False,
        )
        dumped = result.model_dump(by_alias=True, exclude_none=True)

        assert dumped["chartType"] == "i-mr"
        assert dumped["centerLine"] == 10.0
        assert dumped["movingRange"] == []
        assert dumped["supportsVariableLimits"] is False
        assert "fixedPoints" not in dumped
        assert dumped["points"][0]["specialCause"] is False
        assert dumped["points"][0]["specialCauseRules"] == []

    def test_invalid_chart_type_rejected(self):
        with pytest.raises(ValidationError):
            SPCResult(chart_type="x-bar", center_line=0)

    def test_moving_range_value_non_negative(self):
        with pytest.raises(ValidationError):
            SPCMovingRangePoint(period="P2", value=-1, ucl=3, center_line=1)


class TestRequestEnvelopes:
    """Tests for request body models."""

    def test_compute_input_defaults_options(self):
        body = SPCComputeInput.model_validate(
            {"dataType": "rate", "data": [{"period": "2025-01", "value": 0.1}]}
        )
        assert body.data_type == "rate"
        assert body.options.sigma_level == 3
        assert len(body.data) == 1

    def test_compute_input_rejects_unknown_data_type(self):
        with pytest.raises(ValidationError):
            SPCComputeInput.model_validate({"dataType": "count", "data": []})

    def test_entries_input_defaults_to_average(self):
        body = EntriesComputeInput.model_validate(
            {"dataType": "continuous", "entries": [{"period": "2025-01", "value": 4}]}
        )
        assert body.aggregation_type == "average"
        assert isinstance(body.entries[0], MetricEntry)

    def test_entries_input_rejects_unknown_aggregation(self):
        with pytest.raises(ValidationError):
            EntriesComputeInput.model_validate(
                {"dataType": "continuous", "entries": [], "aggregationType": "median"}
            )

    def test_compute_input_rejects_proportion_numerator_above_denominator(self):
        with pytest.raises(ValidationError, match="exceeds denominator"):
            SPCComputeInput.model_validate(
                {
                    "dataType": "proportion",
                    "data": [{"period": "2025-01", "value": 120, "numerator": 12, "denominator": 10}],
                }
            )

    def test_compute_input_accepts_rate_numerator_above_denominator(self):
        body = SPCComputeInput.model_validate(
            {
                "dataType": "rate",
                "data": [{"period": "2025-01", "value": 1.2, "numerator": 12, "denominator": 10}],
            }
        )
        assert body.data[0].numerator == 12

    def test_entries_input_rejects_proportion_numerator_above_denominator(self):
        with pytest.raises(ValidationError, match="exceeds denominator"):
            EntriesComputeInput.model_validate(
                {
                    "dataType": "proportion",
                    "entries": [
                        {"period": "2025-01", "value": 90, "numerator": 9, "denominator": 10},
                        {"period": "2025-01", "value": 150, "numerator": 15, "denominator": 10},
                    ],
                }
            )
