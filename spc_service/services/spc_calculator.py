"""SPC (Statistical Process Control) Calculator Service.

Computes center lines, control limits and special-cause signals for:
- P-chart (proportions, e.g. protocol compliance rates)
- U-chart (rates, e.g. events per 1000 transports)
- I-MR (individuals and moving range, continuous data)

All calculations are pure: no I/O and no state shared between calls.
"""

import logging
import math
from typing import Optional

import numpy as np

from spc_service.models.spc import (
    ChartType,
    DataType,
    SPCDataPoint,
    SPCMovingRangePoint,
    SPCOptions,
    SPCPoint,
    SPCResult,
    validate_proportion_counts,
)

logger = logging.getLogger(__name__)

# d2 and D4 for a moving range of 2 consecutive individual observations.
# Not valid for other subgroup sizes.
D2 = 1.128
D4 = 3.267

# Consecutive points on one side of the center line that signal a shift
RUN_LENGTH = 8

# Subgroup sizes further than this fraction from their mean warrant variable limits
VARIABLE_LIMITS_THRESHOLD = 0.25

BEYOND_LIMITS_RULE = "Beyond control limits"

_CHART_TYPES: dict[str, ChartType] = {
    "proportion": "p-chart",
    "rate": "u-chart",
    "continuous": "i-mr",
}


def spc_chart_type_for_data_type(data_type: DataType) -> ChartType:
    """Return the chart family used for a metric data type.

    Raises:
        ValueError: If the data type is unknown
    """
    try:
        return _CHART_TYPES[data_type]
    except KeyError:
        raise ValueError(
            f"Unknown data type '{data_type}'. Expected one of: {', '.join(_CHART_TYPES)}"
        ) from None


def _round4(value: float) -> float:
    """Round half up to 4 decimal places."""
    return math.floor(value * 10000 + 0.5) / 10000


def _run_rule(side: str) -> str:
    return f"Run of {RUN_LENGTH}+ {side} center"


class SPCCalculator:
    """Calculator for P-chart, U-chart and I-MR control charts.

    The chart type follows from the data type; the caller does not choose it.
    """

    def calculate(
        self,
        data_type: DataType,
        data: list[SPCDataPoint],
        options: Optional[SPCOptions] = None,
    ) -> SPCResult:
        """Perform a complete SPC calculation.

        Args:
            data_type: proportion, rate or continuous
            data: Period data points in analysis order
            options: Sigma level and optional baseline bounds (default 3 sigma)

        Returns:
            SPCResult with center line, limits and special-cause flags

        Raises:
            ValueError: For an unknown data type, a sigma level outside 1-3, or a
                proportion numerator above its denominator
        """
        if options is None:
            options = SPCOptions()
        if options.sigma_level not in (1, 2, 3):
            raise ValueError(f"sigma_level must be 1, 2 or 3, got {options.sigma_level}")

        chart_type = spc_chart_type_for_data_type(data_type)
        validate_proportion_counts(data_type, data)

        if not data:
            return SPCResult(
                chart_type=chart_type,
                center_line=0,
                points=[],
                supports_variable_limits=False,
            )

        if data_type == "proportion":
            result = self._calculate_p_chart(data, options)
        elif data_type == "rate":
            result = self._calculate_u_chart(data, options)
        else:
            result = self._calculate_imr(data, options)

        logger.debug(
            "Computed %s over %d points: center=%s, special causes=%d",
            result.chart_type,
            len(result.points),
            result.center_line,
            sum(1 for p in result.points if p.special_cause),
        )
        return result

    # -------------------------------------------------------------------------
    # P-chart
    # -------------------------------------------------------------------------

    def _calculate_p_chart(self, data: list[SPCDataPoint], options: SPCOptions) -> SPCResult:
        """P-chart for proportions, in fraction (0-1) or percentage (0-100) scale."""
        z = options.sigma_level
        baseline = self._baseline(data, options)

        is_percentage_scale = any(d.value > 1 for d in data)
        scale = 100.0 if is_percentage_scale else 1.0

        total_num = sum(
            d.numerator if d.numerator is not None else d.value * self._size(d) / scale
            for d in baseline
        )
        total_den = sum(self._size(d) for d in baseline)

        if total_den > 0:
            p_bar = total_num / total_den * scale
        else:
            p_bar = self._mean([d.value for d in baseline])

        p_frac = p_bar / scale
        # Floored at 0 for plain values outside the 0-1 (0-100) range
        variance = max(p_frac * (1 - p_frac), 0.0)

        sizes = self._sizes(data)
        se = np.sqrt(variance / sizes) * scale
        ucl = np.minimum(p_bar + z * se, scale)
        lcl = np.maximum(p_bar - z * se, 0.0)
        points = self._detect_special_causes(self._build_points(data, ucl, lcl, p_bar))

        n_bar = self._positive(self._mean([self._size(d) for d in data]))
        fixed_se = math.sqrt(variance / n_bar) * scale
        fixed_ucl = min(p_bar + z * fixed_se, scale)
        fixed_lcl = max(p_bar - z * fixed_se, 0.0)
        fixed_points = self._detect_special_causes(
            self._build_points(data, [fixed_ucl] * len(data), [fixed_lcl] * len(data), p_bar)
        )

        return SPCResult(
            chart_type="p-chart",
            center_line=_round4(p_bar),
            points=points,
            fixed_points=fixed_points,
            supports_variable_limits=self._denominators_vary_significantly(data),
        )

    # -------------------------------------------------------------------------
    # U-chart
    # -------------------------------------------------------------------------

    def _calculate_u_chart(self, data: list[SPCDataPoint], options: SPCOptions) -> SPCResult:
        """U-chart for count-per-exposure rates. No upper natural bound."""
        z = options.sigma_level
        baseline = self._baseline(data, options)

        total_events = sum(d.numerator if d.numerator is not None else d.value for d in baseline)
        total_exposure = sum(self._size(d) for d in baseline)

        if total_exposure > 0:
            u_bar = total_events / total_exposure
        else:
            u_bar = self._mean([d.value for d in baseline])

        variance = max(u_bar, 0.0)

        sizes = self._sizes(data)
        se = np.sqrt(variance / sizes)
        ucl = u_bar + z * se
        lcl = np.maximum(u_bar - z * se, 0.0)
        points = self._detect_special_causes(self._build_points(data, ucl, lcl, u_bar))

        n_bar = self._positive(self._mean([self._size(d) for d in data]))
        fixed_se = math.sqrt(variance / n_bar)
        fixed_ucl = u_bar + z * fixed_se
        fixed_lcl = max(u_bar - z * fixed_se, 0.0)
        fixed_points = self._detect_special_causes(
            self._build_points(data, [fixed_ucl] * len(data), [fixed_lcl] * len(data), u_bar)
        )

        return SPCResult(
            chart_type="u-chart",
            center_line=_round4(u_bar),
            points=points,
            fixed_points=fixed_points,
            supports_variable_limits=self._denominators_vary_significantly(data),
        )

    # -------------------------------------------------------------------------
    # I-MR chart
    # -------------------------------------------------------------------------

    def _calculate_imr(self, data: list[SPCDataPoint], options: SPCOptions) -> SPCResult:
        """Individuals chart with constant limits plus a moving-range chart.

        sigma is estimated as MR-bar / d2 from the baseline moving ranges.
        Limits are not clamped: continuous data may be negative.
        """
        if not data:
            return SPCResult(
                chart_type="i-mr",
                center_line=0,
                points=[],
                moving_range=[],
                supports_variable_limits=False,
            )

        z = options.sigma_level
        baseline_values = [d.value for d in self._baseline(data, options)]

        x_bar = self._mean(baseline_values)
        mr_bar = self._mean(self._moving_ranges(baseline_values))
        sigma = mr_bar / D2

        i_ucl = x_bar + z * sigma
        i_lcl = x_bar - z * sigma
        points = self._detect_special_causes(
            self._build_points(data, [i_ucl] * len(data), [i_lcl] * len(data), x_bar)
        )

        mr_ucl = _round4(D4 * mr_bar)
        mr_center = _round4(mr_bar)
        moving_range = [
            SPCMovingRangePoint(
                period=d.period,
                value=_round4(mr),
                ucl=mr_ucl,
                lcl=0,
                center_line=mr_center,
            )
            for d, mr in zip(data[1:], self._moving_ranges([d.value for d in data]))
        ]

        return SPCResult(
            chart_type="i-mr",
            center_line=_round4(x_bar),
            points=points,
            moving_range=moving_range,
            supports_variable_limits=False,
        )

    # -------------------------------------------------------------------------
    # Special cause detection
    # -------------------------------------------------------------------------

    def _detect_special_causes(self, points: list[SPCPoint]) -> list[SPCPoint]:
        """Return a copy of the series annotated with special-cause rules.

        Rule 1: value strictly above UCL or strictly below LCL.
        Rule 2: every window of RUN_LENGTH points strictly on one side of the
        center line flags all points in the window, once per point.
        """
        rules: list[list[str]] = [[] for _ in points]

        for i, p in enumerate(points):
            if p.value > p.ucl or p.value < p.lcl:
                rules[i].append(BEYOND_LIMITS_RULE)

        for start in range(len(points) - RUN_LENGTH + 1):
            window = points[start:start + RUN_LENGTH]
            if all(p.value > p.center_line for p in window):
                rule = _run_rule("above")
            elif all(p.value < p.center_line for p in window):
                rule = _run_rule("below")
            else:
                continue
            for i in range(start, start + RUN_LENGTH):
                if rule not in rules[i]:
                    rules[i].append(rule)

        return [
            p.model_copy(update={"special_cause": bool(r), "special_cause_rules": r})
            for p, r in zip(points, rules)
        ]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _build_points(self, data, ucls, lcls, center: float) -> list[SPCPoint]:
        center_line = _round4(center)
        return [
            SPCPoint(
                period=d.period,
                value=d.value,
                ucl=_round4(float(ucl)),
                lcl=_round4(float(lcl)),
                center_line=center_line,
            )
            for d, ucl, lcl in zip(data, ucls, lcls)
        ]

    def _baseline(self, data: list[SPCDataPoint], options: SPCOptions) -> list[SPCDataPoint]:
        """Points whose period label lies within the inclusive baseline bounds."""
        start, end = options.baseline_start, options.baseline_end
        if not start and not end:
            return data
        return [
            d for d in data
            if not (start and d.period < start) and not (end and d.period > end)
        ]

    def _denominators_vary_significantly(self, data: list[SPCDataPoint]) -> bool:
        """True when any subgroup size is more than 25% away from the mean size."""
        sizes = [self._size(d) for d in data]
        if len(sizes) < 2:
            return False
        avg = sum(sizes) / len(sizes)
        if avg == 0:
            return False
        return any(abs(n - avg) / avg > VARIABLE_LIMITS_THRESHOLD for n in sizes)

    @staticmethod
    def _size(point: SPCDataPoint) -> float:
        return point.denominator if point.denominator is not None else 1.0

    def _sizes(self, data: list[SPCDataPoint]) -> np.ndarray:
        """Subgroup sizes usable as standard-error divisors (0 is treated as 1)."""
        sizes = np.array([self._size(d) for d in data], dtype=float)
        return np.where(sizes > 0, sizes, 1.0)

    @staticmethod
    def _positive(size: float) -> float:
        return size if size > 0 else 1.0

    @staticmethod
    def _mean(values: list[float]) -> float:
        return sum(values) / len(values) if values else 0.0

    @staticmethod
    def _moving_ranges(values: list[float]) -> list[float]:
        if len(values) < 2:
            return []
        return np.abs(np.diff(np.array(values, dtype=float))).tolist()


_calculator = SPCCalculator()


def calculate_spc(
    data_type: DataType,
    data: list[SPCDataPoint],
    options: Optional[SPCOptions] = None,
) -> SPCResult:
    """Calculate SPC results for a data set using the shared calculator."""
    return _calculator.calculate(data_type, data, options)
