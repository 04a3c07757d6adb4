"""Roll-up of raw metric entries into per-period SPC data points.

Proportion and rate metrics are aggregated by summing numerators and
denominators per period, which avoids averaging averages. Continuous metrics
and entries without a numerator/denominator fall back to combining the plain
values of the period.
"""

import logging
import math
from typing import Optional

from spc_service.models.entries import AggregationType, MetricEntry
from spc_service.models.spc import DataType, SPCDataPoint, SPCOptions, SPCResult
from spc_service.services.spc_calculator import SPCCalculator, spc_chart_type_for_data_type

logger = logging.getLogger(__name__)

# A control chart needs at least this many periods to be meaningful
MIN_PERIODS = 2


def _round6(value: float) -> float:
    """Round half up to 6 decimal places so small raw rates keep their precision."""
    return math.floor(value * 1_000_000 + 0.5) / 1_000_000


def aggregate_values(values: list[float], aggregation_type: AggregationType) -> Optional[float]:
    """Combine the values of one period.

    Returns None for an empty list: missing data is not zero.
    """
    if not values:
        return None

    if aggregation_type == "sum":
        result = sum(values)
    elif aggregation_type == "min":
        result = min(values)
    elif aggregation_type == "max":
        result = max(values)
    elif aggregation_type == "latest":
        result = values[-1]
    else:
        result = sum(values) / len(values)

    return _round6(result)


def build_spc_data_points(
    data_type: DataType,
    entries: list[MetricEntry],
    aggregation_type: AggregationType = "average",
) -> list[SPCDataPoint]:
    """Group entries by period and build one SPC data point per period.

    Args:
        data_type: Metric data type, decides weighted vs plain aggregation
        entries: Raw entries in reporting order
        aggregation_type: Combination used for plain values

    Returns:
        Data points sorted by period label
    """
    spc_chart_type_for_data_type(data_type)  # rejects unknown data types
    weighted = data_type in ("proportion", "rate")

    by_period: dict[str, dict] = {}
    for entry in entries:
        bucket = by_period.setdefault(
            entry.period, {"numerator": 0.0, "denominator": 0.0, "values": []}
        )
        if weighted and entry.numerator is not None and entry.denominator is not None:
            bucket["numerator"] += entry.numerator
            bucket["denominator"] += entry.denominator
        # Kept for the fallback when the summed denominator is 0
        bucket["values"].append(entry.value)

    points = []
    for period in sorted(by_period):
        bucket = by_period[period]
        if weighted and bucket["denominator"] > 0:
            value = bucket["numerator"] / bucket["denominator"]
            if data_type == "proportion":
                value *= 100
            value = _round6(value)
            points.append(
                SPCDataPoint(
                    period=period,
                    value=value,
                    numerator=bucket["numerator"],
                    denominator=bucket["denominator"],
                )
            )
        else:
            value = aggregate_values(bucket["values"], aggregation_type)
            points.append(SPCDataPoint(period=period, value=value if value is not None else 0.0))

    return points


def compute_spc_from_entries(
    data_type: DataType,
    entries: list[MetricEntry],
    aggregation_type: AggregationType = "average",
    options: Optional[SPCOptions] = None,
    calculator: Optional[SPCCalculator] = None,
) -> Optional[SPCResult]:
    """Aggregate entries per period and run the SPC calculation.

    Returns None when fewer than MIN_PERIODS periods have data.
    """
    points = build_spc_data_points(data_type, entries, aggregation_type)
    if len(points) < MIN_PERIODS:
        logger.info(
            "Skipping SPC for %s metric: %d period(s), need at least %d",
            data_type,
            len(points),
            MIN_PERIODS,
        )
        return None

    calculator = calculator or SPCCalculator()
    return calculator.calculate(data_type, points, options)
