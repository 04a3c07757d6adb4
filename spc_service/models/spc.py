"""Pydantic models for SPC (Statistical Process Control) computation.

Models for control chart input data, options and results. Attributes are
snake_case in Python and camelCase on the wire, matching the dashboard's
JSON contract (``centerLine``, ``specialCauseRules``, ...).
"""

import math
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DataType = Literal["proportion", "rate", "continuous"]
ChartType = Literal["p-chart", "u-chart", "i-mr"]
SigmaLevel = Literal[1, 2, 3]


def validate_proportion_counts(data_type: str, points: list) -> None:
    """Reject proportion points whose numerator exceeds their denominator.

    A proportion above 1 (or 100%) would put the center line above the
    clamped upper control limit.
    """
    if data_type != "proportion":
        return
    for i, point in enumerate(points):
        if (
            point.numerator is not None
            and point.denominator is not None
            and point.numerator > point.denominator
        ):
            raise ValueError(
                f"Point {i + 1} ('{point.period}'): numerator {point.numerator} "
                f"exceeds denominator {point.denominator} for proportion data"
            )


class SPCModel(BaseModel):
    """Base model using camelCase aliases and accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SPCDataPoint(SPCModel):
    """One reporting period of observed data.

    Attributes:
        period: Ordered period label (ISO date or period string)
        value: Observed value for the period
        numerator: Optional subgroup event count
        denominator: Optional subgroup size (exposure)
    """

    period: str = Field(
        ...,
        description="Period label; lexical order must match chronological order",
        json_schema_extra={"example": "2025-01"},
    )
    value: float = Field(
        ...,
        description="Observed value for the period",
        json_schema_extra={"example": 92.0},
    )
    numerator: Optional[float] = Field(
        default=None,
        ge=0,
        description="Event count for the subgroup",
        json_schema_extra={"example": 460},
    )
    denominator: Optional[float] = Field(
        default=None,
        ge=0,
        description="Subgroup size (opportunities or exposures)",
        json_schema_extra={"example": 500},
    )

    @field_validator("value")
    @classmethod
    def validate_value_is_finite(cls, value: float) -> float:
        """Reject NaN and infinite values."""
        if not math.isfinite(value):
            raise ValueError("value must be a finite number")
        return value


class SPCOptions(SPCModel):
    """Control chart configuration.

    Attributes:
        sigma_level: z-multiplier for the control limit width (1, 2 or 3)
        baseline_start: Inclusive lower period bound for the baseline
        baseline_end: Inclusive upper period bound for the baseline
    """

    sigma_level: SigmaLevel = Field(
        default=3,
        description="Control limit width in standard errors (1, 2 or 3)",
        json_schema_extra={"example": 3},
    )
    baseline_start: Optional[str] = Field(
        default=None,
        description="First period included in the center line baseline",
        json_schema_extra={"example": "2025-01"},
    )
    baseline_end: Optional[str] = Field(
        default=None,
        description="Last period included in the center line baseline",
        json_schema_extra={"example": "2025-06"},
    )


class SPCPoint(SPCModel):
    """A charted point with its control limits and special-cause flags."""

    period: str
    value: float
    ucl: float = Field(..., description="Upper control limit")
    lcl: float = Field(..., description="Lower control limit")
    center_line: float = Field(..., description="Center line")
    special_cause: bool = Field(default=False, description="True if any rule fired")
    special_cause_rules: list[str] = Field(
        default_factory=list,
        description="Distinct names of the rules that fired, in detection order",
        json_schema_extra={"example": ["Beyond control limits"]},
    )


class SPCMovingRangePoint(SPCModel):
    """A point on the moving-range companion chart of an I-MR chart."""

    period: str
    value: float = Field(..., ge=0, description="Absolute difference to the previous value")
    ucl: float
    lcl: float = 0.0
    center_line: float = Field(..., description="Mean moving range (MR-bar)")


class SPCResult(SPCModel):
    """Result of an SPC calculation.

    Attributes:
        chart_type: Chart family derived from the data type
        center_line: Overall center line
        points: Primary point series (variable limits for P/U charts)
        moving_range: Moving-range series (I-MR only)
        fixed_points: Point series using the average subgroup size (P/U only)
        supports_variable_limits: True when subgroup sizes vary by more than 25%
    """

    chart_type: ChartType
    center_line: float
    points: list[SPCPoint] = Field(default_factory=list)
    moving_range: Optional[list[SPCMovingRangePoint]] = None
    fixed_points: Optional[list[SPCPoint]] = None
    supports_variable_limits: bool = False


class SPCComputeInput(SPCModel):
    """Request body for ``POST /api/control-charts/compute``."""

    data_type: DataType = Field(
        ...,
        description="Metric data type: proportion, rate or continuous",
        json_schema_extra={"example": "proportion"},
    )
    data: list[SPCDataPoint] = Field(
        ...,
        description="Period data points in analysis order",
    )
    options: SPCOptions = Field(default_factory=SPCOptions)

    @model_validator(mode="after")
    def validate_counts(self) -> "SPCComputeInput":
        """Validate numerator ≤ denominator for proportion data."""
        validate_proportion_counts(self.data_type, self.data)
        return self
