"""Pydantic models for raw metric entries rolled up into SPC data points."""

import math
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator

from spc_service.models.spc import DataType, SPCModel, SPCOptions, validate_proportion_counts

AggregationType = Literal["sum", "average", "min", "max", "latest"]


class MetricEntry(SPCModel):
    """A single reported figure, e.g. one department's value for a month.

    Attributes:
        period: Period label the entry belongs to
        value: Reported value
        numerator: Optional event count behind the value
        denominator: Optional subgroup size behind the value
    """

    period: str = Field(..., json_schema_extra={"example": "2025-01"})
    value: float = Field(..., json_schema_extra={"example": 91.5})
    numerator: Optional[float] = Field(default=None, ge=0)
    denominator: Optional[float] = Field(default=None, ge=0)

    @field_validator("value")
    @classmethod
    def validate_value_is_finite(cls, value: float) -> float:
        """Reject NaN and infinite values."""
        if not math.isfinite(value):
            raise ValueError("value must be a finite number")
        return value


class EntriesComputeInput(SPCModel):
    """Request body for ``POST /api/control-charts/compute-from-entries``."""

    data_type: DataType = Field(..., json_schema_extra={"example": "rate"})
    entries: list[MetricEntry] = Field(
        ...,
        description="Raw entries; several entries may share a period",
    )
    aggregation_type: AggregationType = Field(
        default="average",
        description="How plain values sharing a period are combined",
    )
    options: SPCOptions = Field(default_factory=SPCOptions)

    @model_validator(mode="after")
    def validate_counts(self) -> "EntriesComputeInput":
        """Validate numerator ≤ denominator for proportion entries."""
        validate_proportion_counts(self.data_type, self.entries)
        return self
