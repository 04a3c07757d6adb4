"""Pydantic models for request/response schemas.

Models:
- spc.py - Control chart data points, options and results
- entries.py - Raw metric entries rolled up per period
"""

from spc_service.models.entries import EntriesComputeInput, MetricEntry
from spc_service.models.spc import (
    SPCComputeInput,
    SPCDataPoint,
    SPCMovingRangePoint,
    SPCOptions,
    SPCPoint,
    SPCResult,
)

__all__ = [
    "EntriesComputeInput",
    "MetricEntry",
    "SPCComputeInput",
    "SPCDataPoint",
    "SPCMovingRangePoint",
    "SPCOptions",
    "SPCPoint",
    "SPCResult",
]
