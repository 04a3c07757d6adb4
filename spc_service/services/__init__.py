"""Calculation services for statistical computations.

Services:
- spc_calculator.py - P-chart, U-chart and I-MR calculations
- entry_aggregator.py - Per-period roll-up of raw metric entries
"""

from spc_service.services.spc_calculator import (
    SPCCalculator,
    calculate_spc,
    spc_chart_type_for_data_type,
)

__all__ = ["SPCCalculator", "calculate_spc", "spc_chart_type_for_data_type"]
