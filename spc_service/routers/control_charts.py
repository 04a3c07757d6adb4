"""Control Charts (SPC) computation router.

Provides SPC endpoints:
- POST /api/control-charts/compute - P-chart, U-chart or I-MR from period data
- GET /api/control-charts/chart-type/{data_type} - Chart family for a data type
- POST /api/control-charts/compute-from-entries - Roll up raw entries, then compute
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from spc_service.models.entries import EntriesComputeInput
from spc_service.models.spc import DataType, SPCComputeInput, SPCResult
from spc_service.services.entry_aggregator import compute_spc_from_entries
from spc_service.services.spc_calculator import SPCCalculator, spc_chart_type_for_data_type

logger = logging.getLogger(__name__)

router = APIRouter()

# Singleton calculator instance
_calculator = SPCCalculator()


def _success(data) -> JSONResponse:
    return JSONResponse(status_code=200, content={"status": "success", "data": data})


def _dump(result: SPCResult) -> dict:
    return result.model_dump(by_alias=True, exclude_none=True)


def _validation_error(e: ValueError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "status": "error",
            "error": {
                "code": "VALIDATION_ERROR",
                "message": f"Invalid input data: {str(e)}",
            },
        },
    )


def _calculation_error() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "error": {
                "code": "CALCULATION_ERROR",
                "message": "Failed to calculate the control chart. Please check the data and try again.",
            },
        },
    )


@router.post(
    "/compute",
    response_model=None,
    summary="Calculate an SPC control chart",
    description="""
    Computes the center line, control limits and special-cause signals for
    the chart family matching the data type:

    - `proportion` → **p-chart** (variable and fixed limits)
    - `rate` → **u-chart** (variable and fixed limits)
    - `continuous` → **i-mr** (individuals plus moving range)

    **Special-cause rules:**
    - `Beyond control limits`: point above UCL or below LCL
    - `Run of 8+ above center` / `Run of 8+ below center`
    """,
    responses={
        200: {
            "description": "Control chart computed successfully",
            "content": {
                "application/json": {
                    "example": {
                        "status": "success",
                        "data": {
                            "chartType": "p-chart",
                            "centerLine": 75.0,
                            "points": [
                                {
                                    "period": "2025-03",
                                    "value": 40.0,
                                    "ucl": 87.9904,
                                    "lcl": 62.0096,
                                    "centerLine": 75.0,
                                    "specialCause": True,
                                    "specialCauseRules": ["Beyond control limits"],
                                }
                            ],
                            "fixedPoints": [],
                            "supportsVariableLimits": False,
                        },
                    }
                }
            },
        },
        400: {"description": "Invalid input data"},
        422: {"description": "Malformed request body"},
        500: {"description": "Calculation error"},
    },
)
async def compute_control_chart(data: SPCComputeInput) -> JSONResponse:
    """Compute an SPC control chart.

    Args:
        data: Data type, period data points and chart options

    Returns:
        JSON response with the SPC result or error
    """
    try:
        result = _calculator.calculate(data.data_type, data.data, data.options)
        return _success(_dump(result))

    except ValueError as e:
        logger.warning(f"SPC validation error: {e}")
        return _validation_error(e)

    except Exception as e:
        logger.error(f"SPC calculation error: {e}", exc_info=True)
        return _calculation_error()


@router.get(
    "/chart-type/{data_type}",
    response_model=None,
    summary="Chart family for a metric data type",
)
async def get_chart_type(data_type: DataType) -> JSONResponse:
    """Return the chart type used for ``data_type`` without computing a chart."""
    return _success(
        {"dataType": data_type, "chartType": spc_chart_type_for_data_type(data_type)}
    )


@router.post(
    "/compute-from-entries",
    response_model=None,
    summary="Aggregate raw entries per period and calculate an SPC chart",
    description="""
    Groups raw metric entries by period before charting. Proportion and rate
    entries carrying a numerator and denominator are summed per period
    (weighted); other entries are combined with `aggregationType`.

    Returns `data: null` when fewer than two periods have data.
    """,
)
async def compute_control_chart_from_entries(data: EntriesComputeInput) -> JSONResponse:
    """Compute an SPC control chart from raw metric entries.

    Args:
        data: Data type, raw entries, aggregation type and chart options

    Returns:
        JSON response with the SPC result, null, or error
    """
    try:
        result = compute_spc_from_entries(
            data.data_type,
            data.entries,
            aggregation_type=data.aggregation_type,
            options=data.options,
            calculator=_calculator,
        )
        return _success(_dump(result) if result is not None else None)

    except ValueError as e:
        logger.warning(f"SPC entries validation error: {e}")
        return _validation_error(e)

    except Exception as e:
        logger.error(f"SPC entries calculation error: {e}", exc_info=True)
        return _calculation_error()
