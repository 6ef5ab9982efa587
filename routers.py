"""API routers for the natal chart service."""

from datetime import datetime
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Query

from chart_service import ChartService
from exceptions import NatalChartError
from locations import LocationDatabase, get_location_database, split_location_text
from models import (
    AspectDefinitionResponse,
    BatchResponse,
    BatchResultItem,
    BatchSummary,
    ChartResult,
    ConfigAspectsResponse,
    ConfigHouseSystemsResponse,
    ErrorDetail,
    GeoLocation,
    NatalChartBatchRequest,
    NatalChartRequest,
    NatalChartResponse,
    NormalizeRequest,
    TimeZoneInfo,
)
from normalizer import normalize
from timezones import determine_time_zone
from zodiac import ChartConfig

router = APIRouter()


@lru_cache
def get_chart_service() -> ChartService:
    return ChartService()


# Configuration Endpoints
@router.get(
    "/config/house-systems",
    response_model=ConfigHouseSystemsResponse,
    summary="List Available House Systems",
    description="List the house systems accepted for deriving the Ascendant and Midheaven."
)
async def get_house_systems():
    """List all available house systems."""
    return ConfigHouseSystemsResponse(
        house_systems=list(ChartConfig.HOUSE_SYSTEMS.keys())
    )


@router.get(
    "/config/aspects",
    response_model=ConfigAspectsResponse,
    summary="List Aspect Definitions",
    description="""
    Get the aspect table in priority order (first match wins):
    - Aspect name and symbol
    - Exact angle
    - Orb allowance

    Aspects with an orb below `strong_orb` are classified as Strong.
    """
)
async def get_aspects():
    """List all aspect definitions with orb information."""
    return ConfigAspectsResponse(
        aspects=[
            AspectDefinitionResponse(name=asp.name, symbol=asp.symbol, angle=asp.angle, orb=asp.orb)
            for asp in ChartConfig.ASPECTS
        ],
        strong_orb=ChartConfig.STRONG_ORB
    )


# Location Endpoint
@router.get(
    "/locations",
    response_model=list[GeoLocation],
    summary="Search Locations",
    description="""
    List known places matching "city[, country]" for a location picker,
    most populous first. A country or region after the comma must match.
    """
)
def search_locations(
    q: str = Query(..., min_length=1, description='Place name, optionally "city, country"'),
    limit: int = Query(20, ge=1, le=200),
    database: LocationDatabase = Depends(get_location_database)
):
    """Search the location database."""
    place, qualifier = split_location_text(q)
    return [
        record.to_geolocation()
        for record in database.search(place, qualifier, limit)
    ]


# Timezone Endpoint
@router.get(
    "/timezone",
    response_model=TimeZoneInfo,
    summary="Determine Time Zone",
    description="""
    Resolve the civil UTC offset for a coordinate pair.

    Registered zones are preferred; otherwise US routing, political overrides,
    the nearest known location and finally 15° longitude bands are tried.
    Pass a local `at` time to get the offset in force at that moment (DST).
    """
)
def get_time_zone(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    at: Optional[datetime] = Query(None, description="Local date and time, ISO 8601")
):
    """Determine the time zone for a coordinate pair."""
    return determine_time_zone(longitude, latitude, at)


# Natal Chart Endpoints
@router.post(
    "/natal/calculate",
    response_model=NatalChartResponse,
    summary="Calculate Natal Chart",
    description="""
    Calculate a natal chart from a date (DD.MM.YYYY), a local time (HH:MM[:SS])
    and a free-text location:
    - Resolved coordinates and civil UTC offset
    - Planetary positions with retrograde flags
    - Ascendant, Midheaven and equal-house cusps
    - Major aspects
    - Text rendering in the Planets/Houses format

    If positions cannot be calculated a placeholder chart is returned with
    `chart.is_placeholder` set.
    """,
    responses={
        200: {"description": "Successful calculation"},
        404: {"description": "Location not found"},
        422: {"description": "Invalid date, time or location format"}
    }
)
def calculate_natal_chart(request: NatalChartRequest,
                          service: ChartService = Depends(get_chart_service)):
    """Calculate a single natal chart."""
    return service.calculate(
        request.birth_date,
        request.birth_time,
        request.location,
        request.house_system.value
    )


@router.post(
    "/natal/calculate/batch",
    response_model=BatchResponse,
    summary="Calculate Multiple Natal Charts",
    description="""
    Calculate multiple natal charts in a single request.

    Each chart is processed independently - partial failures are allowed.
    The response includes individual results for each chart with success/error status,
    plus summary statistics of total, successful, and failed calculations.
    """,
    responses={
        200: {"description": "Batch processing complete (may include partial failures)"},
        422: {"description": "Validation error in request structure"}
    }
)
def calculate_natal_batch(request: NatalChartBatchRequest,
                          service: ChartService = Depends(get_chart_service)):
    """Calculate multiple natal charts in batch."""
    results = []

    for idx, chart_req in enumerate(request.charts):
        chart_id = chart_req.id or f"chart_{idx}"
        try:
            data = service.calculate(
                chart_req.birth_date,
                chart_req.birth_time,
                chart_req.location,
                chart_req.house_system.value
            )
            results.append(BatchResultItem(id=chart_id, success=True, data=data, error=None))
        except NatalChartError as e:
            results.append(BatchResultItem(
                id=chart_id,
                success=False,
                data=None,
                error=ErrorDetail(type=type(e).__name__, message=str(e), detail=None)
            ))

    return BatchResponse(
        results=results,
        summary=BatchSummary(
            total=len(results),
            successful=sum(1 for r in results if r.success),
            failed=sum(1 for r in results if not r.success)
        )
    )


@router.post(
    "/natal/normalize",
    response_model=ChartResult,
    summary="Normalize Chart Text",
    description="""
    Parse pre-formatted Planets/Houses text from any provider into the
    canonical chart. Missing houses are filled with equal houses from the
    Ascendant and reported in `missing_sections`.
    """,
    responses={
        200: {"description": "Chart parsed (check `partial`)"},
        422: {"description": "Text has no usable Ascendant"}
    }
)
async def normalize_chart_text(request: NormalizeRequest):
    """Normalize raw chart text."""
    return normalize(request.raw)
