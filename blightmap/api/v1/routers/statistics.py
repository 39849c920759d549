"""
API router for health statistics.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Query

from blightmap.api.dependencies import OutbreakServiceDep
from blightmap.api.v1.models.responses import (
    ERROR_RESPONSES,
    StatisticsEntry,
    StatisticsResponse,
)


router = APIRouter(
    prefix="/statistics",
    tags=["statistics"],
)


@router.get(
    "",
    response_model=StatisticsResponse,
    summary="Condition statistics per survey year",
    responses=ERROR_RESPONSES,
)
async def get_statistics(
    service: OutbreakServiceDep,
    year: Annotated[Optional[int], Query(description="Selected year (latest when omitted)")] = None,
) -> StatisticsResponse:
    yearly, selected = service.get_statistics(year)
    return StatisticsResponse(
        selected=StatisticsEntry.from_domain(selected),
        yearly=[StatisticsEntry.from_domain(stats) for stats in yearly],
    )
