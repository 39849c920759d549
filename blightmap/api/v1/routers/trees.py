"""
API router for tree observation endpoints.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Query

from blightmap.api.dependencies import OutbreakServiceDep
from blightmap.api.v1.models.responses import (
    ERROR_RESPONSES,
    ReloadResponse,
    TreeResponse,
    TreesResponse,
    YearsResponse,
)
from blightmap.domain.models import TreeCondition
from blightmap.services.domain.tree_statistics import TreeFilter


router = APIRouter(
    prefix="/trees",
    tags=["trees"],
)


@router.get(
    "",
    response_model=TreesResponse,
    summary="List tree observations",
    description="""
    Return the tree observations of a survey year (every year when `year`
    is omitted), optionally filtered by species and condition.
    """,
    responses=ERROR_RESPONSES,
)
async def list_trees(
    service: OutbreakServiceDep,
    year: Annotated[Optional[int], Query(description="Survey year")] = None,
    species: Annotated[Optional[List[str]], Query(description="Species to keep")] = None,
    condition: Annotated[Optional[List[TreeCondition]], Query(description="Conditions to keep")] = None,
    problematic_only: Annotated[bool, Query(description="Only dead, withering or pest-damaged trees")] = False,
    healthy_only: Annotated[bool, Query(description="Only healthy trees")] = False,
) -> TreesResponse:
    tree_filter = TreeFilter(
        species=species or [],
        conditions=condition or [],
        healthy_only=healthy_only,
        problematic_only=problematic_only,
    )
    trees = service.get_trees(year, tree_filter)
    return TreesResponse(
        year=year,
        count=len(trees),
        trees=[TreeResponse.from_domain(tree) for tree in trees],
    )


@router.get(
    "/years",
    response_model=YearsResponse,
    summary="List survey years",
    responses=ERROR_RESPONSES,
)
async def list_years(service: OutbreakServiceDep) -> YearsResponse:
    return YearsResponse(years=service.available_years())


@router.get(
    "/latest",
    response_model=TreesResponse,
    summary="Latest observation of every tree",
    responses=ERROR_RESPONSES,
)
async def latest_trees(service: OutbreakServiceDep) -> TreesResponse:
    trees = service.get_latest_trees()
    return TreesResponse(
        count=len(trees),
        trees=[TreeResponse.from_domain(tree) for tree in trees],
    )


@router.post(
    "/reload",
    response_model=ReloadResponse,
    summary="Reload the tree dataset",
    description="""
    Load the configured CSV again. On failure the previously loaded data
    stays available and the endpoint answers with the load error.
    """,
    responses=ERROR_RESPONSES,
)
async def reload_trees(service: OutbreakServiceDep) -> ReloadResponse:
    loaded = await service.reload()
    return ReloadResponse(loaded=loaded, years=service.available_years())
