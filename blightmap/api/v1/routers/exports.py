"""
API router for data exports.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from blightmap.api.dependencies import OutbreakServiceDep
from blightmap.api.v1.models.responses import ERROR_RESPONSES
from blightmap.config import settings
from blightmap.domain.clusters import ClusteringAlgorithm
from blightmap.services.domain.tree_statistics import TreeFilter


router = APIRouter(
    prefix="/export",
    tags=["export"],
)

YearQuery = Annotated[Optional[int], Query(description="Survey year (latest when omitted)")]
AlgorithmQuery = Annotated[ClusteringAlgorithm, Query(description="Clustering algorithm")]
RadiusQuery = Annotated[float, Query(
    ge=settings.cluster_radius_min_m,
    le=settings.cluster_radius_max_m,
    description="Cluster radius in meters",
)]
ThresholdQuery = Annotated[float, Query(
    gt=0.0,
    lt=1.0,
    description="Fraction of the smaller radius that must overlap to merge circles",
)]
SpeciesQuery = Annotated[Optional[list[str]], Query(description="Species to include")]


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


def _stamp(year: Optional[int]) -> str:
    return str(year) if year is not None else "all"


@router.get(
    "/csv",
    summary="Export tree observations as CSV",
    response_class=Response,
    responses=ERROR_RESPONSES,
)
async def export_csv(service: OutbreakServiceDep, year: YearQuery = None) -> Response:
    content = service.export_trees_csv(year)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers=_attachment(f"tree_data_{_stamp(year)}.csv"),
    )


@router.get(
    "/geojson",
    summary="Export trees and clusters as GeoJSON",
    response_class=JSONResponse,
    responses=ERROR_RESPONSES,
)
async def export_geojson(
    service: OutbreakServiceDep,
    year: YearQuery = None,
    algorithm: AlgorithmQuery = ClusteringAlgorithm(settings.cluster_algorithm),
    radius_m: RadiusQuery = settings.cluster_radius_m,
    overlap_threshold: ThresholdQuery = settings.overlap_threshold,
    species: SpeciesQuery = None,
) -> JSONResponse:
    content = service.export_geojson(
        year,
        algorithm,
        radius_m,
        overlap_threshold,
        TreeFilter(species=species or []),
    )
    return JSONResponse(
        content=content,
        media_type="application/geo+json",
        headers=_attachment(f"tree_disease_data_{content['metadata']['year']}.geojson"),
    )


@router.get(
    "/clusters-wkt",
    summary="Export clusters as WKT CSV (QGIS)",
    response_class=Response,
    responses=ERROR_RESPONSES,
)
async def export_clusters_wkt(
    service: OutbreakServiceDep,
    year: YearQuery = None,
    algorithm: AlgorithmQuery = ClusteringAlgorithm(settings.cluster_algorithm),
    radius_m: RadiusQuery = settings.cluster_radius_m,
    overlap_threshold: ThresholdQuery = settings.overlap_threshold,
    species: SpeciesQuery = None,
) -> Response:
    year = service.resolve_year(year)
    content = service.export_clusters_wkt(
        year,
        algorithm,
        radius_m,
        overlap_threshold,
        TreeFilter(species=species or []),
    )
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers=_attachment(f"tree_clusters_{year}_qgis.csv"),
    )


@router.get(
    "/report",
    summary="Plain-text health report",
    response_class=PlainTextResponse,
    responses=ERROR_RESPONSES,
)
async def export_report(
    service: OutbreakServiceDep,
    year: YearQuery = None,
    algorithm: AlgorithmQuery = ClusteringAlgorithm(settings.cluster_algorithm),
    radius_m: RadiusQuery = settings.cluster_radius_m,
    overlap_threshold: ThresholdQuery = settings.overlap_threshold,
    species: SpeciesQuery = None,
) -> PlainTextResponse:
    year = service.resolve_year(year)
    content = service.export_report(
        year,
        algorithm,
        radius_m,
        overlap_threshold,
        TreeFilter(species=species or []),
    )
    return PlainTextResponse(
        content=content,
        headers=_attachment(f"tree_report_{year}.txt"),
    )
