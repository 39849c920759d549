"""
API router for outbreak cluster endpoints.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Query

from blightmap.api.dependencies import OutbreakServiceDep
from blightmap.api.v1.models.responses import (
    ERROR_RESPONSES,
    ClustersResponse,
    cluster_to_response,
)
from blightmap.config import settings
from blightmap.domain.clusters import ClusteringAlgorithm
from blightmap.services.domain.cluster_polygon import get_cluster_polygon
from blightmap.services.domain.tree_statistics import (
    TreeFilter,
    cluster_severity,
    condition_counts,
)


router = APIRouter(
    prefix="/clusters",
    tags=["clusters"],
)


@router.get(
    "",
    response_model=ClustersResponse,
    summary="Detect outbreak clusters",
    description="""
    Group the dead, withering and pest-damaged trees of a survey year into
    outbreak clusters.

    Two algorithms are available:
    - `circle_union`: every tree gets a circle of `radius_m`; circles that
      overlap by more than `overlap_threshold` of the smaller radius merge
    - `density`: DBSCAN-style clustering with `radius_m` as the neighborhood
      radius, followed by stitching of nearby clusters

    Set `include_polygons` to also return the smoothed outline of each cluster.
    """,
    responses=ERROR_RESPONSES,
)
async def get_clusters(
    service: OutbreakServiceDep,
    year: Annotated[Optional[int], Query(description="Survey year (latest when omitted)")] = None,
    algorithm: Annotated[ClusteringAlgorithm, Query(description="Clustering algorithm")] = ClusteringAlgorithm(settings.cluster_algorithm),
    radius_m: Annotated[float, Query(
        ge=settings.cluster_radius_min_m,
        le=settings.cluster_radius_max_m,
        description="Cluster radius in meters",
    )] = settings.cluster_radius_m,
    overlap_threshold: Annotated[float, Query(
        gt=0.0,
        lt=1.0,
        description="Fraction of the smaller radius that must overlap to merge circles",
    )] = settings.overlap_threshold,
    species: Annotated[Optional[list[str]], Query(description="Species to include")] = None,
    include_polygons: Annotated[bool, Query(description="Return rendering polygons")] = False,
) -> ClustersResponse:
    tree_filter = TreeFilter(species=species or [])
    year, clusters = service.get_clusters(
        year,
        algorithm=algorithm,
        radius_m=radius_m,
        overlap_threshold=overlap_threshold,
        tree_filter=tree_filter,
    )

    return ClustersResponse(
        year=year,
        algorithm=algorithm,
        radius_m=radius_m,
        overlap_threshold=overlap_threshold if algorithm is ClusteringAlgorithm.CIRCLE_UNION else None,
        cluster_count=len(clusters),
        affected_tree_count=sum(cluster.size for cluster in clusters),
        clusters=[
            cluster_to_response(
                cluster,
                severity=cluster_severity(cluster),
                condition_counts={
                    condition.value: count
                    for condition, count in condition_counts(cluster.members).items()
                },
                polygon=get_cluster_polygon(cluster) if include_polygons else None,
            )
            for cluster in clusters
        ],
    )
