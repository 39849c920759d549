"""
Domain service: Export of trees and outbreak clusters.

Formats:
- Spreadsheet CSV of tree observations
- GeoJSON FeatureCollection of trees and cluster polygons
- QGIS-friendly cluster CSV with WKT geometry
- Plain-text summary report
"""
import csv
from datetime import datetime, timezone
from typing import Any, Optional
import logging
import pandas as pd
from shapely.geometry import Polygon, mapping
from shapely.geometry.base import BaseGeometry

from blightmap.domain.clusters import Cluster
from blightmap.domain.models import TreeCondition, TreeObservation
from blightmap.infrastructure.tree_data_loader import CsvColumns
from blightmap.services.domain.cluster_polygon import get_cluster_polygon
from blightmap.services.domain.tree_statistics import (
    condition_counts,
    species_counts,
    statistics_for_year,
)
from blightmap.utils.geo_projection import circles_footprint

logger = logging.getLogger(__name__)

UTF8_BOM = "\ufeff"
CRS84 = "urn:ogc:def:crs:OGC:1.3:CRS84"


def trees_to_csv(trees: list[TreeObservation]) -> str:
    """
    Render observations as a spreadsheet CSV in the survey column layout.

    Args:
        trees: Observations to export

    Returns:
        CSV text with a UTF-8 BOM and every field quoted
    """
    frame = pd.DataFrame(
        [
            [
                tree.year, tree.number, tree.tree_id, tree.species, tree.location,
                tree.circumference_cm, tree.height_m, tree.condition.label, tree.notes,
                tree.latitude, tree.longitude,
            ]
            for tree in trees
        ],
        columns=CsvColumns.TIME_SERIES,
    )
    return UTF8_BOM + frame.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")


def cluster_geometry(cluster: Cluster) -> BaseGeometry:
    """
    Geometry of a cluster in (lon, lat).

    Circle-union clusters use the union of their geodesic circles; other
    clusters use the smoothed rendering polygon.
    """
    if cluster.circles:
        return circles_footprint([
            (circle.center[0], circle.center[1], circle.radius_m) for circle in cluster.circles
        ])
    ring = get_cluster_polygon(cluster)
    return Polygon([(lng, lat) for lat, lng in ring])


def _condition_breakdown(trees: list[TreeObservation]) -> dict[str, int]:
    return {condition.value: count for condition, count in condition_counts(trees).items()}


def tree_feature(tree: TreeObservation) -> dict[str, Any]:
    return {
        "type": "Feature",
        "properties": {
            "treeId": tree.tree_id,
            "number": tree.number,
            "year": tree.year,
            "species": tree.species,
            "location": tree.location,
            "circumference": tree.circumference_cm,
            "height": tree.height_m,
            "condition": tree.condition.value,
            "notes": tree.notes,
        },
        "geometry": {
            "type": "Point",
            "coordinates": [tree.longitude, tree.latitude],
        },
    }


def cluster_feature(cluster: Cluster, year: Optional[int]) -> dict[str, Any]:
    return {
        "type": "Feature",
        "properties": {
            "clusterId": cluster.id,
            "algorithm": cluster.algorithm.value,
            "treeCount": cluster.size,
            "year": year,
            "centerLat": cluster.center[0],
            "centerLng": cluster.center[1],
            "conditions": _condition_breakdown(list(cluster.members)),
        },
        "geometry": mapping(cluster_geometry(cluster)),
    }


def to_geojson(
    trees: list[TreeObservation],
    clusters: list[Cluster],
    year: Optional[int] = None,
) -> dict[str, Any]:
    """
    Build a GeoJSON FeatureCollection of trees and cluster polygons.

    Args:
        trees: Observations to include as Point features
        clusters: Clusters to include as Polygon / MultiPolygon features
        year: Survey year the export describes

    Returns:
        GeoJSON-compatible dictionary
    """
    features = [tree_feature(tree) for tree in trees]
    features.extend(cluster_feature(cluster, year) for cluster in clusters)

    logger.info(f"GeoJSON export: {len(trees)} trees, {len(clusters)} clusters")
    return {
        "type": "FeatureCollection",
        "name": f"tree_disease_data_{year}" if year is not None else "tree_disease_data",
        "crs": {"type": "name", "properties": {"name": CRS84}},
        "features": features,
        "metadata": {
            "exportDate": datetime.now(timezone.utc).isoformat(),
            "year": year,
            "totalTrees": len(trees),
            "totalClusters": len(clusters),
            "description": "Tree disease monitoring data with clusters",
        },
    }


def clusters_to_wkt_csv(clusters: list[Cluster], year: Optional[int] = None) -> str:
    """
    Render clusters as a CSV with a WKT geometry column (for QGIS).

    Args:
        clusters: Clusters to export
        year: Survey year written in every row

    Returns:
        CSV text with a UTF-8 BOM
    """
    rows = []
    for cluster in clusters:
        breakdown = ";".join(
            f"{condition}:{count}"
            for condition, count in _condition_breakdown(list(cluster.members)).items()
        )
        rows.append({
            "cluster_id": cluster.id,
            "tree_count": cluster.size,
            "year": year,
            "center_lat": cluster.center[0],
            "center_lng": cluster.center[1],
            "conditions": breakdown,
            "wkt_geometry": cluster_geometry(cluster).wkt,
        })
    frame = pd.DataFrame(rows, columns=[
        "cluster_id", "tree_count", "year", "center_lat", "center_lng", "conditions", "wkt_geometry",
    ])
    return UTF8_BOM + frame.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")


def build_report(
    trees: list[TreeObservation],
    clusters: list[Cluster],
    year: int,
) -> str:
    """
    Plain-text health report for one survey year.

    Args:
        trees: Observations of the reported year
        clusters: Clusters detected for that year
        year: Survey year

    Returns:
        Report text
    """
    stats = statistics_for_year(trees, year)
    lines = [
        f"Tree Health Report - {year}",
        "=" * 40,
        "",
        f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')} UTC",
        "",
        "## Summary",
        f"- Total trees: {stats.total}",
        f"- Healthy trees: {stats.healthy} ({stats.healthy_rate:.1f}%)",
        f"- Problem trees: {stats.problem_count} ({stats.problem_rate:.1f}%)",
        "",
        "## Condition breakdown",
    ]
    counts = condition_counts(trees)
    for condition in TreeCondition:
        count = counts.get(condition, 0)
        if count:
            lines.append(f"- {condition.value}: {count}")

    lines += ["", "## Species breakdown (top 10)"]
    top_species = sorted(species_counts(trees).items(), key=lambda item: (-item[1], item[0]))[:10]
    lines += [f"- {species}: {count}" for species, count in top_species]

    lines += [
        "",
        "## Cluster analysis",
        f"- Clusters detected: {len(clusters)}",
        f"- Affected trees: {sum(cluster.size for cluster in clusters)}",
    ]
    lines += [
        f"- {cluster.id}: {cluster.size} trees ({cluster.center[0]:.6f}, {cluster.center[1]:.6f})"
        for cluster in clusters
    ]
    return "\n".join(lines) + "\n"
