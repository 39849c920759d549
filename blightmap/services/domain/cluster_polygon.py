"""
Domain service: Rendering polygons for outbreak clusters.

Three tiers by member count:
- fewer than 3 trees: 12-point circle around the centroid
- 3 to 5 trees: convex hull, smoothed
- 6 or more trees: concave hull approximation, smoothed
"""
from typing import Optional
import logging

from blightmap.domain.clusters import Cluster
from blightmap.utils.geo_math import meters_to_degrees
from blightmap.utils.geo_projection import longitude_scale
from blightmap.utils.shape_helpers import (
    CIRCLE_POINTS,
    circle_ring,
    concave_hull,
    convex_hull,
    smooth_ring,
)
from blightmap.config import settings

logger = logging.getLogger(__name__)

CONVEX_TIER_MAX_MEMBERS = 5


def get_cluster_polygon(
    cluster: Cluster,
    padding_m: Optional[float] = None,
    point_radius_m: Optional[float] = None,
) -> list[tuple[float, float]]:
    """
    Build the boundary polygon used to draw a cluster.

    Args:
        cluster: Cluster to outline
        padding_m: Outward padding of hull vertices (settings default when None)
        point_radius_m: Circle radius for tiny clusters (settings default when None)

    Returns:
        List of (latitude, longitude) points; the first point is not repeated
    """
    padding = meters_to_degrees(settings.polygon_padding_m if padding_m is None else padding_m)
    point_radius = meters_to_degrees(
        settings.point_cluster_radius_m if point_radius_m is None else point_radius_m
    )

    # Work in (lng, lat) so x points east and y points north
    xy = [(lng, lat) for lat, lng in cluster.member_coordinates]
    x_scale = longitude_scale(cluster.center[0])

    if len(xy) < 3:
        center = (cluster.center[1], cluster.center[0])
        ring = circle_ring(center, point_radius, CIRCLE_POINTS, x_scale)
        tier = "circle"
    elif len(xy) <= CONVEX_TIER_MAX_MEMBERS:
        ring = smooth_ring(convex_hull(xy), padding, point_radius, x_scale=x_scale)
        tier = "convex"
    else:
        ring = smooth_ring(concave_hull(xy), padding, point_radius, x_scale=x_scale)
        tier = "concave"

    logger.debug(f"{cluster.id}: {tier} polygon with {len(ring)} points for {len(xy)} trees")
    return [(lat, lng) for lng, lat in ring]
