"""
Domain service: Outbreak zone clustering of concerning trees.

This module groups trees flagged as dead, withering or pest-damaged into
outbreak zones using one of two strategies:
- Circle-union: every tree seeds a disc; discs merge transitively when
  their overlap exceeds a threshold (great-circle distances in meters)
- Density: DBSCAN-style core-point expansion in degree space followed by
  a stitching pass that joins neighbouring clusters

Both strategies are pure functions of (trees, parameters); every call
rebuilds all clusters from scratch.
"""
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional
import logging
import numpy as np
from scipy.spatial import KDTree

from blightmap.domain.models import TreeObservation
from blightmap.domain.clusters import Cluster, ClusterCircle, ClusteringAlgorithm
from blightmap.utils.geo_math import (
    haversine_meters,
    meters_to_degrees,
    pairwise_haversine_meters,
)
from blightmap.config import settings

logger = logging.getLogger(__name__)


@dataclass
class ClusteringConfig:
    """Configuration for outbreak clustering."""

    radius_m: float = 25.0
    """Circle radius (circle-union) or neighborhood radius (density) in meters"""

    min_radius_m: float = 1.0
    """Radii below this are raised to it"""

    overlap_threshold: float = 0.3
    """Fraction of the smaller circle's radius that must overlap to merge"""

    min_points: int = 3
    """Neighbors needed for a tree to be a core point (density)"""

    stitch_center_ratio: float = 0.8
    """Stitch clusters whose centroids are within this many radii (density)"""

    stitch_member_ratio: float = 1.2
    """Stitch clusters with any member pair within this many radii (density)"""

    @classmethod
    def from_settings(cls) -> "ClusteringConfig":
        return cls(
            radius_m=settings.cluster_radius_m,
            min_radius_m=settings.cluster_radius_min_m,
            overlap_threshold=settings.overlap_threshold,
            min_points=settings.density_min_points,
        )


class PointState(IntEnum):
    """Visit state of a tree during density expansion."""
    UNVISITED = 0
    NOISE = 1
    ASSIGNED = 2


def select_concerning(trees: Iterable[TreeObservation]) -> list[TreeObservation]:
    """Keep only trees whose condition is Dead, Withering or PestDamage."""
    return [tree for tree in trees if tree.is_concerning]


class OutbreakClusterer:
    """
    Domain service for grouping concerning trees into outbreak zones.

    Features:
    - Circle-union clustering with a tunable overlap threshold
    - Density (DBSCAN-style) clustering with cluster stitching
    - One entry point with an algorithm selector
    """

    def __init__(self, config: Optional[ClusteringConfig] = None):
        """
        Initialize the clusterer.

        Args:
            config: Clustering configuration; defaults come from settings
        """
        self.config = config or ClusteringConfig.from_settings()

    def cluster(
        self,
        trees: list[TreeObservation],
        algorithm: ClusteringAlgorithm = ClusteringAlgorithm.CIRCLE_UNION,
        radius_m: Optional[float] = None,
        overlap_threshold: Optional[float] = None,
    ) -> list[Cluster]:
        """
        Cluster the concerning trees with the selected algorithm.

        Args:
            trees: Tree observations (any condition; only concerning ones are used)
            algorithm: Clustering strategy
            radius_m: Radius in meters (config default when None)
            overlap_threshold: Circle-union merge threshold (config default when None)

        Returns:
            List of clusters
        """
        radius = self.config.radius_m if radius_m is None else radius_m
        if ClusteringAlgorithm(algorithm) is ClusteringAlgorithm.DENSITY:
            return self.cluster_by_density(trees, radius)
        threshold = self.config.overlap_threshold if overlap_threshold is None else overlap_threshold
        return self.cluster_by_circle_union(trees, radius, threshold)

    # ------------------------------------------------------------------
    # Circle-union clustering
    # ------------------------------------------------------------------

    def cluster_by_circle_union(
        self,
        trees: list[TreeObservation],
        radius_m: float,
        overlap_threshold: float,
    ) -> list[Cluster]:
        """
        Merge per-tree discs into outbreak zones.

        Two discs connect when the distance between their centers is at most
        max_radius + min_radius * (1 - overlap_threshold); connected discs
        are grouped transitively.

        Args:
            trees: Tree observations
            radius_m: Disc radius in meters (raised to the configured minimum)
            overlap_threshold: Required overlap as a fraction of the smaller radius

        Returns:
            List of clusters, each carrying its circles
        """
        radius = self._clamp_radius(radius_m)
        threshold = self._clamp_threshold(overlap_threshold)

        concerning = select_concerning(trees)
        logger.info(f"Circle-union clustering: {len(concerning)} concerning of {len(trees)} trees, "
                    f"radius={radius:.1f}m, overlap_threshold={threshold:.2f}")
        if not concerning:
            return []

        # Step 1: Seed one circle per concerning tree
        circles = [
            ClusterCircle(center=tree.coordinates, radius_m=radius, members=(tree,))
            for tree in concerning
        ]

        # Step 2: Connects test over all pairs
        connects = self._circle_connections(circles, threshold)

        # Step 3: Transitive grouping
        groups = self._connected_groups(len(circles), lambda i: np.flatnonzero(connects[i]))

        # Step 4: One cluster per group
        clusters = []
        for group in groups:
            group_circles = [circles[i] for i in group]
            bounding = bounding_circle(group_circles) if len(group_circles) > 1 else None
            members = [tree for circle in group_circles for tree in circle.members]
            clusters.append(Cluster.build(
                cluster_id=f"cluster-{len(clusters)}",
                members=members,
                algorithm=ClusteringAlgorithm.CIRCLE_UNION,
                circles=group_circles,
                bounding_circle=bounding,
            ))

        logger.info(f"Formed {len(clusters)} circle-union clusters")
        return clusters

    def _circle_connections(
        self,
        circles: list[ClusterCircle],
        overlap_threshold: float,
    ) -> np.ndarray:
        lats = np.array([c.center[0] for c in circles])
        lngs = np.array([c.center[1] for c in circles])
        radii = np.array([c.radius_m for c in circles])

        distances = pairwise_haversine_meters(lats, lngs)
        max_r = np.maximum(radii[:, None], radii[None, :])
        min_r = np.minimum(radii[:, None], radii[None, :])
        connects = distances <= max_r + min_r * (1 - overlap_threshold)
        np.fill_diagonal(connects, False)
        return connects

    # ------------------------------------------------------------------
    # Density clustering
    # ------------------------------------------------------------------

    def cluster_by_density(
        self,
        trees: list[TreeObservation],
        radius_m: float,
    ) -> list[Cluster]:
        """
        DBSCAN-style clustering followed by cluster stitching.

        Trees with fewer than min_points neighbors inside the radius are
        noise, unless a core tree reached them before they were visited.
        Noise stays out of every cluster. Clusters whose centroids, or any
        of whose member pairs, lie close together are then merged.

        Args:
            trees: Tree observations
            radius_m: Neighborhood radius in meters (converted to degrees)

        Returns:
            List of clusters without circles
        """
        radius = self._clamp_radius(radius_m)
        radius_deg = meters_to_degrees(radius)
        min_points = self.config.min_points

        concerning = select_concerning(trees)
        logger.info(f"Density clustering: {len(concerning)} concerning of {len(trees)} trees, "
                    f"radius={radius:.1f}m ({radius_deg:.6f} deg), min_points={min_points}")
        if len(concerning) < min_points:
            logger.info("Too few concerning trees for density clustering")
            return []

        points = np.array([tree.coordinates for tree in concerning])
        kdtree = KDTree(points)

        # Step 1: Core-point expansion
        raw_groups, noise_count = self._expand_density_groups(points, kdtree, radius_deg, min_points)
        logger.info(f"DBSCAN pass: {len(raw_groups)} clusters, {noise_count} noise trees")

        # Step 2: Stitch neighbouring clusters
        stitched = self._stitch_groups(points, raw_groups, radius_deg)
        if len(stitched) < len(raw_groups):
            logger.info(f"Stitched {len(raw_groups)} clusters into {len(stitched)}")

        return [
            Cluster.build(
                cluster_id=f"cluster-{index}",
                members=[concerning[i] for i in group],
                algorithm=ClusteringAlgorithm.DENSITY,
            )
            for index, group in enumerate(stitched)
        ]

    def _expand_density_groups(
        self,
        points: np.ndarray,
        kdtree: KDTree,
        radius_deg: float,
        min_points: int,
    ) -> tuple[list[list[int]], int]:
        def neighbors(i: int) -> list[int]:
            return [j for j in kdtree.query_ball_point(points[i], radius_deg) if j != i]

        state = [PointState.UNVISITED] * len(points)
        groups = []

        for i in range(len(points)):
            if state[i] is not PointState.UNVISITED:
                continue

            if len(neighbors(i)) < min_points:
                state[i] = PointState.NOISE
                continue

            group = []
            queue = deque([i])
            state[i] = PointState.ASSIGNED
            while queue:
                current = queue.popleft()
                group.append(current)
                current_neighbors = neighbors(current)
                if len(current_neighbors) < min_points:
                    continue
                for j in current_neighbors:
                    # Trees already marked noise stay noise
                    if state[j] is PointState.UNVISITED:
                        state[j] = PointState.ASSIGNED
                        queue.append(j)
            groups.append(sorted(group))

        noise_count = sum(1 for s in state if s is PointState.NOISE)
        return groups, noise_count

    def _stitch_groups(
        self,
        points: np.ndarray,
        groups: list[list[int]],
        radius_deg: float,
    ) -> list[list[int]]:
        if len(groups) < 2:
            return groups

        centers = [points[group].mean(axis=0) for group in groups]
        trees = [KDTree(points[group]) for group in groups]
        center_limit = self.config.stitch_center_ratio * radius_deg
        member_limit = self.config.stitch_member_ratio * radius_deg

        def should_connect(a: int, b: int) -> bool:
            if np.hypot(*(centers[a] - centers[b])) <= center_limit:
                return True
            distances, _ = trees[b].query(points[groups[a]], k=1)
            return bool(np.min(distances) <= member_limit)

        def linked(a: int) -> list[int]:
            return [b for b in range(len(groups)) if b != a and should_connect(a, b)]

        merged = self._connected_groups(len(groups), linked)
        return [sorted(i for g in component for i in groups[g]) for component in merged]

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _connected_groups(count: int, linked) -> list[list[int]]:
        """Breadth-first grouping of 0..count-1 under the `linked` relation."""
        processed = [False] * count
        groups = []
        for start in range(count):
            if processed[start]:
                continue
            processed[start] = True
            group = [start]
            queue = deque([start])
            while queue:
                current = queue.popleft()
                for other in linked(current):
                    other = int(other)
                    if not processed[other]:
                        processed[other] = True
                        group.append(other)
                        queue.append(other)
            groups.append(group)
        return groups

    def _clamp_radius(self, radius_m: float) -> float:
        if radius_m < self.config.min_radius_m:
            logger.warning(f"Radius {radius_m}m below minimum, using {self.config.min_radius_m}m")
            return self.config.min_radius_m
        return float(radius_m)

    @staticmethod
    def _clamp_threshold(overlap_threshold: float) -> float:
        clamped = min(1.0, max(0.0, float(overlap_threshold)))
        if clamped != overlap_threshold:
            logger.warning(f"Overlap threshold {overlap_threshold} outside [0, 1], using {clamped}")
        return clamped


def bounding_circle(circles: list[ClusterCircle]) -> ClusterCircle:
    """
    Single circle enclosing a group of circles.

    The center is the mean of the circle centers; the radius is the largest
    center-to-center distance plus that circle's radius.

    Args:
        circles: Non-empty list of circles

    Returns:
        ClusterCircle carrying every member of the group
    """
    center_lat = sum(c.center[0] for c in circles) / len(circles)
    center_lng = sum(c.center[1] for c in circles) / len(circles)
    radius = max(
        haversine_meters(c.center[0], c.center[1], center_lat, center_lng) + c.radius_m
        for c in circles
    )
    members = tuple(tree for c in circles for tree in c.members)
    return ClusterCircle(center=(center_lat, center_lng), radius_m=radius, members=members)


def cluster_by_density(trees: list[TreeObservation], radius_m: float) -> list[Cluster]:
    """Density clustering with the default configuration."""
    return OutbreakClusterer().cluster_by_density(trees, radius_m)


def cluster_by_circle_union(
    trees: list[TreeObservation],
    radius_m: float,
    overlap_threshold: float,
) -> list[Cluster]:
    """Circle-union clustering with the default configuration."""
    return OutbreakClusterer().cluster_by_circle_union(trees, radius_m, overlap_threshold)

