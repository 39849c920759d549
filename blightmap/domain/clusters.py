"""
Outbreak cluster data structures and their invariant-maintenance routines.

Clusters are derived values: they are rebuilt from scratch on every
clustering run and never mutated afterwards. Bounds and center are always
computed from the final member set.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from blightmap.domain.models import TreeObservation


class ClusteringAlgorithm(str, Enum):
    """Available outbreak clustering strategies."""
    CIRCLE_UNION = "circle_union"
    DENSITY = "density"


@dataclass(frozen=True)
class ClusterBounds:
    """Axis-aligned bounding box of a cluster's members."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float
    is_empty: bool = False

    @classmethod
    def empty(cls) -> "ClusterBounds":
        """Sentinel bounds for a member-less cluster (no NaN/Infinity)."""
        return cls(0.0, 0.0, 0.0, 0.0, is_empty=True)

    def contains(self, latitude: float, longitude: float) -> bool:
        if self.is_empty:
            return False
        return (
            self.min_lat <= latitude <= self.max_lat
            and self.min_lng <= longitude <= self.max_lng
        )


@dataclass(frozen=True)
class ClusterCircle:
    """A disc around one or more trees, radius in meters."""
    center: tuple[float, float]
    radius_m: float
    members: tuple[TreeObservation, ...] = ()


@dataclass(frozen=True)
class Cluster:
    """A group of concerning trees believed to be one contiguous outbreak area."""
    id: str
    members: tuple[TreeObservation, ...]
    bounds: ClusterBounds
    center: tuple[float, float]
    algorithm: ClusteringAlgorithm
    circles: tuple[ClusterCircle, ...] = ()
    bounding_circle: Optional[ClusterCircle] = None

    @classmethod
    def build(
        cls,
        cluster_id: str,
        members: Iterable[TreeObservation],
        algorithm: ClusteringAlgorithm,
        circles: Iterable[ClusterCircle] = (),
        bounding_circle: Optional[ClusterCircle] = None,
    ) -> "Cluster":
        """
        Create a cluster, deduplicating members and deriving bounds and center.

        Args:
            cluster_id: Identifier such as "cluster-0"
            members: Trees of the cluster, possibly with repeats
            algorithm: Strategy that produced the cluster
            circles: Circles composing the cluster (circle-union only)
            bounding_circle: Single-circle summary of the circles, if any

        Returns:
            Cluster instance
        """
        unique = dedupe_members(members)
        return cls(
            id=cluster_id,
            members=unique,
            bounds=compute_bounds(unique),
            center=compute_centroid(unique),
            algorithm=algorithm,
            circles=tuple(circles),
            bounding_circle=bounding_circle,
        )

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def member_coordinates(self) -> list[tuple[float, float]]:
        return [tree.coordinates for tree in self.members]


def dedupe_members(members: Iterable[TreeObservation]) -> tuple[TreeObservation, ...]:
    """Drop repeated trees (same tree_id and year), keeping first-seen order."""
    seen = set()
    unique = []
    for tree in members:
        if tree.key in seen:
            continue
        seen.add(tree.key)
        unique.append(tree)
    return tuple(unique)


def compute_bounds(members: tuple[TreeObservation, ...]) -> ClusterBounds:
    """Exact bounding box of the members, or the empty sentinel."""
    if not members:
        return ClusterBounds.empty()
    lats = [tree.latitude for tree in members]
    lngs = [tree.longitude for tree in members]
    return ClusterBounds(
        min_lat=min(lats),
        max_lat=max(lats),
        min_lng=min(lngs),
        max_lng=max(lngs),
    )


def compute_centroid(members: tuple[TreeObservation, ...]) -> tuple[float, float]:
    """Arithmetic mean of member coordinates; (0.0, 0.0) for no members."""
    if not members:
        return (0.0, 0.0)
    count = len(members)
    lat = sum(tree.latitude for tree in members) / count
    lng = sum(tree.longitude for tree in members) / count
    return (lat, lng)
