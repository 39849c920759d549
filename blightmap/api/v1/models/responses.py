"""
API response models using Pydantic.
"""
from typing import List, Optional
from pydantic import BaseModel, Field

from blightmap.domain.clusters import Cluster, ClusterCircle, ClusteringAlgorithm
from blightmap.domain.models import TreeCondition, TreeObservation
from blightmap.services.domain.tree_statistics import YearlyStatistics


class LatLng(BaseModel):
    """Single coordinate pair."""
    latitude: float = Field(
        description="Latitude coordinate in degrees",
        examples=[35.6654]
    )
    longitude: float = Field(
        description="Longitude coordinate in degrees",
        examples=[139.5477]
    )


class TreeResponse(BaseModel):
    """One tree observation."""
    tree_id: str
    year: int
    number: int
    species: str
    location: str
    circumference_cm: float
    height_m: float
    condition: TreeCondition
    condition_label: str = Field(description="Japanese survey label of the condition")
    notes: str
    latitude: float
    longitude: float

    @classmethod
    def from_domain(cls, tree: TreeObservation) -> "TreeResponse":
        return cls(
            tree_id=tree.tree_id,
            year=tree.year,
            number=tree.number,
            species=tree.species,
            location=tree.location,
            circumference_cm=tree.circumference_cm,
            height_m=tree.height_m,
            condition=tree.condition,
            condition_label=tree.condition.label,
            notes=tree.notes,
            latitude=tree.latitude,
            longitude=tree.longitude,
        )


class TreesResponse(BaseModel):
    """Response model for the trees endpoints."""
    year: Optional[int] = Field(
        default=None,
        description="Survey year of the observations (None = all years)"
    )
    count: int = Field(description="Number of observations returned")
    trees: List[TreeResponse]


class YearsResponse(BaseModel):
    """Survey years present in the loaded dataset."""
    years: List[int]


class ReloadResponse(BaseModel):
    """Result of a dataset reload."""
    loaded: int = Field(description="Number of observations loaded")
    years: List[int]


class BoundsResponse(BaseModel):
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


class CircleResponse(BaseModel):
    """Circle of the circle-union model."""
    latitude: float
    longitude: float
    radius_m: float = Field(description="Radius in meters")
    tree_count: int

    @classmethod
    def from_domain(cls, circle: ClusterCircle) -> "CircleResponse":
        return cls(
            latitude=circle.center[0],
            longitude=circle.center[1],
            radius_m=circle.radius_m,
            tree_count=len(circle.members),
        )


class ClusterResponse(BaseModel):
    """One outbreak cluster."""
    id: str = Field(examples=["cluster-0"])
    algorithm: ClusteringAlgorithm
    tree_count: int
    center: LatLng
    bounds: BoundsResponse
    severity: str = Field(description="dead, pest or other; used for coloring")
    condition_counts: dict[str, int]
    tree_ids: List[str]
    circles: List[CircleResponse] = Field(default_factory=list)
    bounding_circle: Optional[CircleResponse] = None
    polygon: Optional[List[LatLng]] = Field(
        default=None,
        description="Smoothed rendering polygon (only when requested)"
    )


class ClustersResponse(BaseModel):
    """Response model for the clusters endpoint."""
    year: int
    algorithm: ClusteringAlgorithm
    radius_m: float
    overlap_threshold: Optional[float] = Field(
        default=None,
        description="Merge threshold used (circle-union only)"
    )
    cluster_count: int
    affected_tree_count: int
    clusters: List[ClusterResponse]

    class Config:
        json_schema_extra = {
            "example": {
                "year": 2024,
                "algorithm": "circle_union",
                "radius_m": 25.0,
                "overlap_threshold": 0.3,
                "cluster_count": 1,
                "affected_tree_count": 2,
                "clusters": [
                    {
                        "id": "cluster-0",
                        "algorithm": "circle_union",
                        "tree_count": 2,
                        "center": {"latitude": 35.00005, "longitude": 139.0},
                        "bounds": {
                            "min_lat": 35.0, "max_lat": 35.0001,
                            "min_lng": 139.0, "max_lng": 139.0,
                        },
                        "severity": "dead",
                        "condition_counts": {"Dead": 2},
                        "tree_ids": ["T001", "T002"],
                        "circles": [],
                        "bounding_circle": None,
                        "polygon": None,
                    }
                ],
            }
        }


class StatisticsEntry(BaseModel):
    """Condition breakdown of one survey year."""
    year: int
    total: int
    healthy: int
    needs_observation: int
    pest_damage: int
    withering: int
    dead: int
    broken_branch: int
    unknown: int
    problem_count: int
    healthy_rate: float = Field(description="Healthy trees in percent")
    problem_rate: float = Field(description="Concerning trees in percent")

    @classmethod
    def from_domain(cls, stats: YearlyStatistics) -> "StatisticsEntry":
        return cls(
            year=stats.year,
            total=stats.total,
            healthy=stats.healthy,
            needs_observation=stats.needs_observation,
            pest_damage=stats.pest_damage,
            withering=stats.withering,
            dead=stats.dead,
            broken_branch=stats.broken_branch,
            unknown=stats.unknown,
            problem_count=stats.problem_count,
            healthy_rate=round(stats.healthy_rate, 2),
            problem_rate=round(stats.problem_rate, 2),
        )


class StatisticsResponse(BaseModel):
    """Response model for the statistics endpoint."""
    selected: StatisticsEntry
    yearly: List[StatisticsEntry]


def cluster_to_response(
    cluster: Cluster,
    severity: str,
    condition_counts: dict[str, int],
    polygon: Optional[List[tuple[float, float]]] = None,
) -> ClusterResponse:
    """Convert a domain cluster into its API representation."""
    bounds = cluster.bounds
    return ClusterResponse(
        id=cluster.id,
        algorithm=cluster.algorithm,
        tree_count=cluster.size,
        center=LatLng(latitude=cluster.center[0], longitude=cluster.center[1]),
        bounds=BoundsResponse(
            min_lat=bounds.min_lat,
            max_lat=bounds.max_lat,
            min_lng=bounds.min_lng,
            max_lng=bounds.max_lng,
        ),
        severity=severity,
        condition_counts=condition_counts,
        tree_ids=[tree.tree_id for tree in cluster.members],
        circles=[CircleResponse.from_domain(circle) for circle in cluster.circles],
        bounding_circle=(
            CircleResponse.from_domain(cluster.bounding_circle)
            if cluster.bounding_circle is not None else None
        ),
        polygon=(
            [LatLng(latitude=lat, longitude=lng) for lat, lng in polygon]
            if polygon is not None else None
        ),
    )


# Error responses shared by every data route
ERROR_RESPONSES = {
    400: {"description": "Invalid request"},
    429: {"description": "Rate limit exceeded"},
    503: {"description": "Tree data could not be loaded"},
}
