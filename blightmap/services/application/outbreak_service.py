"""
Application service: Orchestration layer for outbreak map operations.
"""
import logging
from typing import Any, List, Optional, Tuple

from blightmap.domain.clusters import Cluster, ClusteringAlgorithm
from blightmap.domain.models import TreeObservation
from blightmap.infrastructure.tree_data_loader import TreeDataLoadError
from blightmap.infrastructure.tree_repository import TreeRepository
from blightmap.services.domain import exporters
from blightmap.services.domain.outbreak_clusterer import OutbreakClusterer
from blightmap.services.domain.tree_statistics import (
    TreeFilter,
    YearlyStatistics,
    statistics_for_year,
    yearly_statistics,
)

logger = logging.getLogger(__name__)


class OutbreakService:
    """
    Application service for the outbreak map.

    Coordinates the tree repository, filters, clustering and exports.
    No business logic lives here, only the wiring between layers.
    """

    def __init__(
        self,
        repository: TreeRepository,
        clusterer: OutbreakClusterer,
    ):
        """
        Initialize the service with dependencies.

        Args:
            repository: Snapshot of loaded tree observations
            clusterer: Outbreak clusterer for spatial grouping
        """
        self.repository = repository
        self.clusterer = clusterer

    def _require_data(self) -> None:
        if not self.repository.is_loaded:
            detail = self.repository.last_error or "no data has been loaded yet"
            raise TreeDataLoadError(f"Tree data unavailable: {detail}")

    def resolve_year(self, year: Optional[int]) -> int:
        """
        Pick the survey year to work on.

        Args:
            year: Requested year, or None for the latest available one

        Returns:
            Survey year

        Raises:
            TreeDataLoadError: If no data is loaded
            ValueError: If the dataset holds no years
        """
        self._require_data()
        if year is not None:
            return year
        years = self.repository.available_years()
        if not years:
            raise ValueError("The loaded dataset contains no survey years")
        return years[-1]

    def available_years(self) -> List[int]:
        self._require_data()
        return self.repository.available_years()

    def get_trees(
        self,
        year: Optional[int] = None,
        tree_filter: Optional[TreeFilter] = None,
    ) -> List[TreeObservation]:
        """
        Observations of one year (all years when year is None), filtered.
        """
        self._require_data()
        trees = self.repository.trees if year is None else self.repository.for_year(year)
        return tree_filter.apply(trees) if tree_filter else trees

    def get_latest_trees(self) -> List[TreeObservation]:
        self._require_data()
        return self.repository.latest_per_tree()

    async def reload(self) -> int:
        """
        Reload the dataset from its source.

        Returns:
            Number of observations loaded

        Raises:
            TreeDataLoadError: If loading fails (previous data stays available)
        """
        return await self.repository.reload()

    def get_clusters(
        self,
        year: Optional[int] = None,
        algorithm: ClusteringAlgorithm = ClusteringAlgorithm.CIRCLE_UNION,
        radius_m: Optional[float] = None,
        overlap_threshold: Optional[float] = None,
        tree_filter: Optional[TreeFilter] = None,
    ) -> Tuple[int, List[Cluster]]:
        """
        Detect outbreak clusters for one survey year.

        This method orchestrates:
        1. Resolving the survey year
        2. Selecting and filtering that year's observations
        3. Running the selected clustering algorithm

        Args:
            year: Survey year (latest when None)
            algorithm: Clustering strategy
            radius_m: Cluster radius in meters (configured default when None)
            overlap_threshold: Circle-union merge threshold (configured default when None)
            tree_filter: Optional filter applied before clustering

        Returns:
            Tuple of (resolved year, clusters)
        """
        year = self.resolve_year(year)
        trees = self.get_trees(year, tree_filter)
        clusters = self.clusterer.cluster(
            trees,
            algorithm=algorithm,
            radius_m=radius_m,
            overlap_threshold=overlap_threshold,
        )
        logger.info(f"{len(clusters)} {ClusteringAlgorithm(algorithm).value} clusters "
                    f"from {len(trees)} trees in {year}")
        return year, clusters

    def get_statistics(
        self,
        year: Optional[int] = None,
    ) -> Tuple[List[YearlyStatistics], YearlyStatistics]:
        """
        Condition statistics for every year plus the selected one.

        Returns:
            Tuple of (per-year statistics, statistics of the selected year)
        """
        year = self.resolve_year(year)
        trees = self.repository.trees
        return yearly_statistics(trees), statistics_for_year(trees, year)

    def export_trees_csv(self, year: Optional[int] = None) -> str:
        return exporters.trees_to_csv(self.get_trees(year))

    def export_geojson(
        self,
        year: Optional[int] = None,
        algorithm: ClusteringAlgorithm = ClusteringAlgorithm.CIRCLE_UNION,
        radius_m: Optional[float] = None,
        overlap_threshold: Optional[float] = None,
        tree_filter: Optional[TreeFilter] = None,
    ) -> dict[str, Any]:
        year, clusters = self.get_clusters(year, algorithm, radius_m, overlap_threshold, tree_filter)
        return exporters.to_geojson(self.get_trees(year, tree_filter), clusters, year)

    def export_clusters_wkt(
        self,
        year: Optional[int] = None,
        algorithm: ClusteringAlgorithm = ClusteringAlgorithm.CIRCLE_UNION,
        radius_m: Optional[float] = None,
        overlap_threshold: Optional[float] = None,
        tree_filter: Optional[TreeFilter] = None,
    ) -> str:
        year, clusters = self.get_clusters(year, algorithm, radius_m, overlap_threshold, tree_filter)
        return exporters.clusters_to_wkt_csv(clusters, year)

    def export_report(
        self,
        year: Optional[int] = None,
        algorithm: ClusteringAlgorithm = ClusteringAlgorithm.CIRCLE_UNION,
        radius_m: Optional[float] = None,
        overlap_threshold: Optional[float] = None,
        tree_filter: Optional[TreeFilter] = None,
    ) -> str:
        year, clusters = self.get_clusters(year, algorithm, radius_m, overlap_threshold, tree_filter)
        return exporters.build_report(self.get_trees(year, tree_filter), clusters, year)
