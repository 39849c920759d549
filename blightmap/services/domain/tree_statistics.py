"""
Domain service: Tree filters and year-by-year health statistics.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Optional

from blightmap.domain.clusters import Cluster
from blightmap.domain.models import TreeCondition, TreeObservation


@dataclass
class TreeFilter:
    """Filter settings applied to tree observations before display or clustering."""

    species: list[str] = field(default_factory=list)
    """Keep only these species (empty = all)"""

    conditions: list[TreeCondition] = field(default_factory=list)
    """Keep only these conditions (empty = all)"""

    year_range: Optional[tuple[int, int]] = None
    """Inclusive (first, last) year range"""

    healthy_only: bool = False
    problematic_only: bool = False

    def apply(self, trees: Iterable[TreeObservation]) -> list[TreeObservation]:
        """
        Filter observations.

        healthy_only takes precedence over problematic_only when both are set.

        Args:
            trees: Observations to filter

        Returns:
            Matching observations in input order
        """
        result = list(trees)
        if self.species:
            result = [t for t in result if t.species in self.species]
        if self.conditions:
            wanted = {TreeCondition(c) for c in self.conditions}
            result = [t for t in result if t.condition in wanted]
        if self.year_range is not None:
            first, last = self.year_range
            result = [t for t in result if first <= t.year <= last]
        if self.healthy_only:
            result = [t for t in result if t.condition is TreeCondition.HEALTHY]
        elif self.problematic_only:
            result = [t for t in result if t.is_concerning]
        return result


@dataclass
class YearlyStatistics:
    """Condition breakdown for one survey year."""
    year: int
    total: int
    healthy: int
    needs_observation: int
    pest_damage: int
    withering: int
    dead: int
    broken_branch: int
    unknown: int

    @property
    def problem_count(self) -> int:
        return self.pest_damage + self.withering + self.dead

    @property
    def healthy_rate(self) -> float:
        """Percentage of healthy trees (0 when the year has no trees)."""
        return self.healthy / self.total * 100 if self.total else 0.0

    @property
    def problem_rate(self) -> float:
        """Percentage of concerning trees (0 when the year has no trees)."""
        return self.problem_count / self.total * 100 if self.total else 0.0


def condition_counts(trees: Iterable[TreeObservation]) -> dict[TreeCondition, int]:
    return dict(Counter(tree.condition for tree in trees))


def species_counts(trees: Iterable[TreeObservation]) -> dict[str, int]:
    return dict(Counter(tree.species for tree in trees))


def statistics_for_year(trees: Iterable[TreeObservation], year: int) -> YearlyStatistics:
    year_trees = [tree for tree in trees if tree.year == year]
    counts = Counter(tree.condition for tree in year_trees)
    return YearlyStatistics(
        year=year,
        total=len(year_trees),
        healthy=counts[TreeCondition.HEALTHY],
        needs_observation=counts[TreeCondition.NEEDS_OBSERVATION],
        pest_damage=counts[TreeCondition.PEST_DAMAGE],
        withering=counts[TreeCondition.WITHERING],
        dead=counts[TreeCondition.DEAD],
        broken_branch=counts[TreeCondition.BROKEN_BRANCH],
        unknown=counts[TreeCondition.UNKNOWN],
    )


def yearly_statistics(
    trees: Iterable[TreeObservation],
    years: Optional[Iterable[int]] = None,
) -> list[YearlyStatistics]:
    """
    Per-year condition statistics.

    Args:
        trees: All observations
        years: Years to report (every year present in `trees` when None)

    Returns:
        One YearlyStatistics per year, sorted by year
    """
    trees = list(trees)
    if years is None:
        years = {tree.year for tree in trees}
    return [statistics_for_year(trees, year) for year in sorted(years)]


def cluster_severity(cluster: Cluster) -> str:
    """
    Severity class used to color a cluster.

    Returns:
        "dead" if any member is dead or withering, "pest" if any member has
        pest damage, otherwise "other"
    """
    conditions = {tree.condition for tree in cluster.members}
    if conditions & {TreeCondition.DEAD, TreeCondition.WITHERING}:
        return "dead"
    if TreeCondition.PEST_DAMAGE in conditions:
        return "pest"
    return "other"
