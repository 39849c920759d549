"""
Unit tests for tree filters, statistics and condition labels.
"""
import pytest

from blightmap.domain.clusters import Cluster, ClusteringAlgorithm
from blightmap.domain.models import TreeCondition
from blightmap.services.domain.tree_statistics import (
    TreeFilter,
    cluster_severity,
    condition_counts,
    species_counts,
    statistics_for_year,
    yearly_statistics,
)


# ============================================================
# Condition Label Tests
# ============================================================

class TestTreeCondition:
    """Tests for condition label mapping."""

    @pytest.mark.parametrize("label,expected", [
        ("健全", TreeCondition.HEALTHY),
        ("要観察", TreeCondition.NEEDS_OBSERVATION),
        ("虫害", TreeCondition.PEST_DAMAGE),
        ("立ち枯れ", TreeCondition.WITHERING),
        ("枯死", TreeCondition.DEAD),
        ("枝折れ", TreeCondition.BROKEN_BRANCH),
        ("不明", TreeCondition.UNKNOWN),
        ("dead", TreeCondition.DEAD),
        (" PestDamage ", TreeCondition.PEST_DAMAGE),
        ("", TreeCondition.UNKNOWN),
        (None, TreeCondition.UNKNOWN),
        ("倒木", TreeCondition.UNKNOWN),
    ])
    def test_from_label(self, label, expected):
        assert TreeCondition.from_label(label) is expected

    def test_label_round_trip(self):
        for condition in TreeCondition:
            assert TreeCondition.from_label(condition.label) is condition

    def test_concerning_conditions(self, make_tree):
        concerning = {
            c for c in TreeCondition if make_tree(35.0, 139.0, c).is_concerning
        }

        assert concerning == {TreeCondition.DEAD, TreeCondition.WITHERING, TreeCondition.PEST_DAMAGE}


# ============================================================
# Filter Tests
# ============================================================

class TestTreeFilter:
    """Tests for TreeFilter."""

    def test_empty_filter_keeps_everything(self, two_year_trees):
        assert TreeFilter().apply(two_year_trees) == two_year_trees

    def test_species_filter(self, two_year_trees):
        result = TreeFilter(species=["クヌギ"]).apply(two_year_trees)

        assert {t.tree_id for t in result} == {"B1"}

    def test_condition_filter(self, two_year_trees):
        result = TreeFilter(conditions=[TreeCondition.DEAD, TreeCondition.WITHERING]).apply(two_year_trees)

        assert [t.tree_id for t in result] == ["A1", "A2"]

    def test_year_range(self, two_year_trees):
        result = TreeFilter(year_range=(2024, 2024)).apply(two_year_trees)

        assert len(result) == 4
        assert all(t.year == 2024 for t in result)

    def test_problematic_only(self, two_year_trees):
        result = TreeFilter(problematic_only=True).apply(two_year_trees)

        assert len(result) == 4
        assert all(t.is_concerning for t in result)

    def test_healthy_only_takes_precedence(self, two_year_trees):
        result = TreeFilter(healthy_only=True, problematic_only=True).apply(two_year_trees)

        assert result
        assert all(t.condition is TreeCondition.HEALTHY for t in result)


# ============================================================
# Statistics Tests
# ============================================================

class TestStatistics:
    """Tests for yearly statistics."""

    def test_statistics_for_year(self, two_year_trees):
        stats = statistics_for_year(two_year_trees, 2024)

        assert stats.total == 4
        assert stats.healthy == 1
        assert stats.dead == 1
        assert stats.withering == 1
        assert stats.pest_damage == 1
        assert stats.problem_count == 3
        assert stats.healthy_rate == pytest.approx(25.0)
        assert stats.problem_rate == pytest.approx(75.0)

    def test_empty_year_has_zero_rates(self, two_year_trees):
        stats = statistics_for_year(two_year_trees, 1999)

        assert stats.total == 0
        assert stats.healthy_rate == 0.0
        assert stats.problem_rate == 0.0

    def test_yearly_statistics_sorted(self, two_year_trees):
        stats = yearly_statistics(reversed(two_year_trees))

        assert [s.year for s in stats] == [2023, 2024]
        assert stats[0].pest_damage == 1

    def test_yearly_statistics_for_selected_years(self, two_year_trees):
        stats = yearly_statistics(two_year_trees, years=[2025, 2023])

        assert [s.year for s in stats] == [2023, 2025]
        assert stats[1].total == 0

    def test_counts(self, two_year_trees):
        assert condition_counts(two_year_trees)[TreeCondition.HEALTHY] == 4
        assert species_counts(two_year_trees) == {"ケヤキ": 4, "ソメイヨシノ": 2, "クヌギ": 2}


# ============================================================
# Cluster Severity Tests
# ============================================================

class TestClusterSeverity:
    """Tests for cluster colouring classes."""

    def _cluster(self, make_tree, conditions):
        trees = [make_tree(35.0, 139.0 + i * 0.0001, c) for i, c in enumerate(conditions)]
        return Cluster.build("cluster-0", trees, ClusteringAlgorithm.CIRCLE_UNION)

    def test_dead_or_withering(self, make_tree):
        assert cluster_severity(self._cluster(make_tree, [TreeCondition.PEST_DAMAGE, TreeCondition.WITHERING])) == "dead"
        assert cluster_severity(self._cluster(make_tree, [TreeCondition.DEAD])) == "dead"

    def test_pest(self, make_tree):
        assert cluster_severity(self._cluster(make_tree, [TreeCondition.PEST_DAMAGE])) == "pest"

    def test_other(self, make_tree):
        assert cluster_severity(self._cluster(make_tree, [])) == "other"
