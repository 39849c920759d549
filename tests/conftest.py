"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Tree observation factory and sample datasets
- Preloaded tree repository
- FastAPI test client wired to that repository
"""
import os

# Disable per-client rate limiting before the app is imported
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from pathlib import Path
from typing import Callable
from fastapi.testclient import TestClient

from blightmap.main import app
from blightmap.domain.models import TreeCondition, TreeObservation
from blightmap.infrastructure.tree_repository import TreeRepository, get_tree_repository


SAMPLE_CSV = Path(__file__).resolve().parent.parent / "data" / "jindai_trees_sample.csv"


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def make_tree() -> Callable[..., TreeObservation]:
    """Factory for tree observations with sensible defaults."""
    counter = {"n": 0}

    def _make(
        lat: float,
        lng: float,
        condition: TreeCondition = TreeCondition.DEAD,
        year: int = 2024,
        tree_id: str | None = None,
        species: str = "ケヤキ",
    ) -> TreeObservation:
        counter["n"] += 1
        return TreeObservation(
            tree_id=tree_id or f"T{counter['n']:03d}",
            year=year,
            number=counter["n"],
            latitude=lat,
            longitude=lng,
            condition=condition,
            species=species,
        )

    return _make


@pytest.fixture
def outbreak_trees(make_tree) -> list[TreeObservation]:
    """Two dead trees ~11 m apart and a third ~1.1 km away."""
    return [
        make_tree(35.0, 139.0),
        make_tree(35.0001, 139.0),
        make_tree(35.0100, 139.0),
    ]


@pytest.fixture
def two_year_trees(make_tree) -> list[TreeObservation]:
    """Small two-year dataset with a dense outbreak in the second year."""
    return [
        make_tree(35.6650, 139.5470, TreeCondition.PEST_DAMAGE, 2023, "A1"),
        make_tree(35.6651, 139.5470, TreeCondition.HEALTHY, 2023, "A2", "ソメイヨシノ"),
        make_tree(35.6651, 139.5471, TreeCondition.HEALTHY, 2023, "A3"),
        make_tree(35.6670, 139.5500, TreeCondition.HEALTHY, 2023, "B1", "クヌギ"),
        make_tree(35.6650, 139.5470, TreeCondition.DEAD, 2024, "A1"),
        make_tree(35.6651, 139.5470, TreeCondition.WITHERING, 2024, "A2", "ソメイヨシノ"),
        make_tree(35.6651, 139.5471, TreeCondition.PEST_DAMAGE, 2024, "A3"),
        make_tree(35.6670, 139.5500, TreeCondition.HEALTHY, 2024, "B1", "クヌギ"),
    ]


@pytest.fixture
def sample_csv_text() -> str:
    """Bundled sample dataset."""
    return SAMPLE_CSV.read_text(encoding="utf-8-sig")


# ============================================================
# Repository Fixtures
# ============================================================

@pytest.fixture
def loaded_repository(two_year_trees) -> TreeRepository:
    """Repository preloaded with the two-year dataset."""
    return TreeRepository(trees=two_year_trees)


@pytest.fixture
def empty_repository() -> TreeRepository:
    """Repository that has never loaded data."""
    return TreeRepository()


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client(loaded_repository) -> TestClient:
    """Synchronous test client backed by the preloaded repository."""
    app.dependency_overrides[get_tree_repository] = lambda: loaded_repository
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def unloaded_client(empty_repository) -> TestClient:
    """Test client whose repository has no data."""
    app.dependency_overrides[get_tree_repository] = lambda: empty_repository
    yield TestClient(app)
    app.dependency_overrides.clear()
