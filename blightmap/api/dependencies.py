"""
Dependency injection for FastAPI.
"""
from typing import Annotated
from fastapi import Depends

from blightmap.infrastructure.tree_repository import (
    TreeRepository,
    get_tree_repository,
)
from blightmap.services.domain.outbreak_clusterer import OutbreakClusterer
from blightmap.services.application.outbreak_service import OutbreakService


def get_outbreak_clusterer() -> OutbreakClusterer:
    """
    Dependency factory for OutbreakClusterer.

    Returns:
        OutbreakClusterer instance
    """
    return OutbreakClusterer()


def get_outbreak_service(
    repository: Annotated[TreeRepository, Depends(get_tree_repository)],
    clusterer: Annotated[OutbreakClusterer, Depends(get_outbreak_clusterer)],
) -> OutbreakService:
    """
    Dependency factory for OutbreakService.

    Args:
        repository: Tree repository (injected)
        clusterer: Outbreak clusterer (injected)

    Returns:
        OutbreakService instance
    """
    return OutbreakService(repository=repository, clusterer=clusterer)


# Type aliases for cleaner route signatures
OutbreakServiceDep = Annotated[OutbreakService, Depends(get_outbreak_service)]
