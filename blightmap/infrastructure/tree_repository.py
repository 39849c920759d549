"""
Infrastructure layer: In-memory snapshot of the loaded tree observations.
"""
import logging
from typing import List, Optional

from blightmap.domain.models import TreeObservation
from blightmap.infrastructure.tree_data_loader import (
    TreeDataLoader,
    TreeDataLoadError,
    get_tree_loader,
)

logger = logging.getLogger(__name__)


class TreeRepository:
    """
    Holds the tree observations of the current session.

    Data is loaded fresh from the configured CSV; a failed reload keeps
    the previous snapshot so earlier results stay usable.
    """

    def __init__(
        self,
        loader: Optional[TreeDataLoader] = None,
        trees: Optional[List[TreeObservation]] = None,
    ):
        """
        Initialize the repository.

        Args:
            loader: Loader used by reload(); the shared loader when None
            trees: Preloaded observations (mainly for tests and imports)
        """
        self._loader = loader
        self._trees: Optional[List[TreeObservation]] = list(trees) if trees is not None else None
        self.last_error: Optional[str] = None

    @property
    def loader(self) -> TreeDataLoader:
        if self._loader is None:
            self._loader = get_tree_loader()
        return self._loader

    @property
    def is_loaded(self) -> bool:
        return self._trees is not None

    @property
    def trees(self) -> List[TreeObservation]:
        """All loaded observations in source order (empty before the first load)."""
        return list(self._trees or [])

    async def reload(self) -> int:
        """
        Load the observations again from the data source.

        Returns:
            Number of observations loaded

        Raises:
            TreeDataLoadError: If loading fails (the old snapshot is kept)
        """
        try:
            trees = await self.loader.load()
        except TreeDataLoadError as e:
            self.last_error = e.message
            logger.error(f"Failed to load tree data: {e.message}")
            raise

        self._trees = trees
        self.last_error = None
        logger.info(f"Loaded {len(trees)} tree observations "
                    f"across {len(self.available_years())} years")
        return len(trees)

    def available_years(self) -> List[int]:
        return sorted({tree.year for tree in self._trees or []})

    def for_year(self, year: int) -> List[TreeObservation]:
        return [tree for tree in self._trees or [] if tree.year == year]

    def latest_per_tree(self) -> List[TreeObservation]:
        """
        Latest observation of every tree.

        Returns:
            One observation per tree_id, the one with the highest year
        """
        latest: dict[str, TreeObservation] = {}
        for tree in self._trees or []:
            existing = latest.get(tree.tree_id)
            if existing is None or tree.year > existing.year:
                latest[tree.tree_id] = tree
        return list(latest.values())


# Singleton instance
_repository: Optional[TreeRepository] = None


def get_tree_repository() -> TreeRepository:
    """
    Get or create the singleton tree repository.

    Returns:
        TreeRepository instance
    """
    global _repository
    if _repository is None:
        _repository = TreeRepository()
    return _repository
