"""
Domain models for tree observations.

These models represent the core domain entities and should be independent
of any infrastructure concerns (CSV parsing, HTTP, etc.).
"""
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class TreeCondition(str, Enum):
    """Health state recorded for a tree in a survey year."""
    HEALTHY = "Healthy"
    NEEDS_OBSERVATION = "NeedsObservation"
    PEST_DAMAGE = "PestDamage"
    WITHERING = "Withering"
    DEAD = "Dead"
    BROKEN_BRANCH = "BrokenBranch"
    UNKNOWN = "Unknown"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "TreeCondition":
        """
        Map a survey label (Japanese field label or English value) to a condition.

        Args:
            label: Raw condition text from the data source

        Returns:
            Matching TreeCondition, UNKNOWN when the label is empty or unrecognised
        """
        if not label:
            return cls.UNKNOWN
        text = label.strip()
        if text in _JAPANESE_LABELS:
            return _JAPANESE_LABELS[text]
        for condition in cls:
            if condition.value.lower() == text.lower():
                return condition
        return cls.UNKNOWN

    @property
    def label(self) -> str:
        """Japanese field label used in survey sheets."""
        return _LABELS_BY_CONDITION[self]


_JAPANESE_LABELS = {
    "健全": TreeCondition.HEALTHY,
    "要観察": TreeCondition.NEEDS_OBSERVATION,
    "虫害": TreeCondition.PEST_DAMAGE,
    "立ち枯れ": TreeCondition.WITHERING,
    "枯死": TreeCondition.DEAD,
    "枝折れ": TreeCondition.BROKEN_BRANCH,
    "不明": TreeCondition.UNKNOWN,
}
_LABELS_BY_CONDITION = {condition: text for text, condition in _JAPANESE_LABELS.items()}


CONCERNING_CONDITIONS = frozenset({
    TreeCondition.DEAD,
    TreeCondition.WITHERING,
    TreeCondition.PEST_DAMAGE,
})


class TreeObservation(BaseModel):
    """One tree's recorded state in one survey year."""
    tree_id: str
    year: int
    latitude: float = Field(description="Latitude in degrees (WGS84)")
    longitude: float = Field(description="Longitude in degrees (WGS84)")
    condition: TreeCondition = TreeCondition.UNKNOWN
    number: int = 0
    species: str = "Unknown"
    location: str = ""
    circumference_cm: float = Field(default=0.0, description="Trunk girth in cm")
    height_m: float = Field(default=0.0, description="Tree height in m")
    notes: str = ""

    class Config:
        frozen = True

    @property
    def key(self) -> tuple[str, int]:
        """Unique identity of the observation: (tree_id, year)."""
        return (self.tree_id, self.year)

    @property
    def is_concerning(self) -> bool:
        return self.condition in CONCERNING_CONDITIONS

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)
