"""
Rating data model.

One rater's per-category scores for one item.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from rideout.models.category import validate_scores


@dataclass
class Rating:
    """
    A single rater's scores for a single bike.
    Categories the rater skipped are absent from `scores`.
    """
    rating_id: str
    item_id: str
    rater_id: str
    scores: Dict[str, int] = field(default_factory=dict)
    created_at: str = ""
    updated_at: Optional[str] = None  # Set on resubmission

    def __post_init__(self):
        self.scores = validate_scores(self.scores)

    @classmethod
    def from_dict(cls, data: dict) -> "Rating":
        """Create Rating from a stored record."""
        return cls(
            rating_id=data["id"],
            item_id=data["item_id"],
            rater_id=data["rater_id"],
            scores=data.get("scores", {}),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at")
        )

    def to_dict(self) -> dict:
        """Convert to a storable record (id is held by the store)."""
        return {
            "item_id": self.item_id,
            "rater_id": self.rater_id,
            "scores": dict(self.scores),
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }
