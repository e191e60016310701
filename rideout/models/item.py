"""
Item data model.

A bike showcase post together with its cached rating aggregates.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from rideout.models.category import CATEGORY_KEYS


@dataclass
class CategoryAggregate:
    """Running statistics for one category on one item."""
    total: int = 0
    count: int = 0
    avg: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "CategoryAggregate":
        return cls(
            total=data.get("total", 0),
            count=data.get("count", 0),
            avg=data.get("avg", 0.0)
        )

    def to_dict(self) -> dict:
        return {"total": self.total, "count": self.count, "avg": self.avg}


def empty_ratings() -> Dict[str, CategoryAggregate]:
    """Zeroed aggregate for every category."""
    return {key: CategoryAggregate() for key in CATEGORY_KEYS}


@dataclass
class Item:
    """
    A ratable bike post.

    Aggregate fields (ratings, overall_rating, total_ratings) are written
    only by the Aggregator.
    """
    item_id: str
    owner_id: str
    owner_name: str = ""
    avatar_url: Optional[str] = None
    bike_name: str = ""
    caption: str = ""
    image_url: Optional[str] = None
    ratings: Dict[str, CategoryAggregate] = field(default_factory=empty_ratings)
    overall_rating: float = 0.0
    total_ratings: int = 0
    view_count: int = 0
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Item":
        """Create Item from a stored record."""
        stored = data.get("ratings", {})
        ratings = {
            key: CategoryAggregate.from_dict(stored.get(key, {}))
            for key in CATEGORY_KEYS
        }
        return cls(
            item_id=data["id"],
            owner_id=data["owner_id"],
            owner_name=data.get("owner_name", ""),
            avatar_url=data.get("avatar_url"),
            bike_name=data.get("bike_name", ""),
            caption=data.get("caption", ""),
            image_url=data.get("image_url"),
            ratings=ratings,
            overall_rating=data.get("overall_rating", 0.0),
            total_ratings=data.get("total_ratings", 0),
            view_count=data.get("view_count", 0),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", "")
        )

    def to_dict(self) -> dict:
        """Convert to a storable record (id is held by the store)."""
        return {
            "owner_id": self.owner_id,
            "owner_name": self.owner_name,
            "avatar_url": self.avatar_url,
            "bike_name": self.bike_name,
            "caption": self.caption,
            "image_url": self.image_url,
            "ratings": {key: agg.to_dict() for key, agg in self.ratings.items()},
            "overall_rating": self.overall_rating,
            "total_ratings": self.total_ratings,
            "view_count": self.view_count,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }
