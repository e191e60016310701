"""
Item Registry - one record per ratable bike post.

Holds display fields plus the cached aggregates written by the Aggregator.
"""

import os
import logging
import uuid
from typing import Callable, Dict, List, Optional

import config.settings as settings
from rideout.errors import (
    CascadeIncompleteError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from rideout.models.item import CategoryAggregate, Item
from rideout.registry.rating_store import RatingStore
from rideout.utils.storage import DocumentStore
from rideout.utils.timestamps import utc_timestamp
from rideout.utils.uploader import ImageUploader

logger = logging.getLogger(__name__)

# Display fields an owner may set at creation
DISPLAY_FIELDS = ("owner_name", "avatar_url", "bike_name", "caption", "image_url")


class ItemRegistry:
    """
    Single source of truth for bike posts.

    Aggregates are zeroed on creation and afterwards only changed through
    apply_aggregates(). Deleting an item removes its ratings first.
    """

    def __init__(
        self,
        store: DocumentStore,
        rating_store: RatingStore,
        uploader: Optional[ImageUploader] = None,
        collection: str = settings.ITEMS_COLLECTION,
        clock: Callable[[], str] = utc_timestamp
    ):
        """
        Initialize item registry.

        Args:
            store: Backing document store
            rating_store: Rating rows, needed for the delete cascade
            uploader: Object storage for bike images (optional)
            collection: Collection holding items
            clock: Returns the current timestamp string
        """
        self.store = store
        self.rating_store = rating_store
        self.uploader = uploader
        self.collection = collection
        self.clock = clock

    def create_item(self, owner_id: str, fields: Optional[Dict] = None) -> Item:
        """
        Create a new bike post with zeroed aggregates.

        Args:
            owner_id: Posting rider
            fields: Display fields (owner_name, avatar_url, bike_name,
                caption, image_url)

        Returns:
            The created Item

        Raises:
            ValidationError: If owner_id is empty or fields has unknown keys
        """
        if not owner_id:
            raise ValidationError("Owner id is required")

        fields = dict(fields or {})
        unknown = set(fields) - set(DISPLAY_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown item fields: {', '.join(sorted(unknown))}")

        now = self.clock()
        item = Item(
            item_id="",
            owner_id=owner_id,
            owner_name=fields.get("owner_name") or settings.DEFAULT_OWNER_NAME,
            avatar_url=fields.get("avatar_url"),
            bike_name=fields.get("bike_name") or settings.DEFAULT_BIKE_NAME,
            caption=fields.get("caption") or "",
            image_url=fields.get("image_url"),
            created_at=now,
            updated_at=now
        )
        item.item_id = self.store.insert(self.collection, item.to_dict())

        logger.info(f"Created item {item.item_id} - '{item.bike_name}' by {owner_id}")
        return item

    def post_item(
        self,
        owner_id: str,
        fields: Optional[Dict],
        image_data: bytes,
        filename: str
    ) -> Item:
        """
        Upload the bike image, then create the item pointing at it.

        Raises:
            ValidationError: If no uploader is configured
        """
        if self.uploader is None:
            raise ValidationError("No image uploader configured")

        name = os.path.basename(filename) or "image"
        path = f"ratemyride/{owner_id}/{uuid.uuid4().hex}_{name}"
        image_url = self.uploader.upload(image_data, path)

        fields = dict(fields or {})
        fields["image_url"] = image_url
        return self.create_item(owner_id, fields)

    def get_item(self, item_id: str) -> Optional[Item]:
        """Retrieve item by ID. Returns None if not found."""
        record = self.store.get_by_id(self.collection, item_id)
        return Item.from_dict(record) if record else None

    def require_item(self, item_id: str) -> Item:
        """Retrieve item by ID, raising NotFoundError if absent."""
        item = self.get_item(item_id)
        if item is None:
            raise NotFoundError(f"Item not found: {item_id}")
        return item

    def items_by_owner(self, owner_id: str) -> List[Item]:
        """All of an owner's items, newest first."""
        records = self.store.query_by_equality(self.collection, "owner_id", owner_id)
        records.sort(key=lambda r: (r.get("created_at", ""), r["id"]), reverse=True)
        return [Item.from_dict(r) for r in records]

    def apply_aggregates(
        self,
        item_id: str,
        ratings: Dict[str, CategoryAggregate],
        overall_rating: float,
        total_ratings: int
    ) -> None:
        """
        Overwrite the cached aggregates of an item. Aggregator-only write path.

        Raises:
            NotFoundError: If the item doesn't exist
        """
        self.store.update_fields(self.collection, item_id, {
            "ratings": {key: agg.to_dict() for key, agg in ratings.items()},
            "overall_rating": overall_rating,
            "total_ratings": total_ratings,
            "updated_at": self.clock()
        })

    def delete_item(self, item_id: str) -> int:
        """
        Delete an item and every rating referencing it.

        Ratings go first, so a failure never leaves a deleted item with
        surviving ratings. Safe to retry after a CascadeIncompleteError.

        Returns:
            Number of rating rows deleted

        Raises:
            NotFoundError: If the item doesn't exist
            CascadeIncompleteError: If some ratings or the item itself could
                not be deleted
        """
        self.require_item(item_id)

        deleted, failed = self.rating_store.delete_ratings_for_item(item_id)
        if failed:
            raise CascadeIncompleteError(item_id, deleted, len(failed), item_deleted=False)

        try:
            self.store.delete_by_id(self.collection, item_id)
        except StoreUnavailableError as e:
            logger.error(f"Ratings for {item_id} deleted but item delete failed: {e}")
            raise CascadeIncompleteError(item_id, deleted, 0, item_deleted=False) from e

        logger.info(f"Deleted item {item_id} and {deleted} ratings")
        return deleted

    def increment_view_count(self, item_id: str) -> bool:
        """
        Fire-and-forget view counter bump.

        Returns:
            True if the counter was incremented; failures are logged only
        """
        try:
            self.store.increment(self.collection, item_id, "view_count", 1)
            return True
        except NotFoundError:
            logger.warning(f"View count not incremented, item not found: {item_id}")
        except StoreUnavailableError as e:
            logger.warning(f"View count not incremented for {item_id}: {e}")
        return False

