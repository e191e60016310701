"""
Rating Store - one rating row per (item, rater).

Handles idempotent upserts, lookups for edit-form prefill, and bulk deletion
for the item cascade.
"""

import logging
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import config.settings as settings
from rideout.errors import StoreUnavailableError
from rideout.models.category import validate_scores
from rideout.models.rating import Rating
from rideout.utils.storage import DocumentStore
from rideout.utils.timestamps import utc_timestamp

logger = logging.getLogger(__name__)


class RatingStore:
    """
    Durable per-rater ratings.

    A resubmission replaces the rater's scores entirely: a category left out
    of the new submission no longer counts for that rater.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str = settings.RATINGS_COLLECTION,
        clock: Callable[[], str] = utc_timestamp
    ):
        """
        Initialize rating store.

        Args:
            store: Backing document store
            collection: Collection holding rating rows
            clock: Returns the current timestamp string
        """
        self.store = store
        self.collection = collection
        self.clock = clock

    def upsert_rating(self, item_id: str, rater_id: str, scores: Mapping) -> Rating:
        """
        Create or replace a rater's scores for an item.

        Args:
            item_id: Rated item
            rater_id: Rater identity
            scores: Category key -> score (1-5); may be a subset of categories

        Returns:
            The stored Rating

        Raises:
            ValidationError: On unknown categories or out-of-range scores
                (nothing is written)
        """
        clean_scores = validate_scores(scores)
        rows = self._rows_for(item_id, rater_id)

        if not rows:
            rating = Rating(
                rating_id="",
                item_id=item_id,
                rater_id=rater_id,
                scores=clean_scores,
                created_at=self.clock()
            )
            rating.rating_id = self.store.insert(self.collection, rating.to_dict())
            logger.info(f"Created rating {rating.rating_id} by {rater_id} for item {item_id}")
            return rating

        keep, duplicates = rows[0], rows[1:]
        updated_at = self.clock()
        self.store.update_fields(self.collection, keep["id"], {
            "scores": clean_scores,
            "updated_at": updated_at
        })

        # Lost insert race left extra rows; the oldest one survives
        for duplicate in duplicates:
            logger.warning(
                f"Removing duplicate rating {duplicate['id']} by {rater_id} for item {item_id}"
            )
            self.store.delete_by_id(self.collection, duplicate["id"])

        keep.update(scores=clean_scores, updated_at=updated_at)
        logger.info(f"Updated rating {keep['id']} by {rater_id} for item {item_id}")
        return Rating.from_dict(keep)

    def get_rating(self, item_id: str, rater_id: str) -> Optional[Rating]:
        """Return the rater's current rating for an item, or None. No side effects."""
        rows = self._rows_for(item_id, rater_id)
        return Rating.from_dict(rows[0]) if rows else None

    def list_ratings(self, item_id: str) -> List[Rating]:
        """All rating rows for an item, oldest first."""
        rows = self.store.query_by_equality(self.collection, "item_id", item_id)
        rows.sort(key=lambda r: (r.get("created_at", ""), r["id"]))
        return [Rating.from_dict(row) for row in rows]

    def delete_ratings_for_item(self, item_id: str) -> Tuple[int, List[str]]:
        """
        Delete every rating row referencing an item.

        Already-deleted rows are skipped silently, so this is safe to retry.

        Returns:
            (number of rows deleted, ids of rows that could not be deleted)
        """
        rows = self.store.query_by_equality(self.collection, "item_id", item_id)
        deleted = 0
        failed: List[str] = []

        for row in rows:
            try:
                if self.store.delete_by_id(self.collection, row["id"]):
                    deleted += 1
            except StoreUnavailableError as e:
                logger.error(f"Failed to delete rating {row['id']} for item {item_id}: {e}")
                failed.append(row["id"])

        logger.info(f"Deleted {deleted} ratings for item {item_id} ({len(failed)} failed)")
        return deleted, failed

    def _rows_for(self, item_id: str, rater_id: str) -> List[Dict]:
        rows = [
            row for row in self.store.query_by_equality(self.collection, "item_id", item_id)
            if row.get("rater_id") == rater_id
        ]
        rows.sort(key=lambda r: (r.get("created_at", ""), r["id"]))
        return rows
