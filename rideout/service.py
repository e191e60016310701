"""
Rate My Ride service.

Wires the rating store, aggregator, item registry, feed ranker and live
publisher together behind one entry point.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional

import config.settings as settings
from rideout.errors import CascadeIncompleteError, PermissionDeniedError, RideOutError
from rideout.models.category import validate_scores
from rideout.models.item import Item
from rideout.models.rating import Rating
from rideout.ranking.aggregator import Aggregator
from rideout.ranking.feed_ranker import FeedPage, FeedRanker, NEWEST
from rideout.ranking.leaderboard_export import LeaderboardExporter
from rideout.ranking.publisher import Callback, LivePublisher, Subscription
from rideout.registry.item_registry import ItemRegistry
from rideout.registry.rating_store import RatingStore
from rideout.session import ViewerSession
from rideout.utils.storage import DocumentStore, JsonDocumentStore
from rideout.utils.timestamps import utc_timestamp
from rideout.utils.uploader import ImageUploader, LocalImageUploader

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    """Outcome of a rating submission."""
    rating: Rating
    item: Item  # Item with freshly recomputed aggregates


class RateMyRideService:
    """
    Orchestrates rating submissions and feed reads.

    Flow for a rating:
    1. Validate scores → 2. Upsert rater's row → 3. Recompute item aggregates
    Live subscribers are notified by the store once the item is updated.
    """

    def __init__(
        self,
        store: DocumentStore,
        uploader: Optional[ImageUploader] = None,
        clock: Callable[[], str] = utc_timestamp
    ):
        """
        Initialize service components.

        Args:
            store: Document store shared by all components
            uploader: Object storage for bike images (needed by post_bike)
            clock: Returns the current timestamp string
        """
        self.store = store
        self.rating_store = RatingStore(store, clock=clock)
        self.items = ItemRegistry(store, self.rating_store, uploader=uploader, clock=clock)
        self.aggregator = Aggregator(self.rating_store, self.items)
        self.ranker = FeedRanker(store)
        self.publisher = LivePublisher(store, self.ranker)
        self.exporter = LeaderboardExporter(self.ranker)

        logger.info("RateMyRideService initialized")

    @classmethod
    def from_data_root(cls, data_root: str = str(settings.DATA_ROOT)) -> "RateMyRideService":
        """Service over a JSON store with local image uploads under data_root."""
        store = JsonDocumentStore(data_root)
        uploader = LocalImageUploader(f"{data_root}/uploads")
        return cls(store, uploader=uploader)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def create_item(self, session: ViewerSession, fields: Optional[Dict] = None) -> Item:
        """Create a bike post without an image upload."""
        owner_id = session.require_active()
        return self.items.create_item(owner_id, fields)

    def post_bike(
        self,
        session: ViewerSession,
        image_data: bytes,
        filename: str,
        fields: Optional[Dict] = None
    ) -> Item:
        """Upload a bike photo and create its post."""
        owner_id = session.require_active()
        return self.items.post_item(owner_id, fields, image_data, filename)

    def get_item(self, item_id: str) -> Optional[Item]:
        return self.items.get_item(item_id)

    def view_item(self, item_id: str) -> Optional[Item]:
        """Fetch an item and count the view (best effort)."""
        item = self.items.get_item(item_id)
        if item is not None:
            self.items.increment_view_count(item_id)
        return item

    def items_by_owner(self, owner_id: str) -> List[Item]:
        return self.items.items_by_owner(owner_id)

    def delete_item(self, session: ViewerSession, item_id: str) -> int:
        """
        Delete one of the viewer's own items, cascading to its ratings.

        When the cascade stops part-way and the item survives, its aggregates
        are recomputed from the ratings that remain before the error is
        re-raised.

        Returns:
            Number of rating rows deleted

        Raises:
            NotFoundError: If the item doesn't exist
            PermissionDeniedError: If the viewer does not own the item
            CascadeIncompleteError: If the cascade did not finish
        """
        viewer_id = session.require_active()
        item = self.items.require_item(item_id)
        if item.owner_id != viewer_id:
            raise PermissionDeniedError(f"{viewer_id} does not own item {item_id}")

        try:
            return self.items.delete_item(item_id)
        except CascadeIncompleteError as e:
            if not e.item_deleted:
                try:
                    self.aggregator.recompute(item_id)
                except RideOutError as recompute_error:
                    logger.error(
                        f"Could not recompute {item_id} after incomplete delete: {recompute_error}"
                    )
            raise

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    def submit_rating(
        self,
        session: ViewerSession,
        item_id: str,
        scores: Mapping
    ) -> SubmissionResult:
        """
        Record the viewer's rating and refresh the item's aggregates.

        Returns only after the recompute has been stored.

        Raises:
            ValidationError: Bad category or score (nothing written)
            NotFoundError: Item doesn't exist (nothing written)
            PermissionDeniedError: Viewer owns the item
        """
        rater_id = session.require_active()
        validate_scores(scores)

        item = self.items.require_item(item_id)
        if item.owner_id == rater_id:
            raise PermissionDeniedError(f"{rater_id} cannot rate their own item {item_id}")

        rating = self.rating_store.upsert_rating(item_id, rater_id, scores)
        updated = self.aggregator.recompute(item_id)
        return SubmissionResult(rating=rating, item=updated)

    def get_rating(self, session: ViewerSession, item_id: str) -> Optional[Rating]:
        """The viewer's existing rating for an item, for prefilling an edit."""
        rater_id = session.require_active()
        return self.rating_store.get_rating(item_id, rater_id)

    # ------------------------------------------------------------------
    # Feeds
    # ------------------------------------------------------------------

    def list_feed(
        self,
        sort_mode: str = NEWEST,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
        cursor: Optional[str] = None
    ) -> FeedPage:
        return self.ranker.list(sort_mode, page_size, cursor)

    def leaderboard(
        self,
        page_size: int = settings.LEADERBOARD_LIMIT,
        cursor: Optional[str] = None,
        min_ratings: int = settings.LEADERBOARD_MIN_RATINGS
    ) -> FeedPage:
        return self.ranker.leaderboard(page_size, cursor, min_ratings)

    def subscribe(self, sort_mode: str, callback: Callback) -> Subscription:
        return self.publisher.subscribe(sort_mode, callback)

    def export_leaderboard(
        self,
        output_dir: str = str(settings.OUTPUT_ROOT),
        limit: int = settings.LEADERBOARD_LIMIT,
        min_ratings: int = settings.LEADERBOARD_MIN_RATINGS
    ) -> str:
        return self.exporter.export(output_dir, limit, min_ratings)
