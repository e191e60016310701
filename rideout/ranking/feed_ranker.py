"""
Feed Ranker.

Ordered, cursor-paginated views over the item registry: newest first,
top rated, and the minimum-ratings leaderboard.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import config.settings as settings
from rideout.errors import ValidationError
from rideout.models.item import Item
from rideout.utils.storage import DocumentStore, QuerySpec, SortField

logger = logging.getLogger(__name__)

NEWEST = "newest"
TOP_RATED = "top_rated"
LEADERBOARD = "leaderboard"

_SORT_ALIASES = {
    "newest": NEWEST,
    "top_rated": TOP_RATED,
    "topRated": TOP_RATED,
}

# Every order ends in the id so the order is total
SORT_ORDERS = {
    NEWEST: [
        SortField("created_at"),
        SortField("id"),
    ],
    TOP_RATED: [
        SortField("overall_rating"),
        SortField("created_at"),
        SortField("id"),
    ],
}


# Expected JSON types of cursor key values, per sort field
_KEY_TYPES = {
    "overall_rating": (int, float),
    "created_at": (str,),
    "id": (str,),
}


def _check_key_types(key: List, sort_spec: List[SortField], cursor: str) -> None:
    for sort_field, value in zip(sort_spec, key):
        if value is None:
            continue
        expected = _KEY_TYPES.get(sort_field.field)
        if expected and (isinstance(value, bool) or not isinstance(value, expected)):
            raise ValidationError(
                f"Malformed cursor: {cursor!r} ({sort_field.field} has wrong type)"
            )


def normalize_sort_mode(sort_mode: str) -> str:
    """Map accepted spellings to a canonical sort mode."""
    try:
        return _SORT_ALIASES[sort_mode]
    except KeyError:
        raise ValidationError(
            f"Invalid sort mode: {sort_mode!r}. Must be 'newest' or 'top_rated'"
        ) from None


def encode_cursor(mode: str, key: List) -> str:
    """Pack a sort mode and last-seen key into an opaque token."""
    payload = json.dumps({"m": mode, "k": key}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str, expected_mode: str) -> List:
    """
    Unpack a cursor produced by encode_cursor().

    Raises:
        ValidationError: If the token is malformed or belongs to another mode
    """
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        mode, key = payload["m"], payload["k"]
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError, AttributeError) as e:
        raise ValidationError(f"Malformed cursor: {cursor!r}") from e

    if mode != expected_mode:
        raise ValidationError(f"Cursor belongs to '{mode}' feed, not '{expected_mode}'")
    if not isinstance(key, list):
        raise ValidationError(f"Malformed cursor: {cursor!r}")
    return key


@dataclass
class FeedPage:
    """One page of a feed."""
    items: List[Item] = field(default_factory=list)
    next_cursor: Optional[str] = None  # None when there is nothing further


class FeedRanker:
    """
    Produces ordered pages of items.

    Pagination is keyed on the last item's sort key, so items inserted between
    page fetches cannot shift later pages.
    """

    def __init__(self, store: DocumentStore, collection: str = settings.ITEMS_COLLECTION):
        """
        Initialize feed ranker.

        Args:
            store: Backing document store
            collection: Collection holding items
        """
        self.store = store
        self.collection = collection

    def list(
        self,
        sort_mode: str = NEWEST,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
        cursor: Optional[str] = None
    ) -> FeedPage:
        """
        Fetch one page of the feed.

        Args:
            sort_mode: "newest" or "top_rated" ("topRated" accepted)
            page_size: Items per page
            cursor: next_cursor from the previous page, or None for the first

        Returns:
            FeedPage with items and the cursor for the following page
        """
        mode = normalize_sort_mode(sort_mode)
        return self._page(mode, mode, page_size, cursor, where=None)

    def leaderboard(
        self,
        page_size: int = settings.LEADERBOARD_LIMIT,
        cursor: Optional[str] = None,
        min_ratings: int = settings.LEADERBOARD_MIN_RATINGS
    ) -> FeedPage:
        """
        Top-rated items with at least `min_ratings` ratings.
        """
        where = [("total_ratings", ">=", min_ratings)]
        return self._page(LEADERBOARD, TOP_RATED, page_size, cursor, where=where)

    def window_query(self, sort_mode: str, limit: int = settings.LIVE_WINDOW_SIZE) -> QuerySpec:
        """Query describing the first `limit` items of a sort, for live watches."""
        mode = normalize_sort_mode(sort_mode)
        return QuerySpec(sort=list(SORT_ORDERS[mode]), limit=limit)

    def _page(
        self,
        cursor_mode: str,
        order: str,
        page_size: int,
        cursor: Optional[str],
        where: Optional[List[Tuple]]
    ) -> FeedPage:
        if page_size <= 0:
            raise ValidationError(f"Invalid page size: {page_size}. Must be positive")

        sort_spec = SORT_ORDERS[order]
        start_after = decode_cursor(cursor, cursor_mode) if cursor else None
        if start_after is not None:
            if len(start_after) != len(sort_spec):
                raise ValidationError(f"Malformed cursor: {cursor!r}")
            _check_key_types(start_after, sort_spec, cursor)

        # One extra record tells us whether another page exists
        records = self.store.ordered_page(
            self.collection,
            sort_spec,
            page_size + 1,
            cursor=start_after,
            where=where
        )

        has_more = len(records) > page_size
        records = records[:page_size]

        next_cursor = None
        if has_more:
            last = records[-1]
            next_cursor = encode_cursor(cursor_mode, [last.get(f.field) for f in sort_spec])

        logger.debug(
            f"Feed page ({cursor_mode}): {len(records)} items, more={has_more}"
        )
        return FeedPage(items=[Item.from_dict(r) for r in records], next_cursor=next_cursor)
