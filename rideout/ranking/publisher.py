"""
Live View Publisher.

Pushes the current window of a feed to subscribed viewers whenever an item
in that window is created, updated or removed.
"""

import logging
from typing import Callable, List, Optional

import config.settings as settings
from rideout.models.item import Item
from rideout.ranking.feed_ranker import FeedRanker, normalize_sort_mode
from rideout.utils.storage import DocumentStore

logger = logging.getLogger(__name__)

Callback = Callable[[List[Item]], None]


class Subscription:
    """
    One viewer's standing feed query.

    Delivers only the latest snapshot: a change arriving while the callback
    is still running replaces any snapshot already waiting.
    """

    def __init__(self, sort_mode: str, callback: Callback):
        self.sort_mode = sort_mode
        self.callback = callback
        self.active = True
        self._cancel: Optional[Callable[[], None]] = None
        self._delivering = False
        self._pending: Optional[List[Item]] = None

    def unsubscribe(self) -> None:
        """Stop all further callbacks. Safe to call more than once."""
        if not self.active:
            return
        self.active = False
        self._pending = None
        if self._cancel is not None:
            self._cancel()
            self._cancel = None
        logger.info(f"Unsubscribed from {self.sort_mode} feed")

    def _deliver(self, items: List[Item]) -> None:
        if not self.active:
            return
        if self._delivering:
            self._pending = items
            return

        self._delivering = True
        try:
            snapshot: Optional[List[Item]] = items
            while snapshot is not None and self.active:
                self._pending = None
                try:
                    self.callback(snapshot)
                except Exception:
                    logger.exception(f"Subscriber callback on {self.sort_mode} feed failed")
                snapshot = self._pending
        finally:
            self._delivering = False
            self._pending = None


class LivePublisher:
    """
    Maintains live feed subscriptions on top of store watches.
    """

    def __init__(
        self,
        store: DocumentStore,
        ranker: FeedRanker,
        window_size: int = settings.LIVE_WINDOW_SIZE
    ):
        """
        Initialize publisher.

        Args:
            store: Document store providing watches
            ranker: Source of sort orders
            window_size: Number of items pushed to each subscriber
        """
        self.store = store
        self.ranker = ranker
        self.window_size = window_size

    def subscribe(self, sort_mode: str, callback: Callback) -> Subscription:
        """
        Start a live feed.

        The callback is invoked once immediately with the current window and
        then after every change to it. If the store fails, the callback gets
        an empty list and the subscription keeps running.

        Returns:
            Subscription handle; call unsubscribe() to stop
        """
        mode = normalize_sort_mode(sort_mode)
        subscription = Subscription(mode, callback)
        query = self.ranker.window_query(mode, self.window_size)

        def on_change(records: List[dict]) -> None:
            try:
                items = [Item.from_dict(r) for r in records]
            except (KeyError, TypeError, ValueError) as e:
                on_error(e)
                return
            subscription._deliver(items)

        def on_error(error: Exception) -> None:
            logger.error(f"Error in {mode} feed subscription: {error}")
            subscription._deliver([])

        subscription._cancel = self.store.watch(
            self.ranker.collection, query, on_change, on_error
        )
        if not subscription.active:
            # Callback unsubscribed during the initial delivery
            subscription._cancel()
            subscription._cancel = None

        logger.info(f"Subscribed to {mode} feed (window={self.window_size})")
        return subscription
