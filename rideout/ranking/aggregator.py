"""
Rating Aggregator.

Recomputes an item's per-category and overall statistics from its full set of
rating rows.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable

from rideout.models.category import CATEGORY_KEYS
from rideout.models.item import CategoryAggregate, Item
from rideout.models.rating import Rating
from rideout.registry.item_registry import ItemRegistry
from rideout.registry.rating_store import RatingStore

logger = logging.getLogger(__name__)

_ONE_DECIMAL = Decimal("0.1")


def round_half_up(value: Decimal) -> Decimal:
    """Round to one decimal place, halves away from zero (1.25 -> 1.3)."""
    return value.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP)


@dataclass
class AggregateResult:
    """Output of one aggregation pass."""
    ratings: Dict[str, CategoryAggregate]
    overall_rating: float
    total_ratings: int


def compute_aggregates(ratings: Iterable[Rating]) -> AggregateResult:
    """
    Aggregate rating rows into per-category and overall statistics.

    - Per category: total and count over the raters who scored it,
      avg = total / count rounded to one decimal (0 when unscored).
    - Overall: mean of the rounded category averages over the full category
      set, unscored categories included as 0, rounded to one decimal.
    - total_ratings: number of rating rows, however many categories each
      rater scored.

    Pure function of its input; no state carries over between calls.
    """
    totals = {key: 0 for key in CATEGORY_KEYS}
    counts = {key: 0 for key in CATEGORY_KEYS}
    row_count = 0

    for rating in ratings:
        row_count += 1
        for key in CATEGORY_KEYS:
            score = rating.scores.get(key)
            if score:
                totals[key] += score
                counts[key] += 1

    aggregates: Dict[str, CategoryAggregate] = {}
    averages = []
    for key in CATEGORY_KEYS:
        if counts[key]:
            avg = round_half_up(Decimal(totals[key]) / Decimal(counts[key]))
        else:
            avg = Decimal(0)
        averages.append(avg)
        aggregates[key] = CategoryAggregate(total=totals[key], count=counts[key], avg=float(avg))

    overall = round_half_up(sum(averages, Decimal(0)) / Decimal(len(CATEGORY_KEYS)))

    return AggregateResult(
        ratings=aggregates,
        overall_rating=float(overall),
        total_ratings=row_count
    )


class Aggregator:
    """
    Writes freshly computed aggregates back onto items.

    Always rebuilds from every rating row, never from the previously cached
    values, so concurrent recomputes converge on the next pass.
    """

    def __init__(self, rating_store: RatingStore, item_registry: ItemRegistry):
        """
        Initialize aggregator.

        Args:
            rating_store: Source of rating rows
            item_registry: Destination for cached aggregates
        """
        self.rating_store = rating_store
        self.item_registry = item_registry

    def recompute(self, item_id: str) -> Item:
        """
        Recompute and store the aggregates for one item.

        Returns:
            The updated Item

        Raises:
            NotFoundError: If the item doesn't exist
        """
        ratings = self.rating_store.list_ratings(item_id)
        result = compute_aggregates(ratings)

        self.item_registry.apply_aggregates(
            item_id,
            result.ratings,
            result.overall_rating,
            result.total_ratings
        )

        logger.info(
            f"Recomputed item {item_id}: overall={result.overall_rating} "
            f"from {result.total_ratings} ratings"
        )
        return self.item_registry.require_item(item_id)
