"""
Unit tests for rating aggregation.
"""

from decimal import Decimal

import pytest

from rideout.errors import NotFoundError
from rideout.models.category import CATEGORY_KEYS
from rideout.models.rating import Rating
from rideout.ranking.aggregator import Aggregator, compute_aggregates, round_half_up


def _rating(rater, scores):
    return Rating(rating_id=f"r-{rater}", item_id="bike-1", rater_id=rater, scores=scores)


@pytest.fixture
def aggregator(rating_store, registry):
    return Aggregator(rating_store, registry)


def test_round_half_up():
    """Halves round away from zero, unlike round()."""
    assert round_half_up(Decimal("1.25")) == Decimal("1.3")
    assert round_half_up(Decimal("1.24")) == Decimal("1.2")
    assert round_half_up(Decimal(10) / Decimal(3)) == Decimal("3.3")


def test_no_ratings():
    """No ratings give zeroed aggregates."""
    result = compute_aggregates([])

    assert result.overall_rating == 0
    assert result.total_ratings == 0
    assert all(result.ratings[key].avg == 0 for key in CATEGORY_KEYS)


def test_unrated_categories_dilute_overall():
    """Overall is the mean over all four categories, unrated ones counting 0."""
    result = compute_aggregates([_rating("a", {"style": 4, "mods": 2})])

    assert result.ratings["style"].avg == 4.0
    assert result.ratings["mods"].avg == 2.0
    assert result.ratings["clean"].avg == 0
    assert result.ratings["power"].avg == 0
    assert result.overall_rating == 1.5
    assert result.total_ratings == 1


def test_total_ratings_counts_rows_not_scores():
    """Three raters scoring four categories each is three ratings."""
    full = {"style": 5, "mods": 4, "clean": 3, "power": 2}
    result = compute_aggregates([_rating(r, full) for r in ("a", "b", "c")])

    assert result.total_ratings == 3
    assert sum(agg.count for agg in result.ratings.values()) == 12
    assert result.overall_rating == 3.5


def test_category_counts_only_raters_who_scored_it():
    """A category's count only includes raters who scored it."""
    result = compute_aggregates([
        _rating("a", {"style": 5}),
        _rating("b", {"style": 2, "power": 4}),
        _rating("c", {}),
    ])

    assert result.ratings["style"].to_dict() == {"total": 7, "count": 2, "avg": 3.5}
    assert result.ratings["power"].to_dict() == {"total": 4, "count": 1, "avg": 4.0}
    assert result.total_ratings == 3


def test_overall_uses_rounded_category_averages():
    """Overall is built from the stored one-decimal averages."""
    result = compute_aggregates([
        _rating("a", {"style": 4, "mods": 4, "clean": 4, "power": 4}),
        _rating("b", {"style": 3, "mods": 3, "clean": 3, "power": 3}),
        _rating("c", {"style": 3, "mods": 3, "clean": 3, "power": 3}),
    ])

    # Each category: 10 / 3 = 3.333 -> 3.3
    assert all(result.ratings[key].avg == 3.3 for key in CATEGORY_KEYS)
    assert result.overall_rating == 3.3


def test_recompute_writes_aggregates(aggregator, registry, rating_store):
    """Recompute stores the aggregates on the item."""
    item = registry.create_item("owner-1")
    rating_store.upsert_rating(item.item_id, "a", {"style": 4, "mods": 2})

    updated = aggregator.recompute(item.item_id)

    assert updated.overall_rating == 1.5
    assert updated.total_ratings == 1
    assert registry.get_item(item.item_id).ratings["style"].avg == 4.0


def test_recompute_is_idempotent(aggregator, registry, rating_store):
    """Recomputing twice gives the same item."""
    item = registry.create_item("owner-1")
    rating_store.upsert_rating(item.item_id, "a", {"style": 5, "clean": 1})
    rating_store.upsert_rating(item.item_id, "b", {"style": 2, "power": 3})
    rating_store.upsert_rating(item.item_id, "c", {"mods": 4})

    first = aggregator.recompute(item.item_id)
    second = aggregator.recompute(item.item_id)

    assert first.ratings == second.ratings
    assert first.overall_rating == second.overall_rating
    assert first.total_ratings == second.total_ratings


def test_recompute_self_corrects_stale_cache(aggregator, registry, rating_store, store):
    """Whatever was cached before, recompute rebuilds from the rating rows."""
    item = registry.create_item("owner-1")
    rating_store.upsert_rating(item.item_id, "a", {"power": 5})
    store.update_fields(registry.collection, item.item_id, {"overall_rating": 4.9, "total_ratings": 7})

    updated = aggregator.recompute(item.item_id)

    assert updated.overall_rating == 1.3  # 5 / 4 = 1.25
    assert updated.total_ratings == 1


def test_recompute_missing_item(aggregator):
    """Recomputing an unknown item raises NotFoundError."""
    with pytest.raises(NotFoundError):
        aggregator.recompute("ghost")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
