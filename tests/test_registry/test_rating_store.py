"""
Unit tests for the Rating Store.
"""

import pytest

from rideout.errors import ValidationError


def test_first_submission_creates_row(rating_store):
    """The first submission creates a rating row."""
    rating = rating_store.upsert_rating("bike-1", "rater-a", {"style": 4, "mods": 2})

    assert rating.rating_id
    assert rating.scores == {"style": 4, "mods": 2}
    assert rating.updated_at is None
    assert len(rating_store.list_ratings("bike-1")) == 1


def test_resubmission_overwrites_not_duplicates(rating_store):
    """Second submission replaces the prior scores, never merges them."""
    first = rating_store.upsert_rating("bike-1", "rater-a", {"style": 5})
    second = rating_store.upsert_rating("bike-1", "rater-a", {"mods": 3})

    rows = rating_store.list_ratings("bike-1")
    assert len(rows) == 1
    assert rows[0].rating_id == first.rating_id == second.rating_id
    assert rows[0].scores == {"mods": 3}
    assert rows[0].updated_at is not None
    assert rows[0].created_at == first.created_at


def test_invalid_scores_write_nothing(rating_store, store):
    """Invalid scores leave the store untouched."""
    with pytest.raises(ValidationError):
        rating_store.upsert_rating("bike-1", "rater-a", {"style": 6})
    with pytest.raises(ValidationError):
        rating_store.upsert_rating("bike-1", "rater-a", {"unknownCat": 3})

    assert rating_store.list_ratings("bike-1") == []


def test_invalid_resubmission_keeps_previous_scores(rating_store):
    """A rejected resubmission keeps the earlier scores."""
    rating_store.upsert_rating("bike-1", "rater-a", {"style": 2})

    with pytest.raises(ValidationError):
        rating_store.upsert_rating("bike-1", "rater-a", {"style": 0})

    assert rating_store.get_rating("bike-1", "rater-a").scores == {"style": 2}


def test_get_rating_has_no_side_effect(rating_store):
    """Reading a rating doesn't create one."""
    assert rating_store.get_rating("bike-1", "rater-a") is None
    assert rating_store.list_ratings("bike-1") == []

    rating_store.upsert_rating("bike-1", "rater-a", {"clean": 5})
    assert rating_store.get_rating("bike-1", "rater-a").scores == {"clean": 5}
    assert rating_store.get_rating("bike-1", "rater-b") is None


def test_ratings_are_scoped_per_item(rating_store):
    """A rater's ratings on different items are separate."""
    rating_store.upsert_rating("bike-1", "rater-a", {"style": 1})
    rating_store.upsert_rating("bike-2", "rater-a", {"style": 5})

    assert rating_store.get_rating("bike-1", "rater-a").scores == {"style": 1}
    assert rating_store.get_rating("bike-2", "rater-a").scores == {"style": 5}


def test_upsert_collapses_duplicate_rows(rating_store, store):
    """Rows left behind by a lost insert race are folded into one."""
    for created in ("2024-06-01T00:00:01.000000Z", "2024-06-01T00:00:02.000000Z"):
        store.insert(rating_store.collection, {
            "item_id": "bike-1",
            "rater_id": "rater-a",
            "scores": {"style": 1},
            "created_at": created,
            "updated_at": None
        })

    rating = rating_store.upsert_rating("bike-1", "rater-a", {"power": 4})

    rows = rating_store.list_ratings("bike-1")
    assert len(rows) == 1
    assert rows[0].rating_id == rating.rating_id
    assert rows[0].created_at == "2024-06-01T00:00:01.000000Z"
    assert rows[0].scores == {"power": 4}


def test_delete_ratings_for_item(rating_store):
    """Deleting an item's ratings leaves other items' ratings alone."""
    for rater in ("a", "b", "c"):
        rating_store.upsert_rating("bike-1", rater, {"style": 3})
    rating_store.upsert_rating("bike-2", "a", {"style": 3})

    deleted, failed = rating_store.delete_ratings_for_item("bike-1")

    assert (deleted, failed) == (3, [])
    assert rating_store.list_ratings("bike-1") == []
    assert len(rating_store.list_ratings("bike-2")) == 1

    # Retrying is a no-op
    assert rating_store.delete_ratings_for_item("bike-1") == (0, [])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
