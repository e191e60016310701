"""
Unit tests for feed ordering and cursor pagination.
"""

import pytest

from rideout.errors import ValidationError
from rideout.ranking.feed_ranker import FeedRanker, decode_cursor, encode_cursor


@pytest.fixture
def ranker(store, registry):
    return FeedRanker(store, registry.collection)


def _post(registry, store, name, overall=0.0, total=0):
    item = registry.create_item("owner-1", {"bike_name": name})
    store.update_fields(registry.collection, item.item_id, {
        "overall_rating": overall,
        "total_ratings": total
    })
    return item.item_id


def _names(page):
    return [item.bike_name for item in page.items]


def _walk(ranker, sort_mode, page_size):
    names, cursor = [], None
    while True:
        page = ranker.list(sort_mode, page_size, cursor)
        names.extend(_names(page))
        if page.next_cursor is None:
            return names
        cursor = page.next_cursor


def test_newest_first(ranker, registry, store):
    """Newest items come first."""
    for name in ("old", "mid", "new"):
        _post(registry, store, name)

    assert _names(ranker.list("newest", 10)) == ["new", "mid", "old"]


def test_newest_ties_broken_by_id_descending(ranker, store, registry):
    """Items created at the same instant are ordered by id, descending."""
    stamp = "2024-06-01T00:00:00.000000Z"
    for doc_id in ("b", "c", "a"):
        store.insert(registry.collection, {
            "owner_id": "o", "bike_name": doc_id, "created_at": stamp, "overall_rating": 0.0
        }, doc_id=doc_id)

    assert _names(ranker.list("newest", 10)) == ["c", "b", "a"]


def test_top_rated_order(ranker, registry, store):
    """Higher overall rating first, newer first on ties."""
    _post(registry, store, "meh", overall=2.0)
    _post(registry, store, "great-old", overall=4.5)
    _post(registry, store, "great-new", overall=4.5)
    _post(registry, store, "unrated")

    assert _names(ranker.list("top_rated", 10)) == ["great-new", "great-old", "meh", "unrated"]
    # Original client spelling
    assert _names(ranker.list("topRated", 10)) == ["great-new", "great-old", "meh", "unrated"]


def test_pages_cover_everything_once(ranker, registry, store):
    """Walking all pages returns every item exactly once."""
    for i in range(7):
        _post(registry, store, f"bike-{i}", overall=float(i % 3))

    newest = _walk(ranker, "newest", 3)
    top = _walk(ranker, "top_rated", 2)

    assert newest == [f"bike-{i}" for i in reversed(range(7))]
    assert sorted(top) == sorted(newest)
    assert len(top) == 7


def test_last_page_has_no_cursor(ranker, registry, store):
    """The final page carries no next cursor."""
    for name in ("a", "b"):
        _post(registry, store, name)

    page = ranker.list("newest", 2)
    assert len(page.items) == 2
    assert page.next_cursor is None


def test_insert_between_pages_does_not_shift(ranker, registry, store):
    """A new top item arriving between fetches neither repeats nor skips anything."""
    for i, score in enumerate([5.0, 4.0, 3.0, 2.0, 1.0]):
        _post(registry, store, f"bike-{i}", overall=score)

    first = ranker.list("top_rated", 2)
    assert _names(first) == ["bike-0", "bike-1"]

    _post(registry, store, "newcomer", overall=5.0)

    second = ranker.list("top_rated", 2, first.next_cursor)
    assert _names(second) == ["bike-2", "bike-3"]


def test_leaderboard_requires_min_ratings(ranker, registry, store):
    """Items below the minimum rating count are left out."""
    _post(registry, store, "popular", overall=3.0, total=5)
    _post(registry, store, "perfect-but-few", overall=5.0, total=2)
    _post(registry, store, "solid", overall=4.0, total=3)

    assert _names(ranker.leaderboard(10)) == ["solid", "popular"]
    assert _names(ranker.leaderboard(10, min_ratings=1)) == ["perfect-but-few", "solid", "popular"]


def test_leaderboard_pagination(ranker, registry, store):
    """Leaderboard pages follow on from each other."""
    for i in range(5):
        _post(registry, store, f"bike-{i}", overall=float(i), total=3)

    first = ranker.leaderboard(3)
    second = ranker.leaderboard(3, first.next_cursor)

    assert _names(first) == ["bike-4", "bike-3", "bike-2"]
    assert _names(second) == ["bike-1", "bike-0"]
    assert second.next_cursor is None


def test_cursor_round_trip():
    """A cursor decodes back to its key values."""
    token = encode_cursor("newest", ["2024-06-01T00:00:00.000000Z", "abc"])
    assert decode_cursor(token, "newest") == ["2024-06-01T00:00:00.000000Z", "abc"]


def test_cursor_rejected_for_other_mode(ranker, registry, store):
    """A cursor from one feed can't be used on another."""
    for name in ("a", "b", "c"):
        _post(registry, store, name)
    page = ranker.list("newest", 1)

    with pytest.raises(ValidationError, match="belongs to"):
        ranker.list("top_rated", 1, page.next_cursor)


@pytest.mark.parametrize("cursor", [
    "not base64!!",
    "e30=",
    "bm9wZQ==",
    encode_cursor("newest", [20240601, "x"]),
])
def test_malformed_cursor(ranker, cursor):
    """Undecodable or ill-typed cursors are rejected."""
    with pytest.raises(ValidationError):
        ranker.list("newest", 5, cursor)


def test_cursor_with_wrong_key_types_rejected(ranker, registry, store):
    """A cursor whose key values don't match the sort fields is a validation error."""
    for name in ("a", "b", "c"):
        _post(registry, store, name, overall=2.0)
    cursor = encode_cursor("top_rated", ["high", "2024", "x"])

    with pytest.raises(ValidationError, match="Malformed cursor"):
        ranker.list("top_rated", 2, cursor)


def test_invalid_sort_mode_and_page_size(ranker):
    """Unknown sort modes and non-positive page sizes are rejected."""
    with pytest.raises(ValidationError):
        ranker.list("hottest", 5)
    with pytest.raises(ValidationError):
        ranker.list("newest", 0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
