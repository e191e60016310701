"""
Unit tests for the leaderboard CSV export.
"""

import json
import os
import tempfile

import pandas as pd
import pytest

from rideout.ranking.feed_ranker import FeedRanker
from rideout.ranking.leaderboard_export import LeaderboardExporter


@pytest.fixture
def exporter(store, registry):
    return LeaderboardExporter(FeedRanker(store, registry.collection))


def _post(registry, store, name, overall, total):
    item = registry.create_item("owner-1", {"bike_name": name, "owner_name": "Volt"})
    store.update_fields(registry.collection, item.item_id, {
        "overall_rating": overall,
        "total_ratings": total,
        "ratings": {
            "style": {"total": 12, "count": 3, "avg": 4.0},
            "mods": {"total": 0, "count": 0, "avg": 0},
            "clean": {"total": 0, "count": 0, "avg": 0},
            "power": {"total": 0, "count": 0, "avg": 0}
        }
    })


def test_export_writes_csv_and_metadata(exporter, registry, store):
    """Export writes the ranked CSV and its metadata file."""
    _post(registry, store, "second", 2.5, 4)
    _post(registry, store, "first", 3.1, 3)
    _post(registry, store, "too-few", 5.0, 1)

    with tempfile.TemporaryDirectory() as tmpdir:
        output_path = exporter.export(tmpdir, limit=10, min_ratings=3)

        df = pd.read_csv(output_path)
        assert list(df["Bike"]) == ["first", "second"]
        assert list(df["Rank"]) == [1, 2]
        assert list(df["Style"]) == [4.0, 4.0]
        assert list(df.columns[:4]) == ["Rank", "Bike", "Owner", "Overall"]

        metadata_path = output_path.replace(".csv", "_metadata.json")
        with open(metadata_path) as f:
            metadata = json.load(f)
        assert metadata["total_bikes"] == 2
        assert metadata["min_ratings"] == 3
        assert metadata["top_overall"] == 3.1


def test_export_respects_limit_across_pages(exporter, registry, store):
    """The export limit holds even when it spans several pages."""
    for i in range(15):
        _post(registry, store, f"bike-{i}", float(i) / 3, 3)

    items = exporter.collect(limit=12, min_ratings=3)

    assert len(items) == 12
    assert items[0].bike_name == "bike-14"
    assert len({i.item_id for i in items}) == 12


def test_export_empty_leaderboard(exporter):
    """An empty leaderboard still writes a CSV with headers."""
    with tempfile.TemporaryDirectory() as tmpdir:
        output_path = exporter.export(tmpdir)

        assert os.path.exists(output_path)
        df = pd.read_csv(output_path)
        assert df.empty
        assert "Overall" in df.columns


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
