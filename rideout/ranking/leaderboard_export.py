"""
Leaderboard Exporter.

Writes the minimum-ratings leaderboard as a CSV table plus a metadata JSON.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import List

import pandas as pd

import config.settings as settings
from rideout.models.category import RATING_CATEGORIES
from rideout.models.item import Item
from rideout.ranking.feed_ranker import FeedRanker

logger = logging.getLogger(__name__)

BASE_COLUMNS = ["Rank", "Bike", "Owner", "Overall"]
TAIL_COLUMNS = ["Total Ratings", "Views", "Item ID"]


class LeaderboardExporter:
    """
    Exports the top-rated bikes table.
    """

    def __init__(self, ranker: FeedRanker):
        """
        Initialize exporter.

        Args:
            ranker: Feed ranker supplying the leaderboard order
        """
        self.ranker = ranker

    def collect(self, limit: int, min_ratings: int) -> List[Item]:
        """Walk leaderboard pages until `limit` items are gathered."""
        items: List[Item] = []
        cursor = None
        while len(items) < limit:
            page = self.ranker.leaderboard(
                page_size=min(settings.DEFAULT_PAGE_SIZE, limit - len(items)),
                cursor=cursor,
                min_ratings=min_ratings
            )
            items.extend(page.items)
            if page.next_cursor is None:
                break
            cursor = page.next_cursor
        return items

    def build_table(self, items: List[Item]) -> pd.DataFrame:
        """One row per item, one average column per category."""
        category_columns = [cat.label for cat in RATING_CATEGORIES.values()]
        rows = []
        for rank, item in enumerate(items, start=1):
            row = {
                "Rank": rank,
                "Bike": item.bike_name,
                "Owner": item.owner_name,
                "Overall": item.overall_rating,
            }
            for key, category in RATING_CATEGORIES.items():
                row[category.label] = item.ratings[key].avg
            row["Total Ratings"] = item.total_ratings
            row["Views"] = item.view_count
            row["Item ID"] = item.item_id
            rows.append(row)

        columns = BASE_COLUMNS + category_columns + TAIL_COLUMNS
        if not rows:
            logger.warning("No qualifying bikes, creating empty leaderboard")
            return pd.DataFrame(columns=columns)
        return pd.DataFrame(rows, columns=columns)

    def export(
        self,
        output_dir: str = str(settings.OUTPUT_ROOT),
        limit: int = settings.LEADERBOARD_LIMIT,
        min_ratings: int = settings.LEADERBOARD_MIN_RATINGS
    ) -> str:
        """
        Generate the leaderboard CSV and its metadata file.

        Returns:
            Path to generated CSV file
        """
        generated_at = datetime.now(timezone.utc)
        items = self.collect(limit, min_ratings)
        df = self.build_table(items)

        os.makedirs(output_dir, exist_ok=True)
        stamp = generated_at.strftime("%Y-%m-%d")
        output_path = os.path.join(output_dir, f"leaderboard_{stamp}.csv")
        df.to_csv(output_path, index=False)

        logger.info(f"Leaderboard saved to {output_path} ({len(df)} bikes)")

        metadata_path = os.path.join(output_dir, f"leaderboard_{stamp}_metadata.json")
        metadata = {
            "generated_at": generated_at.isoformat().replace("+00:00", "Z"),
            "limit": limit,
            "min_ratings": min_ratings,
            "total_bikes": len(df),
            "categories": list(RATING_CATEGORIES.keys()),
            "top_overall": float(df["Overall"].max()) if not df.empty else None
        }
        with open(metadata_path, 'w', encoding='utf-8') as f:
            json.dump(metadata, f, indent=2)

        logger.info(f"Metadata saved to {metadata_path}")
        return output_path
