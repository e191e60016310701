"""
Rating category definitions.

The closed set of dimensions a bike can be scored on. Shared by submission
validation and aggregation.
"""

from dataclasses import dataclass
from typing import Dict, Mapping

import config.settings as settings
from rideout.errors import ValidationError


@dataclass(frozen=True)
class Category:
    """A single rating dimension."""
    key: str
    label: str
    emoji: str
    description: str


# Ordered: aggregation and display iterate in this order
RATING_CATEGORIES: Dict[str, Category] = {
    "style": Category("style", "Style", "🔥", "Overall look and aesthetics"),
    "mods": Category("mods", "Mods", "⚡", "Modifications and upgrades"),
    "clean": Category("clean", "Clean", "✨", "Cleanliness and maintenance"),
    "power": Category("power", "Power", "💪", "Performance and speed"),
}

CATEGORY_KEYS = tuple(RATING_CATEGORIES.keys())


def validate_scores(scores: Mapping) -> Dict[str, int]:
    """
    Validate a per-category score map.

    Args:
        scores: Mapping of category key -> integer score

    Returns:
        Plain dict copy of the scores, in category order

    Raises:
        ValidationError: On unknown category keys or out-of-range scores
    """
    if not isinstance(scores, Mapping):
        raise ValidationError(f"Scores must be a mapping, got {type(scores).__name__}")

    unknown = [key for key in scores if key not in RATING_CATEGORIES]
    if unknown:
        raise ValidationError(
            f"Unknown rating categories: {', '.join(sorted(map(str, unknown)))}. "
            f"Must be one of: {', '.join(CATEGORY_KEYS)}"
        )

    for key, value in scores.items():
        # bool is an int subclass; True is not a star rating
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"Score for '{key}' must be an integer, got {value!r}")
        if not (settings.MIN_SCORE <= value <= settings.MAX_SCORE):
            raise ValidationError(
                f"Invalid score for '{key}': {value}. "
                f"Must be {settings.MIN_SCORE}-{settings.MAX_SCORE}"
            )

    return {key: scores[key] for key in CATEGORY_KEYS if key in scores}
