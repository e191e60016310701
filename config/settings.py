"""
Configuration settings for RideOut Rate My Ride.

Centralized configuration for the rating store, aggregation and feed ranking.
"""

import os
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_ROOT = Path(os.getenv("RIDEOUT_DATA_ROOT", str(PROJECT_ROOT / "data")))
OUTPUT_ROOT = Path(os.getenv("RIDEOUT_OUTPUT_ROOT", str(PROJECT_ROOT / "output")))

# Collections
ITEMS_COLLECTION = "rate_my_ride"
RATINGS_COLLECTION = "bike_ratings"

# Rating scale (inclusive)
MIN_SCORE = 1
MAX_SCORE = 5

# Feed
DEFAULT_PAGE_SIZE = 10
LIVE_WINDOW_SIZE = 20  # Items pushed to live subscribers

# Leaderboard
LEADERBOARD_MIN_RATINGS = 3  # Minimum ratings to qualify
LEADERBOARD_LIMIT = 10

# Item defaults
DEFAULT_OWNER_NAME = "Rider"
DEFAULT_BIKE_NAME = "My Ride"

# Viewer sessions
SESSION_TTL_SECONDS = int(os.getenv("RIDEOUT_SESSION_TTL_SECONDS", "3600"))

# Logging
LOG_LEVEL = os.getenv("RIDEOUT_LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = "rideout.log"
