"""
Configuration for the catalog query engine.

All paths can be overridden through environment variables so the same code
runs against the build cache, a test fixture directory, or a deployed copy.
"""

import os
from pathlib import Path

# =============================================================================
# PATHS
# =============================================================================

# Project root (one level above this package)
BASE_DIR = Path(__file__).resolve().parents[1]

# Directory holding the pre-built snapshot produced by the ingestion pipeline
CACHE_DIR = Path(os.getenv("CATALOG_CACHE_DIR", str(BASE_DIR / ".cache" / "data")))

WORKS_FILENAME = "works.json"
CIRCLES_FILENAME = "circles.json"

# Flattened projection consumed by the client-side search engine
SEARCH_INDEX_PATH = Path(
	os.getenv("CATALOG_SEARCH_INDEX", str(BASE_DIR / "public" / "data" / "search-index.json"))
)

LOG_LEVEL = os.getenv("CATALOG_LOG_LEVEL", "INFO")

# =============================================================================
# QUERY DEFAULTS
# =============================================================================

DEFAULT_LIMIT = 20
DEFAULT_BARGAIN_PRICE = 500
DEFAULT_MIN_RATING = 4.5
DEFAULT_RELATED_LIMIT = 4
DEFAULT_RELATED_TAGS_LIMIT = 10
DEFAULT_POPULAR_TAGS_LIMIT = 20

# On-sale works pulled before the sale listing filters and reorders them
SALE_LISTING_POOL = 200

# Rank used in place of a missing marketplace rank
MISSING_RANK = 9999

# =============================================================================
# FUZZY SEARCH
# =============================================================================

# Field weights for the approximate match pass (title counts most)
SEARCH_FIELD_WEIGHTS = {
	"title": 1.0,
	"cast": 0.8,
	"circle": 0.5,
	"tags": 0.3,
}

# Best-field similarity (0..100) an item needs to count as a match.
# Equivalent to a 0.4 distance threshold.
SEARCH_MIN_SIMILARITY = 60.0

# Price ceilings offered by the search filter
PRICE_THRESHOLDS = (100, 300, 500, 1000, 2000)
