"""
Build and persist the search index projection.

This script:
1) Loads the catalog snapshot from .cache/data (works.json, circles.json)
2) Flattens every available work into a compact search record
3) Writes the records to public/data/search-index.json

Usage:
    python -m scripts.build_search_index [output_path]

The output is consumed entirely client-side (and by the /search endpoint);
it is regenerated wholesale on every build.
"""

import sys  # optional output path argument
import time  # measure step timings
from pathlib import Path  # filesystem-safe paths

from loguru import logger  # console logging

from catalog_engine import config
from catalog_engine.data_loader import get_loader  # snapshot ingestion
from catalog_engine.projection import build_search_index, write_search_index
from catalog_engine.query_engine import CatalogQueryEngine


def main(output_path=None):
	# Headline banner for visibility in console
	logger.info("=" * 60)
	logger.info("Build Search Index")
	logger.info("=" * 60)

	output = Path(output_path) if output_path else config.SEARCH_INDEX_PATH

	# 1) Load snapshot
	logger.info("[1/3] Loading snapshot...")
	t0 = time.time()
	snapshot = get_loader().snapshot()
	if not snapshot.works:
		logger.warning("[WARN] Snapshot is empty; the index will contain no items")
	logger.info(f"[OK] Loaded {len(snapshot.works)} works, {len(snapshot.circles)} circles")

	# 2) Project
	logger.info("[2/3] Flattening works...")
	items = build_search_index(CatalogQueryEngine(snapshot))
	logger.info(f"[OK] {len(items)} items in {time.time() - t0:.2f}s")

	# 3) Save
	logger.info("[3/3] Writing index...")
	write_search_index(items, output)
	logger.info("[OK] Saved.")
	logger.info("=" * 60)
	return output


if __name__ == '__main__':
	main(sys.argv[1] if len(sys.argv) > 1 else None)  # invoke builder
