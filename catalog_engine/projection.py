"""
Search index projection.
Flattens available works into the compact SearchItem records that the fuzzy
search engine consumes, and reads/writes the search-index.json artifact.
"""

import json
from pathlib import Path
from typing import List, Optional

from loguru import logger

from . import config
from .models import SearchItem, Work
from .query_engine import CatalogQueryEngine


def build_search_item(work: Work) -> SearchItem:
	"""Project one (circle-enriched) work onto the wire record."""
	category = "asmr" if work.is_audio else "game"
	current_price = work.lowest_price or work.price.first(0)
	original_price = work.price.first(current_price)
	kw = work.killer_words

	return SearchItem(
		id=work.id,
		title=work.title,
		circle=work.circle_name or "",
		cast=list(work.cast),
		tags=list(work.tags),
		price=current_price,
		original_price=original_price,
		discount_rate=work.max_discount_rate or None,
		thumbnail=work.thumbnail_url or "",
		category=category,
		release_date=work.release_date or "",
		on_dlsite=bool(work.product_id.dlsite),
		on_fanza=bool(work.product_id.fanza),
		duration_minutes=kw.duration_minutes if category == "asmr" and kw.duration_minutes else None,
		cg_count=kw.cg_count if category == "game" and kw.cg_count else None,
		dlsite_rank=work.rank.dlsite or None,
		fanza_rank=work.rank.fanza or None,
		rating=work.rating.first(),
		review_count=work.review_count.first(),
		sale_end=work.sale_end_date.first(),
	)


def build_search_index(engine: CatalogQueryEngine) -> List[SearchItem]:
	"""One record per available work, newest first."""
	items = [build_search_item(w) for w in engine.get_all_works()]
	logger.info(f"[Projection] Built {len(items)} search items")
	return items


def write_search_index(items: List[SearchItem], path: Optional[Path] = None) -> Path:
	path = Path(path) if path else config.SEARCH_INDEX_PATH
	path.parent.mkdir(parents=True, exist_ok=True)  # ensure exists
	with open(path, "w", encoding="utf-8") as f:
		json.dump([item.to_dict() for item in items], f, ensure_ascii=False, indent=2)
	logger.info(f"[Projection] Wrote {len(items)} items -> {path}")
	return path


def load_search_index(path: Optional[Path] = None) -> List[SearchItem]:
	"""Read a published projection; a missing file yields an empty index."""
	path = Path(path) if path else config.SEARCH_INDEX_PATH
	if not path.exists():
		logger.warning(f"[Projection] Search index not found: {path}")
		return []
	with open(path, "r", encoding="utf-8") as f:
		data = json.load(f)
	return [SearchItem.from_dict(d) for d in data]
