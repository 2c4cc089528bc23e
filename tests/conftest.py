"""
Shared fixtures: build snapshots from inline snake_case records, the same shape
the ingestion pipeline writes to .cache/data.
"""

import json

import pytest

from catalog_engine.data_loader import SnapshotLoader
from catalog_engine.query_engine import CatalogQueryEngine


def make_work(id, **fields):
	"""A minimal available work record; keyword arguments override any field."""
	record = {
		"id": id,
		"title": f"Work {id}",
		"circle_id": None,
		"genre": None,
		"category": None,
		"release_date": "2024-01-01",
		"dlsite_product_id": None,
		"fanza_product_id": None,
		"price_dlsite": None,
		"price_fanza": None,
		"discount_rate_dlsite": None,
		"discount_rate_fanza": None,
		"lowest_price": None,
		"max_discount_rate": None,
		"is_on_sale": False,
		"dlsite_rank": None,
		"fanza_rank": None,
		"rating_dlsite": None,
		"rating_fanza": None,
		"review_count_dlsite": None,
		"review_count_fanza": None,
		"cv_names": [],
		"ai_tags": [],
		"is_available": True,
	}
	record.update(fields)
	return record


def make_circle(id, name, **fields):
	record = {"id": id, "name": name, "dlsite_id": None, "fanza_id": None, "main_genre": None, "work_count": 0}
	record.update(fields)
	return record


def write_snapshot(directory, works, circles=()):
	directory.mkdir(parents=True, exist_ok=True)
	(directory / "works.json").write_text(json.dumps(list(works), ensure_ascii=False), encoding="utf-8")
	(directory / "circles.json").write_text(json.dumps(list(circles), ensure_ascii=False), encoding="utf-8")
	return directory


@pytest.fixture
def build_engine(tmp_path):
	"""Factory: records in, CatalogQueryEngine out (via the real loader)."""
	def _build(works, circles=()):
		write_snapshot(tmp_path / "cache", works, circles)
		loader = SnapshotLoader(tmp_path / "cache")
		return CatalogQueryEngine(loader.snapshot())
	return _build


def ids(works):
	return [w.id for w in works]
