"""
Snapshot loading and record adaptation.
Reads the Works and Circles collections from the pre-built cache once per process
and normalizes each flat snake_case record into the typed models.
"""

# Standard libs for JSON parsing, locking, typing, and paths
import json  # decode cache files and serialized list fields
import threading  # guard the one-time load
from functools import lru_cache  # process-wide default loader
from pathlib import Path  # filesystem-safe paths
from typing import Any, Dict, List, Optional, Tuple  # type hints

# Console logging
from loguru import logger  # console logger

from . import config  # cache locations
from .classifier import classify_category, is_audio_genre, is_game_genre
from .models import (
	Circle,
	EditorialText,
	KillerWords,
	PerMarketplace,
	Snapshot,
	UserReview,
	Work,
)


class SnapshotLoader:
	"""
	Loads the catalog snapshot from disk exactly once and memoizes it.
	Later calls return the same tuples without touching storage.
	"""

	def __init__(self, cache_dir: Optional[str] = None):
		"""Remember where the snapshot lives; nothing is read until first access."""
		self.cache_dir = Path(cache_dir) if cache_dir else config.CACHE_DIR  # snapshot directory
		self._lock = threading.Lock()  # serializes the first load only
		self._works: Optional[Tuple[Work, ...]] = None  # memoized works
		self._circles: Optional[Tuple[Circle, ...]] = None  # memoized circles

	def get_works(self) -> Tuple[Work, ...]:
		"""Return every Work in the snapshot (available or not)."""
		if self._works is None:  # fast path once loaded
			with self._lock:
				if self._works is None:  # another thread may have loaded meanwhile
					records = self._read_records(self.cache_dir / config.WORKS_FILENAME)
					self._works = tuple(self._adapt_all(records, self._parse_work_data, "work"))
					logger.info(f"[Loader] Loaded {len(self._works)} works from cache")
		return self._works

	def get_circles(self) -> Tuple[Circle, ...]:
		"""Return every Circle in the snapshot with its stored (untrusted) work count."""
		if self._circles is None:
			with self._lock:
				if self._circles is None:
					records = self._read_records(self.cache_dir / config.CIRCLES_FILENAME)
					self._circles = tuple(self._adapt_all(records, self._parse_circle_data, "circle"))
					logger.info(f"[Loader] Loaded {len(self._circles)} circles from cache")
		return self._circles

	def snapshot(self) -> Snapshot:
		"""Bundle both collections into the read-only object handed to the query engine."""
		return Snapshot(works=self.get_works(), circles=self.get_circles())

	def clear_cache(self):
		"""Forget the memoized collections (tests and tooling only)."""
		with self._lock:
			self._works = None
			self._circles = None
		logger.debug("[Loader] Cache cleared")

	def _read_records(self, filepath: Path) -> List[Dict[str, Any]]:
		"""
		Read raw records from a JSON array file or a JSON Lines file.
		A missing or unreadable file degrades to an empty list instead of failing the caller.
		"""
		if not filepath.exists():
			logger.warning(f"[Loader] Cache file not found: {filepath}")
			return []

		if filepath.suffix == ".jsonl":
			return self._read_jsonl(filepath)

		try:
			with open(filepath, "r", encoding="utf-8") as f:
				data = json.load(f)
		except (OSError, ValueError) as e:  # unreadable, not UTF-8, or malformed JSON
			logger.error(f"[Loader] Could not read {filepath}: {e}")
			return []

		if not isinstance(data, list):
			logger.error(f"[Loader] Expected a list of records in {filepath}, got {type(data).__name__}")
			return []
		return data

	def _read_jsonl(self, filepath: Path) -> List[Dict[str, Any]]:
		"""Decode one record per line; malformed lines are skipped, an undecodable file yields nothing."""
		records = []  # accumulator for decoded lines
		try:
			with open(filepath, "r", encoding="utf-8") as f:
				for line_num, line in enumerate(f, 1):  # keep track of line number for diagnostics
					line = line.strip()
					if not line:
						continue
					try:
						records.append(json.loads(line))
					except json.JSONDecodeError as e:
						logger.warning(f"[Loader] Skipping invalid JSON at line {line_num}: {e}")  # malformed line
		except (OSError, UnicodeDecodeError) as e:
			logger.error(f"[Loader] Could not read {filepath}: {e}")
			return []
		return records

	def _adapt_all(self, records: List[Dict[str, Any]], parse, kind: str) -> List[Any]:
		"""Apply an adapter to every record, skipping (and logging) the ones it rejects."""
		adapted = []
		for index, data in enumerate(records):
			try:
				adapted.append(parse(data))
			except (KeyError, TypeError, ValueError, AttributeError) as e:
				logger.warning(f"[Loader] Skipping {kind} record #{index}: {e}")
		return adapted

	def _parse_work_data(self, data: Dict[str, Any]) -> Work:
		"""
		Convert a raw snake_case record into a Work.
		List fields may arrive as lists or as serialized JSON strings.
		"""
		genre = data.get("genre")  # raw marketplace genre
		category = classify_category(data.get("category"))  # closed category, once

		killer_words = KillerWords(
			duration_minutes=_to_int(data.get("duration_minutes")),
			situations=self._parse_list_field(data.get("situations")),
			fetish_tags=self._parse_list_field(data.get("fetish_tags")),
			cg_count=_to_int(data.get("cg_count")),
			cg_diff_count=_to_int(data.get("cg_diff_count")),
			h_scene_count=_to_int(data.get("h_scene_count")),
			play_time_hours=float(data["play_time_hours"]) if data.get("play_time_hours") else None,
			game_features=self._parse_list_field(data.get("game_features")),
		)

		editorial = EditorialText(
			summary=data.get("ai_summary"),
			recommend_reason=data.get("ai_recommend_reason"),
			click_title=data.get("ai_click_title"),
			target_audience=data.get("ai_target_audience"),
			appeal_points=data.get("ai_appeal_points"),
			warnings=data.get("ai_warnings"),
			review=data.get("ai_review"),
		)

		return Work(
			id=int(data["id"]),  # identity is required
			title=data.get("title") or "",
			circle_id=_to_int(data.get("circle_id")),
			circle_name=data.get("circle_name"),
			genre=genre,
			category=category,
			is_audio=is_audio_genre(genre, category),
			is_game=is_game_genre(genre, category),
			release_date=data.get("release_date"),
			thumbnail_url=data.get("thumbnail_url"),
			sample_images=self._parse_list_field(data.get("sample_images")),
			product_id=_pair(data, "dlsite_product_id", "fanza_product_id"),
			url=_pair(data, "dlsite_url", "fanza_url"),
			price=_pair(data, "price_dlsite", "price_fanza"),
			discount_rate=_pair(data, "discount_rate_dlsite", "discount_rate_fanza"),
			sale_end_date=_pair(data, "sale_end_date_dlsite", "sale_end_date_fanza"),
			rank=_pair(data, "dlsite_rank", "fanza_rank"),
			rank_date=_pair(data, "dlsite_rank_date", "fanza_rank_date"),
			rating=_pair(data, "rating_dlsite", "rating_fanza"),
			review_count=_pair(data, "review_count_dlsite", "review_count_fanza"),
			lowest_price=data.get("lowest_price"),
			max_discount_rate=data.get("max_discount_rate"),
			is_on_sale=bool(data.get("is_on_sale")),
			cast=self._parse_list_field(data.get("cv_names")),
			tags=self._parse_list_field(data.get("ai_tags")),
			killer_words=killer_words,
			editorial=editorial,
			user_reviews=self._parse_reviews(data.get("user_reviews")),
			is_available=data.get("is_available") is None or bool(data.get("is_available")),  # only an explicit false hides a work
		)

	def _parse_circle_data(self, data: Dict[str, Any]) -> Circle:
		return Circle(
			id=int(data["id"]),
			name=data.get("name") or "",
			dlsite_id=data.get("dlsite_id"),
			fanza_id=data.get("fanza_id"),
			main_genre=data.get("main_genre"),
			work_count=int(data.get("work_count") or 0),
		)

	def _parse_list_field(self, value) -> List[Any]:
		"""
		Normalize a value that may be None, a list, or a string holding a JSON list.
		Anything unparseable becomes an empty list.
		"""
		if value is None:  # missing field
			return []
		if isinstance(value, list):  # already a list
			return list(value)
		if isinstance(value, str):  # serialized list
			try:
				parsed = json.loads(value)
			except json.JSONDecodeError:
				return []
			return parsed if isinstance(parsed, list) else []
		return []  # any other type becomes empty

	def _parse_reviews(self, value) -> List[UserReview]:
		reviews = []
		for item in self._parse_list_field(value):
			if not isinstance(item, dict):
				continue
			reviews.append(UserReview(
				rating=float(item.get("rating") or 0),
				text=item.get("text") or "",
				date=item.get("date"),
				is_purchased=bool(item.get("is_purchased")),
				helpful_count=int(item.get("helpful_count") or 0),
				title=item.get("title"),
			))
		return reviews


def _pair(data: Dict[str, Any], dlsite_key: str, fanza_key: str) -> PerMarketplace:
	return PerMarketplace(dlsite=data.get(dlsite_key), fanza=data.get(fanza_key))


def _to_int(value) -> Optional[int]:
	if value is None or value == "":
		return None
	return int(value)


@lru_cache(maxsize=1)
def get_loader() -> SnapshotLoader:
	"""Process-wide loader for the default cache directory."""
	return SnapshotLoader()
