"""
Search engine module.
Typo-tolerant search, compound filtering and multi-criteria sorting over the
flattened SearchItem projection. Independent of the catalog query engine.
"""

import math  # infinity for missing unit counts / ranks
from dataclasses import dataclass  # lightweight containers for results
from typing import Iterable, List, Literal, Optional, Sequence, Union  # type annotations for clarity

from rapidfuzz import fuzz, utils  # approximate string matching
from rapidfuzz.distance import Levenshtein  # edit distance for short fields

# Import loguru for console logging
from loguru import logger  # simple structured logger

from . import config  # weights, thresholds, price ceilings
from .models import SearchItem  # projection record

SortType = Literal["new", "discount", "price", "cospa", "rank", "rating"]
CategoryFilter = Literal["all", "asmr", "game"]
PlatformFilter = Literal["all", "dlsite", "fanza"]
PriceFilter = Union[Literal["all"], str, int]

SORT_TYPES = ("new", "discount", "price", "cospa", "rank", "rating")
CATEGORY_FILTERS = ("all", "asmr", "game")
PLATFORM_FILTERS = ("all", "dlsite", "fanza")


@dataclass
class SearchResult:
	item: SearchItem  # matched item
	score: float  # weighted score of the best matching field
	similarity: float  # raw similarity (0..100) of that field


def _field_values(item: SearchItem, field_name: str) -> List[str]:
	if field_name == "title":
		return [item.title]
	if field_name == "cast":
		return item.cast
	if field_name == "circle":
		return [item.circle]
	return item.tags


def field_similarity(token: str, value: str) -> float:
	"""
	Similarity (0..100) of an already-processed token against one field value.

	A token no longer than the value may match anywhere inside it (best window).
	A token longer than the value is compared whole, so every extra character
	counts as an edit: "rainbow" does not match a "rain" tag, and a one-letter
	cast name does not match every query containing that letter.
	"""
	text = utils.default_process(value)  # lowercase, punctuation -> spaces
	if not text:  # nothing comparable left
		return 0.0
	if len(token) <= len(text):  # window search inside the longer field
		return fuzz.partial_ratio(token, text)
	return Levenshtein.normalized_similarity(token, text) * 100  # whole-string edit distance


def _score_item(token: str, item: SearchItem) -> Optional[SearchResult]:
	"""Best weighted field match of one token against one item, or None below the threshold."""
	best: Optional[SearchResult] = None  # best weighted hit so far
	for field_name, weight in config.SEARCH_FIELD_WEIGHTS.items():  # title, cast, circle, tags
		for value in _field_values(item, field_name):  # every value of a list field
			if not value:  # empty circle / title
				continue
			sim = field_similarity(token, value)  # 0..100
			if sim < config.SEARCH_MIN_SIMILARITY:  # too many edits
				continue
			score = sim * weight  # field importance
			if best is None or score > best.score:  # keep the strongest field
				best = SearchResult(item=item, score=score, similarity=sim)
	return best


def match_token(items: Sequence[SearchItem], token: str) -> List[SearchResult]:
	"""One approximate match pass; results ranked by weighted score (stable)."""
	processed = utils.default_process(token)  # same normalization as the fields
	scored = (_score_item(processed, item) for item in items)  # lazily score each item
	results = [r for r in scored if r is not None]  # drop non-matches
	results.sort(key=lambda r: r.score, reverse=True)  # best first, ties keep order
	return results


def search_items(items: Sequence[SearchItem], query: str) -> List[SearchItem]:
	"""
	Whitespace-separated terms combine as AND: each term is matched only against
	the survivors of the previous term. An empty query returns the input as-is.
	Terms that normalize to nothing (punctuation only) are ignored.
	"""
	if not query or not query.strip():  # nothing to match
		return list(items)

	results = list(items)  # survivors of the previous term
	for term in query.split():  # AND over terms
		if not utils.default_process(term):  # e.g. "!!"
			logger.debug(f"[Search] term='{term}' ignored (no searchable characters)")
			continue
		results = [r.item for r in match_token(results, term)]  # narrow and re-rank
		logger.debug(f"[Search] term='{term}' -> {len(results)} items")
		if not results:  # nothing left to narrow
			break
	return results


def parse_price_limit(max_price: PriceFilter) -> Optional[int]:
	"""Validate a price-ceiling option; "all" means no ceiling."""
	if max_price == "all":  # no ceiling
		return None
	try:
		limit = int(max_price)  # query strings arrive as text
	except (TypeError, ValueError):
		raise ValueError(f"Unknown price filter: {max_price!r}") from None
	if limit not in config.PRICE_THRESHOLDS:  # only the offered ceilings
		raise ValueError(f"Unknown price filter: {max_price!r}")
	return limit


def filter_items(
	items: Iterable[SearchItem],
	category: CategoryFilter = "all",
	on_sale_only: bool = False,
	platform: PlatformFilter = "all",
	max_price: PriceFilter = "all",
) -> List[SearchItem]:
	"""Apply category, on-sale, marketplace and price-ceiling predicates."""
	# Validate every option before touching the items
	if category not in CATEGORY_FILTERS:
		raise ValueError(f"Unknown category filter: {category!r}")
	if platform not in PLATFORM_FILTERS:
		raise ValueError(f"Unknown platform filter: {platform!r}")
	limit = parse_price_limit(max_price)  # None means no ceiling

	filtered = list(items)  # never mutate the caller's list
	if category != "all":  # asmr / game
		filtered = [i for i in filtered if i.category == category]
	if on_sale_only:  # a 0% discount is not a sale
		filtered = [i for i in filtered if i.discount_rate is not None and i.discount_rate > 0]
	if platform == "dlsite":  # sold on DLsite
		filtered = [i for i in filtered if i.on_dlsite]
	elif platform == "fanza":  # sold on FANZA
		filtered = [i for i in filtered if i.on_fanza]
	if limit is not None:  # current price ceiling
		filtered = [i for i in filtered if i.price <= limit]
	return filtered


def cost_per_unit(item: SearchItem) -> float:
	"""Price per audio minute or per CG; infinite when the duration or CG count is missing."""
	if item.category == "asmr" and item.duration_minutes:  # yen per minute
		return item.price / item.duration_minutes
	if item.category == "game" and item.cg_count:  # yen per CG
		return item.price / item.cg_count
	return math.inf  # sorts last


def unit_price(item: SearchItem) -> Optional[int]:
	"""Rounded yen per minute (asmr) or per CG (game), None without a duration or CG count."""
	cost = cost_per_unit(item)
	return None if math.isinf(cost) else round(cost)


def _rank_for(item: SearchItem, platform: PlatformFilter) -> float:
	rank = item.fanza_rank if platform == "fanza" else item.dlsite_rank  # DLsite unless FANZA chosen
	return rank if rank is not None else math.inf  # unranked last


def sort_items(
	items: Iterable[SearchItem],
	sort_type: SortType,
	platform: PlatformFilter = "all",
) -> List[SearchItem]:
	"""Return a new list in the requested order; the input is left untouched."""
	items = list(items)  # materialize once
	if sort_type == "new":  # release date desc (ISO strings compare lexically)
		return sorted(items, key=lambda i: i.release_date or "", reverse=True)
	if sort_type == "discount":  # discount desc, missing = 0
		return sorted(items, key=lambda i: i.discount_rate or 0, reverse=True)
	if sort_type == "price":  # current price asc
		return sorted(items, key=lambda i: i.price)
	if sort_type == "cospa":  # yen per unit asc
		return sorted(items, key=cost_per_unit)
	if sort_type == "rank":  # marketplace rank asc
		return sorted(items, key=lambda i: _rank_for(i, platform))
	if sort_type == "rating":  # rating desc, missing = 0
		return sorted(items, key=lambda i: i.rating or 0, reverse=True)
	raise ValueError(f"Unknown sort type: {sort_type!r}")


@dataclass
class SearchState:
	"""Everything the caller can change; any change reruns the whole pipeline."""
	query: str = ""  # free text, AND over terms
	sort_type: SortType = "new"
	category: CategoryFilter = "all"
	platform: PlatformFilter = "all"
	on_sale_only: bool = False
	max_price: PriceFilter = "all"


def run_search(items: Sequence[SearchItem], state: SearchState) -> List[SearchItem]:
	"""search -> filter -> sort, always starting from the full projection."""
	results = search_items(items, state.query)  # 1) fuzzy narrowing
	results = filter_items(results, state.category, state.on_sale_only, state.platform, state.max_price)  # 2) predicates
	return sort_items(results, state.sort_type, state.platform)  # 3) ordering


class SearchEngine:
	"""Holds one projection and answers SearchState requests against it."""

	def __init__(self, items: Sequence[SearchItem]):
		self.items = list(items)  # full projection, never narrowed in place
		logger.info(f"[Search] Index ready with {len(self.items)} items")

	def search(self, state: SearchState) -> List[SearchItem]:
		results = run_search(self.items, state)  # always from the full projection
		logger.info(f"[Search] '{state.query}' -> {len(results)} of {len(self.items)} items")
		return results
