"""
Sale listing module.
Narrows and reorders the on-sale works by genre, by a ceiling on the cheapest
discounted price, and by one of the sale sort orders.
"""

import math  # infinity for works without any price
from typing import Iterable, List, Literal, Tuple  # type annotations for clarity

from .models import Work  # catalog record
from .ranking import first_rating, release_key  # shared sort keys
from .search_engine import PriceFilter, parse_price_limit  # same price ceilings as search

SaleSort = Literal["discount", "price_asc", "deadline", "rating", "review_count", "new"]
SaleGenre = Literal["all", "voice", "game"]

SALE_SORTS = ("discount", "price_asc", "deadline", "rating", "review_count", "new")
SALE_GENRES = ("all", "voice", "game")


def cheapest_or_inf(work: Work) -> float:
	"""Cheapest price after each marketplace's own discount; unpriced works count as infinite."""
	price = work.cheapest_price()  # lowest discounted marketplace price
	return price if price is not None else math.inf


def deadline_key(work: Work) -> Tuple[int, str]:
	"""Earliest sale end first; works without an end date go last."""
	end = work.earliest_sale_end()  # ISO date, compared lexically
	return (0, end) if end else (1, "")


def sort_sale_works(works: Iterable[Work], sort: SaleSort = "discount") -> List[Work]:
	"""Return a new list in the requested sale order; ties keep their input order."""
	works = list(works)  # materialize once
	if sort == "discount":  # deepest discount first
		return sorted(works, key=lambda w: w.max_discount_rate or 0, reverse=True)
	if sort == "price_asc":  # cheapest discounted price first
		return sorted(works, key=cheapest_or_inf)
	if sort == "deadline":  # sale ending soonest first
		return sorted(works, key=deadline_key)
	if sort == "rating":  # DLsite rating, else FANZA, descending
		return sorted(works, key=first_rating, reverse=True)
	if sort == "review_count":  # reviews summed over both marketplaces
		return sorted(works, key=lambda w: w.review_count.total(), reverse=True)
	if sort == "new":  # newest first
		return sorted(works, key=release_key, reverse=True)
	raise ValueError(f"Unknown sale sort: {sort!r}")


def filter_sort_sale_works(
	works: Iterable[Work],
	sort: SaleSort = "discount",
	genre: SaleGenre = "all",
	max_price: PriceFilter = "all",
) -> List[Work]:
	"""Genre filter, then the cheapest-price ceiling, then the sale ordering."""
	# Validate options before filtering anything
	if genre not in SALE_GENRES:
		raise ValueError(f"Unknown genre filter: {genre!r}")
	if sort not in SALE_SORTS:
		raise ValueError(f"Unknown sale sort: {sort!r}")
	limit = parse_price_limit(max_price)  # None means no ceiling

	result = list(works)  # never mutate the caller's list
	if genre == "voice":  # voice / ASMR works
		result = [w for w in result if w.is_audio]
	elif genre == "game":  # games
		result = [w for w in result if w.is_game]
	if limit is not None:  # ceiling applies to the discounted price
		result = [w for w in result if cheapest_or_inf(w) <= limit]
	return sort_sale_works(result, sort)
