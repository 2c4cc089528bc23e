"""
Ranking module.
Sort keys and multi-key orderings shared by the catalog query engine.

Multi-key orders that mix descending dates with ascending ranks are built from
successive stable sorts, least significant key first.
"""

from typing import Iterable, List, Optional  # type annotations for clarity

from . import config  # missing-rank sentinel
from .models import Work  # catalog record


def release_key(work: Work) -> str:
	"""ISO release date for lexical comparison; missing dates sort as oldest."""
	return work.release_date or ""  # "" sorts before any ISO date


def rank_or_missing(rank: Optional[int]) -> int:
	return rank if rank is not None else config.MISSING_RANK  # 9999 sorts last ascending


def first_rating(work: Work) -> float:
	"""DLsite rating when present, else FANZA, else 0."""
	return work.rating.first(0)  # DLsite, else FANZA, else 0


def best_rating(work: Work) -> float:
	return work.rating.highest(0)  # max over both marketplaces


def by_release_desc(works: Iterable[Work]) -> List[Work]:
	return sorted(works, key=release_key, reverse=True)  # newest first


def by_dlsite_rank(works: Iterable[Work]) -> List[Work]:
	return sorted(works, key=lambda w: rank_or_missing(w.rank.dlsite))


def by_fanza_rank(works: Iterable[Work]) -> List[Work]:
	return sorted(works, key=lambda w: rank_or_missing(w.rank.fanza))


def marketplace_rank_key(work: Work):
	"""
	Composite key: DLsite-ranked works form the first group ordered by DLsite rank,
	FANZA-only works the second group ordered by FANZA rank.
	"""
	if work.rank.dlsite is not None:
		return (0, work.rank.dlsite)  # DLsite group first
	return (1, rank_or_missing(work.rank.fanza))  # FANZA-only group second


def by_marketplace_rank(works: Iterable[Work]) -> List[Work]:
	"""Composite rank order; equal ranks fall back to newest first."""
	ordered = by_release_desc(works)  # least significant key first
	ordered.sort(key=marketplace_rank_key)  # stable, so equal ranks stay newest first
	return ordered


def by_high_rating(works: Iterable[Work]) -> List[Work]:
	"""Best marketplace rating, then total review count, then release date; all descending."""
	return sorted(
		works,
		key=lambda w: (best_rating(w), w.review_count.total(), release_key(w)),
		reverse=True,
	)


def by_popularity(works: Iterable[Work]) -> List[Work]:
	"""Rating (DLsite first) descending, then newest first."""
	return sorted(works, key=lambda w: (first_rating(w), release_key(w)), reverse=True)


def shared_count(work: Work, tags) -> int:
	return sum(1 for t in work.tags if t in tags)  # overlap size
