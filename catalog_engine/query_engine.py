"""
Catalog query engine.
Answers ranking, listing, lookup, aggregation and relevance queries over a read-only snapshot.
"""

from collections import Counter
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence

from loguru import logger

from . import config
from .classifier import is_fanza_ranking_genre
from .models import Category, Circle, CircleWithWorks, NameCount, Snapshot, Work
from .ranking import (
	by_dlsite_rank,
	by_fanza_rank,
	by_high_rating,
	by_marketplace_rank,
	by_popularity,
	by_release_desc,
	first_rating,
	release_key,
	shared_count,
)
from .relevance import related_works
from .sale_listing import SaleGenre, SaleSort, filter_sort_sale_works
from .search_engine import PriceFilter


class CatalogQueryEngine:
	"""
	Stateless query layer over an injected Snapshot.

	Every query first drops unavailable works and recomputes its answer from the
	in-memory collections; nothing here mutates the snapshot, so one engine can
	serve concurrent callers. Not-found never raises: lookups return None and
	listings return empty lists. Returned works are copies carrying `circle_name`.
	"""

	def __init__(self, snapshot: Snapshot):
		self.snapshot = snapshot  # read-only works + circles
		logger.info(
			f"[Engine] Ready with {len(snapshot.works)} works and {len(snapshot.circles)} circles"
		)

	# ------------------------------------------------------------------
	# shared helpers
	# ------------------------------------------------------------------

	def _available(self) -> List[Work]:
		return [w for w in self.snapshot.works if w.is_available]  # explicit false hides a work everywhere

	def _circle_names(self) -> Dict[int, str]:
		return {c.id: c.name for c in self.snapshot.circles}  # circle id -> display name

	def _enrich(self, works: Iterable[Work]) -> List[Work]:
		names = self._circle_names()  # built once per query
		return [
			replace(w, circle_name=names.get(w.circle_id) if w.circle_id else None)  # copy, snapshot untouched
			for w in works
		]

	def _count_names(self, lists: Iterable[List[str]]) -> List[NameCount]:
		counts = Counter()  # name -> number of works
		for names in lists:
			counts.update(names)  # one count per work and name
		# Counter.most_common keeps first-seen order among equal counts
		return [NameCount(name, count) for name, count in counts.most_common()]

	# ------------------------------------------------------------------
	# ranking / listing queries
	# ------------------------------------------------------------------

	def get_new_works(self, limit: int = config.DEFAULT_LIMIT) -> List[Work]:
		return self._enrich(by_release_desc(self._available())[:limit])

	def get_sale_works(self, limit: int = config.DEFAULT_LIMIT) -> List[Work]:
		on_sale = [w for w in self._available() if w.is_on_sale]  # sale flag set upstream
		on_sale.sort(key=lambda w: w.max_discount_rate or 0, reverse=True)  # deepest discount first
		return self._enrich(on_sale[:limit])

	def get_sale_listing(
		self,
		sort: SaleSort = "discount",
		genre: SaleGenre = "all",
		max_price: PriceFilter = "all",
		limit: int = config.SALE_LISTING_POOL,
	) -> List[Work]:
		"""
		On-sale works narrowed by genre and cheapest discounted price, then reordered.
		The pool is the deepest-discount sale works; unknown options raise ValueError.
		"""
		pool = self.get_sale_works(config.SALE_LISTING_POOL)  # already enriched
		listing = filter_sort_sale_works(pool, sort, genre, max_price)  # filter then order
		logger.debug(f"[Engine] Sale listing sort={sort} genre={genre} max_price={max_price} -> {len(listing)} works")
		return listing[:limit]

	def get_works_by_genre(self, genre: str, limit: int = config.DEFAULT_LIMIT) -> List[Work]:
		"""Works whose genre contains `genre` (case-insensitive), newest first."""
		needle = genre.lower()  # case-insensitive substring match
		matches = [w for w in self._available() if w.genre and needle in w.genre.lower()]
		return self._enrich(by_release_desc(matches)[:limit])

	def get_dlsite_ranking_works(self, limit: int = config.DEFAULT_LIMIT) -> List[Work]:
		ranked = [w for w in self._available() if w.rank.dlsite is not None]  # DLsite-ranked only
		return self._enrich(by_dlsite_rank(ranked)[:limit])

	def get_fanza_ranking_works(self, limit: int = config.DEFAULT_LIMIT) -> List[Work]:
		"""FANZA ranking restricted to works whose genre names voice (音声) or games (ゲーム)."""
		ranked = [
			w for w in self._available()
			if w.rank.fanza is not None and is_fanza_ranking_genre(w.genre)  # ranked, voice or game genre
		]
		return self._enrich(by_fanza_rank(ranked)[:limit])

	def get_bargain_works(
		self,
		max_price: int = config.DEFAULT_BARGAIN_PRICE,
		limit: int = config.DEFAULT_LIMIT,
	) -> List[Work]:
		cheap = [
			w for w in self._available()
			if w.lowest_price is not None and w.lowest_price <= max_price  # inclusive ceiling
		]
		cheap.sort(key=lambda w: w.lowest_price)  # cheapest first
		return self._enrich(cheap[:limit])

	def _category_ranking(self, category: Category, limit: int) -> List[Work]:
		ranked = [
			w for w in self._available()
			if w.category == category and w.rank.has_any()  # ranked on either marketplace
		]
		return self._enrich(by_marketplace_rank(ranked)[:limit])

	def get_voice_ranking_works(self, limit: int = config.DEFAULT_LIMIT) -> List[Work]:
		"""DLsite-ranked audio works first (by DLsite rank), then FANZA-only ones."""
		return self._category_ranking(Category.AUDIO, limit)

	def get_game_ranking_works(self, limit: int = config.DEFAULT_LIMIT) -> List[Work]:
		return self._category_ranking(Category.GAME, limit)

	def get_high_rated_works(
		self,
		min_rating: float = config.DEFAULT_MIN_RATING,
		limit: int = config.DEFAULT_LIMIT,
	) -> List[Work]:
		rated = [
			w for w in self._available()
			if any(r >= min_rating for r in w.rating.values())  # either marketplace qualifies
		]
		return self._enrich(by_high_rating(rated)[:limit])

	def get_all_works(self) -> List[Work]:
		"""Every available work, newest first (input of the search projection)."""
		return self._enrich(by_release_desc(self._available()))

	# ------------------------------------------------------------------
	# entity lookups
	# ------------------------------------------------------------------

	def get_work_by_id(self, work_id: int) -> Optional[Work]:
		for w in self._available():  # linear scan, snapshot is small
			if w.id == work_id:
				return self._enrich([w])[0]  # first match wins
		logger.debug(f"[Engine] Work {work_id} not found")
		return None

	def get_work_by_rj_code(self, rj_code: str) -> Optional[Work]:
		for w in self._available():  # linear scan, snapshot is small
			if w.product_id.dlsite == rj_code:
				return self._enrich([w])[0]  # first match wins
		logger.debug(f"[Engine] RJ code {rj_code} not found")
		return None

	def get_works_by_ids(self, ids: Sequence[int]) -> List[Work]:
		"""Works in the order of `ids`; unknown or unavailable ids are dropped."""
		if not ids:
			return []
		by_id = {w.id: w for w in self._available()}  # id -> work
		return self._enrich(by_id[i] for i in ids if i in by_id)

	# ------------------------------------------------------------------
	# circles
	# ------------------------------------------------------------------

	def get_circles(self) -> List[Circle]:
		"""All circles with work counts recomputed from available works, largest first."""
		counts = Counter(w.circle_id for w in self._available() if w.circle_id)  # stored counts are not trusted
		circles = [replace(c, work_count=counts.get(c.id, 0)) for c in self.snapshot.circles]
		circles.sort(key=lambda c: c.work_count, reverse=True)  # largest first, ties keep storage order
		return circles

	def get_circle_with_works(self, circle_name: str) -> CircleWithWorks:
		circle = next((c for c in self.snapshot.circles if c.name == circle_name), None)  # exact name
		if circle is None:
			logger.debug(f"[Engine] Circle '{circle_name}' not found")
			return CircleWithWorks(circle=None, works=[])
		works = self._enrich(by_release_desc(
			w for w in self._available() if w.circle_id == circle.id
		))
		return CircleWithWorks(circle=replace(circle, work_count=len(works)), works=works)

	# ------------------------------------------------------------------
	# actors / tags
	# ------------------------------------------------------------------

	def get_actors(self) -> List[NameCount]:
		return self._count_names(w.cast for w in self._available())

	def get_works_by_actor(self, actor_name: str) -> List[Work]:
		return self._enrich(by_release_desc(
			w for w in self._available() if actor_name in w.cast
		))

	def get_tags(self) -> List[NameCount]:
		return self._count_names(w.tags for w in self._available())

	def get_works_by_tag(self, tag_name: str) -> List[Work]:
		return self._enrich(by_release_desc(
			w for w in self._available() if tag_name in w.tags
		))

	def get_related_tags(
		self, tag_name: str, limit: int = config.DEFAULT_RELATED_TAGS_LIMIT
	) -> List[NameCount]:
		"""Tags co-occurring with `tag_name`, most frequent first; `tag_name` itself excluded."""
		co_tags = (
			[t for t in w.tags if t != tag_name]
			for w in self._available() if tag_name in w.tags
		)
		return self._count_names(co_tags)[:limit]

	def get_popular_tags(self, limit: int = config.DEFAULT_POPULAR_TAGS_LIMIT) -> List[NameCount]:
		return self.get_tags()[:limit]

	# ------------------------------------------------------------------
	# relevance
	# ------------------------------------------------------------------

	def get_related_works(self, work_id: int, limit: int = config.DEFAULT_RELATED_LIMIT) -> List[Work]:
		target = self.get_work_by_id(work_id)  # None when missing or unavailable
		if target is None:
			return []
		candidates = [w for w in self._available() if w.id != work_id]  # never the target itself
		related = related_works(target, candidates, limit)
		logger.debug(f"[Engine] Related works for {work_id}: {[w.id for w in related]}")
		return self._enrich(related)

	def get_popular_works_by_circle(
		self, circle_id: int, exclude_work_id: int, limit: int = config.DEFAULT_RELATED_LIMIT
	) -> List[Work]:
		works = [
			w for w in self._available()
			if w.circle_id == circle_id and w.id != exclude_work_id
		]
		return self._enrich(by_popularity(works)[:limit])

	def get_popular_works_by_actor(
		self, actor_name: str, exclude_work_id: int, limit: int = config.DEFAULT_RELATED_LIMIT
	) -> List[Work]:
		works = [
			w for w in self._available()
			if w.id != exclude_work_id and actor_name in w.cast
		]
		return self._enrich(by_popularity(works)[:limit])

	def get_similar_works_by_tags(
		self, work_id: int, tags: Sequence[str], limit: int = config.DEFAULT_RELATED_LIMIT
	) -> List[Work]:
		"""Works sharing the given tags: shared count, then rating, then release date, all descending."""
		if not tags:
			return []
		tag_set = set(tags)  # membership lookups
		scored = [(shared_count(w, tag_set), w) for w in self._available() if w.id != work_id]
		scored = [(n, w) for n, w in scored if n > 0]  # at least one shared tag
		scored.sort(key=lambda pair: (pair[0], first_rating(pair[1]), release_key(pair[1])), reverse=True)
		return self._enrich(w for _, w in scored[:limit])

	# ------------------------------------------------------------------
	# enumeration helpers for static path generation
	# ------------------------------------------------------------------

	def get_all_work_ids(self) -> List[int]:
		return [w.id for w in self._available()]  # snapshot order

	def get_all_rj_codes(self) -> List[str]:
		return [w.product_id.dlsite for w in self._available() if w.product_id.dlsite]

	def get_all_circle_names(self) -> List[str]:
		"""Names of circles with at least one available work."""
		with_works = {w.circle_id for w in self._available() if w.circle_id is not None}
		return [c.name for c in self.snapshot.circles if c.id in with_works]

	def get_all_actor_names(self) -> List[str]:
		return [a.name for a in self.get_actors()]

	def get_all_tag_names(self) -> List[str]:
		return [t.name for t in self.get_tags()]
