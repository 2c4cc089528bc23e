"""
Data models for the catalog engine.
Defines the records shared by the loader, the query engine and the search engine.
"""

# Import dataclass to define simple "record-like" classes without boilerplate
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple


class Category(str, Enum):
	"""Closed set of work categories; values are the raw strings found in the snapshot."""
	AUDIO = "ASMR"
	GAME = "ゲーム"
	CG_SET = "CG集"
	VIDEO = "動画"
	VOICE_WORK = "音声作品"


@dataclass(frozen=True)
class PerMarketplace:
	"""
	A value tracked separately on each marketplace (DLsite first, FANZA second).
	Holds the shared derivations so call sites never repeat the two-branch null handling.
	"""
	dlsite: Optional[Any] = None
	fanza: Optional[Any] = None

	def first(self, default=None):
		"""DLsite value when truthy, else the FANZA value, else `default`."""
		return self.dlsite or self.fanza or default

	def values(self) -> List[Any]:
		return [v for v in (self.dlsite, self.fanza) if v is not None]

	def highest(self, default=0):
		vals = self.values()
		return max(vals) if vals else default

	def lowest(self, default=None):
		vals = self.values()
		return min(vals) if vals else default

	def total(self):
		return sum(self.values())

	def has_any(self) -> bool:
		return bool(self.values())


def discounted_price(price: Optional[int], discount_rate: Optional[float]) -> Optional[int]:
	"""Price after discount, rounded to whole yen. Without a rate the list price is returned."""
	if price is None:
		return None
	if not discount_rate:
		return price
	return round(price * (1 - discount_rate / 100))


@dataclass(frozen=True)
class KillerWords:
	"""Genre-specific selling points (audio duration, game CG/scene counts)."""
	duration_minutes: Optional[int] = None  # audio only
	situations: List[str] = field(default_factory=list)
	fetish_tags: List[str] = field(default_factory=list)
	cg_count: Optional[int] = None  # game only
	cg_diff_count: Optional[int] = None
	h_scene_count: Optional[int] = None
	play_time_hours: Optional[float] = None
	game_features: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class UserReview:
	rating: float
	text: str
	date: Optional[str] = None
	is_purchased: bool = False
	helpful_count: int = 0
	title: Optional[str] = None


@dataclass(frozen=True)
class EditorialText:
	"""AI-authored copy attached to a work; carried through untouched."""
	summary: Optional[str] = None
	recommend_reason: Optional[str] = None
	click_title: Optional[str] = None
	target_audience: Optional[str] = None
	appeal_points: Optional[str] = None
	warnings: Optional[str] = None
	review: Optional[str] = None


@dataclass(frozen=True)
class Work:
	"""
	A single catalog item with its marketplace and editorial metadata.
	Instances held by the snapshot are never mutated; enrichment uses dataclasses.replace.
	"""
	id: int  # numeric identity
	title: str
	circle_id: Optional[int] = None  # owning circle
	circle_name: Optional[str] = None  # filled in by the query engine
	genre: Optional[str] = None  # raw genre string from the marketplace
	category: Optional[Category] = None  # classified once at ingestion
	is_audio: bool = False  # genre classified as voice/ASMR
	is_game: bool = False  # genre classified as game
	release_date: Optional[str] = None  # ISO date, compared lexically
	thumbnail_url: Optional[str] = None
	sample_images: List[str] = field(default_factory=list)
	# per-marketplace fields
	product_id: PerMarketplace = field(default_factory=PerMarketplace)
	url: PerMarketplace = field(default_factory=PerMarketplace)
	price: PerMarketplace = field(default_factory=PerMarketplace)
	discount_rate: PerMarketplace = field(default_factory=PerMarketplace)
	sale_end_date: PerMarketplace = field(default_factory=PerMarketplace)
	rank: PerMarketplace = field(default_factory=PerMarketplace)
	rank_date: PerMarketplace = field(default_factory=PerMarketplace)
	rating: PerMarketplace = field(default_factory=PerMarketplace)
	review_count: PerMarketplace = field(default_factory=PerMarketplace)
	# aggregates pre-computed upstream, trusted as-is
	lowest_price: Optional[int] = None
	max_discount_rate: Optional[float] = None
	is_on_sale: bool = False
	cast: List[str] = field(default_factory=list)  # voice actor names
	tags: List[str] = field(default_factory=list)  # AI-assigned free-form tags
	killer_words: KillerWords = field(default_factory=KillerWords)
	editorial: EditorialText = field(default_factory=EditorialText)
	user_reviews: List[UserReview] = field(default_factory=list)
	is_available: bool = True

	@property
	def rj_code(self) -> Optional[str]:
		return self.product_id.dlsite

	def discounted_prices(self) -> PerMarketplace:
		"""Per-marketplace price after that marketplace's own discount."""
		return PerMarketplace(
			dlsite=discounted_price(self.price.dlsite, self.discount_rate.dlsite),
			fanza=discounted_price(self.price.fanza, self.discount_rate.fanza),
		)

	def cheapest_price(self) -> Optional[int]:
		return self.discounted_prices().lowest()

	def earliest_sale_end(self) -> Optional[str]:
		return self.sale_end_date.lowest()


@dataclass(frozen=True)
class Circle:
	"""A publisher / creator group. `work_count` from storage is not trusted."""
	id: int
	name: str
	dlsite_id: Optional[str] = None
	fanza_id: Optional[str] = None
	main_genre: Optional[str] = None
	work_count: int = 0


class NameCount(NamedTuple):
	"""Aggregated name with the number of available works carrying it (actors, tags)."""
	name: str
	count: int


@dataclass(frozen=True)
class CircleWithWorks:
	circle: Optional[Circle]  # None when no circle has the requested name
	works: List[Work]


@dataclass(frozen=True)
class Snapshot:
	"""Read-only copy of the catalog, loaded once and handed to the query engine."""
	works: Tuple[Work, ...] = ()
	circles: Tuple[Circle, ...] = ()


@dataclass
class SearchItem:
	"""
	Flattened, display-minimal record consumed by the fuzzy search engine.
	`to_dict` / `from_dict` translate to the compact wire keys of search-index.json.
	"""
	id: int
	title: str
	circle: str
	cast: List[str]
	tags: List[str]
	price: int  # current price
	original_price: int
	discount_rate: Optional[float]
	thumbnail: str
	category: str  # "asmr" | "game"
	release_date: str
	on_dlsite: bool = False
	on_fanza: bool = False
	duration_minutes: Optional[int] = None  # asmr only
	cg_count: Optional[int] = None  # game only
	dlsite_rank: Optional[int] = None
	fanza_rank: Optional[int] = None
	rating: Optional[float] = None
	review_count: Optional[int] = None
	sale_end: Optional[str] = None

	def to_dict(self) -> Dict[str, Any]:
		data: Dict[str, Any] = {
			"id": self.id,
			"t": self.title,
			"c": self.circle,
			"cv": list(self.cast),
			"tg": list(self.tags),
			"p": self.price,
			"dp": self.original_price,
			"dr": self.discount_rate,
			"img": self.thumbnail,
			"cat": self.category,
		}
		# unit counts are only emitted for the matching category
		if self.duration_minutes is not None:
			data["dur"] = self.duration_minutes
		if self.cg_count is not None:
			data["cg"] = self.cg_count
		data.update({
			"rel": self.release_date,
			"dl": self.on_dlsite,
			"fa": self.on_fanza,
			"dlRank": self.dlsite_rank,
			"faRank": self.fanza_rank,
			"rt": self.rating,
			"rc": self.review_count,
			"saleEnd": self.sale_end,
		})
		return data

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "SearchItem":
		return cls(
			id=data["id"],
			title=data.get("t", ""),
			circle=data.get("c", ""),
			cast=list(data.get("cv") or []),
			tags=list(data.get("tg") or []),
			price=data.get("p", 0),
			original_price=data.get("dp", data.get("p", 0)),
			discount_rate=data.get("dr"),
			thumbnail=data.get("img", ""),
			category=data.get("cat", "game"),
			release_date=data.get("rel", ""),
			on_dlsite=bool(data.get("dl")),
			on_fanza=bool(data.get("fa")),
			duration_minutes=data.get("dur"),
			cg_count=data.get("cg"),
			dlsite_rank=data.get("dlRank"),
			fanza_rank=data.get("faRank"),
			rating=data.get("rt"),
			review_count=data.get("rc"),
			sale_end=data.get("saleEnd"),
		)
