"""
FastAPI server exposing the catalog query engine and the search pipeline.
Endpoints:
- GET /health: basic health check
- GET /works/..., /rankings/..., /circles/..., /actors/..., /tags/...: catalog queries
- GET /search?q=...&sort=new&category=all&platform=all&on_sale=false&max_price=all

Startup loads the snapshot once (.cache/data/works.json, circles.json) and builds
the search projection in memory from it.

Run: uvicorn api:app --reload
"""

# Import standard libraries for timing and log sink configuration
import sys  # loguru sink
import time  # measure startup and request latencies
from typing import List, Optional  # precise typing for clarity

# Import FastAPI for building the web API and Pydantic for response models
from fastapi import FastAPI, HTTPException, Query  # FastAPI primitives
from pydantic import BaseModel  # response schema definitions

# Import our internal modules for loading, querying and search
from catalog_engine import config
from catalog_engine.data_loader import get_loader  # process-wide snapshot loader
from catalog_engine.models import Circle, NameCount, SearchItem, Work
from catalog_engine.projection import build_search_index
from catalog_engine.query_engine import CatalogQueryEngine  # catalog queries
from catalog_engine.search_engine import SORT_TYPES, SearchEngine, SearchState, unit_price

# Import loguru for simple, structured console logging
from loguru import logger  # convenient console logger

# Instantiate the FastAPI application with metadata
app = FastAPI(title="Catalog Query API", version="1.0.0")  # web app

# Globals that hold the engines and measured startup time
ENGINE: Optional[CatalogQueryEngine] = None  # catalog query engine
SEARCH: Optional[SearchEngine] = None  # fuzzy search over the projection
STARTUP_TIME_S: float = 0.0  # measures how long startup took


class PriceOut(BaseModel):
	dlsite: Optional[int] = None
	fanza: Optional[int] = None


class WorkOut(BaseModel):
	id: int
	title: str
	circle_id: Optional[int] = None
	circle_name: Optional[str] = None
	genre: Optional[str] = None
	category: Optional[str] = None
	release_date: Optional[str] = None
	thumbnail_url: Optional[str] = None
	dlsite_product_id: Optional[str] = None
	fanza_product_id: Optional[str] = None
	price: PriceOut
	discounted_price: PriceOut  # per-marketplace price after that marketplace's discount
	lowest_price: Optional[int] = None
	max_discount_rate: Optional[float] = None
	is_on_sale: bool = False
	dlsite_rank: Optional[int] = None
	fanza_rank: Optional[int] = None
	rating_dlsite: Optional[float] = None
	rating_fanza: Optional[float] = None
	review_count_dlsite: Optional[int] = None
	review_count_fanza: Optional[int] = None
	cast: List[str]
	tags: List[str]
	duration_minutes: Optional[int] = None
	cg_count: Optional[int] = None
	summary: Optional[str] = None


class CircleOut(BaseModel):
	id: int
	name: str
	dlsite_id: Optional[str] = None
	fanza_id: Optional[str] = None
	main_genre: Optional[str] = None
	work_count: int


class CircleWithWorksOut(BaseModel):
	circle: CircleOut
	works: List[WorkOut]


class NameCountOut(BaseModel):
	name: str
	count: int


class SearchItemOut(BaseModel):
	id: int
	title: str
	circle: str
	cast: List[str]
	tags: List[str]
	price: int
	original_price: int
	discount_rate: Optional[float] = None
	category: str
	release_date: str
	unit_price: Optional[int] = None
	dlsite_rank: Optional[int] = None
	fanza_rank: Optional[int] = None
	rating: Optional[float] = None


class SearchResponse(BaseModel):
	query: str
	total: int  # size of the projection
	elapsed_ms: float
	results: List[SearchItemOut]


def _work_out(w: Work) -> WorkOut:
	discounted = w.discounted_prices()
	return WorkOut(
		id=w.id,
		title=w.title,
		circle_id=w.circle_id,
		circle_name=w.circle_name,
		genre=w.genre,
		category=w.category.value if w.category else None,
		release_date=w.release_date,
		thumbnail_url=w.thumbnail_url,
		dlsite_product_id=w.product_id.dlsite,
		fanza_product_id=w.product_id.fanza,
		price=PriceOut(dlsite=w.price.dlsite, fanza=w.price.fanza),
		discounted_price=PriceOut(dlsite=discounted.dlsite, fanza=discounted.fanza),
		lowest_price=w.lowest_price,
		max_discount_rate=w.max_discount_rate,
		is_on_sale=w.is_on_sale,
		dlsite_rank=w.rank.dlsite,
		fanza_rank=w.rank.fanza,
		rating_dlsite=w.rating.dlsite,
		rating_fanza=w.rating.fanza,
		review_count_dlsite=w.review_count.dlsite,
		review_count_fanza=w.review_count.fanza,
		cast=w.cast,
		tags=w.tags,
		duration_minutes=w.killer_words.duration_minutes,
		cg_count=w.killer_words.cg_count,
		summary=w.editorial.summary,
	)


def _works_out(works: List[Work]) -> List[WorkOut]:
	return [_work_out(w) for w in works]


def _circle_out(c: Circle) -> CircleOut:
	return CircleOut(
		id=c.id,
		name=c.name,
		dlsite_id=c.dlsite_id,
		fanza_id=c.fanza_id,
		main_genre=c.main_genre,
		work_count=c.work_count,
	)


def _counts_out(counts: List[NameCount]) -> List[NameCountOut]:
	return [NameCountOut(name=n.name, count=n.count) for n in counts]


def _search_item_out(item: SearchItem) -> SearchItemOut:
	return SearchItemOut(
		id=item.id,
		title=item.title,
		circle=item.circle,
		cast=item.cast,
		tags=item.tags,
		price=item.price,
		original_price=item.original_price,
		discount_rate=item.discount_rate,
		category=item.category,
		release_date=item.release_date,
		unit_price=unit_price(item),
		dlsite_rank=item.dlsite_rank,
		fanza_rank=item.fanza_rank,
		rating=item.rating,
	)


def _engine() -> CatalogQueryEngine:
	if ENGINE is None:  # engine must be ready to serve
		logger.warning("[API] Query requested but engine not initialized")
		raise HTTPException(status_code=503, detail="Engine not initialized")
	return ENGINE


# FastAPI startup hook to initialize the engines once
@app.on_event("startup")
async def startup_event():
	"""Load the snapshot and build the query engine and search projection."""
	global ENGINE, SEARCH, STARTUP_TIME_S  # refer to module-level globals
	start = time.time()  # start timer for startup latency

	logger.remove()
	logger.add(sys.stderr, level=config.LOG_LEVEL)
	logger.info("[API] Startup: loading snapshot and initializing engines...")

	snapshot = get_loader().snapshot()  # one disk read per collection
	ENGINE = CatalogQueryEngine(snapshot)
	SEARCH = SearchEngine(build_search_index(ENGINE))

	STARTUP_TIME_S = time.time() - start  # elapsed seconds
	logger.info(f"[API] Startup complete in {STARTUP_TIME_S:.2f}s.")


# Simple health endpoint for readiness checks
@app.get("/health")
async def health():
	"""Return minimal health info for liveness and readiness checks."""
	works = len(ENGINE.snapshot.works) if ENGINE else 0
	return {
		"status": "ok",
		"engine_ready": ENGINE is not None,
		"works": works,  # 0 means the snapshot was missing
		"startup_seconds": round(STARTUP_TIME_S, 2),
	}


@app.get("/works/new", response_model=List[WorkOut])
async def new_works(limit: int = config.DEFAULT_LIMIT):
	return _works_out(_engine().get_new_works(limit))


@app.get("/works/sale", response_model=List[WorkOut])
async def sale_works(
	sort: str = "discount",
	genre: str = "all",
	max_price: str = "all",
	limit: int = config.DEFAULT_LIMIT,
):
	"""On-sale works; sort is discount|price_asc|deadline|rating|review_count|new, genre all|voice|game."""
	try:
		works = _engine().get_sale_listing(sort, genre, max_price, limit)
	except ValueError as e:  # unknown option value
		raise HTTPException(status_code=400, detail=str(e))
	return _works_out(works)


@app.get("/works/bargain", response_model=List[WorkOut])
async def bargain_works(max_price: int = config.DEFAULT_BARGAIN_PRICE, limit: int = config.DEFAULT_LIMIT):
	return _works_out(_engine().get_bargain_works(max_price, limit))


@app.get("/works/high-rated", response_model=List[WorkOut])
async def high_rated_works(min_rating: float = config.DEFAULT_MIN_RATING, limit: int = config.DEFAULT_LIMIT):
	return _works_out(_engine().get_high_rated_works(min_rating, limit))


@app.get("/works/genre/{genre}", response_model=List[WorkOut])
async def works_by_genre(genre: str, limit: int = config.DEFAULT_LIMIT):
	return _works_out(_engine().get_works_by_genre(genre, limit))


@app.get("/works/rj/{rj_code}", response_model=WorkOut)
async def work_by_rj_code(rj_code: str):
	work = _engine().get_work_by_rj_code(rj_code)
	if work is None:
		raise HTTPException(status_code=404, detail=f"Work {rj_code} not found")
	return _work_out(work)


@app.get("/works/{work_id}", response_model=WorkOut)
async def work_by_id(work_id: int):
	work = _engine().get_work_by_id(work_id)
	if work is None:
		raise HTTPException(status_code=404, detail=f"Work {work_id} not found")
	return _work_out(work)


@app.get("/works/{work_id}/related", response_model=List[WorkOut])
async def related_works(work_id: int, limit: int = config.DEFAULT_RELATED_LIMIT):
	return _works_out(_engine().get_related_works(work_id, limit))


@app.get("/rankings/{marketplace}", response_model=List[WorkOut])
async def rankings(marketplace: str, limit: int = config.DEFAULT_LIMIT):
	"""marketplace is one of dlsite, fanza, voice, game."""
	engine = _engine()
	queries = {
		"dlsite": engine.get_dlsite_ranking_works,
		"fanza": engine.get_fanza_ranking_works,
		"voice": engine.get_voice_ranking_works,
		"game": engine.get_game_ranking_works,
	}
	if marketplace not in queries:
		raise HTTPException(status_code=404, detail=f"Unknown ranking '{marketplace}'")
	return _works_out(queries[marketplace](limit))


@app.get("/circles", response_model=List[CircleOut])
async def circles():
	return [_circle_out(c) for c in _engine().get_circles()]


@app.get("/circles/{name}", response_model=CircleWithWorksOut)
async def circle_with_works(name: str):
	result = _engine().get_circle_with_works(name)
	if result.circle is None:
		raise HTTPException(status_code=404, detail=f"Circle '{name}' not found")
	return CircleWithWorksOut(circle=_circle_out(result.circle), works=_works_out(result.works))


@app.get("/actors", response_model=List[NameCountOut])
async def actors():
	return _counts_out(_engine().get_actors())


@app.get("/actors/{name}/works", response_model=List[WorkOut])
async def works_by_actor(name: str):
	return _works_out(_engine().get_works_by_actor(name))


@app.get("/tags", response_model=List[NameCountOut])
async def tags():
	return _counts_out(_engine().get_tags())


@app.get("/tags/{name}/works", response_model=List[WorkOut])
async def works_by_tag(name: str):
	return _works_out(_engine().get_works_by_tag(name))


@app.get("/tags/{name}/related", response_model=List[NameCountOut])
async def related_tags(name: str, limit: int = config.DEFAULT_RELATED_TAGS_LIMIT):
	return _counts_out(_engine().get_related_tags(name, limit))


# Main search endpoint that accepts a free-text query
@app.get("/search", response_model=SearchResponse)
async def search(
	q: str = Query("", description="Space-separated search terms (AND)"),
	sort: str = "new",
	category: str = "all",
	platform: str = "all",
	on_sale: bool = False,
	max_price: str = "all",
):
	"""Run search -> filter -> sort over the in-memory projection."""
	if SEARCH is None:
		logger.warning("[API] Search requested but engine not initialized")
		return SearchResponse(query=q, total=0, elapsed_ms=0.0, results=[])
	if sort not in SORT_TYPES:
		raise HTTPException(status_code=400, detail=f"Unknown sort type: {sort!r}")

	start = time.time()  # start timer
	state = SearchState(
		query=q,
		sort_type=sort,
		category=category,
		platform=platform,
		on_sale_only=on_sale,
		max_price=max_price,
	)
	try:
		results = SEARCH.search(state)
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	elapsed_ms = (time.time() - start) * 1000  # compute ms
	logger.info(f"[API] /search served {len(results)} results in {elapsed_ms:.2f} ms")

	return SearchResponse(
		query=q,
		total=len(SEARCH.items),
		elapsed_ms=round(elapsed_ms, 2),
		results=[_search_item_out(r) for r in results],
	)
