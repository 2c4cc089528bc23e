"""
Tests for the catalog query engine: rankings, listings, lookups and aggregation.
Run: python -m pytest tests/test_query_engine.py
"""

from catalog_engine.models import Snapshot
from catalog_engine.query_engine import CatalogQueryEngine

from conftest import ids, make_circle, make_work


def test_unavailable_works_never_returned(build_engine):
	hidden = dict(
		is_available=False,
		is_on_sale=True,
		max_discount_rate=90,
		lowest_price=100,
		dlsite_rank=1,
		fanza_rank=1,
		rating_dlsite=5.0,
		category="ASMR",
		genre="音声",
		dlsite_product_id="RJ999",
		cv_names=["Alice"],
		ai_tags=["horror"],
		circle_id=10,
	)
	visible = dict(hidden, is_available=True)
	engine = build_engine(
		[make_work(1, **hidden), make_work(2, **visible)],
		[make_circle(10, "Moon")],
	)

	listings = [
		engine.get_new_works(),
		engine.get_sale_works(),
		engine.get_works_by_genre("音声"),
		engine.get_dlsite_ranking_works(),
		engine.get_fanza_ranking_works(),
		engine.get_bargain_works(),
		engine.get_voice_ranking_works(),
		engine.get_high_rated_works(),
		engine.get_all_works(),
		engine.get_works_by_ids([1, 2]),
		engine.get_works_by_actor("Alice"),
		engine.get_works_by_tag("horror"),
		engine.get_circle_with_works("Moon").works,
		engine.get_popular_works_by_circle(10, exclude_work_id=0),
		engine.get_popular_works_by_actor("Alice", exclude_work_id=0),
		engine.get_similar_works_by_tags(0, ["horror"]),
	]
	for result in listings:
		assert ids(result) == [2]

	assert engine.get_work_by_id(1) is None
	assert engine.get_work_by_rj_code("RJ999").id == 2
	assert engine.get_all_work_ids() == [2]
	assert engine.get_actors()[0].count == 1
	assert engine.get_circles()[0].work_count == 1


def test_new_works_sorted_by_release_desc_and_limited(build_engine):
	engine = build_engine([
		make_work(1, release_date="2023-05-01"),
		make_work(2, release_date="2024-02-01"),
		make_work(3, release_date=None),
		make_work(4, release_date="2024-01-15"),
	])
	assert ids(engine.get_new_works()) == [2, 4, 1, 3]
	assert ids(engine.get_new_works(limit=2)) == [2, 4]


def test_sale_works_by_discount(build_engine):
	engine = build_engine([
		make_work(1, is_on_sale=True, max_discount_rate=30),
		make_work(2, is_on_sale=False, max_discount_rate=90),
		make_work(3, is_on_sale=True, max_discount_rate=70),
	])
	assert ids(engine.get_sale_works()) == [3, 1]


def test_works_by_genre_case_insensitive(build_engine):
	engine = build_engine([
		make_work(1, genre="Voice / ASMR", release_date="2024-01-01"),
		make_work(2, genre="RPG Game"),
		make_work(3, genre="binaural asmr", release_date="2024-03-01"),
	])
	assert ids(engine.get_works_by_genre("asmr")) == [3, 1]


def test_dlsite_and_fanza_rankings(build_engine):
	engine = build_engine([
		make_work(1, dlsite_rank=5, genre="CG集"),
		make_work(2, dlsite_rank=1, fanza_rank=3, genre="音声"),
		make_work(3, fanza_rank=1, genre="CG集"),  # not voice/game
		make_work(4, fanza_rank=2, genre="ゲーム"),
	])
	assert ids(engine.get_dlsite_ranking_works()) == [2, 1]
	assert ids(engine.get_fanza_ranking_works()) == [4, 2]


def test_fanza_ranking_requires_voice_or_game_genre(build_engine):
	engine = build_engine([
		make_work(1, fanza_rank=1, genre="ボイス・ASMR"),  # audio by marker, but not 音声
		make_work(2, fanza_rank=2, category="ASMR"),  # no genre string
		make_work(3, fanza_rank=3, genre="音声作品"),
		make_work(4, fanza_rank=4, genre="ゲーム", category="CG集"),
	])
	assert ids(engine.get_fanza_ranking_works()) == [3, 4]


def test_bargain_threshold_inclusive(build_engine):
	engine = build_engine([
		make_work(1, lowest_price=500),
		make_work(2, lowest_price=300),
		make_work(3, lowest_price=501),
		make_work(4, lowest_price=None),
	])
	result = engine.get_bargain_works(max_price=500)
	assert [w.lowest_price for w in result] == [300, 500]
	assert ids(engine.get_bargain_works(max_price=300)) == [2]


def test_voice_ranking_dlsite_before_fanza_only(build_engine):
	engine = build_engine([
		make_work(2, category="ASMR", dlsite_rank=None, fanza_rank=1, release_date="2024-02-01"),
		make_work(1, category="ASMR", dlsite_rank=3, fanza_rank=None, release_date="2024-01-01"),
	])
	assert ids(engine.get_voice_ranking_works()) == [1, 2]


def test_composite_ranking_tie_breaks(build_engine):
	engine = build_engine([
		make_work(1, category="ゲーム", fanza_rank=2, release_date="2024-01-01"),
		make_work(2, category="ゲーム", dlsite_rank=7, release_date="2023-01-01"),
		make_work(3, category="ゲーム", dlsite_rank=7, release_date="2024-06-01"),
		make_work(4, category="ゲーム", fanza_rank=2, release_date="2024-09-01"),
		make_work(5, category="ゲーム", dlsite_rank=1, fanza_rank=50),
		make_work(6, category="ゲーム"),  # unranked
		make_work(7, category="ASMR", dlsite_rank=1),  # other category
	])
	assert ids(engine.get_game_ranking_works()) == [5, 3, 2, 4, 1]


def test_high_rated_ordering(build_engine):
	engine = build_engine([
		make_work(1, rating_dlsite=4.6, review_count_dlsite=10),
		make_work(2, rating_fanza=4.9),
		make_work(3, rating_dlsite=4.4, rating_fanza=4.6, review_count_dlsite=5, review_count_fanza=20),
		make_work(4, rating_dlsite=4.6, review_count_dlsite=10, release_date="2025-01-01"),
		make_work(5, rating_dlsite=4.0),
	])
	# 2 (4.9) > 3 (4.6, 25 reviews) > 4 (4.6, 10, newer) > 1
	assert ids(engine.get_high_rated_works()) == [2, 3, 4, 1]
	assert ids(engine.get_high_rated_works(min_rating=4.8)) == [2]


def test_lookups(build_engine):
	engine = build_engine(
		[make_work(1, circle_id=10, dlsite_product_id="RJ01"), make_work(2)],
		[make_circle(10, "Moonlight")],
	)
	work = engine.get_work_by_id(1)
	assert work.circle_name == "Moonlight"
	assert engine.get_work_by_id(2).circle_name is None
	assert engine.get_work_by_id(99) is None
	assert engine.get_work_by_rj_code("RJ01").id == 1
	assert engine.get_work_by_rj_code("RJ404") is None
	assert ids(engine.get_works_by_ids([2, 99, 1])) == [2, 1]
	assert engine.get_works_by_ids([]) == []
	assert engine.get_all_rj_codes() == ["RJ01"]
	assert engine.get_all_work_ids() == [1, 2]


def test_enrichment_does_not_mutate_snapshot(build_engine):
	engine = build_engine([make_work(1, circle_id=10)], [make_circle(10, "Moonlight")])
	assert engine.get_new_works()[0].circle_name == "Moonlight"
	assert engine.snapshot.works[0].circle_name is None


def test_circle_counts_are_recomputed(build_engine):
	engine = build_engine(
		[
			make_work(1, circle_id=10),
			make_work(2, circle_id=20),
			make_work(3, circle_id=20),
			make_work(4, circle_id=20, is_available=False),
		],
		[make_circle(10, "A", work_count=50), make_circle(20, "B", work_count=0), make_circle(30, "C", work_count=9)],
	)
	circles = engine.get_circles()
	assert [(c.name, c.work_count) for c in circles] == [("B", 2), ("A", 1), ("C", 0)]
	assert engine.get_all_circle_names() == ["A", "B"]


def test_circle_with_works(build_engine):
	engine = build_engine(
		[
			make_work(1, circle_id=10, release_date="2023-01-01"),
			make_work(2, circle_id=10, release_date="2024-01-01"),
			make_work(3, circle_id=20),
		],
		[make_circle(10, "Moonlight", work_count=99)],
	)
	result = engine.get_circle_with_works("Moonlight")
	assert result.circle.work_count == 2
	assert ids(result.works) == [2, 1]
	assert all(w.circle_name == "Moonlight" for w in result.works)

	missing = engine.get_circle_with_works("moonlight")  # exact match only
	assert missing.circle is None and missing.works == []


def test_actor_and_tag_aggregation(build_engine):
	engine = build_engine([
		make_work(1, cv_names=["Alice", "Bob"], ai_tags=["healing"], release_date="2023-01-01"),
		make_work(2, cv_names=["Alice"], ai_tags=["healing", "sleep"], release_date="2024-01-01"),
		make_work(3, cv_names=["Carol"], ai_tags=["sleep", "healing"]),
	])
	assert engine.get_actors() == [("Alice", 2), ("Bob", 1), ("Carol", 1)]
	assert engine.get_tags() == [("healing", 3), ("sleep", 2)]
	assert ids(engine.get_works_by_actor("Alice")) == [2, 1]
	assert engine.get_works_by_actor("alice") == []
	assert ids(engine.get_works_by_tag("sleep")) == [2, 3]
	assert engine.get_popular_tags(limit=1) == [("healing", 3)]
	assert sorted(engine.get_all_actor_names()) == ["Alice", "Bob", "Carol"]
	assert engine.get_all_tag_names() == ["healing", "sleep"]


def test_related_tags_scenario(build_engine):
	engine = build_engine([
		make_work(1, ai_tags=["horror", "A"]),
		make_work(2, ai_tags=["A", "horror"]),
		make_work(3, ai_tags=["horror", "B"]),
		make_work(4, ai_tags=["B", "C"]),
	])
	result = engine.get_related_tags("horror", 10)
	assert result == [("A", 2), ("B", 1)]
	assert all(name != "horror" for name, _ in result)
	assert engine.get_related_tags("horror", 1) == [("A", 2)]
	assert engine.get_related_tags("unknown") == []


def test_popular_works_by_circle_and_actor(build_engine):
	engine = build_engine([
		make_work(1, circle_id=10, cv_names=["Alice"], rating_dlsite=4.0),
		make_work(2, circle_id=10, cv_names=["Alice"], rating_fanza=4.8),
		make_work(3, circle_id=10, cv_names=["Alice"], rating_dlsite=4.0, release_date="2025-01-01"),
		make_work(4, circle_id=10, cv_names=["Alice"], rating_dlsite=3.0, rating_fanza=5.0),
	])
	# DLsite rating is used when present, so work 4 counts as 3.0
	assert ids(engine.get_popular_works_by_circle(10, exclude_work_id=1)) == [2, 3, 4]
	assert ids(engine.get_popular_works_by_actor("Alice", exclude_work_id=2, limit=2)) == [3, 1]


def test_similar_works_by_tags(build_engine):
	engine = build_engine([
		make_work(1, ai_tags=["a", "b", "c"]),
		make_work(2, ai_tags=["a"], rating_dlsite=4.9),
		make_work(3, ai_tags=["a", "b"]),
		make_work(4, ai_tags=["a"], rating_dlsite=4.9, release_date="2025-01-01"),
		make_work(5, ai_tags=["z"]),
	])
	assert ids(engine.get_similar_works_by_tags(1, ["a", "b", "c"])) == [3, 4, 2]
	assert engine.get_similar_works_by_tags(1, []) == []


def test_empty_snapshot_gives_empty_results():
	engine = CatalogQueryEngine(Snapshot())
	assert engine.get_new_works() == []
	assert engine.get_circles() == []
	assert engine.get_related_works(1) == []
	assert engine.get_circle_with_works("x").circle is None
