"""
Endpoint tests for the FastAPI server. Engines are injected directly so the
startup hook (which reads the real cache directory) never runs.
Run: python -m pytest tests/test_api.py
"""

import pytest
from fastapi.testclient import TestClient

import api
from catalog_engine.projection import build_search_index
from catalog_engine.search_engine import SearchEngine

from conftest import make_circle, make_work


@pytest.fixture
def client(build_engine, monkeypatch):
	engine = build_engine(
		[
			make_work(1, title="Rainy Night", category="ASMR", circle_id=10, dlsite_product_id="RJ01",
				price_dlsite=1000, discount_rate_dlsite=20, lowest_price=800, max_discount_rate=20,
				is_on_sale=True, dlsite_rank=2, cv_names=["Alice"], ai_tags=["healing", "rain"],
				duration_minutes=50, release_date="2024-02-01"),
			make_work(2, title="Dungeon Run", category="ゲーム", genre="ゲーム", circle_id=10, fanza_product_id="d_2",
				price_fanza=1500, fanza_rank=1, cv_names=["Bob"], ai_tags=["rain"], cg_count=100,
				release_date="2024-01-01"),
			make_work(3, title="Hidden", is_available=False),
		],
		[make_circle(10, "Moonlight")],
	)
	monkeypatch.setattr(api, "ENGINE", engine)
	monkeypatch.setattr(api, "SEARCH", SearchEngine(build_search_index(engine)))
	return TestClient(api.app)


def test_health(client):
	body = client.get("/health").json()
	assert body["status"] == "ok"
	assert body["engine_ready"] is True
	assert body["works"] == 3


def test_work_listings(client):
	assert [w["id"] for w in client.get("/works/new").json()] == [1, 2]
	assert [w["id"] for w in client.get("/works/new", params={"limit": 1}).json()] == [1]
	assert [w["id"] for w in client.get("/works/sale").json()] == [1]
	assert client.get("/works/bargain", params={"max_price": 500}).json() == []


def test_sale_listing_options(client):
	assert [w["id"] for w in client.get("/works/sale", params={"sort": "price_asc", "genre": "voice"}).json()] == [1]
	assert client.get("/works/sale", params={"genre": "game"}).json() == []
	assert client.get("/works/sale", params={"max_price": "500"}).json() == []  # cheapest is 800
	assert client.get("/works/sale", params={"sort": "cheap"}).status_code == 400
	assert client.get("/works/sale", params={"max_price": "750"}).status_code == 400


def test_work_lookup(client):
	work = client.get("/works/1").json()
	assert work["circle_name"] == "Moonlight"
	assert work["price"] == {"dlsite": 1000, "fanza": None}
	assert work["discounted_price"]["dlsite"] == 800
	assert client.get("/works/rj/RJ01").json()["id"] == 1

	assert client.get("/works/3").status_code == 404  # unavailable
	assert client.get("/works/999").status_code == 404
	assert client.get("/works/rj/RJ404").status_code == 404


def test_related_works(client):
	assert [w["id"] for w in client.get("/works/1/related").json()] == [2]


def test_rankings(client):
	assert [w["id"] for w in client.get("/rankings/dlsite").json()] == [1]
	assert [w["id"] for w in client.get("/rankings/fanza").json()] == [2]
	assert [w["id"] for w in client.get("/rankings/voice").json()] == [1]
	assert [w["id"] for w in client.get("/rankings/game").json()] == [2]
	assert client.get("/rankings/steam").status_code == 404


def test_circles(client):
	circles = client.get("/circles").json()
	assert circles[0]["name"] == "Moonlight" and circles[0]["work_count"] == 2

	detail = client.get("/circles/Moonlight").json()
	assert [w["id"] for w in detail["works"]] == [1, 2]
	assert client.get("/circles/Nobody").status_code == 404


def test_actors_and_tags(client):
	assert client.get("/actors").json() == [{"name": "Alice", "count": 1}, {"name": "Bob", "count": 1}]
	assert [w["id"] for w in client.get("/actors/Bob/works").json()] == [2]
	assert client.get("/tags").json()[0] == {"name": "rain", "count": 2}
	assert [w["id"] for w in client.get("/tags/rain/works").json()] == [1, 2]
	assert client.get("/tags/healing/related").json() == [{"name": "rain", "count": 1}]


def test_search(client):
	body = client.get("/search", params={"q": "alice"}).json()
	assert body["total"] == 2
	assert [r["id"] for r in body["results"]] == [1]
	assert body["results"][0]["unit_price"] == 16  # 800 / 50 minutes

	body = client.get("/search", params={"sort": "price", "platform": "fanza"}).json()
	assert [r["id"] for r in body["results"]] == [2]


def test_search_rejects_bad_options(client):
	assert client.get("/search", params={"sort": "popularity"}).status_code == 400
	assert client.get("/search", params={"max_price": "750"}).status_code == 400
	assert client.get("/search", params={"category": "video"}).status_code == 400


def test_engine_not_ready(monkeypatch):
	monkeypatch.setattr(api, "ENGINE", None)
	monkeypatch.setattr(api, "SEARCH", None)
	client = TestClient(api.app)
	assert client.get("/works/new").status_code == 503
	assert client.get("/search", params={"q": "x"}).json()["results"] == []
	assert client.get("/health").json()["engine_ready"] is False
