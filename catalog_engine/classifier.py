"""
Category classification.
Maps the raw genre/category strings of a snapshot record onto the closed Category set
and the audio/game flags used by rankings and the search projection.
Runs once per record at ingestion.
"""

from typing import Optional

from loguru import logger

from .models import Category

# Substrings of the marketplace genre that mark a voice / ASMR work
AUDIO_GENRE_MARKERS = ("音声", "ボイス", "asmr")
GAME_GENRE_MARKERS = ("ゲーム",)

_CATEGORY_BY_VALUE = {c.value: c for c in Category}


def classify_category(raw: Optional[str]) -> Optional[Category]:
	"""Return the Category for a raw category string, or None when unknown or missing."""
	if not raw:
		return None
	category = _CATEGORY_BY_VALUE.get(raw.strip())
	if category is None:
		logger.debug(f"[Classifier] Unknown category '{raw}'")
	return category


def is_audio_genre(genre: Optional[str], category: Optional[Category]) -> bool:
	"""The genre string decides when present; otherwise fall back to the category."""
	if genre:
		g = genre.lower()
		return any(marker in g for marker in AUDIO_GENRE_MARKERS)
	return category in (Category.AUDIO, Category.VOICE_WORK)


def is_game_genre(genre: Optional[str], category: Optional[Category]) -> bool:
	if genre:
		return any(marker in genre for marker in GAME_GENRE_MARKERS)
	return category == Category.GAME


# Genre markers accepted by the FANZA ranking (genre string only, no category fallback)
FANZA_RANKING_GENRE_MARKERS = ("音声", "ゲーム")


def is_fanza_ranking_genre(genre: Optional[str]) -> bool:
	"""True when the raw genre names a voice or game work; works without a genre never qualify."""
	if not genre:
		return False
	return any(marker in genre for marker in FANZA_RANKING_GENRE_MARKERS)
