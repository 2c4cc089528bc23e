"""
Related-works relevance tiers.

Each tier is a pure function (target, candidates) -> ordered candidate list.
`take_until_full` composes tiers in fallback order: it walks them one after the
other, skips ids already chosen, and stops as soon as the slot budget is spent.
A later tier never causes an earlier one to be revisited.
"""

from typing import Callable, List, Sequence, Set  # type annotations for clarity

from .models import Work
from .ranking import by_release_desc, release_key, shared_count

Tier = Callable[[Work, Sequence[Work]], List[Work]]


def cast_tier(target: Work, candidates: Sequence[Work]) -> List[Work]:
	"""Works sharing at least one cast name, newest first."""
	if not target.cast:  # nothing to share
		return []
	cast = set(target.cast)  # membership lookups
	return by_release_desc(w for w in candidates if any(n in cast for n in w.cast))


def tag_tier(target: Work, candidates: Sequence[Work]) -> List[Work]:
	"""Works sharing at least one tag, most shared tags first, then newest."""
	if not target.tags:  # nothing to share
		return []
	tags = set(target.tags)  # membership lookups
	scored = [(shared_count(w, tags), w) for w in candidates]  # overlap per candidate
	scored = [(n, w) for n, w in scored if n > 0]  # at least one shared tag
	scored.sort(key=lambda pair: (pair[0], release_key(pair[1])), reverse=True)
	return [w for _, w in scored]


def circle_tier(target: Work, candidates: Sequence[Work]) -> List[Work]:
	if not target.circle_id:  # no owning circle
		return []
	return by_release_desc(w for w in candidates if w.circle_id == target.circle_id)


def category_tier(target: Work, candidates: Sequence[Work]) -> List[Work]:
	if target.category is None:  # unknown category never matches
		return []
	return by_release_desc(w for w in candidates if w.category == target.category)


# Fallback order for the second half of the related list
OTHER_TIERS: Sequence[Tier] = (tag_tier, circle_tier, category_tier)


def take_until_full(
	tiers: Sequence[Tier],
	target: Work,
	candidates: Sequence[Work],
	capacity: int,
	seen: Set[int],
) -> List[Work]:
	"""
	Pull works from the tiers in order until `capacity` is reached.
	`seen` is updated in place so later halves skip what this call picked.
	"""
	picked: List[Work] = []  # chosen so far, in tier order
	for tier in tiers:  # fallback order
		if len(picked) >= capacity:  # budget spent
			break
		for work in tier(target, candidates):
			if len(picked) >= capacity:
				break
			if work.id in seen:  # already chosen (or the target)
				continue
			seen.add(work.id)  # shared with the other half
			picked.append(work)
	return picked


def related_works(target: Work, candidates: Sequence[Work], limit: int) -> List[Work]:
	"""
	Up to `limit` works related to `target`: the first half by shared cast, the
	second half by shared tags, then same circle, then same category.
	`candidates` must already exclude the target and unavailable works.
	"""
	if limit <= 0:  # nothing requested
		return []
	half = limit // 2  # cast half; odd limits give the extra slot to the other half
	seen: Set[int] = {target.id}  # target never recommended
	cast_half = take_until_full((cast_tier,), target, candidates, half, seen)
	other_half = take_until_full(OTHER_TIERS, target, candidates, limit - half, seen)
	return (cast_half + other_half)[:limit]
