# hopelink/matching/normalize.py
"""
Normalizers that map raw matching signals onto a common [0, 1] scale.

Every function here is pure: the same inputs always give the same score,
which is what lets the matcher cache and compare results across candidates.
Missing inputs are treated as "unknown" and get a neutral or zero score
instead of raising.
"""
from datetime import datetime, timezone
from math import exp, isfinite
from typing import Optional

DEFAULT_MAX_DISTANCE_KM = 50.0

URGENCY_LEVELS = {"low": 1, "medium": 2, "high": 3, "critical": 4}
DEFAULT_URGENCY_LEVEL = 2

# main category -> related categories (looked up in both directions)
RELATED_CATEGORIES = {
    "food": ["groceries", "meals"],
    "clothing": ["accessories", "shoes"],
    "electronics": ["appliances", "gadgets"],
    "furniture": ["home_goods", "decor"],
}

def _round4(x: float) -> float:
    return round(x, 4)

def _clamp(x: float) -> float:
    return max(0.0, min(1.0, x))

def _as_utc(t: datetime) -> datetime:
    # naive values (motor's default) are stored as UTC
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)

def canon_category(name: Optional[str]) -> str:
    return (name or "").strip().lower()

def normalize_distance(distance: Optional[float], max_distance: float = DEFAULT_MAX_DISTANCE_KM) -> float:
    if distance is None or not isfinite(distance):
        return 0.5  # unknown distance is neutral
    if distance <= 0:
        return 1.0
    if distance >= max_distance:
        return 0.0
    return _round4(max(0.0, 1.0 - distance / max_distance))

def normalize_category_match(category1: Optional[str], category2: Optional[str],
                             subcategory1: Optional[str] = None,
                             subcategory2: Optional[str] = None) -> float:
    c1 = canon_category(category1)
    c2 = canon_category(category2)
    if not c1 or not c2:
        return 0.0
    if c1 == c2:
        if subcategory1 and subcategory2:
            return 1.0 if canon_category(subcategory1) == canon_category(subcategory2) else 0.8
        return 1.0
    for main, related in RELATED_CATEGORIES.items():
        if (c1 == main and c2 in related) or (c2 == main and c1 in related):
            return 0.6
    return 0.0

def urgency_level(urgency: Optional[str]) -> int:
    return URGENCY_LEVELS.get(canon_category(urgency), DEFAULT_URGENCY_LEVEL)

def normalize_urgency_alignment(urgency1: Optional[str], urgency2: Optional[str]) -> float:
    # exponential decay: a one-step gap costs far less than a three-step gap
    diff = abs(urgency_level(urgency1) - urgency_level(urgency2))
    return _round4(_clamp(exp(-diff / 1.5)))

def normalize_reliability(rating: float = 0, completion_rate: float = 0, total_tasks: int = 0) -> float:
    rating_score = (rating or 0) / 5.0
    experience_bonus = min((total_tasks or 0) / 10.0, 0.2)
    score = rating_score * 0.7 + (completion_rate or 0) * 0.3 + experience_bonus
    return _round4(_clamp(score))

def normalize_time_compatibility(available_time: Optional[datetime], needed_time: Optional[datetime],
                                 flexibility_hours: float = 24) -> float:
    if available_time is None or needed_time is None:
        return 0.5
    hours = abs((_as_utc(needed_time) - _as_utc(available_time)).total_seconds()) / 3600.0
    if hours <= flexibility_hours:
        return 1.0
    if flexibility_hours <= 0:
        return 0.0
    max_delay = flexibility_hours * 7  # one week at the default window
    return _round4(max(0.0, 1.0 - hours / max_delay))

def normalize_quantity_match(available: Optional[float], needed: Optional[float]) -> float:
    if needed is None or needed <= 0:
        return 1.0
    available = available or 0
    if available >= needed:
        return 1.0
    return _clamp(available / needed)

def text_similarity(text1: Optional[str], text2: Optional[str]) -> float:
    """Jaccard similarity of the lower-cased word sets."""
    if not text1 or not text2:
        return 0.0
    words1 = set(text1.lower().split())
    words2 = set(text2.lower().split())
    if not words1 or not words2:
        return 0.0
    return len(words1 & words2) / len(words1 | words2)
