# hopelink/matching/explain.py
from typing import Mapping

REASON_PHRASES = {
    "geographic_proximity": "close location",
    "item_compatibility": "strong item match",
    "urgency_alignment": "aligned urgency",
    "user_reliability": "high reliability",
    "delivery_compatibility": "compatible delivery",
    "availability_match": "good availability",
    "skill_compatibility": "relevant experience",
    "urgency_response": "urgency readiness",
    "delivery_preference": "delivery preference",
    "communication": "good communication",
    "timing": "good timing",
}

def generate_match_reason(scores: Mapping[str, float], weights: Mapping[str, float]) -> str:
    """
    Name the two criteria that contributed most (score x weight) to the total.
    Ties keep the criterion order of `scores`, so the text is deterministic.
    """
    contributions = [
        (criterion, (score or 0) * weights.get(criterion, 0))
        for criterion, score in scores.items()
    ]
    top = sorted((c for c in contributions if c[1] > 0), key=lambda c: c[1], reverse=True)[:2]
    if not top:
        return "Good match"
    phrases = [REASON_PHRASES.get(criterion, criterion) for criterion, _ in top]
    return "Best match due to " + " and ".join(phrases)
