# hopelink/matching/__init__.py
from hopelink.matching.geo import calculate_distance
from hopelink.matching.matcher import IntelligentMatcher
from hopelink.matching.normalize import (
    normalize_category_match,
    normalize_distance,
    normalize_quantity_match,
    normalize_reliability,
    normalize_time_compatibility,
    normalize_urgency_alignment,
)
from hopelink.matching.weights import MATCHING_WEIGHTS, get_contextual_weights

__all__ = [
    "IntelligentMatcher",
    "MATCHING_WEIGHTS",
    "calculate_distance",
    "get_contextual_weights",
    "normalize_category_match",
    "normalize_distance",
    "normalize_quantity_match",
    "normalize_reliability",
    "normalize_time_compatibility",
    "normalize_urgency_alignment",
]
