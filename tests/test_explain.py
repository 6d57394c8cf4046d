from hopelink.matching.explain import generate_match_reason
from hopelink.matching.weights import DONOR_RECIPIENT, MATCHING_WEIGHTS

WEIGHTS = dict(MATCHING_WEIGHTS[DONOR_RECIPIENT])

def test_top_two_weighted_contributions():
    scores = {
        "geographic_proximity": 1.0,   # 0.25
        "item_compatibility": 0.9,     # 0.27
        "urgency_alignment": 1.0,      # 0.20
        "user_reliability": 0.2,       # 0.03
        "delivery_compatibility": 1.0, # 0.10
    }
    assert generate_match_reason(scores, WEIGHTS) == \
        "Best match due to strong item match and close location"

def test_raw_score_alone_does_not_win():
    # delivery scores highest raw but carries the smallest weight
    scores = {"delivery_compatibility": 1.0, "user_reliability": 0.8, "urgency_alignment": 0.7}
    assert generate_match_reason(scores, WEIGHTS) == \
        "Best match due to aligned urgency and high reliability"

def test_unknown_criterion_uses_key():
    assert generate_match_reason({"freshness": 1.0, "timing": 0.1},
                                 {"freshness": 0.6, "timing": 0.4}) == \
        "Best match due to freshness and good timing"

def test_single_and_empty_contributions():
    assert generate_match_reason({"timing": 1.0}, {"timing": 1.0}) == "Best match due to good timing"
    assert generate_match_reason({"timing": 0.0}, {"timing": 1.0}) == "Good match"
    assert generate_match_reason({"extra": 1.0}, WEIGHTS) == "Good match"

def test_deterministic_on_ties():
    scores = {"geographic_proximity": 0.4, "urgency_alignment": 0.5, "delivery_compatibility": 1.0}
    # 0.10 each: ties keep the order of the score map
    first = generate_match_reason(scores, WEIGHTS)
    assert first == generate_match_reason(dict(scores), dict(WEIGHTS))
    assert first == "Best match due to close location and aligned urgency"
