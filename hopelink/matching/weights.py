# hopelink/matching/weights.py
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from hopelink.schemas import Donation, DonationRequest, MatchingParameters
from hopelink.matching.normalize import canon_category

DONOR_RECIPIENT = "DONOR_RECIPIENT"
VOLUNTEER_TASK = "VOLUNTEER_TASK"
DONOR_VOLUNTEER = "DONOR_VOLUNTEER"

# Each vector sums to 1.0 so totals stay comparable across pairings
MATCHING_WEIGHTS: Mapping[str, Mapping[str, float]] = MappingProxyType({
    DONOR_RECIPIENT: MappingProxyType({
        "geographic_proximity": 0.25,
        "item_compatibility": 0.30,
        "urgency_alignment": 0.20,
        "user_reliability": 0.15,
        "delivery_compatibility": 0.10,
    }),
    VOLUNTEER_TASK: MappingProxyType({
        "geographic_proximity": 0.30,
        "availability_match": 0.25,
        "skill_compatibility": 0.20,
        "user_reliability": 0.15,
        "urgency_response": 0.10,
    }),
    DONOR_VOLUNTEER: MappingProxyType({
        "geographic_proximity": 0.25,
        "user_reliability": 0.30,
        "delivery_preference": 0.20,
        "communication": 0.15,
        "timing": 0.10,
    }),
})

PERISHABLE_CATEGORIES = frozenset({"food", "groceries", "meals"})

MIN_RELIABILITY_WEIGHT = 0.05
_SUM_TOLERANCE = 1e-3

def get_weights(group: str = DONOR_RECIPIENT, params: Optional[MatchingParameters] = None) -> Dict[str, float]:
    """Fresh copy of a base vector; DONOR_RECIPIENT may be overridden by stored parameters."""
    if group == DONOR_RECIPIENT and params is not None and params.weights:
        return dict(params.weights)
    return dict(MATCHING_WEIGHTS[group])

def renormalize(weights: Dict[str, float]) -> Dict[str, float]:
    total = sum(weights.values())
    if total > 0 and abs(total - 1.0) > _SUM_TOLERANCE:
        return {k: v / total for k, v in weights.items()}
    return weights

def _boosted(base: Dict[str, float], fixed: Dict[str, float]) -> Dict[str, float]:
    out = dict(base)
    out.update(fixed)
    # user_reliability absorbs whatever the fixed criteria leave over
    others = sum(v for k, v in out.items() if k != "user_reliability")
    out["user_reliability"] = max(MIN_RELIABILITY_WEIGHT, 1.0 - others)
    return renormalize(out)

def get_contextual_weights(request: Optional[DonationRequest], donation: Optional[Donation],
                           base: Optional[Mapping[str, float]] = None,
                           params: Optional[MatchingParameters] = None) -> Dict[str, float]:
    """
    Pick the donor/recipient vector for one pairing.

    Perishables weight proximity over trust history; critical requests weight
    urgency. The perishable rule wins when both apply.
    """
    params = params or MatchingParameters()
    weights = dict(base) if base is not None else get_weights(DONOR_RECIPIENT, params)

    category = canon_category(donation.category if donation else None)
    if category in PERISHABLE_CATEGORIES:
        return _boosted(weights, {
            "geographic_proximity": params.perishable_geographic_boost,
            "item_compatibility": 0.30,
        })

    urgency = canon_category(request.urgency if request else None)
    if urgency == "critical":
        return _boosted(weights, {
            "urgency_alignment": params.critical_urgency_boost,
            "geographic_proximity": 0.25,
        })

    return renormalize(weights)
