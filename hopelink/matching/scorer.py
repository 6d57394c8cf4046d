# hopelink/matching/scorer.py
"""
Per-pair criterion scoring for the three relationship types.

Each score_* coroutine returns a {criterion: score} map with every value in
[0, 1]. Criteria that need the repository run behind their own guard: if one
lookup fails for one candidate, that criterion falls back to NEUTRAL_SCORE
and the rest of the batch carries on.
"""
import logging
from typing import Awaitable, Dict, Iterable, Mapping, Optional

from hopelink.matching import geo
from hopelink.matching.cache import TTLCache
from hopelink.matching.normalize import (
    canon_category,
    normalize_category_match,
    normalize_distance,
    normalize_quantity_match,
    normalize_reliability,
    normalize_time_compatibility,
    normalize_urgency_alignment,
    text_similarity,
)
from hopelink.repos.base import MatchingRepository
from hopelink.schemas import (
    Donation, DonationRequest, MatchingParameters, Task, UserRef, Volunteer,
)

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5
ASSUMED_DONOR_RATING = 4.0  # donors and recipients have no rating system of their own

COMPATIBLE_DELIVERY_MODES = {
    "volunteer": ("pickup", "direct"),
    "pickup": ("volunteer",),
    "direct": ("volunteer",),
}

URGENCY_RESPONSE = {"low": 0.8, "medium": 0.9, "high": 1.0, "critical": 1.0}

# profile preference label -> item categories it covers
PREFERENCE_CATEGORIES = {
    "food & beverages": ("food", "groceries", "meals"),
    "clothing & accessories": ("clothing", "apparel"),
    "medical supplies": ("medical", "medicine"),
    "educational materials": ("educational", "books", "education"),
    "household items": ("household", "home"),
    "electronics & technology": ("electronics", "technology", "tech"),
    "toys & recreation": ("toys", "recreation"),
    "personal care items": ("personal care", "care"),
    "emergency supplies": ("emergency",),
    "financial assistance": ("financial",),
    "transportation": ("transportation",),
}
PREFERENCE_BOOST = 0.15

# item category -> volunteer delivery-type labels
CATEGORY_DELIVERY_TYPES = {
    "food": ("food items",),
    "groceries": ("food items", "household items"),
    "meals": ("food items",),
    "clothing": ("clothing",),
    "electronics": ("electronics",),
    "furniture": ("furniture", "household items"),
    "medical": ("medical supplies",),
    "books": ("books educational",),
    "toys": ("toys",),
    "household": ("household items",),
    "educational": ("books educational",),
}

def _canon_label(s: Optional[str]) -> str:
    return " ".join((s or "").lower().replace("/", " ").replace("-", " ").split())

def _matches_preference(category: Optional[str], preferences: Iterable[str]) -> bool:
    cat = canon_category(category)
    if not cat:
        return False
    for pref in preferences:
        p = canon_category(pref)
        if not p:
            continue
        if any(mapped in cat for mapped in PREFERENCE_CATEGORIES.get(p, ())):
            return True
        if p in cat or cat in p:
            return True
    return False

def weighted_total(scores: Mapping[str, float], weights: Mapping[str, float]) -> float:
    """Weighted sum over the weight vector's own criteria, clamped and rounded."""
    total = sum((scores.get(criterion) or 0) * weight for criterion, weight in weights.items())
    return round(max(0.0, min(1.0, total)), 4)

def delivery_compatibility(mode1: Optional[str], mode2: Optional[str]) -> float:
    if mode1 == mode2:
        return 1.0
    return 0.7 if mode2 in COMPATIBLE_DELIVERY_MODES.get(mode1, ()) else 0.3

def urgency_response(task: Task) -> float:
    return URGENCY_RESPONSE.get(canon_category(task.urgency), URGENCY_RESPONSE["medium"])

def item_compatibility(category1: Optional[str], category2: Optional[str],
                       title1: Optional[str], title2: Optional[str],
                       needed: Optional[float], available: Optional[float],
                       donor: Optional[UserRef] = None,
                       recipient: Optional[UserRef] = None) -> float:
    category_score = normalize_category_match(category1, category2)
    quantity_score = normalize_quantity_match(available, needed)
    title_score = text_similarity(title1, title2)
    score = category_score * 0.5 + quantity_score * 0.3 + title_score * 0.2

    if donor is not None and _matches_preference(category2, donor.donation_types):
        score += PREFERENCE_BOOST
    if recipient is not None and _matches_preference(category1, recipient.assistance_needs):
        score += PREFERENCE_BOOST
    return round(max(0.0, min(1.0, score)), 4)

def volunteer_item_compatibility(task: Task, volunteer: Volunteer) -> float:
    category = _canon_label(task.category)
    if not category:
        return 0.7
    preferred = [_canon_label(p) for p in volunteer.preferred_delivery_types if p]
    if not preferred:
        return 0.7
    for delivery_type in CATEGORY_DELIVERY_TYPES.get(category, ()):
        if delivery_type in preferred:
            return 1.0
    if any(category in p or p in category for p in preferred):
        return 0.8
    if "household items" in preferred:
        return 0.7
    return 0.5

class Scorer:
    def __init__(self, repo: MatchingRepository, distance_cache: TTLCache, reliability_cache: TTLCache):
        self.repo = repo
        self.distance_cache = distance_cache
        self.reliability_cache = reliability_cache

    async def _guarded(self, criterion: str, subject_id: Optional[str], pending: Awaitable[float]) -> float:
        try:
            return await pending
        except Exception as ex:
            logger.warning("criterion %s failed for %s, using neutral score: %r",
                           criterion, subject_id, ex)
            return NEUTRAL_SCORE

    # --------------------------------------------------
    # Cached lookups
    # --------------------------------------------------
    def cached_distance(self, lat1, lon1, lat2, lon2) -> Optional[float]:
        key = ("distance", lat1, lon1, lat2, lon2)
        return self.distance_cache.get_or_compute(
            key, lambda: geo.calculate_distance(lat1, lon1, lat2, lon2))

    def _pair_distance(self, a: Optional[UserRef], b: Optional[UserRef],
                       addr_a: Optional[str], addr_b: Optional[str]) -> Optional[float]:
        if a and b and None not in (a.latitude, a.longitude, b.latitude, b.longitude):
            return self.cached_distance(a.latitude, a.longitude, b.latitude, b.longitude)
        return geo.address_proximity(addr_a, addr_b)

    async def user_reliability(self, user_id: Optional[str], user_type: str) -> float:
        if not user_id:
            return NEUTRAL_SCORE
        try:
            return await self.reliability_cache.aget_or_compute(
                (user_type, user_id), lambda: self._compute_reliability(user_id, user_type))
        except Exception as ex:
            logger.warning("reliability lookup failed for %s %s: %r", user_type, user_id, ex)
            return NEUTRAL_SCORE

    async def _compute_reliability(self, user_id: str, user_type: str) -> float:
        if user_type == "volunteer":
            stats = await self.repo.get_volunteer_stats(user_id)
            completion = (stats.completed_deliveries / stats.total_deliveries
                          if stats.total_deliveries > 0 else 0.0)
            return normalize_reliability(stats.average_rating, completion, stats.total_deliveries)

        donations = await self.repo.get_donations(donor_id=user_id)
        completed = sum(1 for d in donations if d.status == "completed")
        completion = completed / len(donations) if donations else 0.0
        return normalize_reliability(ASSUMED_DONOR_RATING, completion, len(donations))

    # --------------------------------------------------
    # Volunteer-side criteria
    # --------------------------------------------------
    def volunteer_proximity(self, task: Task, volunteer: Volunteer, max_distance: float = 50.0) -> float:
        """Mean distance from the volunteer to the pickup and drop-off points."""
        here = (volunteer.latitude, volunteer.longitude)
        volunteer_addr = volunteer.address or volunteer.city
        legs = (
            (task.pickup_latitude, task.pickup_longitude, task.pickup_location),
            (task.delivery_latitude, task.delivery_longitude, task.delivery_location),
        )
        distances = []
        for lat, lng, addr in legs:
            d = None
            if None not in here and lat is not None and lng is not None:
                d = self.cached_distance(here[0], here[1], lat, lng)
            if d is None and addr:
                d = geo.address_proximity(volunteer_addr, addr)
            if d is not None:
                distances.append(d)
        if not distances:
            return NEUTRAL_SCORE
        return normalize_distance(sum(distances) / len(distances), max_distance)

    async def availability_match(self, task: Task, volunteer: Volunteer) -> float:
        # no calendar data: in-flight load stands in for availability
        active = await self.repo.get_deliveries(volunteer_id=volunteer.id, status="assigned")
        return max(0.0, 1.0 - len(active) * 0.2)

    async def skill_compatibility(self, task: Task, volunteer: Volunteer) -> float:
        history = await self.repo.get_deliveries(volunteer_id=volunteer.id)
        category = canon_category(task.category)
        urgency = canon_category(task.urgency)
        relevant = [
            d for d in history
            if (category and canon_category(d.category) == category)
            or (urgency and canon_category(d.urgency) == urgency)
        ]
        return min(1.0, len(relevant) / 5)

    # --------------------------------------------------
    # Relationship scorers
    # --------------------------------------------------
    async def score_donation_for_request(self, request: DonationRequest, donation: Donation,
                                         params: Optional[MatchingParameters] = None,
                                         recipient: Optional[UserRef] = None) -> Dict[str, float]:
        """
        Donor <-> recipient criteria. `recipient` overrides the requester
        profile for the location side (reverse matching from a recipient's view).
        """
        params = params or MatchingParameters()
        requester = recipient or request.requester
        donor = donation.donor

        donation_addr = donation.pickup_location or (donor.address or donor.city if donor else None)
        request_addr = (recipient.address or recipient.city) if recipient else (
            request.location or (requester.address or requester.city if requester else None))
        distance = self._pair_distance(requester, donor, request_addr, donation_addr)

        return {
            "geographic_proximity": normalize_distance(distance, params.max_distance_km),
            "item_compatibility": item_compatibility(
                request.category, donation.category,
                request.title, donation.title,
                request.quantity_needed, donation.quantity,
                donor=donor, recipient=requester,
            ),
            "urgency_alignment": normalize_urgency_alignment(
                request.urgency, "high" if donation.is_urgent else "medium"),
            "user_reliability": await self.user_reliability(donation.donor_id, "donor"),
            "delivery_compatibility": delivery_compatibility(request.delivery_mode, donation.delivery_mode),
        }

    async def score_volunteer_for_task(self, task: Task, volunteer: Volunteer) -> Dict[str, float]:
        return {
            "geographic_proximity": self.volunteer_proximity(task, volunteer),
            "availability_match": await self._guarded(
                "availability_match", volunteer.id, self.availability_match(task, volunteer)),
            "skill_compatibility": await self._guarded(
                "skill_compatibility", volunteer.id, self.skill_compatibility(task, volunteer)),
            "user_reliability": await self.user_reliability(volunteer.id, "volunteer"),
            "urgency_response": urgency_response(task),
            "item_compatibility": volunteer_item_compatibility(task, volunteer),
        }

    async def score_donor_for_volunteer(self, donation: Donation, volunteer: Volunteer,
                                        params: Optional[MatchingParameters] = None) -> Dict[str, float]:
        params = params or MatchingParameters()
        here = UserRef(latitude=volunteer.latitude, longitude=volunteer.longitude,
                       address=volunteer.address, city=volunteer.city)
        donor = donation.donor
        donation_addr = donation.pickup_location or (donor.address or donor.city if donor else None)
        distance = self._pair_distance(here, donor, here.address or here.city, donation_addr)

        return {
            "geographic_proximity": normalize_distance(distance, params.max_distance_km),
            "user_reliability": await self.user_reliability(donation.donor_id, "donor"),
            "delivery_preference": delivery_compatibility(
                volunteer.preferred_delivery_mode or "volunteer", donation.delivery_mode),
            # no messaging history in this model
            "communication": NEUTRAL_SCORE,
            "timing": normalize_time_compatibility(donation.available_from, volunteer.available_from),
        }
