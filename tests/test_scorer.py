import pytest

from hopelink.matching.scorer import (
    NEUTRAL_SCORE,
    delivery_compatibility,
    item_compatibility,
    urgency_response,
    volunteer_item_compatibility,
    weighted_total,
)
from hopelink.repos.inmemory import InMemoryRepo
from hopelink.schemas import Donation, DonationRequest, Task, UserRef, Volunteer

def test_weighted_total_ignores_criteria_outside_vector():
    assert weighted_total({"a": 1.0, "zzz": 1.0}, {"a": 0.5}) == 0.5
    assert weighted_total({}, {"a": 0.5}) == 0.0

def test_item_compatibility_blend():
    assert item_compatibility("food", "food", "canned goods", "canned goods", 5, 10) == 1.0
    assert item_compatibility("food", "food", "rice bags", "rice", 5, 10) == pytest.approx(0.9)
    assert item_compatibility("food", "food", None, None, 4, 2) == pytest.approx(0.65)
    assert item_compatibility("food", "clothing", None, None, 1, 1) == pytest.approx(0.3)

def test_item_compatibility_preference_boost_is_capped():
    donor = UserRef(donation_types=["Food & Beverages"])
    recipient = UserRef(assistance_needs=["food & beverages"])
    assert item_compatibility("food", "food", None, None, 1, 1, donor=donor) == pytest.approx(0.95)
    assert item_compatibility("food", "food", None, None, 1, 1, donor=donor, recipient=recipient) == 1.0
    assert item_compatibility("food", "food", None, None, 1, 1,
                              donor=UserRef(donation_types=["Toys & Recreation"])) == pytest.approx(0.8)

def test_delivery_compatibility():
    assert delivery_compatibility("direct", "direct") == 1.0
    assert delivery_compatibility("volunteer", "pickup") == 0.7
    assert delivery_compatibility("pickup", "volunteer") == 0.7
    assert delivery_compatibility("direct", "volunteer") == 0.7
    assert delivery_compatibility("pickup", "direct") == 0.3
    assert delivery_compatibility(None, "pickup") == 0.3

def test_urgency_response_table():
    assert urgency_response(Task(urgency="low")) == 0.8
    assert urgency_response(Task(urgency="medium")) == 0.9
    assert urgency_response(Task(urgency="high")) == 1.0
    assert urgency_response(Task(urgency="critical")) == 1.0
    assert urgency_response(Task()) == 0.9

@pytest.mark.parametrize("category,prefs,expected", [
    ("food", ["Food Items"], 1.0),
    ("groceries", ["household items"], 1.0),
    ("medical", ["Medical"], 0.8),
    ("clothing", ["Household Items"], 0.7),
    ("clothing", [], 0.7),
    (None, ["Clothing"], 0.7),
    ("toys", ["Furniture"], 0.5),
])
def test_volunteer_item_compatibility(category, prefs, expected):
    task = Task(category=category)
    volunteer = Volunteer(id="v", preferred_delivery_types=prefs)
    assert volunteer_item_compatibility(task, volunteer) == expected

@pytest.mark.anyio
async def test_availability_drops_with_assigned_load(matcher, repo):
    for _ in range(2):
        repo.add_delivery({"volunteer_id": "v1", "status": "assigned"})
    repo.add_delivery({"volunteer_id": "v1", "status": "delivered"})
    score = await matcher.scorer.availability_match(Task(), Volunteer(id="v1"))
    assert score == pytest.approx(0.6)

    for _ in range(4):
        repo.add_delivery({"volunteer_id": "v1", "status": "assigned"})
    assert await matcher.scorer.availability_match(Task(), Volunteer(id="v1")) == 0.0

@pytest.mark.anyio
async def test_skill_counts_category_or_urgency_matches(matcher, repo):
    repo.add_delivery({"volunteer_id": "v1", "category": "food", "urgency": "low"})
    repo.add_delivery({"volunteer_id": "v1", "category": "toys", "urgency": "high"})
    repo.add_delivery({"volunteer_id": "v1", "category": "toys", "urgency": "low"})
    task = Task(category="Food", urgency="high")
    assert await matcher.scorer.skill_compatibility(task, Volunteer(id="v1")) == pytest.approx(0.4)

    for _ in range(6):
        repo.add_delivery({"volunteer_id": "v1", "category": "food"})
    assert await matcher.scorer.skill_compatibility(task, Volunteer(id="v1")) == 1.0

@pytest.mark.anyio
async def test_volunteer_reliability_from_delivery_stats(matcher, repo):
    repo.add_delivery({"volunteer_id": "v1", "status": "delivered", "rating": 4})
    repo.add_delivery({"volunteer_id": "v1", "status": "assigned"})
    # 4/5*0.7 + 0.5*0.3 + min(2/10, 0.2)
    assert await matcher.scorer.user_reliability("v1", "volunteer") == pytest.approx(0.91)

@pytest.mark.anyio
async def test_donor_reliability_uses_assumed_rating(matcher, repo):
    repo.add_donation({"donor_id": "d1", "status": "completed"})
    repo.add_donation({"donor_id": "d1", "status": "available"})
    # 4/5*0.7 + 0.5*0.3 + 0.2
    assert await matcher.scorer.user_reliability("d1", "donor") == pytest.approx(0.91)
    assert await matcher.scorer.user_reliability(None, "donor") == NEUTRAL_SCORE

@pytest.mark.anyio
async def test_reliability_is_cached_per_user_type(matcher, repo, clock):
    repo.add_donation({"donor_id": "d1", "status": "completed"})
    first = await matcher.scorer.user_reliability("d1", "donor")
    repo.add_donation({"donor_id": "d1", "status": "available"})
    assert await matcher.scorer.user_reliability("d1", "donor") == first

    clock.advance(matcher.settings.reliability_cache_ttl_s)
    assert await matcher.scorer.user_reliability("d1", "donor") != first

class BrokenHistoryRepo(InMemoryRepo):
    async def get_donations(self, donor_id=None):
        raise ConnectionError("history service down")

    async def get_deliveries(self, volunteer_id=None, status=None):
        raise ConnectionError("history service down")

@pytest.mark.anyio
async def test_failed_lookups_fall_back_to_neutral(clock):
    from hopelink.matching.matcher import IntelligentMatcher

    matcher = IntelligentMatcher(BrokenHistoryRepo(), clock=clock)
    assert await matcher.scorer.user_reliability("d1", "donor") == NEUTRAL_SCORE
    # the fallback is not cached
    assert len(matcher.reliability_cache) == 0

    scores = await matcher.scorer.score_volunteer_for_task(Task(urgency="high"), Volunteer(id="v1"))
    assert scores["availability_match"] == NEUTRAL_SCORE
    assert scores["skill_compatibility"] == NEUTRAL_SCORE
    assert scores["urgency_response"] == 1.0

def test_volunteer_proximity(matcher):
    volunteer = Volunteer(id="v", latitude=14.5, longitude=121.0)
    task = Task(pickup_latitude=14.5, pickup_longitude=121.0,
                delivery_latitude=14.5, delivery_longitude=121.0)
    assert matcher.scorer.volunteer_proximity(task, volunteer) == 1.0
    assert matcher.scorer.volunteer_proximity(Task(), Volunteer(id="v")) == NEUTRAL_SCORE

    # no coordinates: fall back to the address estimate (5 km within one city)
    by_address = Volunteer(id="v", address="Barangay Lapasan, Cagayan de Oro City")
    task = Task(pickup_location="Barangay Carmen, Cagayan de Oro City")
    assert matcher.scorer.volunteer_proximity(task, by_address) == pytest.approx(0.9)

@pytest.mark.anyio
async def test_end_to_end_critical_food_pair(matcher, repo):
    repo.add_donation({"id": "don-1", "donor_id": "donor-1", "category": "Food", "quantity": 5})
    request = DonationRequest(id="req-1", category="Food", quantity_needed=3, urgency="critical",
                              requester=UserRef(latitude=14.51, longitude=121.01))
    donation = Donation(id="don-1", donor_id="donor-1", category="Food", quantity=5, is_urgent=True,
                        donor=UserRef(latitude=14.5, longitude=121.0))

    [match] = await matcher.match_donors_to_request(request, [donation])
    scores = match.criteria_scores
    assert scores["geographic_proximity"] > 0.96
    assert scores["item_compatibility"] >= 0.8
    # donor flagged urgent maps to "high", one step below "critical"
    assert scores["urgency_alignment"] == pytest.approx(0.5134, abs=1e-4)
    assert match.score > 0.7
