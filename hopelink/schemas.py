# hopelink/schemas.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_serializer

class _Doc(BaseModel):
    # Raw repository documents carry plenty of fields we never read
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

# --------------------------
# Shared Submodels
# --------------------------
class UserRef(_Doc):
    """Embedded donor / requester profile joined onto a donation or request."""
    id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    rating: Optional[float] = None
    donation_types: List[str] = []
    assistance_needs: List[str] = []

# --------------------------
# Upstream entities (read-only)
# --------------------------
class Donation(_Doc):
    id: str
    category: Optional[str] = None
    subcategory: Optional[str] = None
    title: Optional[str] = None
    quantity: Optional[float] = None
    status: Optional[str] = None
    delivery_mode: Optional[str] = None
    is_urgent: bool = False
    donor_id: Optional[str] = None
    donor: Optional[UserRef] = None
    pickup_location: Optional[str] = None
    available_from: Optional[datetime] = None

class DonationRequest(_Doc):
    id: str
    category: Optional[str] = None
    subcategory: Optional[str] = None
    title: Optional[str] = None
    quantity_needed: Optional[float] = None
    urgency: Optional[str] = None
    delivery_mode: Optional[str] = None
    requester_id: Optional[str] = None
    requester: Optional[UserRef] = None
    location: Optional[str] = None
    status: Optional[str] = None
    needed_by: Optional[datetime] = None

class Volunteer(_Doc):
    id: str
    name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    role: str = "volunteer"
    is_active: bool = True
    preferred_delivery_types: List[str] = []
    preferred_delivery_mode: Optional[str] = None
    available_from: Optional[datetime] = None

class Delivery(_Doc):
    id: Optional[str] = None
    volunteer_id: Optional[str] = None
    status: Optional[str] = None
    category: Optional[str] = None
    urgency: Optional[str] = None
    rating: Optional[float] = None

class VolunteerStats(_Doc):
    average_rating: float = Field(0.0, alias="averageRating")
    total_deliveries: int = Field(0, alias="totalDeliveries")
    completed_deliveries: int = Field(0, alias="completedDeliveries")

# --------------------------
# Delivery task (built by the caller, never persisted here)
# --------------------------
class Task(_Doc):
    type: str = "delivery"
    category: Optional[str] = None
    urgency: Optional[str] = None
    pickup_location: Optional[str] = None
    delivery_location: Optional[str] = None
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None
    delivery_latitude: Optional[float] = None
    delivery_longitude: Optional[float] = None
    request_id: Optional[str] = None
    donation_id: Optional[str] = None

    @classmethod
    def from_pair(cls, request: DonationRequest, donation: Donation) -> "Task":
        donor = donation.donor or UserRef()
        requester = request.requester or UserRef()
        return cls(
            category=donation.category or request.category,
            urgency=request.urgency,
            pickup_location=donation.pickup_location,
            delivery_location=request.location,
            pickup_latitude=donor.latitude,
            pickup_longitude=donor.longitude,
            delivery_latitude=requester.latitude,
            delivery_longitude=requester.longitude,
            request_id=request.id,
            donation_id=donation.id,
        )

# --------------------------
# Tunable matching parameters
# --------------------------
class MatchingParameters(_Doc):
    weights: Optional[Dict[str, float]] = None
    auto_match_enabled: bool = False
    auto_match_threshold: float = 0.75
    auto_claim_threshold: float = 0.85
    max_distance_km: float = 50.0
    min_quantity_match_ratio: float = 1.0
    perishable_geographic_boost: float = 0.35
    critical_urgency_boost: float = 0.30

# --------------------------
# Matching output (ephemeral)
# --------------------------
Subject = Union[Donation, DonationRequest, Volunteer]
ROLE_KEYS = {Donation: "donation", DonationRequest: "request", Volunteer: "volunteer"}

class MatchResult(BaseModel):
    """
    One ranked candidate. On the wire the candidate sits under its role key
    (`donation`, `request` or `volunteer`) rather than `subject`.
    """
    subject: Subject
    score: float
    criteria_scores: Dict[str, float] = {}
    match_reason: str = ""

    @property
    def donation(self) -> Optional[Donation]:
        return self.subject if isinstance(self.subject, Donation) else None

    @property
    def request(self) -> Optional[DonationRequest]:
        return self.subject if isinstance(self.subject, DonationRequest) else None

    @property
    def volunteer(self) -> Optional[Volunteer]:
        return self.subject if isinstance(self.subject, Volunteer) else None

    @model_serializer(mode="wrap")
    def _role_key(self, handler):
        data = handler(self)
        data[ROLE_KEYS[type(self.subject)]] = data.pop("subject")
        return data

class ThreeWayMatch(BaseModel):
    request: DonationRequest
    donation: Donation
    volunteer: Optional[Volunteer] = None
    combined_score: float
    donor_score: float
    volunteer_score: Optional[float] = None
    match_type: Literal["direct", "three_way"]
    estimated_delivery_time: Optional[int] = None

class AutoMatchOut(BaseModel):
    request_id: str
    matched: bool
    reason: str
    match: Optional[MatchResult] = None
    record: Optional[Dict[str, Any]] = None
