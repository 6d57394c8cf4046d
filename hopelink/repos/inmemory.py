# hopelink/repos/inmemory.py
import uuid
from typing import Dict, List, Optional

from hopelink.schemas import (
    Delivery, Donation, DonationRequest, MatchingParameters, Volunteer, VolunteerStats,
)

COMPLETED_DELIVERY_STATUSES = {"delivered", "completed"}

def _id() -> str:
    return uuid.uuid4().hex

class InMemoryRepo:
    """Dict-backed repository for local runs and tests. Stores raw docs, returns models."""

    def __init__(self):
        self.donations: Dict[str, dict] = {}
        self.requests: Dict[str, dict] = {}
        self.users: Dict[str, dict] = {}
        self.deliveries: Dict[str, dict] = {}
        self.matches: Dict[str, dict] = {}
        self.parameters: Optional[dict] = None

    # Seeding
    def add_donation(self, doc: dict) -> dict:
        doc = {"id": _id(), "status": "available", **doc}
        self.donations[doc["id"]] = doc
        return doc

    def add_request(self, doc: dict) -> dict:
        doc = {"id": _id(), "status": "open", **doc}
        self.requests[doc["id"]] = doc
        return doc

    def add_user(self, doc: dict) -> dict:
        doc = {"id": _id(), "role": "volunteer", "is_active": True, **doc}
        self.users[doc["id"]] = doc
        return doc

    def add_delivery(self, doc: dict) -> dict:
        doc = {"id": _id(), **doc}
        self.deliveries[doc["id"]] = doc
        return doc

    def set_parameters(self, doc: Optional[dict]):
        self.parameters = doc

    # Donations
    async def get_available_donations(self) -> List[Donation]:
        return [Donation.model_validate(d) for d in self.donations.values()
                if d.get("status") == "available"]

    async def get_donation(self, donation_id: str) -> Optional[Donation]:
        doc = self.donations.get(donation_id)
        return Donation.model_validate(doc) if doc else None

    async def get_donations(self, donor_id: Optional[str] = None) -> List[Donation]:
        return [Donation.model_validate(d) for d in self.donations.values()
                if donor_id is None or d.get("donor_id") == donor_id]

    # Requests
    async def get_request(self, request_id: str) -> Optional[DonationRequest]:
        doc = self.requests.get(request_id)
        return DonationRequest.model_validate(doc) if doc else None

    async def get_requests(self, status: Optional[str] = None,
                           requester_id: Optional[str] = None) -> List[DonationRequest]:
        return [DonationRequest.model_validate(r) for r in self.requests.values()
                if (status is None or r.get("status") == status)
                and (requester_id is None or r.get("requester_id") == requester_id)]

    # Volunteers & deliveries
    async def get_deliveries(self, volunteer_id: Optional[str] = None,
                             status: Optional[str] = None) -> List[Delivery]:
        return [Delivery.model_validate(d) for d in self.deliveries.values()
                if (volunteer_id is None or d.get("volunteer_id") == volunteer_id)
                and (status is None or d.get("status") == status)]

    async def get_volunteer_stats(self, user_id: str) -> VolunteerStats:
        history = [d for d in self.deliveries.values() if d.get("volunteer_id") == user_id]
        ratings = [float(d["rating"]) for d in history if d.get("rating") is not None]
        return VolunteerStats(
            average_rating=sum(ratings) / len(ratings) if ratings else 0.0,
            total_deliveries=len(history),
            completed_deliveries=sum(1 for d in history if d.get("status") in COMPLETED_DELIVERY_STATUSES),
        )

    async def get_volunteers(self, active_only: bool = True) -> List[Volunteer]:
        return [Volunteer.model_validate(u) for u in self.users.values()
                if u.get("role") == "volunteer" and (not active_only or u.get("is_active"))]

    # Parameters & matches
    async def get_matching_parameters(self) -> Optional[MatchingParameters]:
        return MatchingParameters.model_validate(self.parameters) if self.parameters else None

    async def create_smart_match(self, record: dict) -> dict:
        doc = {"id": _id(), **record}
        self.matches[doc["id"]] = doc
        return doc
