# hopelink/repos/base.py
from typing import List, Optional, Protocol

from hopelink.schemas import (
    Delivery, Donation, DonationRequest, MatchingParameters, Volunteer, VolunteerStats,
)

class MatchingRepository(Protocol):
    """
    Everything the matching core reads from the data store. Implementations
    return validated models; errors propagate to the caller untouched.
    """

    async def get_available_donations(self) -> List[Donation]: ...

    async def get_donation(self, donation_id: str) -> Optional[Donation]: ...

    async def get_donations(self, donor_id: Optional[str] = None) -> List[Donation]: ...

    async def get_request(self, request_id: str) -> Optional[DonationRequest]: ...

    async def get_requests(self, status: Optional[str] = None,
                           requester_id: Optional[str] = None) -> List[DonationRequest]: ...

    async def get_deliveries(self, volunteer_id: Optional[str] = None,
                             status: Optional[str] = None) -> List[Delivery]: ...

    async def get_volunteer_stats(self, user_id: str) -> VolunteerStats: ...

    async def get_volunteers(self, active_only: bool = True) -> List[Volunteer]: ...

    async def get_matching_parameters(self) -> Optional[MatchingParameters]: ...

    async def create_smart_match(self, record: dict) -> dict: ...
