# hopelink/repos/mongo.py
from datetime import datetime, timezone
from typing import Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from hopelink.repos.inmemory import COMPLETED_DELIVERY_STATUSES
from hopelink.schemas import (
    Delivery, Donation, DonationRequest, MatchingParameters, Volunteer, VolunteerStats,
)

MAX_DOCS = 10000

def _utcnow():
    return datetime.now(timezone.utc)

def _maybe_oid(x):
    if isinstance(x, str) and ObjectId.is_valid(x):
        return ObjectId(x)
    return x

def _out(doc: Dict) -> Dict:
    # expose "_id" as a plain string "id"
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc

class MongoRepo:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def _find(self, col: str, query: Dict) -> List[Dict]:
        return [_out(d) async for d in self.db[col].find(query).limit(MAX_DOCS)]

    async def _find_one(self, col: str, doc_id: str) -> Optional[Dict]:
        doc = await self.db[col].find_one({"_id": _maybe_oid(doc_id)})
        return _out(doc) if doc else None

    # Donations
    async def get_available_donations(self) -> List[Donation]:
        docs = await self._find("donations", {"status": "available"})
        return [Donation.model_validate(d) for d in docs]

    async def get_donation(self, donation_id: str) -> Optional[Donation]:
        doc = await self._find_one("donations", donation_id)
        return Donation.model_validate(doc) if doc else None

    async def get_donations(self, donor_id: Optional[str] = None) -> List[Donation]:
        query = {"donor_id": donor_id} if donor_id is not None else {}
        return [Donation.model_validate(d) for d in await self._find("donations", query)]

    # Requests
    async def get_request(self, request_id: str) -> Optional[DonationRequest]:
        doc = await self._find_one("requests", request_id)
        return DonationRequest.model_validate(doc) if doc else None

    async def get_requests(self, status: Optional[str] = None,
                           requester_id: Optional[str] = None) -> List[DonationRequest]:
        query = {}
        if status is not None:
            query["status"] = status
        if requester_id is not None:
            query["requester_id"] = requester_id
        return [DonationRequest.model_validate(r) for r in await self._find("requests", query)]

    # Volunteers & deliveries
    async def get_deliveries(self, volunteer_id: Optional[str] = None,
                             status: Optional[str] = None) -> List[Delivery]:
        query = {}
        if volunteer_id is not None:
            query["volunteer_id"] = volunteer_id
        if status is not None:
            query["status"] = status
        return [Delivery.model_validate(d) for d in await self._find("deliveries", query)]

    async def get_volunteer_stats(self, user_id: str) -> VolunteerStats:
        pipeline = [
            {"$match": {"volunteer_id": user_id}},
            {"$group": {
                "_id": None,
                "total": {"$sum": 1},
                "completed": {"$sum": {"$cond": [
                    {"$in": ["$status", list(COMPLETED_DELIVERY_STATUSES)]}, 1, 0]}},
                "avg_rating": {"$avg": "$rating"},
            }},
        ]
        rows = await self.db.deliveries.aggregate(pipeline).to_list(length=1)
        if not rows:
            return VolunteerStats()
        row = rows[0]
        return VolunteerStats(
            average_rating=float(row.get("avg_rating") or 0.0),
            total_deliveries=int(row.get("total") or 0),
            completed_deliveries=int(row.get("completed") or 0),
        )

    async def get_volunteers(self, active_only: bool = True) -> List[Volunteer]:
        query = {"role": "volunteer"}
        if active_only:
            query["is_active"] = True
        return [Volunteer.model_validate(u) for u in await self._find("users", query)]

    # Parameters & matches
    async def get_matching_parameters(self) -> Optional[MatchingParameters]:
        doc = await self.db.matching_parameters.find_one({"group": "DONOR_RECIPIENT"})
        return MatchingParameters.model_validate(doc) if doc else None

    async def create_smart_match(self, record: dict) -> dict:
        doc = {**record, "created_at": _utcnow()}
        res = await self.db.matches.insert_one(doc)
        doc["id"] = str(res.inserted_id)
        doc.pop("_id", None)
        return doc
