# hopelink/matching/matcher.py
"""
Ranking entry points: donors for a request, volunteers for a delivery task,
and the global donor-recipient-volunteer composition.

Donor ranking is two-phase. A cheap synchronous quick score trims the pool
to 2 x max_results, then the survivors get the full criterion scoring
(which hits the repository) concurrently under a semaphore.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from hopelink.core.config import Settings, settings as default_settings
from hopelink.matching import geo
from hopelink.matching.cache import TTLCache
from hopelink.matching.explain import generate_match_reason
from hopelink.matching.normalize import normalize_category_match, normalize_quantity_match
from hopelink.matching.scorer import NEUTRAL_SCORE, Scorer, weighted_total
from hopelink.matching.weights import (
    DONOR_RECIPIENT, DONOR_VOLUNTEER, VOLUNTEER_TASK, get_contextual_weights, get_weights,
)
from hopelink.repos.base import MatchingRepository
from hopelink.schemas import (
    Donation, DonationRequest, MatchingParameters, MatchResult, Task, ThreeWayMatch, UserRef, Volunteer,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DONOR_MATCHES_PER_REQUEST = 3
VOLUNTEER_MATCHES_PER_TASK = 2
MAX_OPTIMAL_MATCHES = 20
DONOR_SHARE = 0.6
VOLUNTEER_SHARE = 0.4

MAX_ACTIVE_DELIVERIES = 3

BASE_DELIVERY_MINUTES = 30
MINUTES_PER_KM = 2
DEFAULT_DELIVERY_KM = 10
# Placeholder for a per-volunteer performance factor; nothing updates it yet.
VOLUNTEER_EFFICIENCY_FACTOR = 1.0

def quick_score(request: DonationRequest, donation: Donation) -> float:
    category = normalize_category_match(request.category, donation.category)
    quantity = normalize_quantity_match(donation.quantity, request.quantity_needed)
    return category * 0.6 + quantity * 0.4

def needs_volunteer(request: DonationRequest, donation: Donation) -> bool:
    return request.delivery_mode == "volunteer" or donation.delivery_mode == "volunteer"

def _check_max_results(max_results: int):
    if max_results < 1:
        raise ValueError(f"max_results must be >= 1, got {max_results}")

def _ranked(results: List[MatchResult], max_results: int) -> List[MatchResult]:
    # sorted() is stable: equal scores keep candidate order
    return sorted(results, key=lambda m: m.score, reverse=True)[:max_results]

class IntelligentMatcher:
    def __init__(self, repo: MatchingRepository, settings: Optional[Settings] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.repo = repo
        self.settings = settings or default_settings
        self.distance_cache = TTLCache(self.settings.distance_cache_ttl_s, clock=clock)
        self.reliability_cache = TTLCache(self.settings.reliability_cache_ttl_s, clock=clock)
        self.parameters_cache = TTLCache(self.settings.parameters_cache_ttl_s, clock=clock)
        self.scorer = Scorer(repo, self.distance_cache, self.reliability_cache)
        self._limit = asyncio.Semaphore(max(1, self.settings.max_concurrency))

    def clear_caches(self):
        self.distance_cache.invalidate()
        self.reliability_cache.invalidate()
        self.parameters_cache.invalidate()

    async def _bounded(self, pending: Awaitable[T]) -> T:
        async with self._limit:
            return await pending

    async def load_parameters(self) -> MatchingParameters:
        """
        Stored tuning parameters, cached; defaults if the store has none.
        A failed load also yields defaults but is not cached, so the next call retries.
        """
        async def _load() -> MatchingParameters:
            return await self.repo.get_matching_parameters() or MatchingParameters()

        try:
            return await self.parameters_cache.aget_or_compute(("parameters",), _load)
        except Exception as ex:
            logger.warning("failed to load matching parameters, using defaults: %r", ex)
            return MatchingParameters()

    # --------------------------------------------------
    # Candidate retrieval
    # --------------------------------------------------
    async def get_available_volunteers(self) -> List[Volunteer]:
        """Active volunteers that are not already carrying MAX_ACTIVE_DELIVERIES."""
        volunteers = await self.repo.get_volunteers(active_only=True)
        loads = await asyncio.gather(*(
            self._bounded(self.repo.get_deliveries(volunteer_id=v.id, status="assigned"))
            for v in volunteers
        ))
        return [v for v, active in zip(volunteers, loads) if len(active) < MAX_ACTIVE_DELIVERIES]

    def pre_filter_donations(self, request: DonationRequest, donations: Sequence[Donation],
                             params: MatchingParameters) -> List[Donation]:
        out = []
        for donation in donations:
            if donation is None:
                continue
            if donation.status and donation.status != "available":
                continue
            if normalize_category_match(request.category, donation.category) <= 0:
                continue
            if request.quantity_needed is not None and donation.quantity is not None:
                if donation.quantity < request.quantity_needed * params.min_quantity_match_ratio:
                    continue
            out.append(donation)
        return out

    def pre_filter_requests(self, donation: Donation, requests: Sequence[DonationRequest],
                            params: MatchingParameters) -> List[DonationRequest]:
        out = []
        for request in requests:
            if request is None:
                continue
            if request.status and request.status != "open":
                continue
            if normalize_category_match(request.category, donation.category) <= 0:
                continue
            if request.quantity_needed is not None and donation.quantity is not None:
                if donation.quantity < request.quantity_needed * params.min_quantity_match_ratio:
                    continue
            out.append(request)
        return out

    # --------------------------------------------------
    # Donor <-> recipient
    # --------------------------------------------------
    async def _score_pair(self, request: DonationRequest, donation: Donation, params: MatchingParameters,
                          subject, recipient: Optional[UserRef] = None) -> MatchResult:
        weights = get_contextual_weights(request, donation, get_weights(DONOR_RECIPIENT, params), params)
        scores = await self.scorer.score_donation_for_request(request, donation, params, recipient)
        return MatchResult(
            subject=subject,
            score=weighted_total(scores, weights),
            criteria_scores=scores,
            match_reason=generate_match_reason(scores, weights),
        )

    async def match_donors_to_request(self, request: DonationRequest,
                                      donations: Optional[Sequence[Donation]] = None,
                                      max_results: int = 10) -> List[MatchResult]:
        _check_max_results(max_results)
        try:
            if donations is None:
                donations = await self.repo.get_available_donations()
            params = await self.load_parameters()

            candidates = self.pre_filter_donations(request, donations, params)
            shortlist = sorted(candidates, key=lambda d: quick_score(request, d), reverse=True)
            shortlist = shortlist[:max_results * 2]

            results = await asyncio.gather(*(
                self._bounded(self._score_pair(request, d, params, subject=d)) for d in shortlist
            ))
        except Exception:
            logger.exception("match_donors_to_request failed for request %s", request.id)
            raise
        logger.debug("request %s: %d donations, %d after pre-filter, %d scored",
                     request.id, len(donations), len(candidates), len(results))
        return _ranked(list(results), max_results)

    async def match_donation_to_requests(self, donation: Donation,
                                         requests: Optional[Sequence[DonationRequest]] = None,
                                         recipient: Optional[UserRef] = None,
                                         max_results: int = 10) -> List[MatchResult]:
        """Reverse ranking: which open requests (of one recipient, if given) a donation fits best."""
        _check_max_results(max_results)
        try:
            if requests is None:
                if recipient is None or not recipient.id:
                    return []
                requests = await self.repo.get_requests(status="open", requester_id=recipient.id)
            params = await self.load_parameters()

            candidates = self.pre_filter_requests(donation, requests, params)
            shortlist = sorted(candidates, key=lambda r: quick_score(r, donation), reverse=True)
            shortlist = shortlist[:max_results * 2]

            results = await asyncio.gather(*(
                self._bounded(self._score_pair(r, donation, params, subject=r, recipient=recipient))
                for r in shortlist
            ))
        except Exception:
            logger.exception("match_donation_to_requests failed for donation %s", donation.id)
            raise
        return _ranked(list(results), max_results)

    # --------------------------------------------------
    # Volunteer <-> task
    # --------------------------------------------------
    async def _score_volunteer(self, task: Task, volunteer: Volunteer) -> MatchResult:
        weights = get_weights(VOLUNTEER_TASK)
        scores = await self.scorer.score_volunteer_for_task(task, volunteer)
        return MatchResult(
            subject=volunteer,
            score=weighted_total(scores, weights),
            criteria_scores=scores,
            match_reason=generate_match_reason(scores, weights),
        )

    async def match_volunteers_to_task(self, task: Task,
                                       volunteers: Optional[Sequence[Volunteer]] = None,
                                       max_results: int = 5) -> List[MatchResult]:
        _check_max_results(max_results)
        try:
            if volunteers is None:
                volunteers = await self.get_available_volunteers()
            results = await asyncio.gather(*(
                self._bounded(self._score_volunteer(task, v)) for v in volunteers
            ))
        except Exception:
            logger.exception("match_volunteers_to_task failed for task %s/%s",
                             task.request_id, task.donation_id)
            raise
        return _ranked(list(results), max_results)

    async def score_task_for_volunteer(self, task: Task, volunteer: Volunteer) -> MatchResult:
        """One task scored from a volunteer's point of view; never raises."""
        try:
            return await self._score_volunteer(task, volunteer)
        except Exception as ex:
            logger.warning("task score failed for volunteer %s: %r", volunteer.id, ex)
            return MatchResult(subject=volunteer, score=NEUTRAL_SCORE,
                               match_reason="Unable to calculate match score")

    # --------------------------------------------------
    # Donor <-> volunteer
    # --------------------------------------------------
    async def _score_donor(self, donation: Donation, volunteer: Volunteer,
                           params: MatchingParameters) -> MatchResult:
        weights = get_weights(DONOR_VOLUNTEER)
        scores = await self.scorer.score_donor_for_volunteer(donation, volunteer, params)
        return MatchResult(
            subject=donation,
            score=weighted_total(scores, weights),
            criteria_scores=scores,
            match_reason=generate_match_reason(scores, weights),
        )

    async def match_donors_to_volunteer(self, volunteer: Volunteer,
                                        donations: Optional[Sequence[Donation]] = None,
                                        max_results: int = 10) -> List[MatchResult]:
        _check_max_results(max_results)
        try:
            if donations is None:
                donations = await self.repo.get_available_donations()
            params = await self.load_parameters()
            results = await asyncio.gather(*(
                self._bounded(self._score_donor(d, volunteer, params)) for d in donations
            ))
        except Exception:
            logger.exception("match_donors_to_volunteer failed for volunteer %s", volunteer.id)
            raise
        return _ranked(list(results), max_results)

    # --------------------------------------------------
    # Global composition
    # --------------------------------------------------
    def estimate_delivery_time(self, task: Task, volunteer: Optional[Volunteer] = None) -> int:
        """Minutes: 30 base plus 2 per km between pickup and drop-off (10 km if unknown)."""
        km = geo.calculate_distance(task.pickup_latitude, task.pickup_longitude,
                                    task.delivery_latitude, task.delivery_longitude)
        if km is None:
            km = DEFAULT_DELIVERY_KM
        return round((BASE_DELIVERY_MINUTES + km * MINUTES_PER_KM) / VOLUNTEER_EFFICIENCY_FACTOR)

    async def _matches_for_request(self, request: DonationRequest, donations: Sequence[Donation],
                                   volunteers: Sequence[Volunteer]) -> List[ThreeWayMatch]:
        donor_matches = await self.match_donors_to_request(request, donations, DONOR_MATCHES_PER_REQUEST)
        out: List[ThreeWayMatch] = []

        pairs = [(dm, Task.from_pair(request, dm.donation))
                 for dm in donor_matches if needs_volunteer(request, dm.donation)]
        volunteer_lists = await asyncio.gather(*(
            self.match_volunteers_to_task(task, volunteers, VOLUNTEER_MATCHES_PER_TASK)
            for _, task in pairs
        ))
        for (dm, task), vol_matches in zip(pairs, volunteer_lists):
            for vm in vol_matches:
                out.append(ThreeWayMatch(
                    request=request,
                    donation=dm.donation,
                    volunteer=vm.volunteer,
                    combined_score=dm.score * DONOR_SHARE + vm.score * VOLUNTEER_SHARE,
                    donor_score=dm.score,
                    volunteer_score=vm.score,
                    match_type="three_way",
                    estimated_delivery_time=self.estimate_delivery_time(task, vm.volunteer),
                ))

        for dm in donor_matches:
            if needs_volunteer(request, dm.donation):
                continue
            out.append(ThreeWayMatch(
                request=request,
                donation=dm.donation,
                combined_score=dm.score,
                donor_score=dm.score,
                match_type="direct",
            ))
        return out

    async def find_optimal_matches(self, requests: Optional[Sequence[DonationRequest]] = None,
                                   donations: Optional[Sequence[Donation]] = None,
                                   volunteers: Optional[Sequence[Volunteer]] = None) -> List[ThreeWayMatch]:
        try:
            if requests is None:
                requests = await self.repo.get_requests(status="open")
            if donations is None:
                donations = await self.repo.get_available_donations()
            if volunteers is None:
                volunteers = await self.get_available_volunteers()

            matches: List[ThreeWayMatch] = []
            for request in requests:
                matches.extend(await self._matches_for_request(request, donations, volunteers))
        except Exception:
            logger.exception("find_optimal_matches failed")
            raise

        logger.info("optimal matching: %d requests, %d candidate matches", len(requests), len(matches))
        return sorted(matches, key=lambda m: m.combined_score, reverse=True)[:MAX_OPTIMAL_MATCHES]
