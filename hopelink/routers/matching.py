# hopelink/routers/matching.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from hopelink.deps import get_matcher, get_repo
from hopelink.matching.matcher import IntelligentMatcher
from hopelink.schemas import AutoMatchOut, MatchResult, Task, ThreeWayMatch

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/matching", tags=["matching"])

def _upstream_error(ex: Exception) -> HTTPException:
    logger.error("data store failure: %r", ex, exc_info=ex)
    return HTTPException(status_code=502, detail=f"Data store error: {ex}")

@router.post("/requests/{request_id}/donors", response_model=List[MatchResult])
async def donors_for_request(request_id: str,
                             max_results: int = Query(10, ge=1, le=100),
                             repo=Depends(get_repo),
                             matcher: IntelligentMatcher = Depends(get_matcher)):
    try:
        req = await repo.get_request(request_id)
        if req is None:
            raise HTTPException(status_code=404, detail="Request not found")
        return await matcher.match_donors_to_request(req, max_results=max_results)
    except HTTPException:
        raise
    except Exception as ex:
        raise _upstream_error(ex)

@router.post("/donations/{donation_id}/requests", response_model=List[MatchResult])
async def requests_for_donation(donation_id: str,
                                max_results: int = Query(10, ge=1, le=100),
                                repo=Depends(get_repo),
                                matcher: IntelligentMatcher = Depends(get_matcher)):
    try:
        donation = await repo.get_donation(donation_id)
        if donation is None:
            raise HTTPException(status_code=404, detail="Donation not found")
        open_requests = await repo.get_requests(status="open")
        return await matcher.match_donation_to_requests(donation, open_requests, max_results=max_results)
    except HTTPException:
        raise
    except Exception as ex:
        raise _upstream_error(ex)

@router.post("/tasks/volunteers", response_model=List[MatchResult])
async def volunteers_for_task(task: Task,
                              max_results: int = Query(5, ge=1, le=50),
                              matcher: IntelligentMatcher = Depends(get_matcher)):
    try:
        return await matcher.match_volunteers_to_task(task, max_results=max_results)
    except Exception as ex:
        raise _upstream_error(ex)

@router.get("/optimal", response_model=List[ThreeWayMatch])
async def optimal_matches(matcher: IntelligentMatcher = Depends(get_matcher)):
    try:
        return await matcher.find_optimal_matches()
    except Exception as ex:
        raise _upstream_error(ex)

@router.post("/requests/{request_id}/auto-match", response_model=AutoMatchOut)
async def auto_match(request_id: str,
                     repo=Depends(get_repo),
                     matcher: IntelligentMatcher = Depends(get_matcher)):
    """
    Persist the best donor match when auto-matching is switched on and the
    score clears the configured threshold. Otherwise just report why not.
    """
    try:
        req = await repo.get_request(request_id)
        if req is None:
            raise HTTPException(status_code=404, detail="Request not found")

        params = await matcher.load_parameters()
        if not params.auto_match_enabled:
            return AutoMatchOut(request_id=request_id, matched=False, reason="auto-match disabled")

        best = await matcher.match_donors_to_request(req, max_results=1)
        if not best:
            return AutoMatchOut(request_id=request_id, matched=False, reason="no compatible donations")

        top = best[0]
        if top.score < params.auto_match_threshold:
            return AutoMatchOut(request_id=request_id, matched=False, match=top,
                                reason=f"best score {top.score} below threshold {params.auto_match_threshold}")

        record = await repo.create_smart_match({
            "request_id": req.id,
            "donation_id": top.donation.id,
            "score": top.score,
            "criteria_scores": top.criteria_scores,
            "match_reason": top.match_reason,
            "auto_claim": top.score >= params.auto_claim_threshold,
        })
    except HTTPException:
        raise
    except Exception as ex:
        raise _upstream_error(ex)

    logger.info("auto-matched request %s to donation %s (score %.4f)", req.id, top.donation.id, top.score)
    return AutoMatchOut(request_id=request_id, matched=True, reason=top.match_reason,
                        match=top, record=record)
