from typing import Any

from fastapi import APIRouter, Depends, Query

from ..auth.deps import get_current_user
from ..config import RL_INTEREST_LIMIT, RL_WINDOW_SECONDS
from ..container import Services
from ..deps import get_services
from ..schemas import InterestRequest, InterestResponse
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()
scaffold_router = APIRouter()

RL_INTEREST = rate_limit_dependency("interest", RL_INTEREST_LIMIT, RL_WINDOW_SECONDS)


@scaffold_router.get("/health")
def interests_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "interests"}


@router.post("/interests", response_model=InterestResponse, dependencies=[RL_INTEREST])
def record_interest(
    payload: InterestRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> InterestResponse:
    result = services.interests.record_interest(current_user["id"], payload.to_user_id, payload.venue_id)
    return InterestResponse(status=result.status, interest_id=result.interest_id, match_id=result.match_id)


@router.get("/interests/mutual/{other_user_id}")
def mutual_interest(
    other_user_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return {"mutual": services.interests.has_mutual_interest(current_user["id"], other_user_id)}


@router.get("/interests/likes-remaining")
def likes_remaining(
    venue_id: str = Query(...),
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return {"venue_id": venue_id, "remaining": services.interests.likes_remaining(current_user["id"], venue_id)}
