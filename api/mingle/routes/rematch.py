from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..config import RL_REMATCH_LIMIT, RL_WINDOW_SECONDS
from ..container import Services
from ..deps import get_services
from ..http_helpers import match_payload
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()
scaffold_router = APIRouter()

RL_REMATCH = rate_limit_dependency("rematch", RL_REMATCH_LIMIT, RL_WINDOW_SECONDS)


@scaffold_router.get("/health")
def rematch_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "rematch"}


@router.get("/matches/{match_id}/rematch")
def rematch_status(
    match_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    match = services.matches.get_match_for(match_id, current_user["id"])
    return {"match_id": match.id, "rematch_available": services.rematch.can_rematch(match.pair_key)}


@router.post("/matches/{match_id}/rematch", status_code=201, dependencies=[RL_REMATCH])
def rematch(
    match_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    uid = current_user["id"]
    match = services.rematch.rematch(match_id, uid)
    return {"match": match_payload(services.matches.view(match, uid))}
