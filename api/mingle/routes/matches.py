from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..container import Services
from ..deps import get_services
from ..http_helpers import match_payload, rematch_hint
from ..schemas import ContactShareRequest

router = APIRouter()
scaffold_router = APIRouter()


@scaffold_router.get("/health")
def matches_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "matches"}


@router.get("/matches")
def list_matches(
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    views = services.matches.list_matches_for(current_user["id"])
    return {"matches": [match_payload(v) for v in views]}


@router.get("/matches/{match_id}")
def get_match(
    match_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    uid = current_user["id"]
    match = services.matches.get_match_for(match_id, uid)
    body = match_payload(services.matches.view(match, uid))
    body["rematch_available"] = body["is_expired"] and services.rematch.can_rematch(match.pair_key)
    return {"match": body}


@router.post("/matches/{match_id}/contact")
def share_contact(
    match_id: str,
    payload: ContactShareRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    uid = current_user["id"]
    with rematch_hint(services, match_id):
        match = services.matches.share_contact(match_id, uid, payload.model_dump())
    return {"match": match_payload(services.matches.view(match, uid))}
