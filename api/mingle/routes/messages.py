from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..config import RL_MESSAGE_SEND_LIMIT, RL_WINDOW_SECONDS
from ..container import Services
from ..deps import get_services
from ..http_helpers import message_payload, rematch_hint
from ..schemas import QuotaResponse, SendMessageRequest, TypingRequest
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()
scaffold_router = APIRouter()

RL_MESSAGE_SEND = rate_limit_dependency("message_send", RL_MESSAGE_SEND_LIMIT, RL_WINDOW_SECONDS)


@scaffold_router.get("/health")
def messages_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "messages"}


@router.get("/matches/{match_id}/messages")
def list_messages(
    match_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    uid = current_user["id"]
    messages = services.messaging.list_messages(match_id, uid)
    return {
        "messages": [message_payload(m) for m in messages],
        "unread": sum(1 for m in messages if m.sender_id != uid and uid not in m.read_by),
    }


@router.post("/matches/{match_id}/messages", status_code=201, dependencies=[RL_MESSAGE_SEND])
def send_message(
    match_id: str,
    payload: SendMessageRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    uid = current_user["id"]
    with rematch_hint(services, match_id):
        message = services.messaging.send(match_id, uid, payload.text)
    quota = services.messaging.quota_status(match_id, uid)
    return {"message": message_payload(message), "remaining": quota.remaining, "frozen": quota.frozen}


@router.get("/matches/{match_id}/quota", response_model=QuotaResponse)
def get_quota(
    match_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> QuotaResponse:
    q = services.messaging.quota_status(match_id, current_user["id"])
    return QuotaResponse(limit=q.limit, used=q.used, remaining=q.remaining, frozen=q.frozen, can_send=q.can_send, reason=q.reason)


@router.post("/matches/{match_id}/read")
def mark_read(
    match_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return {"marked": services.messaging.mark_read(match_id, current_user["id"])}


@router.post("/matches/{match_id}/typing", status_code=204)
def set_typing(
    match_id: str,
    payload: TypingRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> None:
    services.messaging.set_typing(match_id, current_user["id"], payload.is_typing)


@router.get("/matches/{match_id}/typing")
def get_typing(
    match_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return {"typing": services.messaging.typing_users(match_id, current_user["id"])}
