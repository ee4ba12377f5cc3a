from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from ..auth.deps import get_current_user
from ..container import Services
from ..deps import get_services
from ..schemas import BlockRequest

router = APIRouter()
scaffold_router = APIRouter()


@scaffold_router.get("/health")
def safety_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "safety"}


@router.post("/safety/block")
def block_user(
    payload: BlockRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    uid = current_user["id"]
    if payload.blocked_user_id == uid:
        raise HTTPException(status_code=400, detail="Cannot block yourself")
    created = services.blocks.block(uid, payload.blocked_user_id)
    return {"blocked_user_id": payload.blocked_user_id, "created": created}


@router.post("/safety/unblock")
def unblock_user(
    payload: BlockRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    removed = services.blocks.unblock(current_user["id"], payload.blocked_user_id)
    return {"blocked_user_id": payload.blocked_user_id, "removed": removed}


@router.get("/safety/blocks")
def list_blocks(
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return {"blocks": services.blocks.list_blocks(current_user["id"])}
