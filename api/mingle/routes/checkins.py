from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..container import Services
from ..deps import get_services
from ..schemas import CheckInRequest

router = APIRouter()
scaffold_router = APIRouter()


@scaffold_router.get("/health")
def checkins_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "checkins"}


@router.post("/checkins")
def check_in(
    payload: CheckInRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    row = services.checkin_registry.check_in(current_user["id"], payload.venue_id)
    return {"venue_id": row.venue_id, "since": row.since.isoformat()}


@router.delete("/checkins")
def check_out(
    current_user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return {"checked_out": services.checkin_registry.check_out(current_user["id"])}
