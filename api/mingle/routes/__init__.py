from fastapi import APIRouter, FastAPI

from .checkins import router as checkins_router, scaffold_router as checkins_scaffold_router
from .interests import router as interests_router, scaffold_router as interests_scaffold_router
from .matches import router as matches_router, scaffold_router as matches_scaffold_router
from .messages import router as messages_router, scaffold_router as messages_scaffold_router
from .rematch import router as rematch_router, scaffold_router as rematch_scaffold_router
from .safety import router as safety_router, scaffold_router as safety_scaffold_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(checkins_router, tags=["checkins"])
    app.include_router(interests_router, tags=["interests"])
    app.include_router(matches_router, tags=["matches"])
    app.include_router(messages_router, tags=["messages"])
    app.include_router(rematch_router, tags=["rematch"])
    app.include_router(safety_router, tags=["safety"])

    app.include_router(checkins_scaffold_router, prefix="/_scaffold/checkins", tags=["scaffold-checkins"])
    app.include_router(interests_scaffold_router, prefix="/_scaffold/interests", tags=["scaffold-interests"])
    app.include_router(matches_scaffold_router, prefix="/_scaffold/matches", tags=["scaffold-matches"])
    app.include_router(messages_scaffold_router, prefix="/_scaffold/messages", tags=["scaffold-messages"])
    app.include_router(rematch_scaffold_router, prefix="/_scaffold/rematch", tags=["scaffold-rematch"])
    app.include_router(safety_scaffold_router, prefix="/_scaffold/safety", tags=["scaffold-safety"])


__all__ = ["include_modular_routers", "APIRouter"]
