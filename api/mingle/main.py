import logging
import os
import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from .config import STORE_BACKEND
from .http_helpers import ERROR_STATUS
from .routes import include_modular_routers
from .services.errors import ErrorKind, MatchError

logger = logging.getLogger(__name__)

app = FastAPI(title="Mingle Match API")
include_modular_routers(app)


@app.exception_handler(MatchError)
async def match_error_handler(request: Request, exc: MatchError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.kind, 400)
    body = {"detail": exc.detail, "kind": exc.kind.value}
    if exc.kind == ErrorKind.QUOTA_EXCEEDED:
        body["reason"] = "limit_reached"
    if exc.kind == ErrorKind.EXPIRED:
        body["rematch_available"] = bool(exc.context.get("rematch_available", False))
    if status_code >= 500:
        logger.warning("[api] %s %s -> %s: %s", request.method, request.url.path, exc.kind.value, exc.detail)
    return JSONResponse(status_code=status_code, content=body)


def run_migrations() -> None:
    from .database import SessionLocal

    env_dir = os.getenv("MIGRATIONS_DIR", "").strip()
    docker_dir = Path("/app/migrations")
    local_dir = Path(__file__).resolve().parents[1] / "migrations"

    if env_dir:
        migrations_dir = Path(env_dir)
    elif docker_dir.exists():
        migrations_dir = docker_dir
    else:
        migrations_dir = local_dir

    if not migrations_dir.exists() or not migrations_dir.is_dir():
        raise FileNotFoundError(
            "Migrations directory not found. Checked: "
            f"MIGRATIONS_DIR={env_dir or '<unset>'}, {docker_dir}, {local_dir}"
        )

    files = sorted([f.name for f in migrations_dir.iterdir() if f.is_file() and f.suffix == ".sql"])
    with SessionLocal() as db:
        for fname in files:
            sql = (migrations_dir / fname).read_text(encoding="utf-8")
            db.execute(text(sql))
        db.commit()
    logger.info("[startup] applied %d migration file(s) from %s", len(files), migrations_dir)


def wait_for_db(max_attempts: int = 20, delay_seconds: float = 1.5) -> None:
    from .database import SessionLocal

    last_err: Exception | None = None
    for _ in range(max_attempts):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
                db.commit()
            return
        except OperationalError as exc:
            last_err = exc
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


@app.on_event("startup")
def on_startup() -> None:
    if STORE_BACKEND == "postgres":
        wait_for_db()
        run_migrations()
    logger.info("[startup] store backend=%s", STORE_BACKEND)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
