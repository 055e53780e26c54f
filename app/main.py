from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, Response

from app import config, db
from app.dashboard_routes import require_admin
from app.dashboard_routes import router as dashboard_router
from app.errors import LinkingError
from app.storage import get_storage

logger = logging.getLogger("social-accounts")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

app = FastAPI(title="Social Accounts Dashboard")


@app.on_event("startup")
def startup() -> None:
    db.init_db()
    for name in config.missing_settings():
        logger.warning("config_missing name=%s", name)


@app.middleware("http")
async def log_requests(request: Request, call_next) -> Response:
    start_time = time.perf_counter()
    response_status = 500
    try:
        response = await call_next(request)
        response_status = response.status_code
        return response
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "request method=%s path=%s status=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            response_status,
            duration_ms,
        )


@app.get("/")
def root() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/health")
def health() -> dict[str, Any]:
    return {"ok": True, "missing_settings": config.missing_settings()}


@app.head("/health")
def health_head() -> Response:
    return Response(status_code=200)


@app.get("/media/{object_path:path}", dependencies=[Depends(require_admin)])
def media(object_path: str) -> Response:
    try:
        content, content_type = get_storage().read(object_path)
    except LinkingError:
        raise HTTPException(status_code=404, detail="Not found")
    return Response(content=content, media_type=content_type)


app.include_router(dashboard_router)
