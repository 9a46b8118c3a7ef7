"""Health probe."""
import logging
import time
from datetime import datetime, timezone
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from filevault.database import ping
from filevault.schemas.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse, responses={503: {"model": HealthResponse}})
async def health_check(request: Request):
    """Verify database connectivity and that blob storage is writable."""
    state = request.app.state
    database = "connected"
    storage = "writable"
    try:
        await ping(state.engine)
    except Exception as e:
        logger.error("Health check: database unavailable: %s", e)
        database = "unavailable"
    try:
        await state.file_storage.check_writable()
    except OSError as e:
        logger.error("Health check: storage unavailable: %s", e)
        storage = "unavailable"

    healthy = database == "connected" and storage == "writable"
    body = HealthResponse(
        status="ok" if healthy else "error",
        database=database,
        storage=storage,
        timestamp=datetime.now(timezone.utc),
        uptime=round(time.monotonic() - state.started_at, 3),
    )
    return JSONResponse(status_code=200 if healthy else 503, content=body.model_dump(mode="json"))
