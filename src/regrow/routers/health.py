import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

router = APIRouter(tags=["health"])

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str


@router.get("/health", response_model=HealthResponse, status_code=200)
async def healthcheck():
    return {"status": "ok"}


@router.get("/health/ready", response_model=HealthResponse, status_code=200)
async def readiness(request: Request):
    """Report ready only when the listing store answers a ping."""
    es = getattr(request.app.state, "es", None)
    if es is None:
        raise HTTPException(status_code=503, detail="Listing store not configured")
    try:
        reachable = await es.ping()
    except Exception as exc:
        logger.exception("Listing store ping failed")
        raise HTTPException(status_code=503, detail="Listing store unreachable") from exc
    if not reachable:
        raise HTTPException(status_code=503, detail="Listing store unreachable")
    return {"status": "ready"}
