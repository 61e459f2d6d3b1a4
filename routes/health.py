import logging

from fastapi import APIRouter, Depends

from services.db import get_engine, ping
from utils import errors
from utils.metrics import snapshot

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger("api.health")


@router.get("")
def health(engine=Depends(get_engine)):
    try:
        latency_ms = ping(engine)
    except Exception as exc:
        logger.error("health_db_ping_failed error=%s: %s", exc.__class__.__name__, exc)
        raise errors.server_error("Database unavailable", error=str(exc), error_code="INFRA_DATABASE") from exc
    return {
        "status": "OK",
        "database": "connected",
        "latency_ms": latency_ms,
    }


@router.get("/metrics")
def metrics():
    return snapshot()
