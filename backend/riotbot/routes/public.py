# /riotbot/routes/public.py

from datetime import datetime
from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from riotbot.config.settings import settings
from riotbot.utils.dependencies import verify_api_key

# Public endpoints that do not need a caller identity: service info, health,
# and the Prometheus scrape endpoint (API-key protected when a key is set).

router = APIRouter()

@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "riotbot onboarding tutorial",
        "version": "1.0.0",
        "status": "operational",
        "environment": settings.environment
    }

@router.get("/health", summary="Basic Health Check")
async def health_check():
    """Basic health check for load balancers."""
    return {"status": "healthy", "timestamp": datetime.utcnow()}

@router.get("/metrics", dependencies=[Depends(verify_api_key)])
async def metrics():
    """Prometheus metrics exposition."""
    return PlainTextResponse(generate_latest().decode("utf-8"), media_type=CONTENT_TYPE_LATEST)
