"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.services.review_store import ReviewStore, get_review_store
from core import __version__
from core.settings import get_settings


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    open_reviews: int
    services: Dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check(store: ReviewStore = Depends(get_review_store)) -> HealthResponse:
    """Health check endpoint. The ledger is only contacted on commit."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        open_reviews=len(store),
        services={
            "api": "up",
            "ledger": get_settings().graphql_url,
        }
    )


@router.get("/ready")
async def readiness_check() -> Dict[str, str]:
    """Readiness probe for Kubernetes."""
    return {"status": "ready"}
