"""API routes for the ecoscan gamification service"""
import logging
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from ecoscan.api.auth import verify_api_key
from ecoscan.api.middleware import limiter
from ecoscan.api.models import (
    AchievementResponse,
    CreateUserRequest,
    ErrorResponse,
    HealthCheckResponse,
    ScanHistoryResponse,
    ScanRequest,
)
from ecoscan.models import (
    ConfidenceLevel,
    HistoryRange,
    Leaderboard,
    MetricKind,
    OnboardingResult,
    ScanFilter,
    ScanOrigin,
    ScanRegistrationResult,
    ScanSort,
    ScanStatistics,
    StatisticsRange,
    UserSummary,
)
from ecoscan.services.container import get_container

logger = logging.getLogger(__name__)

router = APIRouter()

# Error bodies produced by the EcoScanError handler (see server.py)
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    404: {"model": ErrorResponse, "description": "Unknown user"},
    409: {"model": ErrorResponse, "description": "Concurrent update"},
    503: {"model": ErrorResponse, "description": "Database unavailable"},
}


@router.post("/api/v1/users", response_model=UserSummary, responses=ERROR_RESPONSES)
@limiter.limit("20/minute")
async def create_user(
    request: Request,
    payload: CreateUserRequest,
    api_key: str = Depends(verify_api_key)
):
    """Create the stats record for a newly signed-up user (idempotent)"""
    service = get_container().gamification_service
    return await service.create_user(payload.user_id, payload.username)


@router.get("/api/v1/users/{user_id}/stats", response_model=UserSummary, responses=ERROR_RESPONSES)
@limiter.limit("60/minute")
async def get_user_stats(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key)
):
    """Get points, scans, streaks and level"""
    service = get_container().gamification_service
    return await service.get_user_summary(user_id)


@router.post("/api/v1/users/{user_id}/scans", response_model=ScanRegistrationResult)
@limiter.limit("60/minute")
async def register_scan(
    request: Request,
    user_id: str,
    payload: ScanRequest,
    api_key: str = Depends(verify_api_key)
):
    """
    Register a classified scan and apply gamification

    Always answers 200 with a structured result; check `success` before
    animating points. Failures carry `error` and a user-facing `message`.
    """
    service = get_container().gamification_service
    return await service.register_scan(
        user_id,
        payload.classification,
        origin=payload.origin,
        image_url=payload.image_url
    )


@router.get("/api/v1/users/{user_id}/scans", response_model=ScanHistoryResponse, responses=ERROR_RESPONSES)
@limiter.limit("60/minute")
async def get_scan_history(
    request: Request,
    user_id: str,
    limit: int = Query(default=20),
    search: Optional[str] = Query(default=None, description="Substring of the label or waste type"),
    waste_type: Optional[str] = Query(default=None),
    disposal_bin: Optional[str] = Query(default=None, alias="bin"),
    recyclable: Optional[bool] = Query(default=None),
    confidence: Optional[ConfidenceLevel] = Query(default=None),
    origin: Optional[ScanOrigin] = Query(default=None),
    date_range: HistoryRange = Query(default=HistoryRange.ALL, alias="range"),
    sort: ScanSort = Query(default=ScanSort.RECENT),
    api_key: str = Depends(verify_api_key)
):
    """Scans matching the filters, newest first unless another sort is given"""
    service = get_container().gamification_service
    scan_filter = ScanFilter(
        search=search,
        waste_type=waste_type,
        bin=disposal_bin,
        recyclable=recyclable,
        confidence_level=confidence,
        origin=origin,
        sort=sort,
    )
    scans = await service.get_scan_history(user_id, limit, scan_filter, date_range)
    return ScanHistoryResponse(user_id=user_id, scans=scans)


@router.get("/api/v1/users/{user_id}/statistics", response_model=ScanStatistics, responses=ERROR_RESPONSES)
@limiter.limit("60/minute")
async def get_scan_statistics(
    request: Request,
    user_id: str,
    stats_range: StatisticsRange = Query(default=StatisticsRange.WEEK, alias="range"),
    api_key: str = Depends(verify_api_key)
):
    """Daily activity, waste-type mix and recycling share for the last week or month"""
    service = get_container().gamification_service
    return await service.get_scan_statistics(user_id, stats_range)


@router.get("/api/v1/users/{user_id}/achievements", response_model=AchievementResponse, responses=ERROR_RESPONSES)
@limiter.limit("60/minute")
async def get_achievements(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key)
):
    """Unlocked achievements and locked ones with progress"""
    service = get_container().gamification_service
    progress = await service.get_achievements(user_id)
    return AchievementResponse(
        user_id=user_id,
        unlocked=[p for p in progress if p.unlocked],
        locked=[p for p in progress if not p.unlocked]
    )


@router.post("/api/v1/users/{user_id}/onboarding/complete", response_model=OnboardingResult, responses=ERROR_RESPONSES)
@limiter.limit("10/minute")
async def complete_onboarding(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key)
):
    """Award the one-time welcome bonus"""
    service = get_container().gamification_service
    return await service.complete_onboarding(user_id)


@router.get("/api/v1/leaderboard", response_model=Leaderboard, responses=ERROR_RESPONSES)
@limiter.limit("60/minute")
async def get_leaderboard(
    request: Request,
    metric: MetricKind = Query(default=MetricKind.POINTS),
    limit: int = Query(default=10),
    user_id: Optional[str] = Query(default=None),
    api_key: str = Depends(verify_api_key)
):
    """Top users by points, scans or best streak, plus the caller's rank"""
    service = get_container().gamification_service
    return await service.get_leaderboard(metric=metric, limit=limit, user_id=user_id)


@router.get("/api/health", response_model=HealthCheckResponse)
@limiter.limit("60/minute")
async def health_check(request: Request):
    """Health check endpoint"""
    database = get_container().database
    if database is None:
        db_status = "memory"
    else:
        try:
            async with database.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1")
                    await cur.fetchone()
            db_status = "connected"
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            db_status = "disconnected"

    return HealthCheckResponse(
        status="degraded" if db_status == "disconnected" else "healthy",
        database=db_status,
        timestamp=datetime.now(timezone.utc)
    )


@router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint"""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
