"""Pydantic models for API request/response validation"""
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime

from ecoscan.models import (
    AchievementProgress,
    ClassificationResult,
    ScanOrigin,
    ScanRecord,
)


class CreateUserRequest(BaseModel):
    """Request to create a user's stats record"""
    user_id: str = Field(..., min_length=1, description="Subject id from the identity provider")
    username: Optional[str] = Field(default=None, description="Display name for the leaderboard")


class ScanRequest(BaseModel):
    """Request to register a classified scan"""
    classification: ClassificationResult
    origin: ScanOrigin = Field(default=ScanOrigin.WEB, description="Submission channel")
    image_url: Optional[str] = Field(default=None, description="Stored photo URL, if any")


class ScanHistoryResponse(BaseModel):
    """Response with the user's most recent scans"""
    user_id: str
    scans: List[ScanRecord]


class AchievementResponse(BaseModel):
    """Response with achievement info"""
    user_id: str
    unlocked: List[AchievementProgress]
    locked: List[AchievementProgress]


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    database: str = Field(..., description="Store status")
    timestamp: datetime = Field(..., description="Check timestamp")


class ErrorResponse(BaseModel):
    """Error response model"""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    user_message: Optional[str] = Field(None, description="Text safe to show to the user")
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)
