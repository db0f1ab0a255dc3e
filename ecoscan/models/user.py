"""User statistics model"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class UserStats(BaseModel):
    """
    Aggregate gamification state for one user.

    `version` is the optimistic-concurrency token; the store bumps it on
    every successful update and rejects writes made against a stale value.
    """
    user_id: str
    username: Optional[str] = None
    points: int = Field(default=0, ge=0)
    objects_scanned: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    max_streak: int = Field(default=0, ge=0)
    last_scan_at: Optional[datetime] = None
    onboarding_completed: bool = False
    version: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_max_streak(self) -> "UserStats":
        if self.max_streak < self.current_streak:
            raise ValueError("max_streak must be >= current_streak")
        return self
