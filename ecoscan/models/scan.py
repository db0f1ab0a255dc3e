"""Scan models: inbound classification payload and the stored record"""
from enum import Enum
from typing import Optional
from datetime import datetime, timezone
from uuid import uuid4
from pydantic import BaseModel, Field, field_validator


class ScanOrigin(str, Enum):
    """Channel a scan was submitted through"""
    WEB = "web"
    WHATSAPP = "whatsapp"


class ClassificationResult(BaseModel):
    """Result returned by the external image classifier"""
    detected_object: str = Field(..., min_length=1, description="Raw label of the detected object")
    detected_object_localized: Optional[str] = Field(default=None, description="Localized label")
    waste_type: Optional[str] = None
    bin: Optional[str] = Field(default=None, description="Recommended disposal bin")
    category: Optional[str] = None
    recyclable: bool = False
    confidence: Optional[int] = Field(default=None, ge=0, le=100)
    advice: Optional[str] = None

    @field_validator("detected_object")
    @classmethod
    def strip_label(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("detected_object must not be blank")
        return value


class ScanRecord(BaseModel):
    """One classification event. Append-only."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    detected_object: str
    detected_object_localized: Optional[str] = None
    waste_type: Optional[str] = None
    bin: Optional[str] = None
    recyclable: bool = False
    confidence: Optional[int] = Field(default=None, ge=0, le=100)
    points_awarded: int = Field(default=0, ge=0)
    origin: ScanOrigin = ScanOrigin.WEB
    image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_classification(
        cls,
        user_id: str,
        classification: ClassificationResult,
        points_awarded: int,
        created_at: datetime,
        origin: ScanOrigin = ScanOrigin.WEB,
        image_url: Optional[str] = None,
    ) -> "ScanRecord":
        return cls(
            user_id=user_id,
            detected_object=classification.detected_object,
            detected_object_localized=classification.detected_object_localized,
            waste_type=classification.waste_type,
            bin=classification.bin,
            recyclable=classification.recyclable,
            confidence=classification.confidence,
            points_awarded=points_awarded,
            origin=origin,
            image_url=image_url,
            created_at=created_at,
        )


class HistoryRange(str, Enum):
    """Lookback window for the scan history"""
    ALL = "all"
    WEEK = "week"
    MONTH = "month"
    THREE_MONTHS = "3months"


class ScanSort(str, Enum):
    """Scan history ordering; ties fall back to newest first"""
    RECENT = "recent"
    CONFIDENCE = "confidence"
    POINTS = "points"


class ConfidenceLevel(str, Enum):
    """Classifier confidence band: high >= 80, medium >= 50, low otherwise (or unknown)"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def for_confidence(cls, confidence: Optional[int]) -> "ConfidenceLevel":
        if confidence is None or confidence < 50:
            return cls.LOW
        if confidence < 80:
            return cls.MEDIUM
        return cls.HIGH


class ScanFilter(BaseModel):
    """Optional criteria for listing scans; unset fields match everything"""
    search: Optional[str] = Field(default=None, description="Substring of the label or waste type")
    waste_type: Optional[str] = None
    bin: Optional[str] = None
    recyclable: Optional[bool] = None
    confidence_level: Optional[ConfidenceLevel] = None
    origin: Optional[ScanOrigin] = None
    since: Optional[datetime] = Field(default=None, description="Only scans created after this instant")
    sort: ScanSort = ScanSort.RECENT
