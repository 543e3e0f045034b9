"""Session state models persisted between process restarts."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .contracts import CaptureKind, Plan


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LifecycleState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class AnnotationKind(str, Enum):
    VOICE = "voice"
    TEXT = "text"
    CONTEXTUAL_QA = "contextualQA"


class LocationData(BaseModel):
    latitude: float
    longitude: float
    timestamp: datetime = Field(default_factory=utcnow)


class MediaMetadata(BaseModel):
    """Capture metadata supplied by the camera and scoring collaborators."""

    location: Optional[LocationData] = None
    device_info: Optional[str] = None
    quality_score: Optional[float] = None
    detected_objects: Optional[List[str]] = None


class CapturedMedia(BaseModel):
    """A photo or video recorded for a step."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    step_id: str
    type: CaptureKind = CaptureKind.PHOTO
    file_path: str
    captured_at: datetime = Field(default_factory=utcnow)
    metadata: MediaMetadata = Field(default_factory=MediaMetadata)


class Annotation(BaseModel):
    """Voice, text or Q&A note attached to a step and optionally to media."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    media_id: Optional[uuid.UUID] = None
    step_id: str
    type: AnnotationKind = AnnotationKind.TEXT
    content: str
    created_at: datetime = Field(default_factory=utcnow)


class SessionState(BaseModel):
    """Mutable execution state of one plan run."""

    plan: Optional[Plan] = None
    current_step_index: int = 0
    lifecycle_state: LifecycleState = LifecycleState.IDLE
    captured_media: List[CapturedMedia] = Field(default_factory=list)
    annotations: List[Annotation] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str | bytes) -> "SessionState":
        return cls.model_validate_json(data)
