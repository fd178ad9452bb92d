"""Event payloads for the three external event kinds, plus the envelope they arrive in."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from echolayer.contracts.models import ContentRecord, PropagationNode, PropagationSignal, as_utc

# Event name constants
EVENT_CONTENT_CREATED = "content.created"
EVENT_CONTENT_PROPAGATED = "content.propagated"
EVENT_CONTENT_DISCOVERED = "content.discovered"
EVENT_QUALITY_IMPROVED = "content.quality_improved"


class ContentCreated(BaseModel):
    """A user published a new piece of content."""

    user_id: str = Field(min_length=1)
    content: ContentRecord
    quality_score: float = Field(default=0.0, ge=0, le=1)
    initial_engagement: float = Field(default=0.0, ge=0)

    model_config = {"extra": "forbid"}


class ContentPropagated(BaseModel):
    """A user carried a content item from one node to another.

    When ``content`` is supplied together with ``propagations`` the item is
    rescored; otherwise the cached score is reused.
    """

    propagator_id: str = Field(min_length=1)
    content_id: str = Field(min_length=1)
    creator_id: str = Field(min_length=1)
    from_node: PropagationNode
    to_node: PropagationNode
    interaction_strength: float = Field(default=1.0, ge=0)
    loop_id: str | None = None
    content: ContentRecord | None = None
    propagations: list[PropagationSignal] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class ContentDiscovered(BaseModel):
    """A user surfaced a content item organically.

    ``discovery_timing`` is the elapsed share of the item's lifetime at
    discovery time: 0.0 = at creation, 1.0 = late.
    """

    discoverer_id: str = Field(min_length=1)
    content_id: str = Field(min_length=1)
    discovery_timing: float = Field(default=1.0, ge=0, le=1)
    discovery_method: str = "organic"
    platform: str = "other"

    model_config = {"extra": "forbid"}


class QualityImproved(BaseModel):
    """A content item's score went up; its author may earn a quality bonus."""

    user_id: str = Field(min_length=1)
    content_id: str = Field(min_length=1)
    score_improvement: float = Field(ge=0)
    viral_coefficient: float = Field(default=0.0, ge=0)
    engagement_rate: float = Field(default=0.0, ge=0, le=1)
    retention_rate: float = Field(default=0.0, ge=0, le=1)

    model_config = {"extra": "forbid"}


class EventEnvelope(BaseModel):
    """Envelope the delivery layer wraps each event in."""

    event_id: UUID = Field(default_factory=uuid4)
    event_name: str
    trace_id: str = Field(default_factory=lambda: str(uuid4()))
    payload: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    attempt: int = Field(default=0, ge=0)

    model_config = {"extra": "forbid", "frozen": False}

    @field_validator("event_name")
    @classmethod
    def validate_event_name(cls, v: str) -> str:
        """Validate event_name is provided."""
        if not v or not v.strip():
            raise ValueError("event_name is required and cannot be empty")
        return v.strip()

    @field_validator("occurred_at")
    @classmethod
    def validate_occurred_at(cls, v: datetime) -> datetime:
        """Naive timestamps are read as UTC."""
        return as_utc(v)
