"""Revision request schema.

A revision request carries human feedback on a built brief. Each brief's
requests are numbered monotonically and drained one at a time.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RevisionStatus(str, Enum):
    """Lifecycle of a revision request: pending -> in_progress -> completed."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class RevisionRequest(BaseModel):
    """Feedback queued against a brief.

    Attributes:
        id: Request identifier
        brief_id: Brief the feedback applies to
        feedback: Free-text feedback from the reviewer
        revision_number: 1-based, increasing per brief
        status: Current lifecycle status
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    brief_id: str
    feedback: str
    revision_number: int = Field(ge=1)
    status: RevisionStatus = RevisionStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
