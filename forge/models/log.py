"""Build log schema for the per-brief audit trail."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LogLevel(str, Enum):
    """Severity of an audit entry as rendered in the UI."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class BuildLogEntry(BaseModel):
    """One line of a brief's audit trail.

    Attributes:
        brief_id: Brief the entry belongs to
        agent: Role or component that produced the entry
        action: Short human-readable description
        level: info, warn or error
        details: Optional structured payload
    """

    model_config = ConfigDict(frozen=True)

    brief_id: str
    agent: str
    action: str
    level: LogLevel = LogLevel.INFO
    details: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
