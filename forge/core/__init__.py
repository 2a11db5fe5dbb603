"""Core module - Configuration, logging, constants and exceptions.

Exports:
    - Settings, get_settings: Pydantic Settings configuration
    - configure_logging, get_logger: Structured logging (structlog)
    - Exception classes: ForgeError, OracleUnavailable, etc.
"""

from forge.core.config import Settings, get_settings
from forge.core.exceptions import (
    BriefInFlightError,
    BriefNotFoundError,
    BriefStateError,
    EvaluationParseError,
    ForgeError,
    InsufficientQuorum,
    InvalidVerdict,
    MalformedResponse,
    OracleError,
    OracleNonZeroExit,
    OracleUnavailable,
    StageFailure,
    StoreError,
)
from forge.core.logging import configure_logging, get_logger


__all__ = [
    "BriefInFlightError",
    "BriefNotFoundError",
    "BriefStateError",
    "EvaluationParseError",
    "ForgeError",
    "InsufficientQuorum",
    "InvalidVerdict",
    "MalformedResponse",
    "OracleError",
    "OracleNonZeroExit",
    "OracleUnavailable",
    "Settings",
    "StageFailure",
    "StoreError",
    "configure_logging",
    "get_logger",
    "get_settings",
]
