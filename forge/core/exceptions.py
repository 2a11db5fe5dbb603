"""Custom exceptions for the Forge pipeline.

All exceptions are namespaced under ForgeError to avoid shadowing Python
builtins and to let callers catch any pipeline error with a single clause.

Taxonomy:
- OracleError: the reasoning call itself failed (transport or signalled failure)
- EvaluationParseError: the oracle answered, but not in the expected shape
- InsufficientQuorum: too few evaluators succeeded to form a decision
- StageFailure: a stage cannot proceed and the brief must go to review
- Store/lookup errors raised at the persistence boundary

Pattern: Namespaced Custom Exceptions
"""


class ForgeError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, agent_name: str | None = None) -> None:
        """Initialize pipeline error.

        Args:
            message: Error description
            agent_name: Slug of the role that raised the error, if any
        """
        self.agent_name = agent_name
        super().__init__(message)


# =============================================================================
# Oracle errors
# =============================================================================

class OracleError(ForgeError):
    """Base class for failures of a single reasoning call."""


class OracleUnavailable(OracleError):
    """Raised on process/transport failures, including timeouts.

    Always retriable by the caller; never retried by the oracle client.
    """

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        timed_out: bool = False,
        agent_name: str | None = None,
    ) -> None:
        """Initialize unavailable error.

        Args:
            message: Error description
            cause: Original exception that caused this error
            timed_out: Whether the call exceeded its timeout
            agent_name: Role slug if known
        """
        self.cause = cause
        self.timed_out = timed_out
        if cause:
            self.__cause__ = cause
        super().__init__(message, agent_name)


class OracleNonZeroExit(OracleError):
    """Raised when the external capability signalled failure."""

    def __init__(
        self,
        message: str,
        exit_code: int,
        stderr: str = "",
        agent_name: str | None = None,
    ) -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message, agent_name)


# =============================================================================
# Parse errors
# =============================================================================

class EvaluationParseError(ForgeError):
    """Base class for responses that do not decode into a verdict."""

    def __init__(self, message: str, raw_text: str = "", agent_name: str | None = None) -> None:
        self.raw_text = raw_text
        super().__init__(message, agent_name)


class MalformedResponse(EvaluationParseError):
    """No JSON object could be found or decoded in the oracle response."""


class InvalidVerdict(EvaluationParseError):
    """The decoded verdict is not approve, reject or concern."""

    def __init__(self, verdict: object, raw_text: str = "", agent_name: str | None = None) -> None:
        self.verdict = verdict
        super().__init__(f"Invalid verdict: {verdict!r}", raw_text, agent_name)


# =============================================================================
# Pipeline errors
# =============================================================================

class InsufficientQuorum(ForgeError):
    """Raised when fewer evaluators succeeded than the quorum requires."""

    def __init__(self, succeeded: int, required: int, total: int) -> None:
        self.succeeded = succeeded
        self.required = required
        self.total = total
        super().__init__(
            f"Only {succeeded}/{total} evaluators succeeded (need at least {required})"
        )


class StageFailure(ForgeError):
    """Raised when a stage cannot continue.

    The state machine routes every StageFailure to the review funnel.
    """

    def __init__(
        self,
        message: str,
        stage: str,
        cause: Exception | None = None,
        agent_name: str | None = None,
    ) -> None:
        self.stage = stage
        self.cause = cause
        if cause:
            self.__cause__ = cause
        super().__init__(message, agent_name)


# =============================================================================
# Store / lookup errors
# =============================================================================

class StoreError(ForgeError):
    """Raised when the persistence layer rejects or fails a call."""

    def __init__(self, message: str, operation: str, cause: Exception | None = None) -> None:
        self.operation = operation
        self.cause = cause
        if cause:
            self.__cause__ = cause
        super().__init__(message)


class BriefNotFoundError(ForgeError):
    """Raised when a brief id does not exist in the store."""

    def __init__(self, brief_id: str) -> None:
        self.brief_id = brief_id
        super().__init__(f"Brief '{brief_id}' not found")


class BriefInFlightError(ForgeError):
    """Raised when a brief already has an active pipeline execution."""

    def __init__(self, brief_id: str) -> None:
        self.brief_id = brief_id
        super().__init__(f"Brief '{brief_id}' is already being processed")


class BriefStateError(ForgeError):
    """Raised when an entry point's precondition status does not match."""

    def __init__(self, brief_id: str, expected: str, actual: str) -> None:
        self.brief_id = brief_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Brief '{brief_id}' is in state '{actual}', expected '{expected}'"
        )


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
    "StageFailure",
    "StoreError",
]
