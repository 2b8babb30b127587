"""
Error taxonomy for the inquiry pipeline

Every stage raises a subclass of PipelineError. classify_error() decides how a
failure is routed to the operator.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Notification routing category for a failure"""
    SYSTEM = "system"
    EXTRACTION = "extraction"
    GENERATION = "generation"
    AUTH_EXPIRED = "auth_expired"
    MISMATCH = "mismatch"
    RETRY_EXHAUSTED = "retry_exhausted"


class PipelineError(Exception):
    """Base class for inquiry pipeline failures"""


class MailSourceError(PipelineError):
    """Mailbox could not be queried or a message could not be fetched"""


class ExtractionError(PipelineError):
    """Portal collaborator could not locate or read the inquiry"""


class DeliveryError(PipelineError):
    """Portal collaborator could not deliver the reply"""


class AuthExpiredError(PipelineError):
    """Portal session was rejected or redirected to a login page"""


class GenerationError(PipelineError):
    """Text generation service failed or returned nothing usable"""


class StageTimeoutError(PipelineError):
    """An external call exceeded its time budget"""

    def __init__(self, stage: str, timeout: float):
        self.stage = stage
        self.timeout = timeout
        super().__init__(f"{stage} timed out after {timeout:g}s")


class InvalidStatusTransition(Exception):
    """Store refused a status change outside the inquiry state machine"""

    def __init__(self, external_id: str, from_status: Optional[str], to_status: str):
        self.external_id = external_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Illegal status transition for {external_id}: {from_status} -> {to_status}"
        )


# Stage names used by StageTimeoutError
STAGE_KINDS = {
    "extract": ErrorKind.EXTRACTION,
    "generate": ErrorKind.GENERATION,
    "deliver": ErrorKind.EXTRACTION,
    "approval": ErrorKind.SYSTEM,
}


def classify_error(error: BaseException) -> ErrorKind:
    """
    Map a pipeline failure to the notification kind it should be routed as.

    Typed errors win. Untyped errors fall back to keyword matching on the
    message, the same rules the operators already rely on.

    Args:
        error: Exception raised by a pipeline stage

    Returns:
        ErrorKind for Notifier routing
    """
    if isinstance(error, AuthExpiredError):
        return ErrorKind.AUTH_EXPIRED
    if isinstance(error, GenerationError):
        return ErrorKind.GENERATION
    if isinstance(error, StageTimeoutError):
        return STAGE_KINDS.get(error.stage, ErrorKind.SYSTEM)
    if isinstance(error, (ExtractionError, DeliveryError)):
        return ErrorKind.EXTRACTION

    message = str(error).lower()
    if "llm" in message or "generat" in message:
        return ErrorKind.GENERATION
    if "auth" in message or "login" in message:
        return ErrorKind.AUTH_EXPIRED
    return ErrorKind.EXTRACTION
