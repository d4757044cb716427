"""
Structured error taxonomy for the Pact provider verifier.

Every failure that aborts a verification run is raised as a subclass of
VerifierException carrying a VerifierErrorDetail. Response mismatches are
not exceptions: they are reported as non-equal MatchResults and the run
continues with the next interaction.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorCategory(str, Enum):
    """High-level error categories for a verification run."""
    BROKER = "BROKER"
    LINK = "LINK"
    STATE = "STATE"
    TRANSPORT = "TRANSPORT"
    PUBLISH = "PUBLISH"
    CONFIG = "CONFIG"


class ErrorSeverity(str, Enum):
    """Error severity levels."""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class VerifierErrorCode(str, Enum):
    """
    Structured error codes.

    Format: {CATEGORY}_{SPECIFIC_CODE}
    """

    # Broker errors (BROKER_xx)
    BROKER_HTTP_ERROR = "BROKER_001"
    BROKER_INVALID_BODY = "BROKER_002"
    BROKER_PACT_NOT_FOUND = "BROKER_003"

    # Hypermedia link errors (LINK_xx)
    LINK_VERSION_MISSING = "LINK_001"
    LINK_PUBLISH_MALFORMED = "LINK_002"

    # Provider state errors (STATE_xx)
    STATE_HANDLER_FAILED = "STATE_001"
    STATE_UNREGISTERED = "STATE_002"

    # Transport errors (TRANSPORT_xx)
    TRANSPORT_PROVIDER_UNREACHABLE = "TRANSPORT_001"
    TRANSPORT_BROKER_UNREACHABLE = "TRANSPORT_002"

    # Publishing errors (PUBLISH_xx)
    PUBLISH_REQUEST_FAILED = "PUBLISH_001"

    # Configuration errors (CONFIG_xx)
    CONFIG_MISSING_REQUIRED = "CONFIG_001"
    CONFIG_INVALID_VALUE = "CONFIG_002"


class VerifierErrorDetail(BaseModel):
    """Actionable information about a failure that aborted a run."""
    code: VerifierErrorCode
    severity: ErrorSeverity = ErrorSeverity.ERROR
    message: str
    details: Optional[str] = None
    url: Optional[str] = None
    context: Dict[str, Any] = {}

    @property
    def category(self) -> ErrorCategory:
        """Extract error category from code."""
        return ErrorCategory(self.code.value.split("_")[0])

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {
            "error_code": self.code.value,
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message
        }

        if self.details:
            result["details"] = self.details
        if self.url:
            result["url"] = self.url
        if self.context:
            result["context"] = self.context

        return result


class VerifierException(Exception):
    """
    Base exception class with structured error information.

    All verifier exceptions inherit from this so the command line can
    report them uniformly and exit with a distinct status.
    """

    def __init__(
        self,
        error_detail: VerifierErrorDetail,
        cause: Optional[Exception] = None
    ):
        self.error_detail = error_detail
        self.cause = cause
        super().__init__(error_detail.message)

    @property
    def code(self) -> VerifierErrorCode:
        return self.error_detail.code

    @property
    def category(self) -> ErrorCategory:
        return self.error_detail.category


class BrokerFetchError(VerifierException):
    """The broker answered a fetch with a non-success status or an unusable body."""
    pass


class LinkExtractionError(VerifierException):
    """A hypermedia link did not have the expected shape."""
    pass


class StateSetupError(VerifierException):
    """A provider state could not be set up."""
    pass


class TransportFailureError(VerifierException):
    """An HTTP request to the provider or the broker could not complete."""
    pass


class ConfigurationError(VerifierException):
    """Invalid or incomplete verifier configuration."""
    pass


# Convenience functions for creating common errors

def create_broker_error(
    code: VerifierErrorCode,
    message: str,
    url: Optional[str] = None,
    status_code: Optional[int] = None
) -> BrokerFetchError:
    """Create a structured broker fetch error."""
    context = {}
    if status_code is not None:
        context["status_code"] = status_code

    return BrokerFetchError(VerifierErrorDetail(
        code=code,
        message=message,
        url=url,
        context=context
    ))


def create_link_error(
    code: VerifierErrorCode,
    message: str,
    href: Optional[str] = None
) -> LinkExtractionError:
    """Create a structured link extraction error."""
    return LinkExtractionError(VerifierErrorDetail(
        code=code,
        message=message,
        url=href
    ))


def create_state_error(
    code: VerifierErrorCode,
    message: str,
    states: Optional[list] = None,
    cause: Optional[Exception] = None
) -> StateSetupError:
    """Create a structured provider state error."""
    context = {}
    if states:
        context["states"] = list(states)

    return StateSetupError(
        VerifierErrorDetail(
            code=code,
            severity=ErrorSeverity.CRITICAL,
            message=message,
            details=str(cause) if cause else None,
            context=context
        ),
        cause=cause
    )


def create_transport_error(
    code: VerifierErrorCode,
    message: str,
    url: Optional[str] = None,
    cause: Optional[Exception] = None
) -> TransportFailureError:
    """Create a structured transport error."""
    return TransportFailureError(
        VerifierErrorDetail(
            code=code,
            severity=ErrorSeverity.CRITICAL,
            message=message,
            details=str(cause) if cause else None,
            url=url
        ),
        cause=cause
    )


def create_config_error(
    code: VerifierErrorCode,
    message: str,
    field: Optional[str] = None
) -> ConfigurationError:
    """Create a structured configuration error."""
    context = {}
    if field:
        context["field"] = field

    return ConfigurationError(VerifierErrorDetail(
        code=code,
        message=message,
        context=context
    ))
