"""
This module implements custom exceptions and the classification of failures
into the two reconcile outcomes: irrecoverable and retry-required
"""

# Standard
from enum import Enum
from typing import Iterable, List, Optional

# Third Party
from kubernetes.client.exceptions import ApiException

## Base Error ##################################################################


class IstioCSROperatorError(Exception):
    """Base class for all istiocsr operator exceptions"""


class ConfigError(IstioCSROperatorError):
    """Exception caused during usage of user-provided or library configuration"""


class ClusterError(IstioCSROperatorError):
    """Exception caused when a cluster operation fails in an unexpected way.
    These are surfaced to the caller without a reconcile classification.
    """


## Classified Errors ###########################################################

# HTTP status codes of client failures that will not resolve by retrying
IRRECOVERABLE_STATUS_CODES = frozenset(
    [
        400,  # BadRequest
        401,  # Unauthorized
        403,  # Forbidden
        422,  # Invalid
        503,  # ServiceUnavailable
    ]
)


class ErrorReason(Enum):
    """The reason carried by every ReconcileError"""

    # The failure needs user or administrator action before it can resolve
    IRRECOVERABLE = "IrrecoverableError"

    # The failure is expected to resolve on a later attempt
    RETRY_REQUIRED = "RetryRequiredError"


class ReconcileError(IstioCSROperatorError):
    """A ReconcileError wraps a failure with the reason that decides whether
    the reconcile is retried. The reason cannot be changed once constructed.
    """

    def __init__(
        self,
        reason: ErrorReason,
        message: str,
        cause: Optional[BaseException] = None,
    ):
        self._reason = reason
        self.message = message
        self.cause = cause
        super().__init__(str(self))

    @property
    def reason(self) -> ErrorReason:
        return self._reason

    def __str__(self):
        if self.cause is None:
            return self.message
        return f"{self.message}: {error_message(self.cause)}"

    def __repr__(self):
        return f"{self.__class__.__name__}({self.reason.value}, {str(self)!r})"


class AggregateError(IstioCSROperatorError):
    """Collection of errors that all happened on the same exit path"""

    def __init__(self, errors: Iterable[BaseException]):
        self.errors: List[BaseException] = [err for err in errors if err is not None]
        super().__init__(str(self))

    def __str__(self):
        if len(self.errors) == 1:
            return error_message(self.errors[0])
        return "[" + ", ".join(error_message(err) for err in self.errors) + "]"


## Constructors ################################################################


def new_irrecoverable_error(
    cause: Optional[BaseException], message: str, *args
) -> Optional[ReconcileError]:
    """Wrap the cause as an irrecoverable error. A None cause yields None."""
    if cause is None:
        return None
    return ReconcileError(
        ErrorReason.IRRECOVERABLE, _format(message, args), cause
    )


def new_retry_required_error(
    cause: Optional[BaseException], message: str, *args
) -> Optional[ReconcileError]:
    """Wrap the cause as a retry-required error. A None cause yields None."""
    if cause is None:
        return None
    return ReconcileError(
        ErrorReason.RETRY_REQUIRED, _format(message, args), cause
    )


def from_client_error(
    cause: Optional[BaseException], message: str, *args
) -> Optional[ReconcileError]:
    """Classify an error returned by the cluster client

    Args:
        cause:  Optional[BaseException]
            The raw failure from the client
        message:  str
            Format string for the message prefix
        *args:
            Format args for message

    Returns:
        error:  Optional[ReconcileError]
            None when cause is None, otherwise the classified error. A cause
            that is already a ReconcileError keeps its reason.
    """
    if cause is None:
        return None
    if isinstance(cause, ReconcileError):
        return ReconcileError(cause.reason, _format(message, args), cause)
    if status_code(cause) in IRRECOVERABLE_STATUS_CODES:
        return new_irrecoverable_error(cause, message, *args)
    return new_retry_required_error(cause, message, *args)


def from_error(
    cause: Optional[BaseException], message: str, *args
) -> Optional[ReconcileError]:
    """Wrap an error that did not come straight from the cluster client. An
    irrecoverable classification anywhere in the cause is kept, everything else
    is retried.
    """
    if cause is None:
        return None
    if is_irrecoverable(cause):
        return new_irrecoverable_error(cause, message, *args)
    return new_retry_required_error(cause, message, *args)


## Classification ##############################################################


def classify(err: Optional[BaseException]) -> Optional[ErrorReason]:
    """Total classification of any error into a reason. None is only returned
    for a None error.
    """
    if err is None:
        return None
    if isinstance(err, ReconcileError):
        return err.reason
    if status_code(err) in IRRECOVERABLE_STATUS_CODES:
        return ErrorReason.IRRECOVERABLE
    return ErrorReason.RETRY_REQUIRED


def is_irrecoverable(err: Optional[BaseException]) -> bool:
    """True if err is a ReconcileError with the irrecoverable reason"""
    return isinstance(err, ReconcileError) and err.reason == ErrorReason.IRRECOVERABLE


def is_retry_required(err: Optional[BaseException]) -> bool:
    """True if err is a ReconcileError with the retry-required reason"""
    return (
        isinstance(err, ReconcileError) and err.reason == ErrorReason.RETRY_REQUIRED
    )


def is_not_found(err: Optional[BaseException]) -> bool:
    """True if err is a client error for a missing object"""
    return status_code(err) == 404


def is_conflict(err: Optional[BaseException]) -> bool:
    """True if err is a client error for a stale resourceVersion"""
    return status_code(err) == 409


def status_code(err: Optional[BaseException]) -> Optional[int]:
    """Get the HTTP status code carried by a client error if there is one"""
    if isinstance(err, ApiException):
        return err.status
    return None


## Assertions ##################################################################


def assert_config(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ConfigError. This should be
    used when the operator or a resource spec is configured incorrectly.
    """
    if not condition:
        raise ConfigError(message)


def assert_cluster(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ClusterError. This should
    be used when an operation in the cluster (such as fetching the current
    resourceVersion) must succeed.
    """
    if not condition:
        raise ClusterError(message)


## Implementation ##############################################################


def error_message(err: BaseException) -> str:
    """Client errors render their full HTTP body with str(), so use the reason
    or message they carry instead
    """
    if isinstance(err, ApiException):
        if err.body and hasattr(err, "summary"):
            return err.summary()
        return err.reason or str(err)
    return str(err)


def _format(message: str, args: tuple) -> str:
    return message % args if args else message
