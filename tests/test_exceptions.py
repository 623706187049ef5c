"""
Test the error classification and the custom assert functions
"""

# Third Party
from kubernetes.client.exceptions import ApiException
from openshift.dynamic.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InternalServerError,
    NotFoundError,
    ServiceUnavailableError,
    UnauthorizedError,
    UnprocessibleEntityError,
)
import pytest

# Local
from istiocsr_operator import exceptions
from istiocsr_operator.exceptions import ErrorReason


def api_error(status: int, reason: str = "failure") -> ApiException:
    return ApiException(status=status, reason=reason)


## classification ##############################################################


@pytest.mark.parametrize("status_code", [400, 401, 403, 422, 503])
def test_from_client_error_irrecoverable(status_code):
    """Make sure access, validation and availability failures are
    irrecoverable
    """
    err = exceptions.from_client_error(api_error(status_code), "failed to %s", "do")
    assert err.reason == ErrorReason.IRRECOVERABLE
    assert exceptions.is_irrecoverable(err)
    assert not exceptions.is_retry_required(err)
    assert str(err).startswith("failed to do")


@pytest.mark.parametrize("status_code", [404, 409, 500, 504, 429])
def test_from_client_error_retry_required(status_code):
    """Make sure every other client failure is retried"""
    err = exceptions.from_client_error(api_error(status_code), "failed")
    assert err.reason == ErrorReason.RETRY_REQUIRED
    assert exceptions.is_retry_required(err)


@pytest.mark.parametrize(
    ["error_class", "reason"],
    [
        (BadRequestError, ErrorReason.IRRECOVERABLE),
        (UnauthorizedError, ErrorReason.IRRECOVERABLE),
        (ForbiddenError, ErrorReason.IRRECOVERABLE),
        (UnprocessibleEntityError, ErrorReason.IRRECOVERABLE),
        (ServiceUnavailableError, ErrorReason.IRRECOVERABLE),
        (NotFoundError, ErrorReason.RETRY_REQUIRED),
        (ConflictError, ErrorReason.RETRY_REQUIRED),
        (InternalServerError, ErrorReason.RETRY_REQUIRED),
    ],
)
def test_from_client_error_openshift_errors(error_class, reason):
    """Make sure the dynamic client's error classes are classified by their
    status code
    """
    status_codes = {
        BadRequestError: 400,
        UnauthorizedError: 401,
        ForbiddenError: 403,
        UnprocessibleEntityError: 422,
        ServiceUnavailableError: 503,
        NotFoundError: 404,
        ConflictError: 409,
        InternalServerError: 500,
    }
    cause = error_class(api_error(status_codes[error_class]))
    assert exceptions.from_client_error(cause, "failed").reason == reason
    assert exceptions.classify(cause) == reason


def test_from_client_error_keeps_classification():
    """Make sure an already classified cause keeps its reason"""
    inner = exceptions.new_irrecoverable_error(ValueError("bad"), "inner")
    outer = exceptions.from_client_error(inner, "outer")
    assert outer.reason == ErrorReason.IRRECOVERABLE
    assert outer.cause is inner
    assert str(outer) == "outer: inner: bad"

    inner = exceptions.new_retry_required_error(api_error(403), "inner")
    assert (
        exceptions.from_client_error(inner, "outer").reason
        == ErrorReason.RETRY_REQUIRED
    )


def test_from_error():
    """Make sure from_error keeps irrecoverable and retries everything else"""
    irrecoverable = exceptions.new_irrecoverable_error(ValueError("x"), "inner")
    assert exceptions.from_error(irrecoverable, "outer").reason == (
        ErrorReason.IRRECOVERABLE
    )
    assert exceptions.from_error(ValueError("x"), "outer").reason == (
        ErrorReason.RETRY_REQUIRED
    )
    # A raw client error is not classified by from_error
    assert exceptions.from_error(api_error(403), "outer").reason == (
        ErrorReason.RETRY_REQUIRED
    )


def test_constructors_none_cause():
    """Make sure no error is built from no cause"""
    assert exceptions.new_irrecoverable_error(None, "msg") is None
    assert exceptions.new_retry_required_error(None, "msg") is None
    assert exceptions.from_client_error(None, "msg") is None
    assert exceptions.from_error(None, "msg") is None


def test_classify_is_total():
    """Make sure every error gets a reason"""
    assert exceptions.classify(None) is None
    assert exceptions.classify(RuntimeError("boom")) == ErrorReason.RETRY_REQUIRED
    assert exceptions.classify(api_error(401)) == ErrorReason.IRRECOVERABLE
    assert exceptions.classify(api_error(500)) == ErrorReason.RETRY_REQUIRED


def test_reason_is_read_only():
    """Make sure the reason can not be changed after construction"""
    err = exceptions.new_retry_required_error(ValueError("x"), "msg")
    with pytest.raises(AttributeError):
        err.reason = ErrorReason.IRRECOVERABLE


def test_message_formatting():
    """Make sure messages are formatted with args and include the cause"""
    err = exceptions.new_retry_required_error(
        ValueError("boom"), "failed to update %s/%s", "ns", "name"
    )
    assert str(err) == "failed to update ns/name: boom"
    assert "RetryRequiredError" in repr(err)


def test_api_error_message_without_body():
    """Make sure client errors render their reason instead of the full body"""
    err = exceptions.from_client_error(api_error(500, "Internal"), "failed")
    assert str(err) == "failed: Internal"


def test_status_code_helpers():
    """Make sure the not found and conflict helpers only match their code"""
    assert exceptions.is_not_found(api_error(404))
    assert not exceptions.is_not_found(api_error(409))
    assert exceptions.is_conflict(ConflictError(api_error(409)))
    assert not exceptions.is_conflict(ValueError("x"))
    assert exceptions.status_code(ValueError("x")) is None


## AggregateError ##############################################################


def test_aggregate_error_drops_none():
    """Make sure empty slots are dropped from an aggregate"""
    status_err = exceptions.ClusterError("status failed")
    err = exceptions.AggregateError([None, status_err])
    assert err.errors == [status_err]
    assert str(err) == "status failed"


def test_aggregate_error_multiple():
    """Make sure all errors are kept and rendered"""
    err = exceptions.AggregateError(
        [ValueError("first"), exceptions.ClusterError("second")]
    )
    assert len(err.errors) == 2
    assert str(err) == "[first, second]"


## assertions ##################################################################


def test_assert_config_pass():
    """Make sure that no exception is throw by assert_config when it
    passes
    """
    exceptions.assert_config(True)


def test_assert_config_fail():
    """Make sure the right exception is thrown by assert_config when it
    fails
    """
    exception_msg = "error mesage"
    with pytest.raises(exceptions.ConfigError, match=exception_msg):
        exceptions.assert_config(False, exception_msg)


def test_assert_cluster_pass():
    """Make sure that no exception is throw by assert_cluster when it
    passes
    """
    exceptions.assert_cluster(True)


def test_assert_cluster_fail():
    """Make sure the right exception is thrown by assert_cluster when it
    fails
    """
    exception_msg = "error mesage"
    with pytest.raises(exceptions.ClusterError, match=exception_msg):
        exceptions.assert_cluster(False, exception_msg)


def test_exception_derived_from_base():
    """Make sure the derived classes are instances of the base class"""
    for err in [
        exceptions.ConfigError(),
        exceptions.ClusterError(),
        exceptions.AggregateError([]),
        exceptions.ReconcileError(ErrorReason.IRRECOVERABLE, "x"),
    ]:
        assert isinstance(err, exceptions.IstioCSROperatorError)
