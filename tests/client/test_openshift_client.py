"""
Tests for the OpenshiftClient with a mocked DynamicClient
"""

# Standard
from unittest import mock

# Third Party
from kubernetes.client.exceptions import ApiException
from openshift.dynamic.exceptions import (
    ConflictError,
    NotFoundError,
    ResourceNotFoundError,
)
import kubernetes
import pytest

# Local
from istiocsr_operator.client import OpenshiftClient
from istiocsr_operator.exceptions import ClusterError
from istiocsr_operator.test_helpers.helpers import configure_logging, library_config

configure_logging()

## Helpers #####################################################################

SERVICE = {
    "apiVersion": "v1",
    "kind": "Service",
    "metadata": {"name": "svc", "namespace": "ns", "resourceVersion": "1"},
    "spec": {"ports": [{"port": 443}]},
}


def make_result(content):
    result = mock.MagicMock()
    result.to_dict.return_value = content
    return result


def setup_client():
    dynamic_client = mock.MagicMock()
    handle = dynamic_client.resources.get.return_value
    return OpenshiftClient(dynamic_client=dynamic_client), dynamic_client, handle


## Tests #######################################################################


def test_get():
    """Make sure get looks up the kind and returns the dict representation"""
    client, dynamic_client, handle = setup_client()
    handle.get.return_value = make_result(SERVICE)

    assert client.get("Service", "svc", "ns", "v1") == SERVICE
    dynamic_client.resources.get.assert_called_with(kind="Service", api_version="v1")
    handle.get.assert_called_with(name="svc", namespace="ns")


def test_get_not_found_raised():
    """Make sure a missing object is raised unmodified and exists gives None"""
    client, _, handle = setup_client()
    handle.get.side_effect = NotFoundError(ApiException(status=404, reason="nope"))

    with pytest.raises(NotFoundError):
        client.get("Service", "svc", "ns", "v1")
    assert client.exists("Service", "svc", "ns", "v1") is None


def test_exists_raises_other_errors():
    """Make sure exists only swallows not found"""
    client, _, handle = setup_client()
    handle.get.side_effect = ApiException(status=403, reason="Forbidden")
    with pytest.raises(ApiException):
        client.exists("Service", "svc", "ns", "v1")


def test_unknown_kind_is_cluster_error():
    """Make sure kinds the cluster does not serve raise a ClusterError"""
    client, dynamic_client, _ = setup_client()
    dynamic_client.resources.get.side_effect = ResourceNotFoundError("missing")
    with pytest.raises(ClusterError):
        client.get("Unicorn", "name", "ns", "example.com/v1")


def test_create_update_status():
    """Make sure writes go to the right handle functions"""
    client, _, handle = setup_client()
    handle.create.return_value = make_result(SERVICE)
    handle.replace.return_value = make_result(SERVICE)
    handle.status.replace.return_value = make_result(SERVICE)

    assert client.create(SERVICE) == SERVICE
    handle.create.assert_called_with(body=SERVICE, namespace="ns")
    assert client.update(SERVICE) == SERVICE
    handle.replace.assert_called_with(body=SERVICE, namespace="ns")
    assert client.update_status(SERVICE) == SERVICE
    handle.status.replace.assert_called_with(body=SERVICE, namespace="ns")


def test_update_with_retry_conflict_then_success():
    """Make sure a conflicting update is retried with a refreshed version"""
    client, _, handle = setup_client()
    refreshed = dict(SERVICE, metadata=dict(SERVICE["metadata"], resourceVersion="2"))
    handle.get.return_value = make_result(refreshed)
    handle.replace.side_effect = [
        ConflictError(ApiException(status=409, reason="Conflict")),
        make_result(refreshed),
    ]

    with library_config(deploy_retries=2):
        assert client.update_with_retry(SERVICE) == refreshed
    assert handle.replace.call_count == 2
    retried_body = handle.replace.call_args.kwargs["body"]
    assert retried_body["metadata"]["resourceVersion"] == "2"


def test_update_with_retry_exhausted():
    """Make sure conflicts are raised once the retries run out"""
    client, _, handle = setup_client()
    handle.get.return_value = make_result(SERVICE)
    handle.replace.side_effect = ConflictError(
        ApiException(status=409, reason="Conflict")
    )

    with library_config(deploy_retries=2):
        with pytest.raises(ConflictError):
            client.update_with_retry(SERVICE)
    assert handle.replace.call_count == 3


def test_update_with_retry_other_error_not_retried():
    """Make sure only conflicts are retried"""
    client, _, handle = setup_client()
    handle.replace.side_effect = ApiException(status=500, reason="Internal")
    with pytest.raises(ApiException):
        client.update_with_retry(SERVICE)
    assert handle.replace.call_count == 1


def test_setup_client_out_of_cluster():
    """Make sure the local kubeconfig is used outside of a cluster"""
    with mock.patch(
        "kubernetes.config.load_incluster_config",
        side_effect=kubernetes.config.ConfigException,
    ), mock.patch(
        "kubernetes.config.new_client_from_config", return_value=mock.MagicMock()
    ) as new_client, mock.patch(
        "istiocsr_operator.client.openshift_client.DynamicClient"
    ) as dynamic_client:
        client = OpenshiftClient()
        assert client.client is dynamic_client.return_value
        new_client.assert_called_once()
