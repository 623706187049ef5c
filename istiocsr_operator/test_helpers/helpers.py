"""
This module holds common helper functions for making testing easy
"""

# Standard
from contextlib import contextmanager
from typing import List, Optional
from unittest import mock
import base64
import copy
import os

# First Party
import alog

# Local
from istiocsr_operator import constants
from istiocsr_operator.client import DryRunClient
from istiocsr_operator.config import library_config as config_detail_dict
from istiocsr_operator.events import DryRunEventRecorder
from istiocsr_operator.istiocsr import ChildResourceConverger, IstioCSRController
from istiocsr_operator.reconcile import ReconcileRequest
from istiocsr_operator.utils import merge_configs

log = alog.use_channel("TEST")


def configure_logging():
    alog.configure(
        os.environ.get("LOG_LEVEL", "off"),
        os.environ.get("LOG_FILTERS", ""),
        formatter="json"
        if os.environ.get("LOG_JSON", "").lower() == "true"
        else "pretty",
        thread_id=os.environ.get("LOG_THREAD_ID", "").lower() == "true",
    )


configure_logging()

TEST_NAMESPACE = "istiocsr-test-ns"
TEST_INSTANCE_NAME = "default"
TEST_INSTANCE_UID = "12345678-1234-1234-1234-123456789012"
TEST_ISTIO_NAMESPACE = "istio-system"
TEST_ISSUER_NAME = "istiocsr-issuer"
TEST_CA_SECRET_NAME = "istiocsr-ca"
TEST_IMAGE = "registry.redhat.io/cert-manager/cert-manager-istio-csr-rhel9:latest"
TEST_CA_BUNDLE = "-----BEGIN CERTIFICATE-----\ntest\n-----END CERTIFICATE-----\n"
TEST_OPERATOR_NAMESPACE = "cert-manager-operator"
TEST_OPERATOR_CONDITION_NAME = "cert-manager-operator.v1.0.0"

TEST_REQUEST = ReconcileRequest(name=TEST_INSTANCE_NAME, namespace=TEST_NAMESPACE)


@contextmanager
def library_config(**config_overrides):
    """This context manager sets library config values temporarily and reverts
    them on completion
    """
    # Override the configs and hang onto the old values
    old_vals = {}
    for key, val in config_overrides.items():
        if key in config_detail_dict:
            old_vals[key] = config_detail_dict[key]
        config_detail_dict[key] = val

    try:
        yield
    finally:
        # Revert to the old values
        for key in config_overrides:
            if key in old_vals:
                config_detail_dict[key] = old_vals[key]
            else:
                del config_detail_dict[key]


@contextmanager
def operand_image(image: Optional[str] = TEST_IMAGE):
    """Set, or with None unset, the operand image environment variable"""
    env = {} if image is None else {constants.ISTIOCSR_IMAGE_ENV_VAR: image}
    with mock.patch.dict(os.environ, env):
        if image is None:
            os.environ.pop(constants.ISTIOCSR_IMAGE_ENV_VAR, None)
        yield


## Object builders #############################################################


def make_istiocsr(
    name: str = TEST_INSTANCE_NAME,
    namespace: str = TEST_NAMESPACE,
    issuer_kind: str = "Issuer",
    issuer_group: Optional[str] = constants.CERT_MANAGER_GROUP,
    issuer_name: str = TEST_ISSUER_NAME,
    spec_overrides: Optional[dict] = None,
    finalizers: Optional[List[str]] = None,
    annotations: Optional[dict] = None,
    deletion_timestamp: Optional[str] = None,
    status: Optional[dict] = None,
) -> dict:
    """Build an IstioCSR manifest"""
    issuer_ref = {"name": issuer_name, "kind": issuer_kind}
    if issuer_group is not None:
        issuer_ref["group"] = issuer_group
    spec = {
        "istioCSRConfig": {
            "certManager": {"issuerRef": issuer_ref},
            "istiodTLSConfig": {"trustDomain": "cluster.local"},
            "istio": {"namespace": TEST_ISTIO_NAMESPACE},
        },
    }
    merge_configs(spec, copy.deepcopy(spec_overrides or {}))
    metadata = {
        "name": name,
        "namespace": namespace,
        "uid": TEST_INSTANCE_UID,
    }
    if finalizers is not None:
        metadata["finalizers"] = list(finalizers)
    if annotations is not None:
        metadata["annotations"] = dict(annotations)
    if deletion_timestamp is not None:
        metadata["deletionTimestamp"] = deletion_timestamp
    manifest = {
        "apiVersion": constants.ISTIOCSR_API_VERSION,
        "kind": constants.ISTIOCSR_KIND,
        "metadata": metadata,
        "spec": spec,
    }
    if status is not None:
        manifest["status"] = status
    return manifest


def make_issuer(
    kind: str = constants.ISSUER_KIND,
    name: str = TEST_ISSUER_NAME,
    namespace: Optional[str] = TEST_ISTIO_NAMESPACE,
    ca_secret: Optional[str] = TEST_CA_SECRET_NAME,
    acme: bool = False,
) -> dict:
    """Build a cert-manager Issuer or ClusterIssuer"""
    spec = {}
    if acme:
        spec["acme"] = {"server": "https://acme.example.com/directory"}
    elif ca_secret:
        spec["ca"] = {"secretName": ca_secret}
    else:
        spec["selfSigned"] = {}
    metadata = {"name": name}
    if namespace and kind == constants.ISSUER_KIND:
        metadata["namespace"] = namespace
    return {
        "apiVersion": constants.CERT_MANAGER_API_VERSION,
        "kind": kind,
        "metadata": metadata,
        "spec": spec,
    }


def make_ca_secret(
    name: str = TEST_CA_SECRET_NAME,
    namespace: str = TEST_ISTIO_NAMESPACE,
    key: str = "ca.crt",
    bundle: str = TEST_CA_BUNDLE,
) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": namespace},
        "data": {key: base64.b64encode(bundle.encode("utf-8")).decode("utf-8")},
    }


def make_cluster_resources(**kwargs) -> List[dict]:
    """An IstioCSR with a CA Issuer and its secret"""
    return [make_istiocsr(**kwargs), make_issuer(), make_ca_secret()]


def make_operator_condition(
    status_conditions: Optional[List[dict]] = None,
    spec_conditions: Optional[List[dict]] = None,
) -> dict:
    """The OLM OperatorCondition of the operator"""
    content = {
        "apiVersion": constants.OPERATOR_CONDITION_API_VERSION,
        "kind": constants.OPERATOR_CONDITION_KIND,
        "metadata": {
            "name": TEST_OPERATOR_CONDITION_NAME,
            "namespace": TEST_OPERATOR_NAMESPACE,
        },
        "spec": {"conditions": copy.deepcopy(spec_conditions or [])},
    }
    if status_conditions is not None:
        content["status"] = {"conditions": copy.deepcopy(status_conditions)}
    return content


@contextmanager
def operator_condition_config():
    """Point the operator at the test OperatorCondition"""
    with library_config(
        operator_condition_name=TEST_OPERATOR_CONDITION_NAME,
        operator_namespace=TEST_OPERATOR_NAMESPACE,
    ):
        yield


## Controller setup ############################################################


def setup_controller(
    resources: Optional[List[dict]] = None,
    client: Optional[DryRunClient] = None,
):
    """Build an IstioCSRController over a DryRunClient holding the given
    resources

    Returns:
        controller:  IstioCSRController
        client:  DryRunClient
        recorder:  DryRunEventRecorder
    """
    client = client or DryRunClient(
        make_cluster_resources() if resources is None else resources
    )
    recorder = DryRunEventRecorder()
    controller = IstioCSRController(
        client=client,
        recorder=recorder,
        converger=ChildResourceConverger(client, recorder),
    )
    return controller, client, recorder


def get_obj(
    client: DryRunClient,
    kind: str,
    name: str,
    namespace: Optional[str] = None,
    api_version: Optional[str] = None,
) -> Optional[dict]:
    """Get an object from the client or None if it is not there"""
    return client.exists(kind, name, namespace, api_version)


def get_istiocsr(client: DryRunClient, request: ReconcileRequest = TEST_REQUEST):
    return get_obj(
        client,
        constants.ISTIOCSR_KIND,
        request.name,
        request.namespace,
        constants.ISTIOCSR_API_VERSION,
    )


class FailOnce:
    """Helper callable that will fail once on the N'th call"""

    def __init__(self, fail_val, fail_number=1):
        self.call_count = 0
        self.fail_number = fail_number
        self.fail_val = fail_val

    def __call__(self, *_, **__):
        self.call_count += 1
        if self.call_count == self.fail_number:
            log.debug("Failing on call %d with %s", self.call_count, self.fail_val)
            if isinstance(self.fail_val, type) and issubclass(self.fail_val, Exception):
                raise self.fail_val("Raising!")
            if isinstance(self.fail_val, Exception):
                raise self.fail_val
            return self.fail_val
        log.debug("Not failing on call %d", self.call_count)
        return


def fail_nth_call(method, fail_val, fail_number=1):
    """Wrap a bound method so that its N'th call raises fail_val and every
    other call passes through
    """
    fail_once = FailOnce(fail_val, fail_number)

    def wrapped(*args, **kwargs):
        fail_once(*args, **kwargs)
        return method(*args, **kwargs)

    return mock.Mock(side_effect=wrapped)
