"""
Tests for mapping events on IstioCSR children back to the IstioCSR
"""

# Third Party
import pytest

# Local
from istiocsr_operator import constants
from istiocsr_operator.istiocsr import build_request_mapper, map_to_istiocsr
from istiocsr_operator.managed_object import ManagedObject
from istiocsr_operator.reconcile import ReconcileRequest
from istiocsr_operator.test_helpers.helpers import (
    TEST_NAMESPACE,
    configure_logging,
    library_config,
)
from istiocsr_operator.watch import KubeEventType, KubeWatchEvent

configure_logging()

OWNED = {constants.OWNED_LABEL_KEY: constants.OWNED_LABEL_VALUE}

## Helpers #####################################################################


def make_object(
    kind="Service",
    api_version="v1",
    namespace=TEST_NAMESPACE,
    labels=None,
    generation=1,
    resource_version="1",
):
    metadata = {
        "name": "obj",
        "labels": labels or {},
        "generation": generation,
        "resourceVersion": resource_version,
    }
    if namespace:
        metadata["namespace"] = namespace
    return ManagedObject(
        {"apiVersion": api_version, "kind": kind, "metadata": metadata}
    )


def event(resource, event_type=KubeEventType.MODIFIED):
    return KubeWatchEvent(type=event_type, resource=resource)


## map_to_istiocsr #############################################################


def test_owned_object_maps_to_own_namespace():
    """Make sure owned objects map to the instance in their namespace"""
    assert map_to_istiocsr(make_object(labels=OWNED)) == [
        ReconcileRequest("default", TEST_NAMESPACE)
    ]


def test_owned_object_uses_namespace_mapping_label():
    """Make sure the namespace mapping label wins for cluster-scoped objects"""
    labels = dict(OWNED, **{constants.NAMESPACE_MAPPING_LABEL: "mapped-ns"})
    resource = make_object(kind="ClusterRole", namespace=None, labels=labels)
    assert map_to_istiocsr(resource) == [ReconcileRequest("default", "mapped-ns")]


def test_owned_object_configured_name():
    """Make sure the configured instance name is used"""
    with library_config(istiocsr_object_name="custom"):
        assert map_to_istiocsr(make_object(labels=OWNED)) == [
            ReconcileRequest("custom", TEST_NAMESPACE)
        ]


def test_owned_cluster_object_without_namespace():
    """Make sure cluster-scoped objects without a mapping label are dropped"""
    assert map_to_istiocsr(make_object(namespace=None, labels=OWNED)) == []


def test_watched_object_maps_to_label_key():
    """Make sure watched objects map to the key in their watch label"""
    resource = make_object(
        kind="Secret",
        namespace="cert-manager",
        labels={constants.WATCH_LABEL_KEY: "istio-ns_my-istiocsr"},
    )
    assert map_to_istiocsr(resource) == [
        ReconcileRequest("my-istiocsr", "istio-ns")
    ]


@pytest.mark.parametrize("value", ["nodelimiter", "a_b_c", "_name"])
def test_watched_object_malformed_label(value):
    """Make sure malformed watch labels are ignored"""
    resource = make_object(kind="Secret", labels={constants.WATCH_LABEL_KEY: value})
    assert map_to_istiocsr(resource) == []


def test_unrelated_object():
    """Make sure objects with neither label map to nothing"""
    assert map_to_istiocsr(make_object()) == []


## Watch table #################################################################


def test_watch_table_kinds():
    """Make sure every child kind and the issuer secret are watched"""
    kinds = {kind for _, kind in build_request_mapper().watched_kinds()}
    assert kinds == {
        constants.ISTIOCSR_KIND,
        constants.CERTIFICATE_KIND,
        "Deployment",
        "ClusterRole",
        "ClusterRoleBinding",
        "Role",
        "RoleBinding",
        "Service",
        "ServiceAccount",
        "ConfigMap",
        "Secret",
    }


def test_istiocsr_generation_changes():
    """Make sure IstioCSR status writes do not trigger a reconcile"""
    mapper = build_request_mapper()
    istiocsr = make_object(
        kind=constants.ISTIOCSR_KIND, api_version=constants.ISTIOCSR_API_VERSION
    )
    assert mapper.map(event(istiocsr, KubeEventType.ADDED)) == [
        ReconcileRequest("obj", TEST_NAMESPACE)
    ]
    assert mapper.map(event(istiocsr)) == []
    bumped = make_object(
        kind=constants.ISTIOCSR_KIND,
        api_version=constants.ISTIOCSR_API_VERSION,
        generation=2,
    )
    assert mapper.map(event(bumped)) == [ReconcileRequest("obj", TEST_NAMESPACE)]


def test_owned_service_any_change():
    """Make sure any new version of an owned service triggers a reconcile"""
    mapper = build_request_mapper()
    assert mapper.map(event(make_object(labels=OWNED), KubeEventType.ADDED))
    assert mapper.map(event(make_object(labels=OWNED)))


def test_unowned_service_ignored():
    """Make sure services without the ownership label are ignored"""
    mapper = build_request_mapper()
    assert mapper.map(event(make_object(), KubeEventType.ADDED)) == []


def test_owned_deployment_generation():
    """Make sure deployment status churn does not trigger a reconcile"""
    mapper = build_request_mapper()
    deployment = make_object(kind="Deployment", api_version="apps/v1", labels=OWNED)
    assert mapper.map(event(deployment, KubeEventType.ADDED))
    assert mapper.map(event(deployment)) == []


def test_watched_secret_versions():
    """Make sure a labeled secret reconciles once per resource version"""
    mapper = build_request_mapper()
    labels = {constants.WATCH_LABEL_KEY: f"{TEST_NAMESPACE}_default"}
    secret = make_object(kind="Secret", namespace="istio-system", labels=labels)
    expected = [ReconcileRequest("default", TEST_NAMESPACE)]
    assert mapper.map(event(secret, KubeEventType.ADDED)) == expected
    assert mapper.map(event(secret)) == []
    rotated = make_object(
        kind="Secret", namespace="istio-system", labels=labels, resource_version="2"
    )
    assert mapper.map(event(rotated)) == expected


def test_unlabeled_secret_ignored():
    """Make sure secrets without the watch label are ignored"""
    mapper = build_request_mapper()
    secret = make_object(kind="Secret")
    assert mapper.map(event(secret, KubeEventType.ADDED)) == []
