"""
Tests for the IstioCSRResource wrapper
"""

# Local
from istiocsr_operator import constants
from istiocsr_operator.resource import IstioCSRResource
from istiocsr_operator.test_helpers.helpers import (
    TEST_INSTANCE_NAME,
    TEST_ISSUER_NAME,
    TEST_ISTIO_NAMESPACE,
    TEST_NAMESPACE,
    make_istiocsr,
)


def test_identity():
    """Make sure the identity accessors read the metadata"""
    resource = IstioCSRResource(make_istiocsr())
    assert resource.name == TEST_INSTANCE_NAME
    assert resource.namespace == TEST_NAMESPACE
    assert resource.key == f"{TEST_NAMESPACE}/{TEST_INSTANCE_NAME}"
    assert resource.kind == constants.ISTIOCSR_KIND
    assert str(resource) == (
        f"{constants.ISTIOCSR_RESOURCE_NAME}/{TEST_NAMESPACE}/{TEST_INSTANCE_NAME}"
    )


def test_manifest_copied():
    """Make sure changes to the wrapper do not leak into the source dict"""
    manifest = make_istiocsr()
    resource = IstioCSRResource(manifest)
    resource.status["changed"] = True
    resource.finalizers.append("x")
    assert "status" not in manifest
    assert "finalizers" not in manifest["metadata"]


def test_spec_accessors():
    """Make sure the nested spec fields are found"""
    resource = IstioCSRResource(
        make_istiocsr(
            spec_overrides={
                "istioCSRConfig": {"image": "custom:v1"},
                "controllerConfig": {"labels": {"team": "mesh"}},
            }
        )
    )
    assert resource.issuer_ref["name"] == TEST_ISSUER_NAME
    assert resource.istio_namespace == TEST_ISTIO_NAMESPACE
    assert resource.image_override == "custom:v1"
    assert resource.custom_labels == {"team": "mesh"}


def test_spec_accessors_missing():
    """Make sure missing spec sections give empty values"""
    resource = IstioCSRResource({"metadata": {"name": "x", "namespace": "y"}})
    assert resource.issuer_ref == {}
    assert resource.istio_namespace is None
    assert resource.image_override is None
    assert resource.custom_labels == {}
    assert resource.istiocsr_config is None


def test_deletion():
    """Make sure a deletionTimestamp marks the resource as being deleted"""
    assert not IstioCSRResource(make_istiocsr()).is_being_deleted
    assert IstioCSRResource(
        make_istiocsr(deletion_timestamp="2024-01-01T00:00:00Z")
    ).is_being_deleted


def test_processed_annotation():
    """Make sure the processed annotation is only added once"""
    resource = IstioCSRResource(make_istiocsr())
    assert not resource.has_processed_annotation()
    assert resource.add_processed_annotation()
    assert resource.has_processed_annotation()
    assert not resource.add_processed_annotation()
    assert (
        resource.annotations[constants.PROCESSED_ANNOTATION_NAME]
        == constants.PROCESSED_ANNOTATION_VALUE
    )


def test_first_reconcile():
    """Make sure the first reconcile needs both the annotation and a status"""
    annotations = {
        constants.PROCESSED_ANNOTATION_NAME: constants.PROCESSED_ANNOTATION_VALUE
    }
    assert IstioCSRResource(make_istiocsr()).is_first_reconcile()
    assert IstioCSRResource(
        make_istiocsr(annotations=annotations)
    ).is_first_reconcile()
    assert IstioCSRResource(
        make_istiocsr(status={"conditions": []})
    ).is_first_reconcile()
    assert not IstioCSRResource(
        make_istiocsr(annotations=annotations, status={"serviceAccount": "sa"})
    ).is_first_reconcile()
