"""
Wrapper around the dict representation of an IstioCSR custom resource
"""

# Standard
from typing import List, Optional
import copy

# Local
from . import constants
from .utils import nested_get


class IstioCSRResource:
    """An IstioCSR instance as fetched from the cluster. The controller only
    mutates the status, finalizers and annotations held here, the spec is
    owned by the user.
    """

    def __init__(self, manifest: dict):
        self.manifest = copy.deepcopy(dict(manifest))
        self.manifest.setdefault("metadata", {})
        self.manifest.setdefault("spec", {})

    @property
    def spec(self) -> dict:
        return self.manifest["spec"]

    ## Identity ################################################################

    @property
    def api_version(self) -> str:
        return self.manifest.get("apiVersion", constants.ISTIOCSR_API_VERSION)

    @property
    def kind(self) -> str:
        return self.manifest.get("kind", constants.ISTIOCSR_KIND)

    @property
    def metadata(self) -> dict:
        return self.manifest["metadata"]

    @property
    def name(self) -> str:
        return self.metadata.get("name")

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace")

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def uid(self) -> Optional[str]:
        return self.metadata.get("uid")

    ## Lifecycle ###############################################################

    @property
    def deletion_timestamp(self) -> Optional[str]:
        return self.metadata.get("deletionTimestamp")

    @property
    def is_being_deleted(self) -> bool:
        return bool(self.deletion_timestamp)

    @property
    def finalizers(self) -> List[str]:
        return self.metadata.setdefault("finalizers", [])

    @property
    def annotations(self) -> dict:
        return self.metadata.setdefault("annotations", {})

    def has_processed_annotation(self) -> bool:
        return constants.PROCESSED_ANNOTATION_NAME in (
            self.metadata.get("annotations") or {}
        )

    def add_processed_annotation(self) -> bool:
        """Add the processed annotation, returning whether it was missing"""
        if self.has_processed_annotation():
            return False
        self.annotations[
            constants.PROCESSED_ANNOTATION_NAME
        ] = constants.PROCESSED_ANNOTATION_VALUE
        return True

    def is_first_reconcile(self) -> bool:
        """The first reconcile is the one that has not finished a converge
        yet, either because the processed annotation is missing or the status
        has never been written
        """
        return not self.has_processed_annotation() or not self.status

    ## Status ##################################################################

    @property
    def status(self) -> dict:
        return self.manifest.setdefault("status", {})

    @status.setter
    def status(self, value: dict):
        self.manifest["status"] = value

    ## Spec accessors ##########################################################

    @property
    def istiocsr_config(self) -> Optional[dict]:
        return self.spec.get("istioCSRConfig")

    @property
    def issuer_ref(self) -> dict:
        return nested_get(self.spec, "istioCSRConfig.certManager.issuerRef") or {}

    @property
    def istio_namespace(self) -> Optional[str]:
        return nested_get(self.spec, "istioCSRConfig.istio.namespace")

    @property
    def image_override(self) -> Optional[str]:
        return nested_get(self.spec, "istioCSRConfig.image")

    @property
    def custom_labels(self) -> dict:
        return dict(nested_get(self.spec, "controllerConfig.labels") or {})

    def to_dict(self) -> dict:
        return copy.deepcopy(self.manifest)

    def __str__(self):
        return f"{constants.ISTIOCSR_RESOURCE_NAME}/{self.key}"
