"""
The watch table of the IstioCSR controller:

* The IstioCSR itself reconciles on generation changes
* Certificates and Deployments it owns reconcile on generation changes
* RBAC, Services, ServiceAccounts and ConfigMaps it owns reconcile on any
  change
* Secrets referenced by an issuer reconcile on any new resource version once
  they carry the dependency-watch label
"""

# Standard
from typing import List

# First Party
import alog

# Local
from .. import config, constants
from ..managed_object import ManagedObject
from ..reconcile import ReconcileRequest
from ..utils import parse_watch_label_value
from ..watch import (
    GenerationFilter,
    OwnedResourceFilter,
    RequestMapper,
    ResourceVersionFilter,
    WatchLabelFilter,
    WatchSpec,
)

log = alog.use_channel("WATCH")

RBAC_API_VERSION = "rbac.authorization.k8s.io/v1"


def map_to_istiocsr(resource: ManagedObject) -> List[ReconcileRequest]:
    """Map an owned or watched object to the IstioCSR it belongs to

    Owned objects map to the namespace in the namespace-mapping label, or their
    own namespace. Watched objects map to the key encoded in the watch label.
    Anything else maps to nothing.
    """
    labels = resource.labels
    namespace = labels.get(constants.NAMESPACE_MAPPING_LABEL) or resource.namespace
    name = config.istiocsr_object_name

    if labels.get(constants.OWNED_LABEL_KEY) != constants.OWNED_LABEL_VALUE:
        value = labels.get(constants.WATCH_LABEL_KEY)
        if not value:
            return []
        key = parse_watch_label_value(value)
        if key is None:
            log.warning(
                "%s label value(%s) not in expected format on %s resource",
                constants.WATCH_LABEL_KEY,
                value,
                resource.name,
            )
            return []
        namespace, name = key["namespace"], key["name"]

    if not namespace:
        return []
    return [ReconcileRequest(name=name, namespace=namespace)]


def map_to_self(resource: ManagedObject) -> List[ReconcileRequest]:
    return [ReconcileRequest(name=resource.name, namespace=resource.namespace)]


def _owned(api_version: str, kind: str, *filters) -> WatchSpec:
    return WatchSpec(
        api_version=api_version,
        kind=kind,
        filters=(OwnedResourceFilter,) + filters,
        map_func=map_to_istiocsr,
    )


ISTIOCSR_WATCHES = [
    WatchSpec(
        api_version=constants.ISTIOCSR_API_VERSION,
        kind=constants.ISTIOCSR_KIND,
        filters=(GenerationFilter,),
        map_func=map_to_self,
    ),
    _owned(
        constants.CERT_MANAGER_API_VERSION,
        constants.CERTIFICATE_KIND,
        GenerationFilter,
    ),
    _owned("apps/v1", "Deployment", GenerationFilter),
    _owned(RBAC_API_VERSION, "ClusterRole"),
    _owned(RBAC_API_VERSION, "ClusterRoleBinding"),
    _owned(RBAC_API_VERSION, "Role"),
    _owned(RBAC_API_VERSION, "RoleBinding"),
    _owned("v1", "Service"),
    _owned("v1", "ServiceAccount"),
    _owned("v1", "ConfigMap"),
    WatchSpec(
        api_version="v1",
        kind="Secret",
        filters=(WatchLabelFilter, ResourceVersionFilter),
        map_func=map_to_istiocsr,
    ),
]


def build_request_mapper() -> RequestMapper:
    """Each controller gets its own mapper so filter state is not shared"""
    return RequestMapper(ISTIOCSR_WATCHES)
