"""
Client that delegates cluster operations to the openshift DynamicClient. This
is the client used when the operator runs in the cluster or outside of the
cluster making live changes.
"""

# Standard
from typing import Optional

# Third Party
from openshift.dynamic import DynamicClient
from openshift.dynamic.exceptions import ResourceNotFoundError, ResourceNotUniqueError
from openshift.dynamic.resource import Resource
import kubernetes

# First Party
import alog

# Local
from ..exceptions import ClusterError
from .base import ClientBase

log = alog.use_channel("OSFTC")


class OpenshiftClient(ClientBase):
    """ClientBase implementation backed by the openshift DynamicClient"""

    def __init__(self, dynamic_client: Optional[DynamicClient] = None):
        """
        Args:
            dynamic_client:  Optional[DynamicClient]
                Pre-built client to use. When not given one is created lazily
                from the in-cluster config or the local kubeconfig.
        """
        self._client = dynamic_client

    @property
    def client(self) -> DynamicClient:
        """Lazy property access to the client"""
        if self._client is None:
            self._client = self._setup_client()
        return self._client

    ## Interface ###############################################################

    def get(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> dict:
        log.debug3("Fetching %s/%s in [%s]", kind, name, namespace)
        handle = self._get_resource_handle(kind, api_version)
        return handle.get(name=name, namespace=namespace).to_dict()

    def create(self, definition: dict) -> dict:
        handle = self._get_resource_handle(
            definition.get("kind"), definition.get("apiVersion")
        )
        namespace = definition.get("metadata", {}).get("namespace")
        log.debug2(
            "Creating %s/%s in [%s]",
            definition.get("kind"),
            definition.get("metadata", {}).get("name"),
            namespace,
        )
        return handle.create(body=definition, namespace=namespace).to_dict()

    def update(self, definition: dict) -> dict:
        handle = self._get_resource_handle(
            definition.get("kind"), definition.get("apiVersion")
        )
        namespace = definition.get("metadata", {}).get("namespace")
        log.debug2(
            "Updating %s/%s in [%s]",
            definition.get("kind"),
            definition.get("metadata", {}).get("name"),
            namespace,
        )
        return handle.replace(body=definition, namespace=namespace).to_dict()

    def update_status(self, definition: dict) -> dict:
        handle = self._get_resource_handle(
            definition.get("kind"), definition.get("apiVersion")
        )
        namespace = definition.get("metadata", {}).get("namespace")
        return handle.status.replace(body=definition, namespace=namespace).to_dict()

    ## Implementation Helpers ##################################################

    @staticmethod
    def _setup_client() -> DynamicClient:
        """Create a DynamicClient that will work based on where the operator is
        running
        """
        try:
            log.debug2("Running with in-cluster config")
            kube_config = kubernetes.client.Configuration()
            kubernetes.config.load_incluster_config(client_configuration=kube_config)
            return DynamicClient(kubernetes.client.ApiClient(kube_config))
        except kubernetes.config.ConfigException:
            log.debug2("Running with out-of-cluster config")
            return DynamicClient(kubernetes.config.new_client_from_config())

    def _get_resource_handle(self, kind: str, api_version: Optional[str]) -> Resource:
        """Get the openshift resource handle for a kind. Kinds that the API
        server does not serve are a cluster error.
        """
        try:
            return self.client.resources.get(kind=kind, api_version=api_version)
        except (ResourceNotFoundError, ResourceNotUniqueError) as err:
            log.debug("No unique resource kind [%s/%s] found", api_version, kind)
            raise ClusterError(
                f"kind {kind} in {api_version} is not served by the cluster"
            ) from err
