"""
This defines the base class for the cluster clients used by the controllers
"""

# Standard
from typing import Callable, Optional
import abc
import copy
import time

# First Party
import alog

# Local
from .. import config
from ..exceptions import assert_cluster, is_conflict, is_not_found

log = alog.use_channel("CLNT")


class ClientBase(abc.ABC):
    """Base class for clients that read and write objects in the cluster.

    Failures of the underlying API are raised unmodified (instances of
    kubernetes.client.exceptions.ApiException) so that callers can classify
    them.
    """

    ## Abstract Interface ######################################################

    @abc.abstractmethod
    def get(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> dict:
        """Fetch a single object

        Args:
            kind:  str
                The kind of the object to fetch
            name:  str
                The name of the object to fetch
            namespace:  Optional[str]
                The namespace of the object or None for cluster-scoped kinds
            api_version:  Optional[str]
                The api_version of the kind

        Returns:
            content:  dict
                The dict representation of the object. A missing object raises
                a 404 client error.
        """

    @abc.abstractmethod
    def create(self, definition: dict) -> dict:
        """Create the object and return the stored representation"""

    @abc.abstractmethod
    def update(self, definition: dict) -> dict:
        """Replace the object. A stale metadata.resourceVersion raises a 409
        client error.
        """

    @abc.abstractmethod
    def update_status(self, definition: dict) -> dict:
        """Replace the status subresource of the object"""

    ## Shared Implementation ###################################################

    def exists(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Optional[dict]:
        """Fetch a single object, returning None when it is not present. Any
        other failure is raised.
        """
        try:
            return self.get(
                kind=kind, name=name, namespace=namespace, api_version=api_version
            )
        except Exception as err:  # pylint: disable=broad-except
            if is_not_found(err):
                log.debug3("%s/%s not found in [%s]", kind, name, namespace)
                return None
            raise

    def update_with_retry(
        self,
        definition: dict,
        mutate: Optional[Callable[[dict], None]] = None,
    ) -> dict:
        """Update an object, refreshing the resourceVersion and retrying when the
        write conflicts with a concurrent change

        Args:
            definition:  dict
                The desired representation of the object
            mutate:  Optional[Callable[[dict], None]]
                If given, the update is applied by calling mutate on the most
                recent version of the object rather than writing definition
                over it. This keeps concurrent changes to other fields.

        Returns:
            content:  dict
                The stored representation after the update
        """
        return self._retried_write(self.update, definition, mutate)

    def update_status_with_retry(self, definition: dict) -> dict:
        """Write the status of definition over the status of the most recent
        version of the object, retrying on conflicts. The last write wins.
        """
        status = copy.deepcopy(definition.get("status") or {})

        def set_status(content: dict):
            content["status"] = copy.deepcopy(status)

        return self._retried_write(self.update_status, definition, set_status)

    ## Implementation Details ##################################################

    def _retried_write(
        self,
        write: Callable[[dict], dict],
        definition: dict,
        mutate: Optional[Callable[[dict], None]],
    ) -> dict:
        """Run a write, refreshing the definition after each conflict until
        config.deploy_retries is exhausted
        """
        definition = copy.deepcopy(definition)
        if mutate is not None:
            mutate(definition)
        remaining_retries = config.deploy_retries
        while True:
            try:
                return write(definition)
            except Exception as err:  # pylint: disable=broad-except
                if not is_conflict(err) or remaining_retries <= 0:
                    raise
                log.debug2("Handling conflict: %s", err)

            backoff_duration = config.retry_backoff_base_seconds * (
                config.deploy_retries - remaining_retries + 1
            )
            log.debug3("Retrying in %fs", backoff_duration)
            time.sleep(backoff_duration)
            remaining_retries -= 1
            definition = self._refresh(definition, mutate)

    def _refresh(
        self,
        definition: dict,
        mutate: Optional[Callable[[dict], None]],
    ) -> dict:
        """Bring the definition up to date with the current object in the
        cluster before retrying a conflicting write
        """
        metadata = definition.get("metadata", {})
        current = self.get(
            kind=definition.get("kind"),
            name=metadata.get("name"),
            namespace=metadata.get("namespace"),
            api_version=definition.get("apiVersion"),
        )
        resource_version = (current.get("metadata") or {}).get("resourceVersion")
        assert_cluster(
            resource_version is not None,
            "No updated resource version found!",
        )
        if mutate is not None:
            current = copy.deepcopy(current)
            mutate(current)
            return current

        # NOTE: Writing the full definition over the refreshed version discards
        #   concurrent edits to the same object. Objects updated this way are
        #   fully owned by the operator.
        log.debug3(
            "Updating resourceVersion from %s -> %s",
            metadata.get("resourceVersion"),
            resource_version,
        )
        definition.setdefault("metadata", {})["resourceVersion"] = resource_version
        return definition
