"""
Helpers to add and remove the controller's finalizer on an IstioCSR
"""

# Standard
import copy

# First Party
import alog

# Local
from .client import ClientBase
from .exceptions import ClusterError, error_message, is_not_found
from .resource import IstioCSRResource

log = alog.use_channel("FNLZR")


def add_finalizer(
    client: ClientBase, resource: IstioCSRResource, finalizer: str
) -> bool:
    """Add the finalizer to the resource in the cluster if it is not present

    Args:
        client:  ClientBase
            The client used for the update
        resource:  IstioCSRResource
            The resource to update. Its metadata is refreshed from the write.
        finalizer:  str
            The finalizer to add

    Returns:
        changed:  bool
            Whether an update was made
    """
    if finalizer in resource.finalizers:
        return False

    log.debug("Adding finalizer %s to %s", finalizer, resource)

    def append_finalizer(content: dict):
        finalizers = content.setdefault("metadata", {}).setdefault("finalizers", [])
        if finalizer not in finalizers:
            finalizers.append(finalizer)

    try:
        updated = client.update_with_retry(
            _metadata_manifest(resource), mutate=append_finalizer
        )
    except Exception as err:
        raise ClusterError(
            f"failed to update {resource} with finalizers: {error_message(err)}"
        ) from err

    _refresh_metadata(resource, updated)
    return True


def remove_finalizer(
    client: ClientBase, resource: IstioCSRResource, finalizer: str
) -> bool:
    """Remove the finalizer from the resource in the cluster if it is present.
    An object that has already gone away counts as removed.

    Returns:
        changed:  bool
            Whether an update was made
    """
    if finalizer not in resource.finalizers:
        return False

    log.debug("Removing finalizer %s from %s", finalizer, resource)

    def drop_finalizer(content: dict):
        finalizers = content.setdefault("metadata", {}).get("finalizers") or []
        content["metadata"]["finalizers"] = [f for f in finalizers if f != finalizer]

    try:
        updated = client.update_with_retry(
            _metadata_manifest(resource), mutate=drop_finalizer
        )
    except Exception as err:
        if is_not_found(err):
            log.debug2("%s is already gone", resource)
            return True
        raise ClusterError(
            f"failed to remove finalizers on {resource}: {error_message(err)}"
        ) from err

    _refresh_metadata(resource, updated)
    return True


## Implementation ##############################################################


def _metadata_manifest(resource: IstioCSRResource) -> dict:
    """The current object without status, which the update cannot change"""
    manifest = resource.to_dict()
    manifest.pop("status", None)
    return manifest


def _refresh_metadata(resource: IstioCSRResource, updated: dict):
    metadata = copy.deepcopy((updated or {}).get("metadata") or {})
    resource.metadata.clear()
    resource.metadata.update(metadata)
