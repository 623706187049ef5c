"""
Shared machinery for the child resources of an IstioCSR. Every child kind is
converged with the same create-or-restore sequence:

1. Check whether the object exists
2. Create it from the desired state when it does not
3. Restore the desired state when any of the fields the controller owns have
   drifted
"""

# Standard
from dataclasses import dataclass, field
from typing import Any, Optional
import abc
import copy

# First Party
import alog

# Local
from ... import constants
from ...client import ClientBase
from ...events import EventRecorderBase
from ...exceptions import from_client_error, new_retry_required_error
from ...resource import IstioCSRResource
from ...utils import merge_configs

log = alog.use_channel("CHILD")


@dataclass
class ConvergeContext:
    """State shared by the child handlers during a single converge"""

    client: ClientBase
    recorder: EventRecorderBase
    resource: IstioCSRResource

    # Labels applied to every created object
    labels: dict = field(default_factory=dict)

    # True on the first reconcile of the resource
    create_recon: bool = False

    # Values produced by earlier handlers for later ones
    image: Optional[str] = None
    ca_configmap_name: Optional[str] = None

    @property
    def namespace(self) -> str:
        return self.resource.namespace

    @property
    def istio_namespace(self) -> str:
        return self.resource.istio_namespace

    def mapped_labels(self) -> dict:
        """Labels for objects that are cluster-scoped or live outside of the
        IstioCSR namespace. The extra label lets watch events find their way
        back to the owning IstioCSR.
        """
        labels = dict(self.labels)
        labels[constants.NAMESPACE_MAPPING_LABEL] = self.namespace
        return labels


class ChildResourceHandler(abc.ABC):
    """One managed child kind"""

    # Human readable name used in messages (e.g. "service")
    description: str = ""

    @abc.abstractmethod
    def apply(self, ctx: ConvergeContext):
        """Converge the child objects of this kind. Failures are raised as
        ReconcileErrors.
        """

    def __str__(self):
        return self.__class__.__name__


## Create or restore ###########################################################


def object_key(definition: dict) -> str:
    metadata = definition.get("metadata", {})
    if metadata.get("namespace"):
        return f"{metadata['namespace']}/{metadata['name']}"
    return metadata.get("name")


def labels_drifted(desired: dict, current: dict) -> bool:
    """True if any desired label is missing or has a different value"""
    current_labels = current.get("metadata", {}).get("labels") or {}
    return any(
        current_labels.get(key) != value
        for key, value in (desired.get("metadata", {}).get("labels") or {}).items()
    )


def fields_drifted(desired: dict, current: dict, *keys: str) -> bool:
    """True if labels or any of the given top level fields differ. Values that
    the API server fills in on its own do not count as drift.
    """
    if labels_drifted(desired, current):
        return True
    return any(not is_subset(desired.get(key), current.get(key)) for key in keys)


def is_subset(desired: Any, current: Any) -> bool:
    """Check that every value set in desired is present in current. Dicts may
    hold extra keys in current, lists must match element by element.
    """
    if isinstance(desired, dict):
        if not isinstance(current, dict):
            return not desired
        return all(is_subset(val, current.get(key)) for key, val in desired.items())
    if isinstance(desired, list):
        if not isinstance(current, list):
            return not desired
        return len(desired) == len(current) and all(
            is_subset(d_item, c_item) for d_item, c_item in zip(desired, current)
        )
    if desired is None:
        return True
    return desired == current


def create_or_restore(
    ctx: ConvergeContext,
    desired: dict,
    description: str,
    drifted=labels_drifted,
    restore=None,
) -> dict:
    """Make sure the desired object exists and matches the fields the
    controller owns

    Args:
        ctx:  ConvergeContext
            The converge state
        desired:  dict
            The desired object
        description:  str
            Name of the kind used in messages
        drifted:  Callable[[dict, dict], bool]
            Drift detection between desired and current
        restore:  Optional[Callable[[dict, dict], dict]]
            Builds the object to write from desired and current. Defaults to
            merging desired over current.

    Returns:
        content:  dict
            The object as stored in the cluster
    """
    kind = desired["kind"]
    key = object_key(desired)
    metadata = desired["metadata"]

    try:
        current = ctx.client.exists(
            kind=kind,
            name=metadata["name"],
            namespace=metadata.get("namespace"),
            api_version=desired["apiVersion"],
        )
    except Exception as err:  # pylint: disable=broad-except
        raise new_retry_required_error(
            err, "failed to check %s %s resource already exists", key, description
        ) from err

    if current is not None and ctx.create_recon:
        ctx.recorder.eventf(
            ctx.resource.manifest,
            constants.EVENT_TYPE_WARNING,
            constants.EVENT_REASON_ALREADY_EXISTS,
            "%s %s resource already exists, maybe from previous installation",
            key,
            description,
        )

    if current is None:
        log.debug2("%s %s resource does not exist, creating", key, description)
        try:
            content = ctx.client.create(desired)
        except Exception as err:  # pylint: disable=broad-except
            raise from_client_error(
                err, "failed to create %s %s resource", key, description
            ) from err
        ctx.recorder.eventf(
            ctx.resource.manifest,
            constants.EVENT_TYPE_NORMAL,
            constants.EVENT_REASON_RECONCILED,
            "%s resource %s created",
            description,
            key,
        )
        return content

    if not drifted(desired, current):
        log.debug3("%s %s resource already in desired state", key, description)
        return current

    log.debug(
        "%s %s resource has been modified, updating to desired state", key, description
    )
    restored = (restore or merge_restore)(desired, current)
    try:
        content = ctx.client.update_with_retry(restored)
    except Exception as err:  # pylint: disable=broad-except
        raise from_client_error(
            err, "failed to update %s %s resource", key, description
        ) from err
    ctx.recorder.eventf(
        ctx.resource.manifest,
        constants.EVENT_TYPE_NORMAL,
        constants.EVENT_REASON_RECONCILED,
        "%s resource %s reconciled back to desired state",
        description,
        key,
    )
    return content


def merge_restore(desired: dict, current: dict) -> dict:
    """Desired values win, fields set only in the cluster are kept"""
    return merge_configs(copy.deepcopy(current), copy.deepcopy(desired))


def new_object(
    api_version: str,
    kind: str,
    name: str,
    labels: dict,
    namespace: Optional[str] = None,
    **fields,
) -> dict:
    """Build the skeleton of a desired object"""
    metadata = {"name": name, "labels": dict(labels)}
    if namespace is not None:
        metadata["namespace"] = namespace
    definition = {"apiVersion": api_version, "kind": kind, "metadata": metadata}
    definition.update(fields)
    return definition
