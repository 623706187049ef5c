"""
This module holds the functionality used to represent the status of an
IstioCSR resource.

Two orthogonal conditions are maintained:

* Ready: True once every child resource has converged
* Degraded: True when reconciliation hit a failure that will not resolve
  without a change to the resource or the cluster

The two are never True at the same time. Besides the conditions, status holds
the details of the deployed operand:
{
    "istioCSRImage": resolved operand image,
    "istioCSRGRPCEndpoint": address istiod uses to reach the operand,
    "serviceAccount": name of the operand service account,
    "clusterRoleBinding": name of the operand cluster role binding,
}
"""

# Standard
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import copy

# Third Party
from deepdiff import DeepDiff

# First Party
import alog

# Local
from .client import ClientBase
from .resource import IstioCSRResource

log = alog.use_channel("STTUS")

## Public ######################################################################

# The "type" values in the condition
READY_CONDITION = "Ready"
DEGRADED_CONDITION = "Degraded"

# The key in the condition used for the timestamp
TIMESTAMP_KEY = "lastTransitionTime"

# The keys for the operand details
IMAGE_FIELD = "istioCSRImage"
GRPC_ENDPOINT_FIELD = "istioCSRGRPCEndpoint"
SERVICE_ACCOUNT_FIELD = "serviceAccount"
CLUSTER_ROLE_BINDING_FIELD = "clusterRoleBinding"


class ConditionStatus(Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ConditionReason(Enum):
    """Reason constants shared by the Ready and Degraded conditions"""

    # Reconciliation finished, or for Degraded, nothing is failing
    READY = "Ready"

    # Reconciliation will continue on the next attempt
    IN_PROGRESS = "InProgress"

    # Reconciliation stopped on an irrecoverable failure
    FAILED = "Failed"


def get_condition(type_name: str, current_status: dict) -> dict:
    """Extract the given condition type from a status object

    Args:
        type_name:  str
            The condition type to fetch
        current_status:  dict
            The dict representation of the status

    Returns:
        condition:  dict
            The condition object if found, empty dict otherwise
    """
    conditions = [
        cond
        for cond in (current_status or {}).get("conditions", [])
        if cond.get("type") == type_name
    ]
    if conditions:
        assert len(conditions) == 1, f"Found multiple condition entries for {type_name}"
        return conditions[0]
    return {}


def set_condition(
    current_status: dict,
    type_name: str,
    status: ConditionStatus,
    reason: ConditionReason,
    message: str = "",
    now: Optional[datetime] = None,
) -> bool:
    """Set a condition on the status in place. The lastTransitionTime only
    moves when the status value of the condition changes.

    Returns:
        changed:  bool
            True if any field of the condition changed
    """
    conditions = current_status.setdefault("conditions", [])
    existing = get_condition(type_name, current_status)
    new_condition = {
        "type": type_name,
        "status": status.value,
        "reason": reason.value,
        "message": message,
    }
    if existing and existing.get("status") == status.value:
        new_condition[TIMESTAMP_KEY] = existing.get(TIMESTAMP_KEY)
    else:
        new_condition[TIMESTAMP_KEY] = _timestamp(now)

    if existing == new_condition:
        return False

    log.debug2(
        "%s condition %s: %s", type_name, new_condition["status"], reason.value
    )
    if existing:
        conditions[conditions.index(existing)] = new_condition
    else:
        conditions.append(new_condition)
    return True


def set_ready(current_status: dict, message: str, now: Optional[datetime] = None):
    """Record a successful reconcile: Degraded=False, Ready=True"""
    set_condition(
        current_status,
        DEGRADED_CONDITION,
        ConditionStatus.FALSE,
        ConditionReason.READY,
        "",
        now,
    )
    set_condition(
        current_status,
        READY_CONDITION,
        ConditionStatus.TRUE,
        ConditionReason.READY,
        message,
        now,
    )


def set_in_progress(
    current_status: dict, message: str, now: Optional[datetime] = None
):
    """Record a reconcile that will be retried: Degraded=False, Ready=False"""
    set_condition(
        current_status,
        DEGRADED_CONDITION,
        ConditionStatus.FALSE,
        ConditionReason.READY,
        "",
        now,
    )
    set_condition(
        current_status,
        READY_CONDITION,
        ConditionStatus.FALSE,
        ConditionReason.IN_PROGRESS,
        message,
        now,
    )


def set_degraded(current_status: dict, message: str, now: Optional[datetime] = None):
    """Record an irrecoverable failure: Degraded=True, Ready=False"""
    set_condition(
        current_status,
        DEGRADED_CONDITION,
        ConditionStatus.TRUE,
        ConditionReason.FAILED,
        message,
        now,
    )
    set_condition(
        current_status,
        READY_CONDITION,
        ConditionStatus.FALSE,
        ConditionReason.FAILED,
        "",
        now,
    )


def status_changed(current_status: dict, new_status: dict) -> bool:
    """Compare two status objects to determine if there is a meaningful change
    between them. A meaningful change is any change besides a timestamp.
    """
    if not isinstance(current_status, dict) or not isinstance(new_status, dict):
        return True
    return bool(
        DeepDiff(
            current_status,
            new_status,
            exclude_obj_callback=lambda _, path: path.endswith(f"{TIMESTAMP_KEY}']"),
        )
    )


def update_resource_status(
    client: ClientBase,
    resource: IstioCSRResource,
    previous_status: Optional[dict],
) -> bool:
    """Write the in-memory status of the resource to the cluster if it differs
    from the previously observed status

    Args:
        client:  ClientBase
            The client used to write the status subresource
        resource:  IstioCSRResource
            The resource holding the desired status
        previous_status:  Optional[dict]
            The status observed when the resource was fetched

    Returns:
        changed:  bool
            Whether a write was made. Write failures are raised.
    """
    if not status_changed(previous_status or {}, resource.status):
        log.debug("Status of %s has not changed. No update", resource)
        return False

    log.debug("Found meaningful change. Updating status of %s", resource)
    log.debug2("(current) %s != (updated) %s", previous_status, resource.status)
    definition = {
        "apiVersion": resource.api_version,
        "kind": resource.kind,
        "metadata": copy.deepcopy(resource.metadata),
        "status": copy.deepcopy(resource.status),
    }
    client.update_status_with_retry(definition)
    return True


## Implementation Details ######################################################


def _timestamp(now: Optional[datetime]) -> str:
    return (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
