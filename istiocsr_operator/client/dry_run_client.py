"""
The DryRunClient implements the ClientBase interface without a cluster. The
state of the cluster is held in a local map guarded by a lock.
"""

# Standard
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Dict, List, Optional
import copy
import random
import uuid

# Third Party
from kubernetes.client.exceptions import ApiException
from openshift.dynamic.exceptions import ConflictError, NotFoundError

# First Party
import alog

# Local
from ..managed_object import ManagedObject
from ..watch.kube_event import KubeEventType, KubeWatchEvent
from .base import ClientBase

log = alog.use_channel("DRY-RUN")

# Top level keys that are not part of the desired state for generation tracking
_NON_SPEC_KEYS = ["metadata", "status", "kind", "apiVersion"]


class DryRunClient(ClientBase):
    """Client which keeps every object in memory"""

    def __init__(
        self,
        resources: Optional[List[dict]] = None,
        strict_resource_version: bool = True,
    ):
        """
        Args:
            resources:  Optional[List[dict]]
                Objects present in the cluster from the start
            strict_resource_version:  bool
                If true, writes carrying a stale resourceVersion fail with a
                conflict like they do against a real API server
        """
        self.strict_resource_version = strict_resource_version
        self._cluster_content: Dict[str, Dict[str, Dict[str, dict]]] = {}
        self._lock = RLock()
        self._watchers: List[Callable[[KubeWatchEvent], None]] = []
        for resource in resources or []:
            self._store(self._initialize(copy.deepcopy(resource)))

    ## Interface ###############################################################

    def get(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> dict:
        log.debug2("DRY RUN get of [%s/%s] in [%s]", kind, name, namespace)
        with self._lock:
            current = self._lookup(kind, name, namespace, api_version)
            if current is None:
                raise _api_error(NotFoundError, 404, f'{kind} "{name}" not found')
            return copy.deepcopy(current)

    def create(self, definition: dict) -> dict:
        kind, name, namespace = self._identifiers(definition)
        log.debug2("DRY RUN create of [%s/%s] in [%s]", kind, name, namespace)
        with self._lock:
            if self._lookup(kind, name, namespace, definition.get("apiVersion")):
                raise _api_error(
                    ConflictError, 409, f'{kind} "{name}" already exists'
                )
            content = self._initialize(copy.deepcopy(definition))
            self._store(content)
            result = copy.deepcopy(content)
        self._notify(KubeEventType.ADDED, result)
        return result

    def update(self, definition: dict) -> dict:
        kind, name, namespace = self._identifiers(definition)
        log.debug2("DRY RUN update of [%s/%s] in [%s]", kind, name, namespace)
        with self._lock:
            current = self._current_for_write(definition)
            content = copy.deepcopy(definition)

            # Status is a subresource and is not changed by a regular update
            content.pop("status", None)
            if "status" in current:
                content["status"] = copy.deepcopy(current["status"])

            metadata = content.setdefault("metadata", {})
            for key in ["uid", "creationTimestamp", "deletionTimestamp"]:
                if key in current["metadata"]:
                    metadata[key] = current["metadata"][key]
            generation = current["metadata"].get("generation", 1)
            if self._spec(content) != self._spec(current):
                generation += 1
            metadata["generation"] = generation
            metadata["resourceVersion"] = self._next_resource_version(current)

            # An object that is being deleted goes away with its last finalizer
            deleted = bool(
                metadata.get("deletionTimestamp") and not metadata.get("finalizers")
            )
            if deleted:
                self._delete_key(kind, name, namespace)
            else:
                self._store(content)
            result = copy.deepcopy(content)

        self._notify(
            KubeEventType.DELETED if deleted else KubeEventType.MODIFIED, result
        )
        return result

    def update_status(self, definition: dict) -> dict:
        kind, name, namespace = self._identifiers(definition)
        log.debug2("DRY RUN status update of [%s/%s] in [%s]", kind, name, namespace)
        with self._lock:
            current = self._current_for_write(definition)
            content = copy.deepcopy(current)
            content["status"] = copy.deepcopy(definition.get("status") or {})
            content["metadata"]["resourceVersion"] = self._next_resource_version(
                current
            )
            self._store(content)
            result = copy.deepcopy(content)
        self._notify(KubeEventType.MODIFIED, result)
        return result

    ## Dry Run Helpers #########################################################

    def delete(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> bool:
        """Request deletion of an object. Objects with finalizers are only
        marked with a deletionTimestamp.

        Returns:
            found:  bool
                Whether the object was present
        """
        with self._lock:
            current = self._lookup(kind, name, namespace, api_version)
            if current is None:
                return False
            if current["metadata"].get("finalizers"):
                current["metadata"].setdefault("deletionTimestamp", _now())
                current["metadata"]["generation"] = (
                    current["metadata"].get("generation", 1) + 1
                )
                current["metadata"]["resourceVersion"] = self._next_resource_version(
                    current
                )
                event_type = KubeEventType.MODIFIED
            else:
                self._delete_key(kind, name, namespace)
                event_type = KubeEventType.DELETED
            result = copy.deepcopy(current)
        self._notify(event_type, result)
        return True

    def add_watcher(self, callback: Callable[[KubeWatchEvent], None]):
        """Register a callback that receives an event for every change"""
        self._watchers.append(callback)

    def list_objects(self, kind: Optional[str] = None) -> List[dict]:
        """Get copies of every stored object, optionally limited to one kind"""
        with self._lock:
            return [
                copy.deepcopy(obj)
                for kinds in self._cluster_content.values()
                for obj_kind, objects in kinds.items()
                if kind is None or obj_kind == kind
                for obj in objects.values()
            ]

    ## Implementation Details ##################################################

    @staticmethod
    def _identifiers(definition: dict):
        metadata = definition.get("metadata", {})
        return definition.get("kind"), metadata.get("name"), metadata.get("namespace")

    @staticmethod
    def _spec(content: dict) -> dict:
        return {k: v for k, v in content.items() if k not in _NON_SPEC_KEYS}

    @staticmethod
    def _next_resource_version(current: Optional[dict] = None) -> str:
        previous = int((current or {}).get("metadata", {}).get("resourceVersion") or 0)
        return str(previous + random.randint(1, 1000))

    def _initialize(self, content: dict) -> dict:
        metadata = content.setdefault("metadata", {})
        metadata.setdefault("uid", str(uuid.uuid4()))
        metadata.setdefault("creationTimestamp", _now())
        metadata.setdefault("generation", 1)
        metadata["resourceVersion"] = self._next_resource_version()
        return content

    def _lookup(
        self,
        kind: str,
        name: str,
        namespace: Optional[str],
        api_version: Optional[str],
    ) -> Optional[dict]:
        current = self._cluster_content.get(namespace or "", {}).get(kind, {}).get(name)
        if current is None:
            return None
        if api_version is not None and current.get("apiVersion") != api_version:
            return None
        return current

    def _current_for_write(self, definition: dict) -> dict:
        kind, name, namespace = self._identifiers(definition)
        current = self._lookup(kind, name, namespace, definition.get("apiVersion"))
        if current is None:
            raise _api_error(NotFoundError, 404, f'{kind} "{name}" not found')
        requested = definition.get("metadata", {}).get("resourceVersion")
        if (
            self.strict_resource_version
            and requested is not None
            and requested != current["metadata"]["resourceVersion"]
        ):
            raise _api_error(
                ConflictError,
                409,
                f'Operation cannot be fulfilled on {kind} "{name}": the object '
                "has been modified",
            )
        return current

    def _store(self, content: dict):
        kind, name, namespace = self._identifiers(content)
        self._cluster_content.setdefault(namespace or "", {}).setdefault(kind, {})[
            name
        ] = content

    def _delete_key(self, kind: str, name: str, namespace: Optional[str]):
        kinds = self._cluster_content.get(namespace or "", {})
        kinds.get(kind, {}).pop(name, None)
        if kind in kinds and not kinds[kind]:
            del kinds[kind]

    def _notify(self, event_type: KubeEventType, content: dict):
        for watcher in self._watchers:
            log.debug3("Notifying watcher of %s %s", event_type.value, content["kind"])
            watcher(KubeWatchEvent(type=event_type, resource=ManagedObject(content)))


def _api_error(error_class, status: int, reason: str) -> ApiException:
    return error_class(ApiException(status=status, reason=reason))


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
