"""
The RequestMapper turns change notifications about watched objects into
reconcile requests. Each watched kind has one entry in a table holding the
filters its events pass through and the function mapping an object to the
requests it causes.
"""

# Standard
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Tuple, Type
import threading

# First Party
import alog

# Local
from ..managed_object import ManagedObject
from ..reconcile import ReconcileRequest
from .filters import Filter, FilterChain
from .kube_event import KubeEventType, KubeWatchEvent

log = alog.use_channel("MAPPR")

MapFunc = Callable[[ManagedObject], List[ReconcileRequest]]


@dataclass(frozen=True)
class WatchSpec:
    """How events for one kind are filtered and mapped"""

    api_version: str
    kind: str
    filters: Tuple[Type[Filter], ...]
    map_func: MapFunc


class RequestMapper:
    """Map events to reconcile requests using a per-kind table of WatchSpecs.
    Filter state is kept per object and is safe to use from several watch
    threads.
    """

    def __init__(self, watches: Iterable[WatchSpec]):
        self.watches: Dict[Tuple[str, str], WatchSpec] = {}
        for watch in watches:
            key = (watch.api_version, watch.kind)
            assert key not in self.watches, f"Duplicate watch for {key}"
            self.watches[key] = watch
        self._filter_state: Dict[Tuple, FilterChain] = {}
        self._lock = threading.Lock()

    def watched_kinds(self) -> List[Tuple[str, str]]:
        """The (apiVersion, kind) pairs with an entry in the table"""
        return list(self.watches)

    def map(self, event: KubeWatchEvent) -> List[ReconcileRequest]:
        """Get the requests caused by an event

        Args:
            event:  KubeWatchEvent
                The event to map

        Returns:
            requests:  List[ReconcileRequest]
                The requests to enqueue. Empty for unwatched kinds, filtered
                events and objects that are not of interest.
        """
        resource = event.resource
        watch = self.watches.get((resource.api_version, resource.kind))
        if watch is None:
            log.debug3("No watch for %s", resource)
            return []

        if not self._passes_filters(watch, event):
            log.debug3("Event %s for %s filtered", event.type.value, resource)
            return []

        log.debug3(
            "Received reconcile event %s for %s", event.type.value, resource
        )
        requests = watch.map_func(resource)
        if not requests:
            log.debug3("%s not of interest, ignoring reconcile event", resource)
        return requests

    ## Implementation ##########################################################

    def _passes_filters(self, watch: WatchSpec, event: KubeWatchEvent) -> bool:
        resource = event.resource
        key = (resource.api_version, resource.kind, resource.namespace, resource.name)
        with self._lock:
            chain = self._filter_state.get(key)
            if chain is None:
                chain = FilterChain(watch.filters, resource)
                self._filter_state[key] = chain
            result = chain.update_and_test(resource, event.type)
            if event.type == KubeEventType.DELETED:
                self._filter_state.pop(key, None)
        return bool(result)
