"""
A manager hosts the controllers of the operator. Controllers register with
`setup_with_manager(manager)`, which calls `add_controller`, and the manager
routes watch events to them through their request mappers.
"""

# Standard
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple
import abc
import threading

# First Party
import alog

# Local
from .client import DryRunClient
from .exceptions import ConfigError
from .managed_object import ManagedObject
from .reconcile import ReconcileRequest, ReconciliationResult
from .watch import KubeEventType, KubeWatchEvent

log = alog.use_channel("MNGR")


class ManagerBase(abc.ABC):
    """Registry of running controllers. A controller is anything with a name,
    a request_mapper and a safe_reconcile function.
    """

    def __init__(self):
        self.controllers: Dict[str, object] = {}
        self._controllers_lock = threading.Lock()

    def add_controller(self, controller):
        """Register a controller. Names are unique within a manager.

        Raises:
            ConfigError: if a controller with the same name is registered
        """
        with self._controllers_lock:
            if controller.name in self.controllers:
                raise ConfigError(f"controller {controller.name} already registered")
            self.controllers[controller.name] = controller
        log.info("Registered controller %s", controller.name)
        self._controller_added(controller)

    def _controller_added(self, controller):  # noqa: B027
        """Hook for managers that need to start watching for a new controller"""

    @abc.abstractmethod
    def start(self):
        """Start dispatching events to the registered controllers"""

    @abc.abstractmethod
    def stop(self):
        """Stop dispatching events"""

    def __str__(self):
        return f"{self.__class__.__name__}{sorted(self.controllers)}"


class DryRunManager(ManagerBase):
    """Dispatches the change events of a DryRunClient synchronously. Events are
    queued as the client reports them and reconciled when `process_events` or
    `run_until_idle` is called.
    """

    def __init__(self, client: DryRunClient):
        super().__init__()
        self.client = client
        self.running = False
        self._queue: Deque[Tuple[KubeWatchEvent, Optional[str]]] = deque()
        self._queue_lock = threading.Lock()
        client.add_watcher(self.enqueue_event)

    def start(self):
        self.running = True

    def stop(self):
        self.running = False

    def enqueue_event(self, event: KubeWatchEvent, target: Optional[str] = None):
        """Queue an event for all controllers, or only the named target"""
        with self._queue_lock:
            self._queue.append((event, target))

    def process_events(
        self,
    ) -> List[Tuple[str, ReconcileRequest, ReconciliationResult]]:
        """Reconcile the requests caused by the queued events. Events produced
        while reconciling are left queued for the next call.

        Returns:
            results:  List[Tuple[str, ReconcileRequest, ReconciliationResult]]
                The controller name, request and result of every reconcile
        """
        if not self.running:
            log.debug2("Manager not started, leaving events queued")
            return []

        with self._queue_lock:
            events = list(self._queue)
            self._queue.clear()

        pending: Dict[Tuple[str, ReconcileRequest], object] = {}
        for event, target in events:
            for name, controller in list(self.controllers.items()):
                if target is not None and name != target:
                    continue
                for request in controller.request_mapper.map(event):
                    pending.setdefault((name, request), controller)

        results = []
        for (name, request), controller in pending.items():
            log.debug2("Dispatching %s to %s", request, name)
            result = controller.safe_reconcile(request)
            if result.exception is not None:
                log.warning(
                    "Reconcile of %s by %s failed: %s", request, name, result.exception
                )
            results.append((name, request, result))
        return results

    def run_until_idle(
        self, max_rounds: int = 10
    ) -> List[Tuple[str, ReconcileRequest, ReconciliationResult]]:
        """Process events until no more are produced or max_rounds is reached"""
        results = []
        for _ in range(max_rounds):
            with self._queue_lock:
                if not self._queue:
                    break
            results.extend(self.process_events())
        with self._queue_lock:
            still_queued = len(self._queue)
        if still_queued:
            log.warning(
                "%d events still queued after %d rounds", still_queued, max_rounds
            )
        return results

    ## Implementation ##########################################################

    def _controller_added(self, controller):
        """Replay the current objects to a new controller as ADDED events, the
        way an informer lists before it watches
        """
        watched = set(controller.request_mapper.watched_kinds())
        for content in self.client.list_objects():
            if (content.get("apiVersion"), content.get("kind")) in watched:
                self.enqueue_event(
                    KubeWatchEvent(
                        type=KubeEventType.ADDED, resource=ManagedObject(content)
                    ),
                    target=controller.name,
                )
