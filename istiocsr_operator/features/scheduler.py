"""
The FeatureActivationScheduler attaches feature gated controllers to a
running manager once their feature is enabled. Every binding is polled by its
own thread and activation happens at most once per process.
"""

# Standard
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
import threading

# First Party
import alog

# Local
from .. import config
from ..exceptions import assert_config
from .store import FeatureGateStore

log = alog.use_channel("FEATR")


@dataclass(frozen=True)
class FeatureControllerBinding:
    """The controllers activated, in order, once a feature is enabled"""

    feature: str
    controllers: Tuple = ()


class FeaturePollerThread(threading.Thread):
    """Polls the store for a single binding and registers its controllers on
    the first tick that finds the feature enabled
    """

    def __init__(
        self,
        binding: FeatureControllerBinding,
        store: FeatureGateStore,
        manager,
        shutdown: threading.Event,
        poll_interval: float,
    ):
        """
        Args:
            binding:  FeatureControllerBinding
                The feature and controllers this thread activates
            store:  FeatureGateStore
                The store consulted on every tick
            manager:  ManagerBase
                The manager the controllers register with
            shutdown:  threading.Event
                Shared cancellation signal, checked once per tick
            poll_interval:  float
                Seconds between ticks
        """
        self.binding = binding
        self.store = store
        self.manager = manager
        self.shutdown = shutdown
        self.poll_interval = poll_interval
        self.activated = False
        self.error: Optional[Exception] = None
        super().__init__(name=f"feature_poller_{binding.feature}", daemon=True)

    def should_stop(self) -> bool:
        return self.shutdown.is_set()

    def run(self):
        log.debug("Waiting for feature %s", self.binding.feature)
        while not self.should_stop():
            self.shutdown.wait(self.poll_interval)
            if self.should_stop():
                log.debug("Graceful shutdown of %s", self.name)
                return
            if self.store.is_enabled(self.binding.feature):
                self._activate()
                return

    def _activate(self):
        log.info(
            "Feature %s enabled, starting %d controller(s)",
            self.binding.feature,
            len(self.binding.controllers),
        )
        try:
            for controller in self.binding.controllers:
                controller.setup_with_manager(self.manager)
        except Exception as err:  # pylint: disable=broad-except
            log.error(
                "Could not start controller(s) for feature %s: %s",
                self.binding.feature,
                err,
                exc_info=True,
            )
            self.error = err
            return
        self.activated = True


class FeatureActivationScheduler:
    """Runs one FeaturePollerThread per binding"""

    def __init__(
        self,
        store: FeatureGateStore,
        bindings: Iterable[FeatureControllerBinding],
        poll_interval: Optional[float] = None,
    ):
        self.store = store
        self.bindings = list(bindings)
        self.poll_interval = float(
            config.feature_poll_interval_seconds
            if poll_interval is None
            else poll_interval
        )
        assert_config(
            self.poll_interval > 0,
            f"feature poll interval must be positive, got {self.poll_interval}",
        )
        self.shutdown = threading.Event()
        self.threads: List[FeaturePollerThread] = []

    def start(self, manager):
        """Start polling for every binding. Calling start again is a no-op."""
        if self.threads:
            log.debug("Feature pollers already started")
            return
        for binding in self.bindings:
            thread = FeaturePollerThread(
                binding, self.store, manager, self.shutdown, self.poll_interval
            )
            log.info("Starting %s", thread.name)
            self.threads.append(thread)
            thread.start()

    def stop(self):
        """Signal every poller to stop on its next tick"""
        log.info("Stopping feature pollers")
        self.shutdown.set()

    def join(self, timeout: Optional[float] = None):
        for thread in self.threads:
            thread.join(timeout)

    def activated_features(self) -> List[str]:
        return [
            thread.binding.feature for thread in self.threads if thread.activated
        ]
