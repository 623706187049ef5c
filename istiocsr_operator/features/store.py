"""
The FeatureGateStore holds the names of the features enabled at runtime.
Features are only ever added, so once a feature reads as enabled it stays
enabled for the life of the process.
"""

# Standard
from typing import FrozenSet, Iterable, Set
import threading

# First Party
import alog

log = alog.use_channel("FEATR")


class FeatureGateStore:
    """Thread safe set of enabled feature names"""

    def __init__(self):
        self._lock = threading.Lock()
        self._enabled: Set[str] = set()

    def enable(self, name: str):
        """Enable a feature. Enabling an enabled feature is a no-op."""
        with self._lock:
            if name in self._enabled:
                return
            self._enabled.add(name)
        log.info("Enabled feature %s", name)

    def enable_many(self, names: Iterable[str]):
        for name in names:
            self.enable(name)

    def is_enabled(self, name: str) -> bool:
        with self._lock:
            return name in self._enabled

    def enabled(self) -> FrozenSet[str]:
        """Snapshot of the enabled feature names"""
        with self._lock:
            return frozenset(self._enabled)
