"""
Recording of kubernetes Events against the objects the operator manages.
Events are informational, so failing to record one never fails a reconcile.
"""

# Standard
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional
import abc
import uuid

# First Party
import alog

# Local
from . import config, constants
from .client import ClientBase

log = alog.use_channel("EVNTS")


class RecordedEvent(NamedTuple):
    """A single event as seen by the DryRunEventRecorder"""

    object_key: str
    event_type: str
    reason: str
    message: str


class EventRecorderBase(abc.ABC):
    """Interface for recording events against an object"""

    @abc.abstractmethod
    def event(self, obj: dict, event_type: str, reason: str, message: str):
        """Record an event

        Args:
            obj:  dict
                The object the event is about
            event_type:  str
                Normal or Warning
            reason:  str
                Short CamelCase reason
            message:  str
                Human readable description
        """

    def eventf(self, obj: dict, event_type: str, reason: str, message: str, *args):
        """Record an event with a printf style message"""
        self.event(obj, event_type, reason, message % args if args else message)


class ClientEventRecorder(EventRecorderBase):
    """Writes core/v1 Events through a cluster client"""

    def __init__(self, client: ClientBase, component: Optional[str] = None):
        self.client = client
        self.component = component or config.controller_name

    def event(self, obj: dict, event_type: str, reason: str, message: str):
        metadata = obj.get("metadata", {})
        namespace = metadata.get("namespace") or "default"
        now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        event = {
            "apiVersion": "v1",
            "kind": "Event",
            "metadata": {
                "name": f"{metadata.get('name')}.{uuid.uuid4().hex[:16]}",
                "namespace": namespace,
            },
            "involvedObject": {
                "apiVersion": obj.get("apiVersion"),
                "kind": obj.get("kind"),
                "name": metadata.get("name"),
                "namespace": metadata.get("namespace"),
                "uid": metadata.get("uid"),
                "resourceVersion": metadata.get("resourceVersion"),
            },
            "type": event_type,
            "reason": reason,
            "message": message,
            "source": {"component": self.component},
            "reportingComponent": self.component,
            "firstTimestamp": now,
            "lastTimestamp": now,
            "count": 1,
        }
        try:
            self.client.create(event)
        except Exception as err:  # pylint: disable=broad-except
            log.warning(
                "Failed to record %s event %s for %s/%s: %s",
                event_type,
                reason,
                namespace,
                metadata.get("name"),
                err,
            )


class DryRunEventRecorder(EventRecorderBase):
    """Keeps recorded events in memory"""

    def __init__(self):
        self.events: List[RecordedEvent] = []

    def event(self, obj: dict, event_type: str, reason: str, message: str):
        metadata = obj.get("metadata", {})
        key = "/".join(
            part for part in [metadata.get("namespace"), metadata.get("name")] if part
        )
        log.debug2("DRY RUN %s event %s on %s: %s", event_type, reason, key, message)
        self.events.append(RecordedEvent(key, event_type, reason, message))

    def reasons(self) -> List[str]:
        return [event.reason for event in self.events]

    def warnings(self) -> List[RecordedEvent]:
        return [
            event
            for event in self.events
            if event.event_type == constants.EVENT_TYPE_WARNING
        ]
