"""
Filters are used to limit the amount of events being reconciled. They are
modeled on the kubernetes controller runtime's "predicates":
https://pkg.go.dev/sigs.k8s.io/controller-runtime/pkg/predicate
"""

# Standard
from abc import ABC, abstractmethod
from collections import deque
from typing import Iterable, List, Optional, Type

# First Party
import alog

# Local
from .. import constants
from ..managed_object import ManagedObject
from .kube_event import KubeEventType

log = alog.use_channel("FILTR")

# Number of resource versions remembered per object
RESOURCE_VERSION_KEEP_COUNT = 20


class Filter(ABC):
    """Generic Filter Interface for subclassing. Every subclass should implement
    a `test` function which returns true when a resource should be reconciled.
    Subclasses can optionally implement an `update` method if the filter
    requires storing some stateful information like the generation.

    NOTE: A unique Filter instance is created for each resource
    """

    def __init__(self, resource: ManagedObject):  # noqa: B027
        """Even though a resource is provided the filter should not set state
        until update is called
        """

    @abstractmethod
    def test(self, resource: ManagedObject, event: KubeEventType) -> Optional[bool]:
        """Test whether the resource&event passes the filter. A filter can
        return None to abstain from an event.

        Args:
            resource: ManagedObject
                The current resource being checked
            event: KubeEventType
                The event type that triggered this filter

        Returns:
            result: Optional[bool]
                The result of the test
        """

    def update(self, resource: ManagedObject):  # noqa: B027
        """Update the instance's observed state of the resource"""

    def update_and_test(
        self, resource: ManagedObject, event: KubeEventType
    ) -> Optional[bool]:
        """First test a resource/event against the filter then update the
        observed state
        """
        result = self.test(resource, event)
        if result is not None and not result:
            log.debug3(
                "Failed filter: %s with return val %s",
                self,
                result,
                extra={"resource": resource.definition},
            )
        self.update(resource)
        return result


## Change filters ##############################################################


class GenerationFilter(Filter):
    """Reconcile updates only when the generation moved, which ignores status
    and metadata-only writes
    """

    def __init__(self, resource: ManagedObject):
        super().__init__(resource)
        self.generation = None

    def test(  # pylint: disable=inconsistent-return-statements
        self,
        resource: ManagedObject,
        event: KubeEventType,
    ) -> Optional[bool]:
        # Nothing observed yet
        if not self.generation:
            return

        if event in [KubeEventType.ADDED, KubeEventType.DELETED]:
            return

        return self.generation != resource.generation

    def update(self, resource: ManagedObject):
        self.generation = resource.generation


class ResourceVersionFilter(Filter):
    """Reconcile any change to the object, skipping resource versions that
    were already seen. Duplicates happen when a watch connection restarts.
    """

    def __init__(self, resource: ManagedObject):
        self.resource_versions = deque([], maxlen=RESOURCE_VERSION_KEEP_COUNT)
        super().__init__(resource)

    def test(  # pylint: disable=inconsistent-return-statements
        self,
        resource: ManagedObject,
        event: KubeEventType,
    ) -> Optional[bool]:
        if event == KubeEventType.DELETED:
            return

        return resource.resource_version not in self.resource_versions

    def update(self, resource: ManagedObject):
        self.resource_versions.append(resource.resource_version)


## Label filters ###############################################################


class LabelFilter(Filter):
    """Filter for resources that match a set of labels. Subclasses set the
    labels class attribute.
    """

    labels: dict = {}

    def test(self, resource: ManagedObject, event: KubeEventType) -> Optional[bool]:
        resource_labels = resource.labels
        return all(
            resource_labels.get(label) == value for label, value in self.labels.items()
        )


class OwnedResourceFilter(LabelFilter):
    """Objects created by the controller"""

    labels = {constants.OWNED_LABEL_KEY: constants.OWNED_LABEL_VALUE}


class WatchLabelFilter(Filter):
    """Objects the controller depends on but does not own. They carry the
    dependency-watch label with any value.
    """

    def test(self, resource: ManagedObject, event: KubeEventType) -> Optional[bool]:
        return bool(resource.labels.get(constants.WATCH_LABEL_KEY))


class EnableFilter(Filter):
    """Filter to run all reconciles"""

    def test(self, resource: ManagedObject, event: KubeEventType) -> Optional[bool]:
        return True


## Groups ######################################################################


class FilterChain(Filter):
    """A group of filters that are "anded" together. Filters that abstain are
    ignored, so an event passes unless some filter rejects it.
    """

    def __init__(self, filters: Iterable[Type[Filter]], resource: ManagedObject):
        super().__init__(resource)
        self.filters: List[Filter] = [
            filter_type(resource) for filter_type in filters
        ]

    def test(self, resource: ManagedObject, event: KubeEventType) -> Optional[bool]:
        results = [filt.test(resource, event) for filt in self.filters]
        return all(result is not False for result in results)

    def update(self, resource: ManagedObject):
        for filt in self.filters:
            filt.update(resource)

    def update_and_test(
        self, resource: ManagedObject, event: KubeEventType
    ) -> Optional[bool]:
        # Every filter must see the event, so no short circuit
        results = [filt.update_and_test(resource, event) for filt in self.filters]
        return all(result is not False for result in results)
