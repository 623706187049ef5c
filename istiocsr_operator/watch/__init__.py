"""
Filtering and mapping of watch events into reconcile requests
"""

# Local
from .filters import (
    EnableFilter,
    Filter,
    FilterChain,
    GenerationFilter,
    LabelFilter,
    OwnedResourceFilter,
    ResourceVersionFilter,
    WatchLabelFilter,
)
from .kube_event import KubeEventType, KubeWatchEvent
from .mapper import RequestMapper, WatchSpec
