"""
Data models for reconcile requests and their outcomes
"""

# Standard
from dataclasses import dataclass, field
from typing import Optional
import datetime

# Local
from . import config


@dataclass(frozen=True)
class ReconcileRequest:
    """The key of a single object to reconcile"""

    name: str
    namespace: Optional[str] = None

    def __str__(self):
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name


@dataclass
class RequeueParams:
    """RequeueParams holds parameters for requeue request"""

    requeue_after: datetime.timedelta = field(
        default_factory=lambda: datetime.timedelta(
            seconds=float(config.requeue_after_seconds)
        )
    )


@dataclass
class ReconciliationResult:
    """ReconciliationResult is the result of a single reconcile"""

    # Whether the request should be processed again after requeue_params
    requeue: bool
    requeue_params: RequeueParams = field(default_factory=RequeueParams)
    # The error surfaced to the caller, None for benign outcomes
    exception: Optional[Exception] = None
