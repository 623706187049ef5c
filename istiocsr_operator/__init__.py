"""
Top-level exports for the istiocsr operator
"""

# Local
from . import config, status
from .client import ClientBase, DryRunClient, OpenshiftClient
from .exceptions import (
    AggregateError,
    ClusterError,
    ConfigError,
    ErrorReason,
    IstioCSROperatorError,
    ReconcileError,
)
from .features import (
    FeatureActivationScheduler,
    FeatureControllerBinding,
    FeatureGateStore,
)
from .istiocsr import IstioCSRController
from .manager import DryRunManager, ManagerBase
from .reconcile import ReconcileRequest, ReconciliationResult, RequeueParams
