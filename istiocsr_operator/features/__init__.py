"""
Runtime feature gates and the activation of the controllers they guard
"""

# Local
from .certmanager_controller import CertManagerController
from .scheduler import (
    FeatureActivationScheduler,
    FeatureControllerBinding,
    FeaturePollerThread,
)
from .store import FeatureGateStore
from .upgrade import UpgradeableCondition, ensure_no_upgrade
