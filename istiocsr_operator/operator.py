"""
Wiring of the operator's controllers. The CertManager controller runs from
the start and fills the feature gate store. The IstioCSR controller is only
attached to the manager once the IstioCSR feature has been enabled.
"""

# Standard
from typing import List, NamedTuple, Optional

# First Party
import alog

# Local
from . import constants
from .client import ClientBase, get_client
from .events import EventRecorderBase
from .features import (
    CertManagerController,
    FeatureActivationScheduler,
    FeatureControllerBinding,
    FeatureGateStore,
)
from .istiocsr import IstioCSRController
from .manager import ManagerBase

log = alog.use_channel("OPRTR")


class FeatureControllers(NamedTuple):
    """Everything built for the feature gated controllers"""

    store: FeatureGateStore
    certmanager_controller: CertManagerController
    bindings: List[FeatureControllerBinding]


def build_feature_controllers(
    client: Optional[ClientBase] = None,
    recorder: Optional[EventRecorderBase] = None,
    store: Optional[FeatureGateStore] = None,
) -> FeatureControllers:
    """Construct the feature store, the controller that fills it and the
    bindings of the controllers it guards. The store is shared by all of them.
    """
    client = client or get_client()
    store = store or FeatureGateStore()
    bindings = [
        FeatureControllerBinding(
            feature=constants.FEATURE_ISTIOCSR,
            controllers=(IstioCSRController(client=client, recorder=recorder),),
        )
    ]
    return FeatureControllers(
        store=store,
        certmanager_controller=CertManagerController(store, client=client),
        bindings=bindings,
    )


def start_feature_gated_controllers(
    manager: ManagerBase,
    feature_controllers: FeatureControllers,
    poll_interval: Optional[float] = None,
) -> FeatureActivationScheduler:
    """Register the CertManager controller and start polling for the gated
    ones

    Returns:
        scheduler:  FeatureActivationScheduler
            The running scheduler. Call stop() on shutdown.
    """
    feature_controllers.certmanager_controller.setup_with_manager(manager)
    scheduler = FeatureActivationScheduler(
        feature_controllers.store,
        feature_controllers.bindings,
        poll_interval=poll_interval,
    )
    log.info(
        "Starting activation of %d feature binding(s)",
        len(feature_controllers.bindings),
    )
    scheduler.start(manager)
    return scheduler
