"""
The CertManagerController watches the cluster wide CertManager object and
enables the tech preview features it lists
"""

# Standard
from typing import List, Optional
import datetime

# First Party
import alog

# Local
from .. import config, constants
from ..client import ClientBase, get_client
from ..exceptions import ClusterError, ConfigError, error_message, is_not_found
from ..managed_object import ManagedObject
from ..reconcile import ReconcileRequest, ReconciliationResult, RequeueParams
from ..utils import nested_get
from ..watch import EnableFilter, RequestMapper, WatchSpec
from .store import FeatureGateStore
from .upgrade import UpgradeableCondition, ensure_no_upgrade

log = alog.use_channel("CMCTL")

CONTROLLER_NAME = "cert-manager-feature-controller"


def _map_certmanager(resource: ManagedObject) -> List[ReconcileRequest]:
    return [ReconcileRequest(name=resource.name)]


class CertManagerController:
    """Observes feature opt-in requests on the CertManager object"""

    def __init__(
        self,
        store: FeatureGateStore,
        client: Optional[ClientBase] = None,
        upgradeable: Optional[UpgradeableCondition] = None,
    ):
        self.store = store
        self.client = client or get_client()
        # Looked up on every reconcile when not given
        self.upgradeable = upgradeable
        self.name = CONTROLLER_NAME
        self.request_mapper = RequestMapper(
            [
                WatchSpec(
                    api_version=constants.CERT_MANAGER_OPERATOR_API_VERSION,
                    kind=constants.CERT_MANAGER_OPERATOR_KIND,
                    filters=(EnableFilter,),
                    map_func=_map_certmanager,
                )
            ]
        )

    def setup_with_manager(self, manager):
        manager.add_controller(self)

    @alog.logged_function(log.debug2)
    def reconcile(self, request: ReconcileRequest) -> ReconciliationResult:
        """Enable the features listed in spec.features.techPreview and block
        operator upgrades while any are enabled. Objects other than the
        singleton are ignored.
        """
        log.debug2("Reconciling %s", request)
        if request.name != constants.CERT_MANAGER_OBJECT_NAME:
            log.debug2("Skipping reconciliation for %s", request)
            return ReconciliationResult(requeue=False)

        try:
            cert_manager = self.client.get(
                kind=constants.CERT_MANAGER_OPERATOR_KIND,
                name=request.name,
                api_version=constants.CERT_MANAGER_OPERATOR_API_VERSION,
            )
        except Exception as err:  # pylint: disable=broad-except
            if is_not_found(err):
                log.debug2("%s not found, skipping reconciliation", request)
                return ReconciliationResult(requeue=False)
            return ReconciliationResult(
                requeue=False,
                exception=ClusterError(
                    f'failed to fetch certmanager "{request}" during '
                    f"reconciliation: {error_message(err)}"
                ),
            )

        features = nested_get(cert_manager, "spec.features.techPreview") or []
        if not features:
            return ReconciliationResult(requeue=False)
        self.store.enable_many(features)

        try:
            upgradeable = self.upgradeable or UpgradeableCondition.in_cluster(
                self.client
            )
        except ConfigError as err:
            return ReconciliationResult(requeue=False, exception=err)

        try:
            ensure_no_upgrade(upgradeable)
        except Exception as err:  # pylint: disable=broad-except
            log.warning("Failed to block upgrades: %s", err)
            return ReconciliationResult(
                requeue=True,
                requeue_params=RequeueParams(
                    requeue_after=datetime.timedelta(
                        seconds=float(config.upgrade_block_requeue_seconds)
                    )
                ),
                exception=ClusterError(
                    f'failed to reconcile "{request}": {error_message(err)}'
                ),
            )
        return ReconciliationResult(requeue=False)

    def safe_reconcile(self, request: ReconcileRequest) -> ReconciliationResult:
        try:
            return self.reconcile(request)
        except Exception as err:  # pylint: disable=broad-except
            log.error("Unexpected failure reconciling %s", request, exc_info=True)
            return ReconciliationResult(requeue=True, exception=err)
