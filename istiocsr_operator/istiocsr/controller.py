"""
The IstioCSRController runs the reconcile state machine for a single IstioCSR:

    fetch -> not found (done)
          -> being deleted -> cleanup -> remove finalizer (done)
          -> add finalizer -> converge -> write status (done)

The status write after converging happens on every exit path, so the
conditions on the resource always describe the latest attempt.
"""

# Standard
from typing import Optional
import copy

# First Party
import alog

# Local
from .. import config, constants, status
from ..client import ClientBase, get_client
from ..events import ClientEventRecorder, EventRecorderBase
from ..exceptions import (
    AggregateError,
    ClusterError,
    ErrorReason,
    classify,
    error_message,
    from_error,
    is_not_found,
)
from ..finalizers import add_finalizer, remove_finalizer
from ..reconcile import ReconcileRequest, ReconciliationResult
from ..resource import IstioCSRResource
from .converger import ChildResourceConverger
from .watches import build_request_mapper

log = alog.use_channel("CTRLR")


class IstioCSRController:
    """Reconciles IstioCSR resources into a running istio-csr deployment"""

    def __init__(
        self,
        client: Optional[ClientBase] = None,
        recorder: Optional[EventRecorderBase] = None,
        converger: Optional[ChildResourceConverger] = None,
    ):
        """
        Args:
            client:  Optional[ClientBase]
                The cluster client. Defaults to the client selected by config.
            recorder:  Optional[EventRecorderBase]
                Where events are recorded. Defaults to writing Events through
                the client.
            converger:  Optional[ChildResourceConverger]
                The converger for child resources
        """
        self.client = client or get_client()
        self.recorder = recorder or ClientEventRecorder(self.client)
        self.converger = converger or ChildResourceConverger(
            self.client, self.recorder
        )
        self.name = config.controller_name
        self.request_mapper = build_request_mapper()

    ## Public ##################################################################

    def setup_with_manager(self, manager):
        """Register this controller and its watches with a manager"""
        log.debug("Registering %s with %s", self.name, manager)
        manager.add_controller(self)

    @alog.logged_function(log.debug2)
    @alog.timed_function(log.debug2)
    def reconcile(self, request: ReconcileRequest) -> ReconciliationResult:
        """Run a single reconcile for the IstioCSR named by the request

        Args:
            request:  ReconcileRequest
                The namespaced name of the IstioCSR

        Returns:
            result:  ReconciliationResult
                The requeue decision and the error surfaced to the caller, if
                any. A result with an exception and no requeue leaves the retry
                to the caller's default backoff.
        """
        log.debug("Reconciling %s", request)

        try:
            manifest = self.client.get(
                kind=constants.ISTIOCSR_KIND,
                name=request.name,
                namespace=request.namespace,
                api_version=constants.ISTIOCSR_API_VERSION,
            )
        except Exception as err:  # pylint: disable=broad-except
            if is_not_found(err):
                log.debug(
                    "%s object %s not found, skipping reconciliation",
                    constants.ISTIOCSR_RESOURCE_NAME,
                    request,
                )
                return ReconciliationResult(requeue=False)
            return ReconciliationResult(
                requeue=False,
                exception=ClusterError(
                    f'failed to fetch {constants.ISTIOCSR_RESOURCE_NAME} "{request}" '
                    f"during reconciliation: {error_message(err)}"
                ),
            )

        resource = IstioCSRResource(manifest)
        if resource.is_being_deleted:
            return self._reconcile_deletion(resource)

        try:
            add_finalizer(self.client, resource, constants.FINALIZER_NAME)
        except ClusterError as err:
            log.warning("Unable to add finalizer to %s: %s", resource, err)
            return ReconciliationResult(requeue=False, exception=err)

        return self._process_reconcile_request(resource)

    def safe_reconcile(self, request: ReconcileRequest) -> ReconciliationResult:
        """Reconcile without letting any exception escape. Used by managers
        that must keep their worker alive across failures.
        """
        try:
            return self.reconcile(request)
        except Exception as err:  # pylint: disable=broad-except
            log.error("Unexpected failure reconciling %s", request, exc_info=True)
            return ReconciliationResult(requeue=True, exception=err)

    ## Implementation ##########################################################

    def _reconcile_deletion(self, resource: IstioCSRResource) -> ReconciliationResult:
        log.debug("%s is marked for deletion", resource)
        try:
            requeue = self.converger.cleanup(resource)
        except Exception as err:  # pylint: disable=broad-except
            return ReconciliationResult(
                requeue=False,
                exception=ClusterError(
                    f"clean up failed for {resource.key} "
                    f"{constants.ISTIOCSR_RESOURCE_NAME} instance deletion: "
                    f"{error_message(err)}"
                ),
            )
        if requeue:
            log.debug2("Cleanup of %s not finished, requeuing", resource)
            return ReconciliationResult(requeue=True)

        try:
            remove_finalizer(self.client, resource, constants.FINALIZER_NAME)
        except ClusterError as err:
            return ReconciliationResult(requeue=False, exception=err)

        log.debug("Removed finalizer, cleanup of %s complete", resource)
        return ReconciliationResult(requeue=False)

    def _process_reconcile_request(
        self, resource: IstioCSRResource
    ) -> ReconciliationResult:
        previous_status = copy.deepcopy(resource.status)
        result = None
        status_error = None
        try:
            result = self._converge(resource)
        finally:
            try:
                status.update_resource_status(self.client, resource, previous_status)
            except Exception as err:  # pylint: disable=broad-except
                log.warning("Failed to update status of %s: %s", resource, err)
                status_error = ClusterError(
                    f'failed to update "{resource.key}" status: {error_message(err)}'
                )
                # Nothing returns status_error while another error propagates
                if result is None:
                    log.error("%s", status_error)

        if status_error is not None:
            return ReconciliationResult(
                requeue=result.requeue,
                requeue_params=result.requeue_params,
                exception=AggregateError([result.exception, status_error]),
            )
        return result

    def _converge(self, resource: IstioCSRResource) -> ReconciliationResult:
        try:
            self.converger.apply(resource)
        except Exception as err:  # pylint: disable=broad-except
            log.error("Failed to reconcile IstioCSR deployment %s: %s", resource, err)
            if classify(err) is ErrorReason.IRRECOVERABLE:
                status.set_degraded(
                    resource.status,
                    "reconciliation failed with irrecoverable error not retrying: "
                    f"{err}",
                )
                return ReconciliationResult(requeue=False)

            status.set_in_progress(
                resource.status, f"reconciliation failed, retrying: {err}"
            )
            return ReconciliationResult(
                requeue=True,
                exception=from_error(
                    err,
                    'failed to reconcile "%s" IstioCSR deployment',
                    resource.key,
                ),
            )

        status.set_ready(resource.status, "reconciliation successful")
        return ReconciliationResult(requeue=False)
