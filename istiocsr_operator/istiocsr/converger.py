"""
The ChildResourceConverger drives every child resource of an IstioCSR to its
desired state, in dependency order
"""

# Standard
from typing import Iterable, List, Optional

# First Party
import alog

# Local
from .. import constants
from ..client import ClientBase
from ..events import EventRecorderBase
from ..exceptions import ConfigError, from_error, new_irrecoverable_error
from ..resource import IstioCSRResource
from ..utils import nested_get
from .children import CHILD_HANDLERS, ChildResourceHandler, ConvergeContext

log = alog.use_channel("CONVG")

# Fields that must be set for the children to be rendered
REQUIRED_SPEC_FIELDS = [
    "istioCSRConfig.certManager.issuerRef.name",
    "istioCSRConfig.istio.namespace",
]


class ChildResourceConverger:
    """Creates or restores the child resources of an IstioCSR"""

    def __init__(
        self,
        client: ClientBase,
        recorder: EventRecorderBase,
        handlers: Optional[Iterable[ChildResourceHandler]] = None,
    ):
        self.client = client
        self.recorder = recorder
        self.handlers: List[ChildResourceHandler] = list(
            CHILD_HANDLERS if handlers is None else handlers
        )

    @alog.timed_function(log.debug)
    def apply(self, resource: IstioCSRResource):
        """Converge all children. On success the operand details are recorded
        in the in-memory status of the resource and the processed annotation
        is written once.

        Raises:
            ReconcileError: for any failure, classified as irrecoverable or
                retry-required
        """
        validate_spec(resource)

        create_recon = resource.is_first_reconcile()
        if create_recon:
            log.debug("Starting reconciliation of newly created %s", resource)

        ctx = ConvergeContext(
            client=self.client,
            recorder=self.recorder,
            resource=resource,
            labels=resource_labels(resource),
            create_recon=create_recon,
        )
        for handler in self.handlers:
            log.debug2("Applying %s for %s", handler, resource)
            try:
                handler.apply(ctx)
            except Exception as err:
                log.warning(
                    "Failed to reconcile %s resources: %s",
                    handler.description,
                    err,
                    extra={"resource": resource.manifest},
                )
                raise

        if resource.add_processed_annotation():
            self._write_processed_annotation(resource)

        log.debug("Finished reconciliation of %s", resource)

    def cleanup(self, resource: IstioCSRResource) -> bool:
        """Handle deletion of the resource. Child objects are left in place for
        the administrator to remove.

        Returns:
            requeue:  bool
                Whether cleanup needs another pass before the finalizer can be
                removed
        """
        log.info("%s is marked for deletion", resource)
        self.recorder.eventf(
            resource.manifest,
            constants.EVENT_TYPE_WARNING,
            constants.EVENT_REASON_REMOVE_DEPLOYMENT,
            "%s istiocsr marked for deletion, remove all resources created for "
            "istiocsr deployment manually",
            resource.key,
        )
        return False

    def _write_processed_annotation(self, resource: IstioCSRResource):
        def add_annotation(content: dict):
            content.setdefault("metadata", {}).setdefault("annotations", {})[
                constants.PROCESSED_ANNOTATION_NAME
            ] = constants.PROCESSED_ANNOTATION_VALUE

        manifest = resource.to_dict()
        manifest.pop("status", None)
        try:
            updated = self.client.update_with_retry(manifest, mutate=add_annotation)
        except Exception as err:  # pylint: disable=broad-except
            raise from_error(
                err, "failed to update processed annotation to %s", resource.key
            ) from err
        resource.metadata.update(updated.get("metadata") or {})


def resource_labels(resource: IstioCSRResource) -> dict:
    """User labels merged with the controller labels. The controller labels
    win so that ownership can not be overridden.
    """
    labels = resource.custom_labels
    labels.update(constants.DEFAULT_RESOURCE_LABELS)
    return labels


def validate_spec(resource: IstioCSRResource):
    """Reject resources that can not be rendered into child objects"""
    missing = [
        key for key in REQUIRED_SPEC_FIELDS if not nested_get(resource.spec, key)
    ]
    if missing:
        raise new_irrecoverable_error(
            ConfigError(f"spec fields {missing} must be set"),
            "%s configuration validation failed",
            resource.key,
        )
