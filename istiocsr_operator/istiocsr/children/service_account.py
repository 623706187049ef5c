"""
The ServiceAccount the istio-csr deployment runs as
"""

# Local
from ... import constants, status
from .common import ChildResourceHandler, ConvergeContext, create_or_restore, new_object


class ServiceAccountHandler(ChildResourceHandler):
    description = "serviceaccount"

    def apply(self, ctx: ConvergeContext):
        create_or_restore(ctx, self.desired(ctx), self.description)
        ctx.resource.status[
            status.SERVICE_ACCOUNT_FIELD
        ] = constants.ISTIOCSR_RESOURCE_BASE_NAME

    @staticmethod
    def desired(ctx: ConvergeContext) -> dict:
        return new_object(
            "v1",
            "ServiceAccount",
            constants.ISTIOCSR_RESOURCE_BASE_NAME,
            ctx.labels,
            namespace=ctx.namespace,
        )
