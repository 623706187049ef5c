"""
The Service exposing the istio-csr gRPC endpoint to istiod
"""

# Local
from ... import constants, status
from ...utils import nested_get
from .common import (
    ChildResourceHandler,
    ConvergeContext,
    create_or_restore,
    fields_drifted,
    new_object,
)


class ServiceHandler(ChildResourceHandler):
    description = "service"

    def apply(self, ctx: ConvergeContext):
        desired = self.desired(ctx)
        create_or_restore(
            ctx,
            desired,
            self.description,
            drifted=lambda d, c: fields_drifted(d, c, "spec"),
        )
        port = desired["spec"]["ports"][0]["port"]
        ctx.resource.status[
            status.GRPC_ENDPOINT_FIELD
        ] = f"{constants.ISTIOCSR_RESOURCE_BASE_NAME}.{ctx.namespace}.svc:{port}"

    @staticmethod
    def desired(ctx: ConvergeContext) -> dict:
        server_port = (
            nested_get(ctx.resource.spec, "istioCSRConfig.server.port")
            or constants.DEFAULT_SERVER_PORT
        )
        return new_object(
            "v1",
            "Service",
            constants.ISTIOCSR_RESOURCE_BASE_NAME,
            ctx.labels,
            namespace=ctx.namespace,
            spec={
                "type": "ClusterIP",
                "ports": [
                    {
                        "name": "web",
                        "port": constants.DEFAULT_GRPC_PORT,
                        "protocol": "TCP",
                        "targetPort": server_port,
                    }
                ],
                "selector": {
                    constants.OWNED_LABEL_KEY: constants.OWNED_LABEL_VALUE,
                },
            },
        )
