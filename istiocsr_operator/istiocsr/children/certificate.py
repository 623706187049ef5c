"""
The cert-manager Certificate serving istiod, issued in the istio namespace
"""

# Local
from ... import constants
from ...utils import nested_get
from .common import (
    ChildResourceHandler,
    ConvergeContext,
    create_or_restore,
    fields_drifted,
    new_object,
)

DEFAULT_TRUST_DOMAIN = "cluster.local"
DEFAULT_CERTIFICATE_DURATION = "1h"
DEFAULT_CERTIFICATE_RENEW_BEFORE = "30m"
DEFAULT_PRIVATE_KEY_SIZE = 2048
DEFAULT_SIGNATURE_ALGORITHM = "RSA"


class CertificateHandler(ChildResourceHandler):
    description = "certificate"

    def apply(self, ctx: ConvergeContext):
        create_or_restore(
            ctx,
            self.desired(ctx),
            self.description,
            drifted=lambda d, c: fields_drifted(d, c, "spec"),
        )

    @staticmethod
    def desired(ctx: ConvergeContext) -> dict:
        spec = ctx.resource.spec
        tls_config = nested_get(spec, "istioCSRConfig.istiodTLSConfig") or {}
        istio_namespace = ctx.istio_namespace
        revisions = nested_get(spec, "istioCSRConfig.istio.revisions") or ["default"]

        dns_names = []
        for revision in revisions:
            service = "istiod" if revision == "default" else f"istiod-{revision}"
            dns_names.append(f"{service}.{istio_namespace}.svc")

        trust_domain = tls_config.get("trustDomain") or DEFAULT_TRUST_DOMAIN
        issuer_ref = ctx.resource.issuer_ref
        return new_object(
            constants.CERT_MANAGER_API_VERSION,
            constants.CERTIFICATE_KIND,
            constants.ISTIOD_CERTIFICATE_NAME,
            ctx.mapped_labels(),
            namespace=istio_namespace,
            spec={
                "commonName": dns_names[0],
                "dnsNames": dns_names,
                "uris": [
                    f"spiffe://{trust_domain}/ns/{istio_namespace}"
                    "/sa/istiod-service-account"
                ],
                "secretName": constants.ISTIOD_CERTIFICATE_SECRET_NAME,
                "duration": tls_config.get("certificateDuration")
                or DEFAULT_CERTIFICATE_DURATION,
                "renewBefore": tls_config.get("certificateRenewBefore")
                or DEFAULT_CERTIFICATE_RENEW_BEFORE,
                "privateKey": {
                    "rotationPolicy": "Always",
                    "algorithm": tls_config.get("signatureAlgorithm")
                    or DEFAULT_SIGNATURE_ALGORITHM,
                    "size": tls_config.get("privateKeySize")
                    or DEFAULT_PRIVATE_KEY_SIZE,
                },
                "revisionHistoryLimit": 1,
                "issuerRef": {
                    "name": issuer_ref.get("name"),
                    "kind": issuer_ref.get("kind"),
                    "group": issuer_ref.get("group"),
                },
            },
        )
