"""
Validation of the cert-manager issuer referenced by an IstioCSR and the copy
of its CA bundle into a ConfigMap the istio-csr deployment mounts
"""

# Standard
from typing import Optional, Tuple
import base64
import binascii

# First Party
import alog

# Local
from ... import config, constants
from ...exceptions import (
    ConfigError,
    from_client_error,
    from_error,
    new_irrecoverable_error,
)
from ...utils import make_watch_label_value, nested_get
from .common import (
    ChildResourceHandler,
    ConvergeContext,
    create_or_restore,
    fields_drifted,
    new_object,
)

log = alog.use_channel("ISSUR")

# Keys of the issuer CA secret holding the bundle, in order of preference
CA_SECRET_KEYS = ["ca.crt", "tls.crt"]


def invalid_issuer_ref() -> ConfigError:
    return ConfigError("invalid issuerRef config")


class IssuerHandler(ChildResourceHandler):
    """Validates the issuer and, for CA issuers, keeps the CA bundle copy in
    sync with the issuer's secret
    """

    description = "issuer"

    def apply(self, ctx: ConvergeContext):
        try:
            issuer, issuer_namespace = validate_issuer(ctx)
        except Exception as err:  # pylint: disable=broad-except
            raise from_error(
                err, "failed to verify issuer in %s", ctx.resource.key
            ) from err

        secret_name = nested_get(issuer, "spec.ca.secretName")
        if not secret_name:
            log.debug2("Issuer for %s is not a CA issuer", ctx.resource.key)
            ctx.ca_configmap_name = None
            return

        try:
            ensure_ca_configmap(ctx, secret_name, issuer_namespace)
        except Exception as err:  # pylint: disable=broad-except
            raise from_error(err, "failed to create CA ConfigMap") from err
        ctx.ca_configmap_name = constants.ISSUER_CA_CONFIGMAP_NAME


def validate_issuer(ctx: ConvergeContext) -> Tuple[dict, str]:
    """Check the issuer reference and fetch the issuer

    Returns:
        issuer:  dict
            The issuer object
        secret_namespace:  str
            The namespace that secrets referenced by the issuer live in
    """
    issuer_ref = ctx.resource.issuer_ref
    kind = issuer_ref.get("kind") or ""
    group = issuer_ref.get("group") or constants.CERT_MANAGER_GROUP

    if kind.lower() == constants.CLUSTER_ISSUER_KIND.lower():
        kind = constants.CLUSTER_ISSUER_KIND
        namespace = None
        secret_namespace = config.cert_manager_namespace
    elif kind.lower() == constants.ISSUER_KIND.lower():
        kind = constants.ISSUER_KIND
        namespace = ctx.istio_namespace
        secret_namespace = namespace
    else:
        raise new_irrecoverable_error(
            invalid_issuer_ref(),
            "spec.istioCSRConfig.certManager.issuerRef.kind can be anyof "
            "`clusterissuer` or `issuer`, configured: %s",
            kind,
        )

    if group != constants.CERT_MANAGER_GROUP:
        raise new_irrecoverable_error(
            invalid_issuer_ref(),
            "spec.istioCSRConfig.certManager.issuerRef.group can be only "
            "`cert-manager.io`, configured: %s",
            group,
        )

    name = issuer_ref.get("name")
    key = f"{namespace}/{name}" if namespace else name
    try:
        issuer = ctx.client.get(
            kind=kind,
            name=name,
            namespace=namespace,
            api_version=constants.CERT_MANAGER_API_VERSION,
        )
    except Exception as err:  # pylint: disable=broad-except
        raise from_error(
            from_client_error(err, 'failed to fetch "%s" issuer', key),
            "failed to fetch issuer",
        ) from err

    if nested_get(issuer, "spec.acme") is not None:
        raise new_irrecoverable_error(
            invalid_issuer_ref(),
            "spec.istioCSRConfig.certManager.issuerRef uses unsupported ACME issuer",
        )

    return issuer, secret_namespace


def ensure_ca_configmap(ctx: ConvergeContext, secret_name: str, namespace: str):
    """Copy the CA bundle of the issuer secret into the IstioCSR namespace and
    label the secret so that rotations trigger a reconcile
    """
    try:
        secret = ctx.client.get(
            kind="Secret", name=secret_name, namespace=namespace, api_version="v1"
        )
    except Exception as err:  # pylint: disable=broad-except
        raise from_client_error(err, "failed to fetch secret in issuer") from err

    watch_value = make_watch_label_value(ctx.namespace, ctx.resource.name)
    labels = secret.get("metadata", {}).get("labels") or {}
    if labels.get(constants.WATCH_LABEL_KEY) != watch_value:
        log.debug2("Adding watch label to secret %s/%s", namespace, secret_name)

        def add_watch_label(content: dict):
            content.setdefault("metadata", {}).setdefault("labels", {})[
                constants.WATCH_LABEL_KEY
            ] = watch_value

        try:
            ctx.client.update_with_retry(secret, mutate=add_watch_label)
        except Exception as err:  # pylint: disable=broad-except
            raise from_client_error(
                err,
                "failed to update %s/%s secret with custom watch label",
                namespace,
                secret_name,
            ) from err

    ca_bundle = _ca_bundle(secret)
    if ca_bundle is None:
        raise new_irrecoverable_error(
            ConfigError(f"none of {CA_SECRET_KEYS} found"),
            "issuer secret %s/%s does not hold a CA bundle",
            namespace,
            secret_name,
        )

    create_or_restore(
        ctx,
        new_object(
            "v1",
            "ConfigMap",
            constants.ISSUER_CA_CONFIGMAP_NAME,
            ctx.labels,
            namespace=ctx.namespace,
            data={constants.ISSUER_CA_CONFIGMAP_KEY: ca_bundle},
        ),
        "configmap",
        drifted=lambda d, c: fields_drifted(d, c, "data"),
    )


def _ca_bundle(secret: dict) -> Optional[str]:
    data = secret.get("data") or {}
    for key in CA_SECRET_KEYS:
        if data.get(key):
            try:
                return base64.b64decode(data[key]).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError):
                log.warning("Secret key %s does not hold a valid CA bundle", key)
    return None
