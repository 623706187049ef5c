"""
The istio-csr Deployment
"""

# Standard
from typing import List
import copy
import os

# First Party
import alog

# Local
from ... import constants, status
from ...exceptions import ConfigError, new_retry_required_error
from ...utils import nested_get
from .common import (
    ChildResourceHandler,
    ConvergeContext,
    create_or_restore,
    is_subset,
    labels_drifted,
    merge_restore,
    new_object,
)

log = alog.use_channel("DPLY")

DEFAULT_LOG_LEVEL = 1
DEFAULT_LOG_FORMAT = "text"
DEFAULT_CLUSTER_ID = "Kubernetes"
METRICS_PORT = 9402
READINESS_PORT = 6060

# Pod spec fields only the controller sets
SCHEDULING_KEYS = ["affinity", "tolerations", "nodeSelector"]

# Pod spec fields replaced outright on restore
REPLACED_KEYS = SCHEDULING_KEYS + ["volumes"]


def resolve_image(ctx: ConvergeContext) -> str:
    """The image from the resource spec wins over the operator environment.
    Without either the deployment cannot be rendered.
    """
    image = ctx.resource.image_override or os.environ.get(
        constants.ISTIOCSR_IMAGE_ENV_VAR
    )
    if not image:
        raise new_retry_required_error(
            ConfigError(
                f"{constants.ISTIOCSR_IMAGE_ENV_VAR} environment variable with "
                "istiocsr image not set"
            ),
            "failed to update image %s",
            ctx.resource.key,
        )
    return image


class DeploymentHandler(ChildResourceHandler):
    description = "deployment"

    def apply(self, ctx: ConvergeContext):
        ctx.image = resolve_image(ctx)
        create_or_restore(
            ctx,
            self.desired(ctx),
            self.description,
            drifted=deployment_drifted,
            restore=restore_deployment,
        )
        ctx.resource.status[status.IMAGE_FIELD] = ctx.image

    @staticmethod
    def desired(ctx: ConvergeContext) -> dict:
        spec = ctx.resource.spec
        istiocsr_config = nested_get(spec, "istioCSRConfig") or {}

        container = {
            "name": constants.ISTIOCSR_CONTAINER_NAME,
            "image": ctx.image,
            "imagePullPolicy": "IfNotPresent",
            "args": _args(ctx),
            "ports": [
                {"containerPort": _server_port(ctx), "protocol": "TCP"},
                {"containerPort": METRICS_PORT, "protocol": "TCP"},
            ],
            "readinessProbe": {
                "httpGet": {"path": "/readyz", "port": READINESS_PORT},
                "initialDelaySeconds": 3,
                "periodSeconds": 7,
            },
            "securityContext": {
                "allowPrivilegeEscalation": False,
                "capabilities": {"drop": ["ALL"]},
                "readOnlyRootFilesystem": True,
                "runAsNonRoot": True,
            },
        }
        env = copy.deepcopy(list(istiocsr_config.get("overrideEnv") or []))
        if env:
            container["env"] = env
        if istiocsr_config.get("resources"):
            container["resources"] = copy.deepcopy(istiocsr_config["resources"])

        pod_spec = {
            "serviceAccountName": constants.ISTIOCSR_RESOURCE_BASE_NAME,
            "nodeSelector": {"kubernetes.io/os": "linux"},
            "containers": [container],
        }
        if istiocsr_config.get("nodeSelector"):
            pod_spec["nodeSelector"] = dict(istiocsr_config["nodeSelector"])
        if istiocsr_config.get("affinity"):
            pod_spec["affinity"] = copy.deepcopy(istiocsr_config["affinity"])
        if istiocsr_config.get("tolerations"):
            pod_spec["tolerations"] = copy.deepcopy(
                list(istiocsr_config["tolerations"])
            )
        if ctx.ca_configmap_name:
            pod_spec["volumes"] = [
                {
                    "name": constants.ISSUER_CA_VOLUME_NAME,
                    "configMap": {"name": ctx.ca_configmap_name},
                }
            ]
            container["volumeMounts"] = [
                {
                    "name": constants.ISSUER_CA_VOLUME_NAME,
                    "mountPath": constants.ISSUER_CA_MOUNT_PATH,
                    "readOnly": True,
                }
            ]

        selector = {constants.OWNED_LABEL_KEY: constants.OWNED_LABEL_VALUE}
        return new_object(
            "apps/v1",
            "Deployment",
            constants.ISTIOCSR_RESOURCE_BASE_NAME,
            ctx.labels,
            namespace=ctx.namespace,
            spec={
                "replicas": 1,
                "selector": {"matchLabels": selector},
                "template": {
                    "metadata": {"labels": dict(ctx.labels)},
                    "spec": pod_spec,
                },
            },
        )


def deployment_drifted(desired: dict, current: dict) -> bool:
    """The deployment has drifted when labels, the container image, args or
    env, the scheduling hints, or the volumes differ
    """
    if labels_drifted(desired, current):
        return True

    desired_pod = nested_get(desired, "spec.template.spec") or {}
    current_pod = nested_get(current, "spec.template.spec") or {}

    # Scheduling hints are only set by the controller, so anything extra in the
    # cluster is drift as well
    for key in SCHEDULING_KEYS:
        if (desired_pod.get(key) or None) != (current_pod.get(key) or None):
            log.debug3("Deployment %s differs", key)
            return True
    desired_volumes = desired_pod.get("volumes") or []
    if not is_subset(desired_volumes, current_pod.get("volumes") or []):
        return True

    desired_containers = desired_pod.get("containers") or []
    current_containers = current_pod.get("containers") or []
    if len(desired_containers) != len(current_containers):
        return True
    for d_container, c_container in zip(desired_containers, current_containers):
        if d_container.get("image") != c_container.get("image"):
            return True
        if (d_container.get("args") or []) != (c_container.get("args") or []):
            return True
        for key in ["env", "volumeMounts"]:
            if not is_subset(d_container.get(key) or [], c_container.get(key) or []):
                log.debug3("Deployment container %s differs", key)
                return True
    return False


def restore_deployment(desired: dict, current: dict) -> dict:
    """Merge desired over current, then replace the scheduling hints and the
    volumes outright so that entries the desired state no longer has are dropped
    """
    restored = merge_restore(desired, current)
    desired_pod = nested_get(desired, "spec.template.spec") or {}
    restored_pod = nested_get(restored, "spec.template.spec")
    for key in REPLACED_KEYS:
        if key in desired_pod:
            restored_pod[key] = copy.deepcopy(desired_pod[key])
        else:
            restored_pod.pop(key, None)
    return restored


## Implementation ##############################################################


def _server_port(ctx: ConvergeContext) -> int:
    return (
        nested_get(ctx.resource.spec, "istioCSRConfig.server.port")
        or constants.DEFAULT_SERVER_PORT
    )


def _args(ctx: ConvergeContext) -> List[str]:
    spec = ctx.resource.spec
    istiocsr_config = nested_get(spec, "istioCSRConfig") or {}
    issuer_ref = ctx.resource.issuer_ref
    istio_namespace = ctx.istio_namespace
    trust_domain = (
        nested_get(spec, "istioCSRConfig.istiodTLSConfig.trustDomain")
        or "cluster.local"
    )
    cluster_id = (
        nested_get(spec, "istioCSRConfig.server.clusterID") or DEFAULT_CLUSTER_ID
    )
    args = [
        f"--log-level={istiocsr_config.get('logLevel', DEFAULT_LOG_LEVEL)}",
        f"--log-format={istiocsr_config.get('logFormat') or DEFAULT_LOG_FORMAT}",
        f"--metrics-port={METRICS_PORT}",
        f"--readiness-probe-port={READINESS_PORT}",
        "--readiness-probe-path=/readyz",
        f"--certificate-namespace={istio_namespace}",
        "--issuer-enabled=true",
        f"--issuer-name={issuer_ref.get('name')}",
        f"--issuer-kind={issuer_ref.get('kind')}",
        f"--issuer-group={issuer_ref.get('group') or constants.CERT_MANAGER_GROUP}",
        "--preserve-certificate-requests=false",
        f"--cluster-id={cluster_id}",
        f"--trust-domain={trust_domain}",
        f"--serving-address=0.0.0.0:{_server_port(ctx)}",
        (
            "--serving-certificate-dns-names="
            f"{constants.ISTIOCSR_RESOURCE_BASE_NAME}.{ctx.namespace}.svc"
        ),
        f"--leader-election-namespace={istio_namespace}",
        "--istiod-cert-enabled=false",
    ]
    if ctx.ca_configmap_name:
        args.append(
            f"--root-ca-file={constants.ISSUER_CA_MOUNT_PATH}/"
            f"{constants.ISSUER_CA_CONFIGMAP_KEY}"
        )
    args.extend(str(arg) for arg in istiocsr_config.get("overrideArgs") or [])
    return args
