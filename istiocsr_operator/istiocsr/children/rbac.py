"""
RBAC objects for istio-csr:

* ClusterRole/ClusterRoleBinding for reading namespaces and writing the root
  CA config maps into every namespace
* Role/RoleBinding in the istio namespace for requesting certificates
* Role/RoleBinding in the istio namespace for leader election leases
"""

# Local
from ... import constants, status
from .common import (
    ChildResourceHandler,
    ConvergeContext,
    create_or_restore,
    fields_drifted,
    new_object,
)

RBAC_API_VERSION = "rbac.authorization.k8s.io/v1"

CLUSTER_ROLE_RULES = [
    {
        "apiGroups": [""],
        "resources": ["configmaps"],
        "verbs": ["get", "list", "create", "update", "watch"],
    },
    {
        "apiGroups": [""],
        "resources": ["namespaces"],
        "verbs": ["get", "list", "watch"],
    },
    {
        "apiGroups": ["authentication.k8s.io"],
        "resources": ["tokenreviews"],
        "verbs": ["create"],
    },
]

ROLE_RULES = [
    {
        "apiGroups": ["cert-manager.io"],
        "resources": ["certificaterequests"],
        "verbs": ["get", "list", "create", "update", "delete", "watch"],
    },
    {
        "apiGroups": [""],
        "resources": ["events"],
        "verbs": ["create"],
    },
]

LEASES_ROLE_RULES = [
    {
        "apiGroups": ["coordination.k8s.io"],
        "resources": ["leases"],
        "verbs": ["get", "create", "update", "watch", "list"],
    },
    {
        "apiGroups": [""],
        "resources": ["events"],
        "verbs": ["create"],
    },
]


def cluster_role_name(namespace: str) -> str:
    """Cluster scoped names must not collide between IstioCSRs in different
    namespaces
    """
    return f"{constants.ISTIOCSR_RESOURCE_BASE_NAME}-{namespace}"


def _rules_drifted(desired: dict, current: dict) -> bool:
    return fields_drifted(desired, current, "rules")


def _binding_drifted(desired: dict, current: dict) -> bool:
    return fields_drifted(desired, current, "roleRef", "subjects")


class RBACHandler(ChildResourceHandler):
    description = "rbac"

    def apply(self, ctx: ConvergeContext):
        name = cluster_role_name(ctx.namespace)
        subjects = [
            {
                "kind": "ServiceAccount",
                "name": constants.ISTIOCSR_RESOURCE_BASE_NAME,
                "namespace": ctx.namespace,
            }
        ]
        mapped_labels = ctx.mapped_labels()

        create_or_restore(
            ctx,
            new_object(
                RBAC_API_VERSION,
                "ClusterRole",
                name,
                mapped_labels,
                rules=CLUSTER_ROLE_RULES,
            ),
            "clusterrole",
            drifted=_rules_drifted,
        )
        create_or_restore(
            ctx,
            new_object(
                RBAC_API_VERSION,
                "ClusterRoleBinding",
                name,
                mapped_labels,
                roleRef=_role_ref("ClusterRole", name),
                subjects=subjects,
            ),
            "clusterrolebinding",
            drifted=_binding_drifted,
        )
        ctx.resource.status[status.CLUSTER_ROLE_BINDING_FIELD] = name

        for role_name, rules in [
            (constants.ISTIOCSR_RESOURCE_BASE_NAME, ROLE_RULES),
            (constants.ISTIOCSR_LEASES_RESOURCE_NAME, LEASES_ROLE_RULES),
        ]:
            create_or_restore(
                ctx,
                new_object(
                    RBAC_API_VERSION,
                    "Role",
                    role_name,
                    mapped_labels,
                    namespace=ctx.istio_namespace,
                    rules=rules,
                ),
                "role",
                drifted=_rules_drifted,
            )
            create_or_restore(
                ctx,
                new_object(
                    RBAC_API_VERSION,
                    "RoleBinding",
                    role_name,
                    mapped_labels,
                    namespace=ctx.istio_namespace,
                    roleRef=_role_ref("Role", role_name),
                    subjects=subjects,
                ),
                "rolebinding",
                drifted=_binding_drifted,
            )


def _role_ref(kind: str, name: str) -> dict:
    return {"apiGroup": "rbac.authorization.k8s.io", "kind": kind, "name": name}
