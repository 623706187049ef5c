"""
Shared module to hold constant values for the operator
"""

## IstioCSR API ################################################################

ISTIOCSR_API_VERSION = "operator.openshift.io/v1alpha1"
ISTIOCSR_KIND = "IstioCSR"

# Group-qualified name used in log and error messages
ISTIOCSR_RESOURCE_NAME = "istiocsr.openshift.operator.io"

# Finalizer placed on every IstioCSR the controller manages
FINALIZER_NAME = "istiocsr.openshift.operator.io/istio-csr-controller"

# Annotation marking that the first full reconcile has completed
PROCESSED_ANNOTATION_NAME = "operator.openshift.io/istio-csr-processed"
PROCESSED_ANNOTATION_VALUE = "true"

## Labels ######################################################################

# Ownership label placed on every object the controller creates
OWNED_LABEL_KEY = "app"
OWNED_LABEL_VALUE = "cert-manager-istio-csr"

# Label carrying the owning IstioCSR namespace for cluster-scoped objects and
# objects created outside of the IstioCSR namespace
NAMESPACE_MAPPING_LABEL = "operator.openshift.io/istio-csr-namespace"

# Dependency-watch label placed on objects the controller reads but does not
# own. The value is "<namespace>_<name>" of the IstioCSR.
WATCH_LABEL_KEY = "istiocsr.openshift.operator.io/watched-by"
WATCH_LABEL_VALUE_DELIM = "_"

DEFAULT_RESOURCE_LABELS = {
    OWNED_LABEL_KEY: OWNED_LABEL_VALUE,
    "app.kubernetes.io/name": OWNED_LABEL_VALUE,
    "app.kubernetes.io/instance": OWNED_LABEL_VALUE,
    "app.kubernetes.io/managed-by": "cert-manager-operator",
    "app.kubernetes.io/part-of": "cert-manager-operator",
}

## Operand #####################################################################

# Environment variable holding the operand image
ISTIOCSR_IMAGE_ENV_VAR = "RELATED_IMAGE_CERT_MANAGER_ISTIOCSR"

# Names of the objects created for the operand
ISTIOCSR_RESOURCE_BASE_NAME = "cert-manager-istio-csr"
ISTIOCSR_LEASES_RESOURCE_NAME = "cert-manager-istio-csr-leases"
ISTIOCSR_CONTAINER_NAME = "cert-manager-istio-csr"
ISTIOD_CERTIFICATE_NAME = "istiod"
ISTIOD_CERTIFICATE_SECRET_NAME = "istiod-tls"
ISSUER_CA_CONFIGMAP_NAME = "cert-manager-istio-csr-issuer-ca-copy"
ISSUER_CA_CONFIGMAP_KEY = "ca.crt"
ISSUER_CA_VOLUME_NAME = "root-ca"
ISSUER_CA_MOUNT_PATH = "/var/run/secrets/istio-csr"

DEFAULT_GRPC_PORT = 443
DEFAULT_SERVER_PORT = 6443

## cert-manager ################################################################

CERT_MANAGER_GROUP = "cert-manager.io"
CERT_MANAGER_API_VERSION = "cert-manager.io/v1"
ISSUER_KIND = "Issuer"
CLUSTER_ISSUER_KIND = "ClusterIssuer"
CERTIFICATE_KIND = "Certificate"

CERT_MANAGER_OPERATOR_API_VERSION = "operator.openshift.io/v1alpha1"
CERT_MANAGER_OPERATOR_KIND = "CertManager"
CERT_MANAGER_OBJECT_NAME = "cluster"

## Events ######################################################################

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"
EVENT_REASON_RECONCILED = "Reconciled"
EVENT_REASON_ALREADY_EXISTS = "ResourceAlreadyExists"
EVENT_REASON_REMOVE_DEPLOYMENT = "RemoveDeployment"

## Features ####################################################################

FEATURE_ISTIOCSR = "IstioCSR"

# OLM OperatorCondition used to block upgrades while tech preview features are on
OPERATOR_CONDITION_API_VERSION = "operators.coreos.com/v2"
OPERATOR_CONDITION_KIND = "OperatorCondition"
UPGRADEABLE_CONDITION = "Upgradeable"
TECH_PREVIEW_NO_UPGRADE_REASON = "techPreviewFeaturesUpgradeRestricted"
TECH_PREVIEW_NO_UPGRADE_MESSAGE = (
    "The operator installed with TechPreview features cannot be upgraded."
)

# Delimiter used for nested dict keys
NESTED_DICT_DELIM = "."
