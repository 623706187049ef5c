"""
Handlers for every child kind of an IstioCSR, in the order they are converged
"""

# Local
from .certificate import CertificateHandler
from .common import ChildResourceHandler, ConvergeContext
from .deployment import DeploymentHandler
from .issuer import IssuerHandler
from .rbac import RBACHandler
from .service import ServiceHandler
from .service_account import ServiceAccountHandler

# The issuer handler runs right before the deployment because the deployment
# mounts the CA bundle it produces
CHILD_HANDLERS = (
    ServiceHandler(),
    ServiceAccountHandler(),
    RBACHandler(),
    CertificateHandler(),
    IssuerHandler(),
    DeploymentHandler(),
)
