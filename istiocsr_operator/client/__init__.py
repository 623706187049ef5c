"""
The client package holds the abstraction the controllers use to talk to the
cluster
"""

# Local
from .. import config
from .base import ClientBase
from .dry_run_client import DryRunClient
from .openshift_client import OpenshiftClient


def get_client() -> ClientBase:
    """Build the client selected by the library config"""
    if config.dry_run:
        return DryRunClient()
    return OpenshiftClient()
