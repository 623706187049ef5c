"""
The controller that reconciles IstioCSR resources
"""

# Local
from .controller import IstioCSRController
from .converger import ChildResourceConverger
from .watches import build_request_mapper, map_to_istiocsr
