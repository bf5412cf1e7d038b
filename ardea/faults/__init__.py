"""
Ardea Faults - structured error values.

Every error the framework raises is a ``Fault``: a typed exception with a
stable code, a domain and a severity that sets its log level.
"""

from .core import Fault, FaultDomain, Severity
from .domains import (
    ConfigFault,
    ConfigInvalidFault,
    PropertyTypeFault,
    StreamAbortedFault,
    StreamConsumedFault,
    TemplateFault,
    TemplateCompilationFault,
    TemplateNotFoundFault,
    TemplateRenderFault,
    RoutingFault,
    ControllerNotFoundFault,
    MissingParameterFault,
    PhaseMismatchFault,
    ForbiddenFault,
)

__all__ = [
    # Core
    "Fault",
    "FaultDomain",
    "Severity",

    # Domains
    "ConfigFault",
    "ConfigInvalidFault",
    "PropertyTypeFault",
    "StreamAbortedFault",
    "StreamConsumedFault",
    "TemplateFault",
    "TemplateCompilationFault",
    "TemplateNotFoundFault",
    "TemplateRenderFault",
    "RoutingFault",
    "ControllerNotFoundFault",
    "MissingParameterFault",
    "PhaseMismatchFault",
    "ForbiddenFault",
]
