"""
Ardea - phase-based controllers, typed responses and compiled templates

Complete integration of:
- Responses: typed property bags, streamable bodies, verbose error pages
- Templates: the gtmpl dialect compiled to Python modules, with includes,
  decorators, simple tags and cycle detection at compile time
- Controllers: view, action and resource phases dispatched through a bridge
- Faults: structured error handling with fault domains
- Bridges: ASGI serving with uvicorn, in-process mock bridge for tests
"""

__version__ = "0.1.0"

# ============================================================================
# Core Framework
# ============================================================================

from .application import Application
from .bridge import Bridge, ResponseWriter
from .config import ArdeaConfig, ConfigLoader
from .request import Interaction, Phase, Request, RunMode

# Responses
from .properties import PropertyMap, PropertyType
from .response import Body, Content, Error, Forbidden, Redirect, Response, Status, View
from .streaming import ChunkBuffer, DataChunk, OutputStream, PropertyChunk, Stream, Streamable

# Controllers
from .controller import (
    ControllerFactory,
    ControllerRegistry,
    Dispatcher,
    MethodView,
    action,
    resource,
    view,
)

# Templates
from .templates import (
    CompilationError,
    MemoryLoader,
    TagHandler,
    TagRegistry,
    Template,
    TemplateCache,
    TemplateCompiler,
    TemplateLoader,
)

# Faults
from .faults import (
    Fault,
    FaultDomain,
    Severity,
    ConfigInvalidFault,
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
    "__version__",
    # Core
    "Application",
    "Bridge",
    "ResponseWriter",
    "ArdeaConfig",
    "ConfigLoader",
    "Interaction",
    "Phase",
    "Request",
    "RunMode",
    # Responses
    "PropertyMap",
    "PropertyType",
    "Body",
    "Content",
    "Error",
    "Forbidden",
    "Redirect",
    "Response",
    "Status",
    "View",
    "ChunkBuffer",
    "DataChunk",
    "OutputStream",
    "PropertyChunk",
    "Stream",
    "Streamable",
    # Controllers
    "ControllerFactory",
    "ControllerRegistry",
    "Dispatcher",
    "MethodView",
    "action",
    "resource",
    "view",
    # Templates
    "CompilationError",
    "MemoryLoader",
    "TagHandler",
    "TagRegistry",
    "Template",
    "TemplateCache",
    "TemplateCompiler",
    "TemplateLoader",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigInvalidFault",
    "TemplateCompilationFault",
    "TemplateNotFoundFault",
    "TemplateRenderFault",
    "RoutingFault",
    "ControllerNotFoundFault",
    "MissingParameterFault",
    "PhaseMismatchFault",
    "ForbiddenFault",
]
