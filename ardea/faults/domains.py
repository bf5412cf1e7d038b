"""
Ardea Faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults
- RESPONSE faults
- TEMPLATE faults
- ROUTING faults
- SECURITY faults
"""

from typing import Any, Optional, Sequence

from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Base class for configuration faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            metadata=metadata,
        )


class ConfigInvalidFault(ConfigFault):
    """Configuration value is invalid."""

    def __init__(self, key: str, reason: str):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Configuration key '{key}' is invalid: {reason}",
            metadata={"key": key, "reason": reason},
        )


# ============================================================================
# RESPONSE Faults
# ============================================================================

class PropertyTypeFault(Fault, TypeError):
    """A property operation was given no property type."""

    code = "NULL_PROPERTY_TYPE"
    domain = FaultDomain.RESPONSE
    message = "No null property type allowed"

    def __init__(self, message: str | None = None):
        super().__init__(message=message or self.message)


class StreamConsumedFault(Fault):
    """A single-consumer stream was sent twice."""

    code = "STREAM_CONSUMED"
    domain = FaultDomain.IO
    message = "Stream has already been consumed"

    def __init__(self, message: str | None = None):
        super().__init__(message=message or self.message)


class StreamAbortedFault(Fault):
    """A response stream failed after its first body bytes went out."""

    code = "STREAM_ABORTED"
    domain = FaultDomain.IO
    message = "Response stream aborted"

    def __init__(self, method_id: str | None = None):
        super().__init__(
            message=f"Response stream of {method_id or 'the default view'} aborted",
            metadata={"method_id": method_id},
        )


# ============================================================================
# TEMPLATE Faults
# ============================================================================

class TemplateFault(Fault):
    """Base class for template faults."""

    domain = FaultDomain.TEMPLATE


class TemplateCompilationFault(TemplateFault):
    """
    One or more templates failed to compile.

    ``errors`` holds every CompilationError of the compilation unit, in the
    order they were reported.
    """

    code = "TEMPLATE_COMPILATION_FAILED"

    def __init__(self, errors: Sequence[Any]):
        self.errors = list(errors)
        summary = "; ".join(str(error) for error in self.errors)
        super().__init__(
            message=f"{len(self.errors)} template error(s): {summary}",
            metadata={"errors": [error.code for error in self.errors]},
        )


class TemplateNotFoundFault(TemplateFault):
    """A template path could not be resolved at runtime."""

    code = "TEMPLATE_NOT_FOUND"

    def __init__(self, path: str):
        super().__init__(
            message=f"Template '{path}' not found",
            severity=Severity.ERROR,
            metadata={"path": path},
        )


class TemplateRenderFault(TemplateFault):
    """Template rendering failed."""

    code = "TEMPLATE_RENDER_ERROR"

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Template '{path}' failed to render: {reason}",
            severity=Severity.ERROR,
            metadata={"path": path, "reason": reason},
        )


# ============================================================================
# ROUTING Faults
# ============================================================================

class RoutingFault(Fault):
    """
    Base class for faults raised before a controller method runs.

    ``status`` is the transport status the bridge answers with.
    """

    domain = FaultDomain.ROUTING
    status = 400

    def __init__(self, code: str, message: str, *, metadata: Optional[dict[str, Any]] = None):
        super().__init__(code=code, message=message, public=True, metadata=metadata)


class ControllerNotFoundFault(RoutingFault):
    """No controller method matches the interaction."""

    status = 404

    def __init__(self, target: Optional[str]):
        super().__init__(
            code="CONTROLLER_NOT_FOUND",
            message=f"No controller method for '{target}'",
            metadata={"target": target},
        )


class MissingParameterFault(RoutingFault):
    """A required controller parameter has no request value."""

    def __init__(self, name: str, method: str):
        self.name = name
        super().__init__(
            code="MISSING_PARAMETER",
            message=f"Missing required parameter '{name}' for {method}",
            metadata={"parameter": name, "method": method},
        )


class PhaseMismatchFault(RoutingFault):
    """The interaction phase does not match the controller method phase."""

    def __init__(self, method: str, expected: str, actual: str):
        super().__init__(
            code="PHASE_MISMATCH",
            message=f"{method} answers the {expected} phase, not {actual}",
            metadata={"method": method, "expected": expected, "actual": actual},
        )


# ============================================================================
# SECURITY Faults
# ============================================================================

class ForbiddenFault(Fault):
    """Raised by controller code to deny access; answered with 403."""

    code = "FORBIDDEN"
    domain = FaultDomain.SECURITY
    message = "Access forbidden"

    def __init__(self, message: str | None = None):
        super().__init__(message=message or self.message, public=True)
