"""
Ardea Faults - base fault, domains and severities.

A fault is an exception with a stable ``code`` that tests and tooling
assert on, the ``domain`` of the framework that raised it, and a
``severity`` that picks the level it is logged at.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """How loudly a fault is reported."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @property
    def log_level(self) -> int:
        return _LOG_LEVELS[self]


_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.FATAL: logging.CRITICAL,
}


class FaultDomain:
    """
    Part of the framework a fault comes from.

    Args:
        name: Domain name, also exposed as ``value``
        severity: Severity of the domain's faults unless they set their own
        description: One line description
    """

    def __init__(self, name: str, severity: Severity = Severity.ERROR, description: str = ""):
        self.name = name
        self.severity = severity
        self.description = description

    @property
    def value(self) -> str:
        return self.name

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain({self.name!r}, {self.severity.value})"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.CONFIG = FaultDomain("config", Severity.FATAL, "Configuration loading and validation")
FaultDomain.RESPONSE = FaultDomain("response", Severity.ERROR, "Response construction")
FaultDomain.IO = FaultDomain("io", Severity.WARN, "Body streams")
FaultDomain.TEMPLATE = FaultDomain("template", Severity.FATAL, "Template compilation and rendering")
FaultDomain.ROUTING = FaultDomain("routing", Severity.WARN, "Controller method resolution and binding")
FaultDomain.SECURITY = FaultDomain("security", Severity.WARN, "Access control")


# ============================================================================
# Fault
# ============================================================================

class Fault(Exception):
    """
    Structured framework error.

    Subclasses usually fix ``code``, ``message`` and ``domain`` as class
    attributes and pass only what varies per instance.

    Attributes:
        code: Stable identifier, e.g. ``MISSING_PARAMETER``
        message: Human readable summary
        domain: Domain that raised the fault
        severity: Defaults to the domain severity
        public: Whether the message may be shown to clients
        metadata: Structured context (paths, parameter names)
    """

    code: str = ""
    message: str = ""
    domain: Optional[FaultDomain] = None
    severity: Optional[Severity] = None

    def __init__(
        self,
        code: Optional[str] = None,
        message: Optional[str] = None,
        *,
        domain: Optional[FaultDomain] = None,
        severity: Optional[Severity] = None,
        public: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        code = code or type(self).code
        message = message or type(self).message
        domain = domain or type(self).domain
        if not code or not message or domain is None:
            raise TypeError(f"{type(self).__name__} needs a code, a message and a domain")
        super().__init__(message)
        self.code = code
        self.message = message
        self.domain = domain
        self.severity = severity or type(self).severity or domain.severity
        self.public = public
        self.metadata = dict(metadata or {})

    @property
    def log_level(self) -> int:
        return self.severity.log_level

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, domain={self.domain.value})"

    def to_dict(self) -> dict[str, Any]:
        """Plain data for logs."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "public": self.public,
            "metadata": self.metadata,
        }
