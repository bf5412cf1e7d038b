"""
Request - phases, interactions and the in-flight request.

A bridge turns a transport request into an ``Interaction``: a phase hint,
the id of the controller method to run and the request parameters. While a
controller method runs, ``Request.current()`` returns the ``Request``
wrapping that interaction.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterator, Mapping, Optional, Sequence, Tuple, Union

if TYPE_CHECKING:
    from .bridge import Bridge
    from .controller.metadata import ControllerMethod


class Phase(str, Enum):
    """What kind of interaction a controller method answers."""
    VIEW = "view"
    ACTION = "action"
    RESOURCE = "resource"


class RunMode(str, Enum):
    """
    Deployment mode.

    - PROD: templates compiled once, terse errors
    - DEV: templates compiled once, verbose errors
    - LIVE: template timestamps re-checked on every resolution, verbose errors
    """
    PROD = "prod"
    DEV = "dev"
    LIVE = "live"

    @property
    def verbose_errors(self) -> bool:
        return self is not RunMode.PROD


ParameterValue = Union[str, Sequence[str]]


def _normalize(parameters: Optional[Mapping[str, ParameterValue]]) -> Mapping[str, Tuple[str, ...]]:
    normalized = {}
    for name, value in (parameters or {}).items():
        if isinstance(value, str):
            normalized[name] = (value,)
        else:
            normalized[name] = tuple(str(v) for v in value)
    return normalized


@dataclass(frozen=True)
class Interaction:
    """
    Inbound interaction supplied by a bridge.

    Attributes:
        phase: Phase hint, None to accept the target method's phase
        method_id: ``Class.method`` of the target, None for the default view
        parameters: Request parameters, every value a sequence of strings
    """

    phase: Optional[Phase] = None
    method_id: Optional[str] = None
    parameters: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def of(
        cls,
        phase: Optional[Phase] = None,
        method_id: Optional[str] = None,
        parameters: Optional[Mapping[str, ParameterValue]] = None,
    ) -> "Interaction":
        """Build an interaction, accepting single string parameter values."""
        return cls(phase, method_id, _normalize(parameters))


_current_request: ContextVar[Optional["Request"]] = ContextVar("ardea_current_request", default=None)


class Request:
    """
    The interaction being dispatched.

    Args:
        bridge: Bridge that received the interaction
        interaction: What was asked
        method: Controller method answering it
    """

    def __init__(self, bridge: "Bridge", interaction: Interaction, method: "ControllerMethod"):
        self.bridge = bridge
        self.interaction = interaction
        self.method = method

    @property
    def phase(self) -> Phase:
        return self.method.phase

    @property
    def parameters(self) -> Mapping[str, Tuple[str, ...]]:
        return self.interaction.parameters

    @property
    def properties(self) -> Mapping[str, Any]:
        """Bridge properties, read only."""
        return self.bridge.properties

    @staticmethod
    def current() -> Optional["Request"]:
        """The request being dispatched in this context, or None."""
        return _current_request.get()

    @contextmanager
    def activate(self) -> Iterator["Request"]:
        token = _current_request.set(self)
        try:
            yield self
        finally:
            _current_request.reset(token)

    def __repr__(self) -> str:
        return f"Request(phase={self.phase.value}, method={self.method.id})"
