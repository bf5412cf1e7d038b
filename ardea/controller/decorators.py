"""
Controller Method Decorators

Phase decorators for controller methods. They attach metadata without
import-time side effects; ``ControllerRegistry.register`` reads it.

    class Home:
        @view
        def index(self): ...

        @action(route="/save")
        def save(self, title: str): ...
"""

import inspect
from typing import Any, Callable, Optional, TypeVar, Union

from ..request import Phase


F = TypeVar("F", bound=Callable[..., Any])

METADATA_ATTRIBUTE = "__controller_metadata__"


class PhaseDecorator:
    """
    Base phase decorator.

    Args:
        phase: Phase the method answers
        route: Optional route hint for bridges
        default: Mark the method as the default view of the application
    """

    def __init__(self, phase: Phase, route: Optional[str] = None, *, default: bool = False):
        self.phase = phase
        self.route = route
        self.default = default

    def __call__(self, func: F) -> F:
        if not callable(func):
            raise TypeError(f"@{self.phase.value} decorates methods, not {type(func).__name__}")
        setattr(func, METADATA_ATTRIBUTE, {
            "phase": self.phase,
            "route": self.route,
            "default": self.default,
            "func_name": func.__name__,
            "signature": inspect.signature(func),
        })
        return func


def _phase_decorator(phase: Phase) -> Callable[..., Any]:
    def decorator(
        func: Optional[F] = None,
        *,
        route: Optional[str] = None,
        default: bool = False,
    ) -> Union[F, PhaseDecorator]:
        marker = PhaseDecorator(phase, route, default=default)
        if func is not None:
            return marker(func)
        return marker

    decorator.__name__ = phase.value
    decorator.__doc__ = f"Mark a controller method as answering the {phase.value.upper()} phase."
    return decorator


view = _phase_decorator(Phase.VIEW)
action = _phase_decorator(Phase.ACTION)
resource = _phase_decorator(Phase.RESOURCE)


def get_metadata(func: Any) -> Optional[dict]:
    return getattr(func, METADATA_ATTRIBUTE, None)
