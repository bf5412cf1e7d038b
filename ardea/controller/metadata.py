"""
Controller Metadata

Immutable descriptions of controller methods, extracted from decorated
methods at registration time.
"""

import collections.abc
import inspect
import typing
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple, get_args, get_origin, get_type_hints

from ..request import Phase


_MULTIVALUED_ORIGINS = (list, tuple, set, frozenset, collections.abc.Sequence, collections.abc.Iterable)


@dataclass(frozen=True)
class ControllerParameter:
    """
    A controller method parameter.

    Attributes:
        name: Request parameter name
        required: Whether a request value must be present
        default: Value used when an optional parameter is absent
        multivalued: Bind every request value instead of the first one
        annotation: Declared type; ``int``, ``float`` and ``bool`` values are converted
    """
    name: str
    required: bool = True
    default: Any = None
    multivalued: bool = False
    annotation: Any = str


@dataclass(frozen=True)
class ControllerMethod:
    """
    A registered controller method.

    Attributes:
        controller_class: Declaring class
        name: Method name
        phase: Phase the method answers
        parameters: Parameters in declaration order
        route: Route hint
        default: Whether this is the default view
    """
    controller_class: type
    name: str
    phase: Phase
    parameters: Tuple[ControllerParameter, ...] = ()
    route: Optional[str] = None
    default: bool = field(default=False, compare=False)

    @property
    def id(self) -> str:
        return f"{self.controller_class.__name__}.{self.name}"

    def __repr__(self) -> str:
        return f"ControllerMethod({self.id}, {self.phase.value})"


def _is_multivalued(annotation: Any) -> bool:
    if annotation in (list, tuple, set, frozenset):
        return True
    origin = get_origin(annotation)
    if origin is typing.Union:
        return any(_is_multivalued(arg) for arg in get_args(annotation) if arg is not type(None))
    return origin in _MULTIVALUED_ORIGINS


def _scalar_type(annotation: Any) -> Any:
    if get_origin(annotation) is typing.Union:
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return _scalar_type(args[0])
    args = get_args(annotation)
    if _is_multivalued(annotation) and args:
        return args[0]
    return annotation


def extract_parameters(func: Callable[..., Any]) -> Tuple[ControllerParameter, ...]:
    """
    Describe the parameters of a controller method, ``self`` excluded.

    Raises:
        TypeError: For ``*args``, ``**kwargs`` or positional-only parameters
    """
    signature = inspect.signature(func)
    try:
        hints = get_type_hints(func)
    except (NameError, TypeError):
        hints = {}

    parameters = []
    for index, param in enumerate(signature.parameters.values()):
        if index == 0 and param.name in ("self", "cls"):
            continue
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD, param.POSITIONAL_ONLY):
            raise TypeError(f"{func.__qualname__}: parameter '{param.name}' cannot be bound by name")
        annotation = hints.get(param.name, param.annotation)
        if annotation is inspect.Parameter.empty:
            annotation = str
        has_default = param.default is not inspect.Parameter.empty
        parameters.append(ControllerParameter(
            name=param.name,
            required=not has_default,
            default=param.default if has_default else None,
            multivalued=_is_multivalued(annotation),
            annotation=_scalar_type(annotation),
        ))
    return tuple(parameters)
