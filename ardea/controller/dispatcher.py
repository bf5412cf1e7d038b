"""
Dispatcher - runs one controller method per interaction.

    interaction -> resolve method -> bind arguments -> invoke -> Response

Binding and resolution failures raise ``RoutingFault`` subclasses. Anything
raised by the controller method itself is logged and turned into an
``Error`` response, so a bridge always receives a well formed Response.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from ..bridge import Bridge, ResponseWriter
from ..debug import fault_summary
from ..faults import ForbiddenFault, MissingParameterFault, PhaseMismatchFault, RoutingFault
from ..request import Interaction, Phase, Request
from ..response import Error, Forbidden, Redirect, Response, Status, View
from .factory import ControllerFactory
from .metadata import ControllerMethod, ControllerParameter
from .registry import ControllerRegistry


logger = logging.getLogger("ardea.controller.dispatcher")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


class MethodView(View):
    """
    Render ``method`` with ``arguments`` next.

    Two method views are equal when they target the same method with the
    same arguments.
    """

    def __init__(self, method: ControllerMethod, arguments: Optional[Mapping[str, Any]] = None):
        super().__init__()
        self.method = method
        self.arguments: Dict[str, Tuple[str, ...]] = {}
        for name, value in (arguments or {}).items():
            if isinstance(value, (list, tuple)):
                self.arguments[name] = tuple(str(v) for v in value)
            else:
                self.arguments[name] = (str(value),)

    def interaction(self) -> Interaction:
        return Interaction(Phase.VIEW, self.method.id, dict(self.arguments))

    def __eq__(self, other: object) -> bool:
        if other is self:
            return True
        if isinstance(other, MethodView):
            return self.method.id == other.method.id and self.arguments == other.arguments
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.method.id, tuple(sorted(self.arguments.items()))))

    def __repr__(self) -> str:
        return f"MethodView({self.method.id}, {self.arguments!r})"


def _convert(parameter: ControllerParameter, value: str) -> Any:
    target = parameter.annotation
    if target is bool:
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError(f"'{value}' is not a boolean")
    if target in (int, float):
        return target(value)
    return value


def bind_arguments(method: ControllerMethod, parameters: Mapping[str, Sequence[str]]) -> Dict[str, Any]:
    """
    Bind request values to the method parameters, by name.

    Raises:
        MissingParameterFault: If a required parameter has no value
        RoutingFault: If a value cannot be converted to the declared type
    """
    arguments: Dict[str, Any] = {}
    for parameter in method.parameters:
        values = parameters.get(parameter.name)
        if not values:
            if parameter.required:
                raise MissingParameterFault(parameter.name, method.id)
            arguments[parameter.name] = parameter.default
            continue
        try:
            if parameter.multivalued:
                arguments[parameter.name] = [_convert(parameter, v) for v in values]
            else:
                arguments[parameter.name] = _convert(parameter, values[0])
        except ValueError as e:
            raise RoutingFault(
                "INVALID_PARAMETER",
                f"Invalid value for parameter '{parameter.name}' of {method.id}: {e}",
                metadata={"parameter": parameter.name, "method": method.id},
            ) from e
    return arguments


class Dispatcher:
    """
    Args:
        registry: Registered controller methods
        factory: Controller instantiation
        verbose_errors: Render error details in ``serve``
    """

    def __init__(
        self,
        registry: ControllerRegistry,
        *,
        factory: Optional[ControllerFactory] = None,
        verbose_errors: bool = False,
    ):
        self.registry = registry
        self.factory = factory or ControllerFactory()
        self.writer = ResponseWriter(verbose_errors)

    def resolve(self, interaction: Interaction) -> ControllerMethod:
        """
        Find the method answering an interaction.

        Raises:
            ControllerNotFoundFault: If no method matches
            PhaseMismatchFault: If the phase hint contradicts the method phase
        """
        if interaction.method_id is None:
            method = self.registry.default_view()
        else:
            method = self.registry.resolve(interaction.method_id)
        if interaction.phase is not None and interaction.phase is not method.phase:
            raise PhaseMismatchFault(method.id, method.phase.value, interaction.phase.value)
        return method

    def dispatch(self, interaction: Interaction, bridge: Optional[Bridge] = None) -> Response:
        """
        Run the method answering ``interaction`` and return its Response.

        Raises:
            RoutingFault: If no method can be resolved or bound
        """
        method = self.resolve(interaction)
        arguments = bind_arguments(method, interaction.parameters)
        request = Request(bridge, interaction, method)
        with request.activate():
            return self.invoke(method, arguments)

    def invoke(self, method: ControllerMethod, arguments: Mapping[str, Any]) -> Response:
        """Invoke a method with bound arguments, converting failures to Error."""
        try:
            controller = self.factory.create(method.controller_class)
            result = getattr(controller, method.name)(**arguments)
        except (PermissionError, ForbiddenFault) as e:
            logger.warning("Access to %s forbidden: %s", method.id, e)
            return Forbidden(e)
        except Exception as e:
            logger.error("Controller method %s failed: %s", method.id, fault_summary(e), exc_info=e)
            return Error(e)
        return self.normalize(method, result)

    def normalize(self, method: ControllerMethod, result: Any) -> Response:
        """Turn a controller method return value into a Response."""
        if method.phase is Phase.ACTION:
            if result is None:
                return MethodView(self.registry.default_view())
            if isinstance(result, (Redirect, View, Error)):
                return result
        else:
            if result is None:
                return Response.ok()
            if isinstance(result, Response):
                return result
            if isinstance(result, (str, bytes, bytearray)):
                return Response.ok(result)
        message = f"{method.id} returned {type(result).__name__}, not a valid {method.phase.value} response"
        logger.error(message)
        return Error(message)

    def serve(self, bridge: Bridge) -> None:
        """Dispatch the bridge interaction and write the outcome back to it."""
        try:
            response = self.dispatch(bridge.interaction, bridge)
        except RoutingFault as e:
            logger.log(e.log_level, "Cannot dispatch %s: %s", bridge.interaction.method_id, e)
            response = Status(e.status)
        self.writer.write(response, bridge)
