"""
Controller Registry

Holds the controller methods of an application, keyed by ``Class.method``.
"""

import inspect
import logging
from typing import Dict, Iterable, Iterator, List, Optional

from ..faults import ControllerNotFoundFault
from ..request import Phase
from ..templates.runtime import Template
from .decorators import get_metadata
from .metadata import ControllerMethod, extract_parameters


logger = logging.getLogger("ardea.controller.registry")


class ControllerRegistry:
    """
    Registered controller methods.

    The default view is the VIEW method declared with ``default=True``, or
    else the first registered VIEW method named ``index``.
    """

    def __init__(self, controllers: Iterable[type] = ()):
        self._methods: Dict[str, ControllerMethod] = {}
        self._classes: List[type] = []
        for controller in controllers:
            self.register(controller)

    def register(self, controller_class: type) -> List[ControllerMethod]:
        """
        Register every decorated method of a controller class.

        Raises:
            TypeError: If ``controller_class`` is not a class
            ValueError: If a method id is already registered
        """
        if not inspect.isclass(controller_class):
            raise TypeError(f"Controllers are classes, not {type(controller_class).__name__}")
        methods = []
        for name, member in inspect.getmembers(controller_class, callable):
            metadata = get_metadata(member)
            if metadata is None:
                continue
            method = ControllerMethod(
                controller_class=controller_class,
                name=metadata["func_name"],
                phase=metadata["phase"],
                parameters=extract_parameters(member),
                route=metadata["route"],
                default=metadata["default"],
            )
            if method.id in self._methods:
                raise ValueError(f"Controller method {method.id} is already registered")
            self._methods[method.id] = method
            methods.append(method)
            logger.debug("Registered %s (%s)", method.id, method.phase.value)
        if controller_class not in self._classes:
            self._classes.append(controller_class)
        return methods

    def resolve(self, method_id: str) -> ControllerMethod:
        """
        Raises:
            ControllerNotFoundFault: If no method has that id
        """
        method = self._methods.get(method_id)
        if method is None:
            raise ControllerNotFoundFault(method_id)
        return method

    def default_view(self) -> ControllerMethod:
        """
        Raises:
            ControllerNotFoundFault: If the application has no default view
        """
        views = [m for m in self._methods.values() if m.phase is Phase.VIEW]
        for method in views:
            if method.default:
                return method
        for method in views:
            if method.name == "index":
                return method
        raise ControllerNotFoundFault(None)

    def find_route(self, route: str) -> Optional[ControllerMethod]:
        for method in self._methods.values():
            if method.route == route:
                return method
        return None

    def templates(self) -> List[Template]:
        """Template descriptors declared on controllers, in declaration order."""
        found: List[Template] = []
        for controller in self._classes:
            for klass in reversed(controller.__mro__):
                for value in vars(klass).values():
                    if isinstance(value, Template) and value not in found:
                        found.append(value)
        return found

    def __iter__(self) -> Iterator[ControllerMethod]:
        return iter(list(self._methods.values()))

    def __len__(self) -> int:
        return len(self._methods)

    def __contains__(self, method_id: object) -> bool:
        return method_id in self._methods
