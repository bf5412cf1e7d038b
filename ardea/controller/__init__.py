"""
Ardea controllers - phase-based controller methods.

    from ardea.controller import view, action, resource

    class Blog:
        @view
        def index(self):
            return Response.ok("<h1>Blog</h1>")

        @action
        def publish(self, title: str):
            return Response.redirect("/")
"""

from .decorators import PhaseDecorator, action, resource, view
from .dispatcher import Dispatcher, MethodView, bind_arguments
from .factory import ControllerFactory, InstantiationMode
from .metadata import ControllerMethod, ControllerParameter, extract_parameters
from .registry import ControllerRegistry

__all__ = [
    "PhaseDecorator",
    "action",
    "resource",
    "view",
    "Dispatcher",
    "MethodView",
    "bind_arguments",
    "ControllerFactory",
    "InstantiationMode",
    "ControllerMethod",
    "ControllerParameter",
    "extract_parameters",
    "ControllerRegistry",
]
