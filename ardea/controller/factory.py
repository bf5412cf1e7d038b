"""
Controller Factory

Creates controller instances. Controllers are created per interaction
unless the class sets ``instantiation_mode = InstantiationMode.SINGLETON``.
"""

import threading
from enum import Enum
from typing import Any, Callable, Dict, Optional, Type


class InstantiationMode(str, Enum):
    """Controller instantiation modes."""
    PER_REQUEST = "per_request"
    SINGLETON = "singleton"


class ControllerFactory:
    """
    Args:
        provider: Builds an instance from a class, ``cls()`` when None
    """

    def __init__(self, provider: Optional[Callable[[Type], Any]] = None):
        self.provider = provider or (lambda cls: cls())
        self._singletons: Dict[Type, Any] = {}
        self._lock = threading.Lock()

    def create(self, controller_class: Type) -> Any:
        mode = getattr(controller_class, "instantiation_mode", InstantiationMode.PER_REQUEST)
        if mode != InstantiationMode.SINGLETON:
            return self.provider(controller_class)
        with self._lock:
            instance = self._singletons.get(controller_class)
            if instance is None:
                instance = self.provider(controller_class)
                self._singletons[controller_class] = instance
            return instance
