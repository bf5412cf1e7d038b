"""
Bridge - contract between the framework and a transport.

A bridge supplies the interaction and a few read-only properties, and
receives the outcome: a redirect, a view to render after an action, or a
status streamed as property chunks followed by body data.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from .request import Interaction, RunMode
from .response import Error, Redirect, Response, Status, View
from .streaming import Stream


logger = logging.getLogger("ardea.bridge")

DEFAULT_CHARSET = "UTF-8"


class Bridge(ABC):
    """Transport side of an interaction."""

    @property
    @abstractmethod
    def interaction(self) -> Interaction:
        ...

    @property
    def properties(self) -> Mapping[str, Any]:
        """
        Read-only transport properties.

        Known keys: ``request_encoding`` and ``run_mode``.
        """
        return {"request_encoding": DEFAULT_CHARSET, "run_mode": RunMode.PROD}

    @abstractmethod
    def create_stream(self, status: int, mime_type: Optional[str], charset: Optional[str]) -> Stream:
        """Open the response stream; property chunks arrive before any data."""

    @abstractmethod
    def redirect(self, location: str) -> None:
        ...

    @abstractmethod
    def render_view(self, view: View) -> None:
        """Render the view chosen by an action (redirect-after-action or in place)."""


class ResponseWriter:
    """
    Hand a Response to a bridge.

    Args:
        verbose: Render error details into the response body
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def write(self, response: Response, bridge: Bridge) -> None:
        if isinstance(response, Error):
            response = response.as_status(self.verbose)
        if isinstance(response, Redirect):
            bridge.redirect(response.location)
        elif isinstance(response, View):
            bridge.render_view(response)
        elif isinstance(response, Status):
            mime_type = getattr(response, "mime_type", None)
            charset = getattr(response, "charset", None) or DEFAULT_CHARSET
            stream = bridge.create_stream(response.code, mime_type, charset)
            response.streamable().send(stream)
        else:
            raise TypeError(f"Cannot write {type(response).__name__} to a bridge")
        logger.debug("Wrote %r", response)
