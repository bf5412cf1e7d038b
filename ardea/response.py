"""
Response - outcome of a controller method.

A controller method returns a Response telling the framework what to do
after the interaction:

- ``Redirect``: redirect the client to a location
- ``Status``: a status code and properties, no body
- ``Body``: a status with a streamable payload
- ``Content``: a body for the VIEW and RESOURCE phases (title, assets, meta tags)
- ``Error``: a failure, turned into a Status by ``as_status``
- ``View``: render another controller method after an ACTION

Properties are attached with the fluent ``with_``/``without`` methods, each of
which returns the receiver typed as its own class:

    return Response.ok("<h1>Hello</h1>").with_title("Home").with_assets("jquery")
"""

from __future__ import annotations

import codecs
import html
import logging
from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Iterator, Optional, TypeVar, Union
from xml.etree import ElementTree

from .debug.formatting import render_stylesheet, render_throwable
from .faults import PropertyTypeFault
from .properties import PropertyMap, PropertyType
from .streaming import Chunk, ChunkBuffer, PropertyChunk, Streamable


logger = logging.getLogger("ardea.response")

R = TypeVar("R", bound="Response")
B = TypeVar("B", bound="Body")
C = TypeVar("C", bound="Content")

Source = Union[str, bytes, bytearray, BinaryIO, Streamable]


def _as_streamable(source: Source) -> Streamable:
    if isinstance(source, Streamable):
        return source
    return ChunkBuffer.of(source)


# ============================================================================
# Response
# ============================================================================

class Response:
    """
    Base response carrying a PropertyMap.

    Args:
        properties: Property map owned by this response (a new one when None)
    """

    def __init__(self, properties: Optional[PropertyMap] = None):
        self.properties = properties if properties is not None else PropertyMap()

    def with_(self: R, property_type: PropertyType[Any], value: Any) -> R:
        """
        Set a property; a ``None`` value removes it.

        Raises:
            PropertyTypeFault: If property_type is None
        """
        if property_type is None:
            raise PropertyTypeFault()
        self.properties.add_value(property_type, value)
        return self

    def without(self: R, property_type: PropertyType[Any]) -> R:
        """Remove every value of a property."""
        return self.with_(property_type, None)

    def with_flag(self: R, property_type: PropertyType[bool]) -> R:
        """Set a boolean property to True."""
        return self.with_(property_type, True)

    def with_no(self: R, property_type: PropertyType[bool]) -> R:
        """Set a boolean property to False."""
        return self.with_(property_type, False)

    def with_header(self: R, name: str, *values: str) -> R:
        return self.with_(PropertyType.HEADER, (name, tuple(values)))

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @staticmethod
    def redirect(location: str) -> "Redirect":
        return Redirect(location)

    @staticmethod
    def status(code: int) -> "Status":
        return Status(code)

    @staticmethod
    def ok(content: Optional[Source] = None) -> Union["Status", "Content"]:
        """``Status(200)``, or a 200 Content when a payload is given."""
        if content is None:
            return Status(200)
        return Response.content(200, content)

    @staticmethod
    def not_found(content: Optional[Source] = None) -> Union["Status", "Content"]:
        if content is None:
            return Status(404)
        return Response.content(404, content)

    @staticmethod
    def content(code: int, content: Source) -> "Content":
        return Content(_as_streamable(content), code=code)

    @staticmethod
    def error(cause_or_message: Union[BaseException, str]) -> "Error":
        return Error(cause_or_message)


# ============================================================================
# Variants
# ============================================================================

class View(Response, ABC):
    """
    Instructs the framework to render a controller method after the current
    interaction. Equality is defined by the target method and its arguments.
    """

    @abstractmethod
    def __eq__(self, other: object) -> bool:
        ...

    @abstractmethod
    def __hash__(self) -> int:
        ...


class Redirect(Response):
    """Redirect to ``location`` after the interaction."""

    def __init__(self, location: str):
        super().__init__()
        self.location = location

    def __eq__(self, other: object) -> bool:
        if other is self:
            return True
        if isinstance(other, Redirect):
            return self.location == other.location
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("redirect", self.location))

    def __repr__(self) -> str:
        return f"Redirect(location={self.location!r})"


class _StatusStreamable(Streamable):
    """Properties of a status as chunks, followed by its body data."""

    def __init__(self, status: "Status"):
        self._status = status

    def chunks(self) -> Iterator[Chunk]:
        properties = self._status.properties
        for property_type in properties:
            values = properties.get_values(property_type)
            if values:
                for value in values:
                    yield PropertyChunk(property_type, value)
        data = getattr(self._status, "data", None)
        if data is not None:
            yield from data.chunks()


class Status(Response):
    """A status code with properties."""

    def __init__(self, code: int, properties: Optional[PropertyMap] = None):
        super().__init__(properties)
        self._code = code

    @property
    def code(self) -> int:
        return self._code

    def body(self, source: Source) -> "Body":
        """
        Wrap a payload in a Body with this status code.

        The Body receives its own copy of the properties.
        """
        return Body(self._code, _as_streamable(source), self.properties.copy())

    def content(self, source: Source) -> "Content":
        """Wrap a payload in a Content with this status code."""
        return Content(_as_streamable(source), code=self._code, properties=self.properties.copy())

    def streamable(self) -> Streamable:
        """
        Lazy chunk sequence: every property (type order, then value order),
        then the body data when there is one.
        """
        return _StatusStreamable(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self._code})"


class Body(Status):
    """A status with an optional streamable payload."""

    def __init__(
        self,
        code: int,
        data: Optional[Streamable] = None,
        properties: Optional[PropertyMap] = None,
    ):
        super().__init__(code, properties)
        self.data = data

    @property
    def mime_type(self) -> Optional[str]:
        return self.properties.get_value(PropertyType.MIME_TYPE)

    @property
    def charset(self) -> Optional[str]:
        return self.properties.get_value(PropertyType.ENCODING)

    def with_mime_type(self: B, mime_type: str) -> B:
        return self.with_(PropertyType.MIME_TYPE, mime_type)

    def with_charset(self: B, charset: Optional[str]) -> B:
        """Set the body charset, validated against the codec registry."""
        if charset is not None:
            codecs.lookup(charset)
        return self.with_(PropertyType.ENCODING, charset)


class Content(Body):
    """A body for the VIEW and RESOURCE phases, status 200 by default."""

    def __init__(
        self,
        data: Optional[Streamable] = None,
        *,
        code: int = 200,
        properties: Optional[PropertyMap] = None,
    ):
        super().__init__(code, data, properties)

    @property
    def title(self) -> Optional[str]:
        return self.properties.get_value(PropertyType.TITLE)

    def with_title(self: C, title: Optional[str]) -> C:
        return self.with_(PropertyType.TITLE, title)

    def with_assets(self: C, *assets: str) -> C:
        """Declare assets (scripts, stylesheets) the page depends on."""
        for asset in assets:
            if asset is None:
                raise TypeError("No null asset accepted")
            self.with_(PropertyType.ASSET, asset)
        return self

    def with_meta_tag(self: C, name: str, value: str) -> C:
        return self.with_(PropertyType.META_TAG, (name, value))

    def with_meta_http_equiv(self: C, name: str, value: str) -> C:
        return self.with_(PropertyType.META_HTTP_EQUIV, (name, value))

    def with_header_tag(self: C, header: Union[str, ElementTree.Element]) -> C:
        """
        Add an element to the document head.

        A string is parsed as well formed XML.

        Raises:
            xml.etree.ElementTree.ParseError: If the string is not well formed
        """
        if isinstance(header, str):
            header = ElementTree.fromstring(header)
        return self.with_(PropertyType.HEADER_TAG, header)

    def __repr__(self) -> str:
        return f"Content(code={self.code}, title={self.title!r})"


class Error(Response):
    """
    A failed interaction.

    Built from either a message or a causing exception, never both. The
    ``Forbidden`` subclass may carry both and maps to 403.
    """

    status_code = 500

    def __init__(self, cause_or_message: Union[BaseException, str]):
        super().__init__()
        if isinstance(cause_or_message, BaseException):
            self._init(None, cause_or_message)
        elif isinstance(cause_or_message, str):
            self._init(cause_or_message, None)
        else:
            raise TypeError(
                f"Error expects an exception or a message, not {type(cause_or_message).__name__}"
            )

    def _init(self, message: Optional[str], cause: Optional[BaseException]) -> None:
        self._message = message
        self._cause = cause

    @property
    def cause(self) -> Optional[BaseException]:
        return self._cause

    @property
    def message(self) -> Optional[str]:
        return self._message

    @property
    def html_message(self) -> str:
        """The message as HTML, escaped by default."""
        return html.escape(self._message) if self._message is not None else ""

    @property
    def status(self) -> int:
        return self.status_code

    def as_status(self, verbose: bool = False) -> Status:
        """
        Convert to a Status.

        Non-verbose yields an empty Status with the mapped code. Verbose
        renders an HTML fragment describing the cause chain, or the message
        when there is no cause.
        """
        response = Status(self.status)
        if not verbose:
            return response
        buffer = []
        render_stylesheet(buffer)
        buffer.append("<div class=\"ardea\">")
        buffer.append("<h1>Oups something went wrong</h1>")
        cause = self.cause
        if cause is not None:
            render_throwable(buffer, cause)
        else:
            buffer.append(self.html_message)
        buffer.append("</div>")
        return response.content("".join(buffer)).with_mime_type("text/html")

    def __repr__(self) -> str:
        detail = str(self._cause) if self._cause is not None else (self._message or "")
        return f"{type(self).__name__}[{detail}]"


class Forbidden(Error):
    """Forbidden access, answered with 403."""

    status_code = 403

    def __init__(
        self,
        message_or_cause: Union[BaseException, str, None] = None,
        cause: Optional[BaseException] = None,
    ):
        if isinstance(message_or_cause, BaseException):
            if cause is not None:
                raise TypeError("Forbidden takes a single cause")
            message, cause = None, message_or_cause
        else:
            message = message_or_cause
        Response.__init__(self)
        self._init(message, cause)


Error.Forbidden = Forbidden

Response.View = View
Response.Redirect = Redirect
Response.Status = Status
Response.Body = Body
Response.Content = Content
Response.Error = Error
