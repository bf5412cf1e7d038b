"""
ASGI Bridge - serves an Application to any ASGI server.

    app = Application(config, controllers=[Home]).asgi()
    # uvicorn mymodule:app

URL mapping:
- ``/`` runs the default view
- a path equal to a method ``route`` runs that method
- any other path is read as a method id: ``/Home.show``
- ``ardea.method`` and ``ardea.phase`` query parameters override the path

Request parameters are the query string plus an urlencoded form body.

Dispatch and chunk production run in a worker thread. Chunks travel to the
event loop through a bounded asyncio queue; when the client disconnects the
producer is cancelled and the body iterator closed. A stream failing after
the response started aborts the connection with a StreamAbortedFault.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

from .bridge import DEFAULT_CHARSET, Bridge
from .faults import RoutingFault, StreamAbortedFault
from .properties import PropertyType
from .request import Interaction, Phase
from .response import View
from .streaming import Chunk, PropertyChunk

if TYPE_CHECKING:
    from .application import Application


logger = logging.getLogger("ardea.asgi")

METHOD_PARAMETER = "ardea.method"
PHASE_PARAMETER = "ardea.phase"
QUEUE_SIZE = 16
POLL_INTERVAL = 0.1

Headers = List[Tuple[bytes, bytes]]


class ClientDisconnected(Exception):
    """The client went away while the response was produced."""


# ============================================================================
# Events between the worker thread and the event loop
# ============================================================================

@dataclass
class _Start:
    status: int
    headers: Headers = field(default_factory=list)


@dataclass
class _Data:
    body: bytes


@dataclass
class _End:
    error: Optional[BaseException] = None


class _Channel:
    """
    Bounded, cancellable event queue from a worker thread to the event loop.

    The worker blocks in ``put`` while the queue is full; the event loop
    awaits ``get`` without holding an executor thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, size: int = QUEUE_SIZE):
        self._loop = loop
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=size)
        self.cancelled = threading.Event()
        self.started = False
        self.finished = False

    def put(self, event: Any) -> None:
        """
        Worker thread side.

        Raises:
            ClientDisconnected: If the channel was cancelled
        """
        if self.cancelled.is_set():
            raise ClientDisconnected()
        future = asyncio.run_coroutine_threadsafe(self._queue.put(event), self._loop)
        while True:
            try:
                future.result(timeout=POLL_INTERVAL)
                break
            except concurrent.futures.TimeoutError:
                if self.cancelled.is_set():
                    future.cancel()
                    raise ClientDisconnected()
        if isinstance(event, _Start):
            self.started = True
        elif isinstance(event, _End):
            self.finished = True

    async def get(self) -> Optional[Any]:
        """Next event, or None once the channel is cancelled."""
        return await self._queue.get()

    def cancel(self) -> None:
        """Event loop side: drop pending events and wake the consumer."""
        if self.cancelled.is_set():
            return
        self.cancelled.set()
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)


# ============================================================================
# Stream
# ============================================================================

class ASGIStream:
    """
    Stream collecting property chunks into response headers.

    Headers are sent with the first data chunk, or on close for an empty body.
    """

    def __init__(self, channel: _Channel, status: int, mime_type: Optional[str], charset: Optional[str]):
        self.channel = channel
        self.status = status
        self.charset = charset or DEFAULT_CHARSET
        self.headers: Headers = []
        self.closed = False
        if mime_type:
            content_type = f"{mime_type}; charset={self.charset}" if is_textual(mime_type) else mime_type
            self.headers.append((b"content-type", content_type.encode("latin-1")))

    def provide(self, chunk: Chunk) -> None:
        if self.closed:
            raise ValueError("Stream is closed")
        if isinstance(chunk, PropertyChunk):
            if self.channel.started:
                raise ValueError("Property chunk after body data")
            self._property(chunk)
            return
        if not self.channel.started:
            self.channel.put(_Start(self.status, self.headers))
        data = chunk.data.encode(self.charset) if chunk.is_text else chunk.data
        self.channel.put(_Data(data))

    def _property(self, chunk: PropertyChunk) -> None:
        if chunk.type is PropertyType.HEADER:
            name, values = chunk.value
            for value in values:
                self.headers.append((name.lower().encode("latin-1"), str(value).encode("latin-1")))
        else:
            logger.debug("Property %s not sent over HTTP", chunk.type.name)

    def close(self, error: Optional[BaseException] = None) -> None:
        if self.closed:
            return
        self.closed = True
        if self.channel.cancelled.is_set():
            return
        if error is not None:
            logger.error("Response stream failed: %s", error)
        if not self.channel.started:
            status = 500 if error is not None else self.status
            self.channel.put(_Start(status, self.headers))
            self.channel.put(_End())
        else:
            self.channel.put(_End(error))


# ============================================================================
# Bridge
# ============================================================================

class ASGIBridge(Bridge):
    """
    Bridge for one HTTP request.

    Args:
        app: Owning ASGI application
        interaction: Interaction read from the request
        scope: ASGI connection scope
        channel: Event channel to the event loop
    """

    def __init__(self, app: "ASGIBridgeApp", interaction: Interaction, scope: Mapping[str, Any], channel: _Channel):
        self.app = app
        self.scope = scope
        self.channel = channel
        self._interaction = interaction

    @property
    def interaction(self) -> Interaction:
        return self._interaction

    @property
    def properties(self) -> Mapping[str, Any]:
        config = self.app.application.config
        return {
            "request_encoding": config.request_encoding,
            "run_mode": config.run_mode,
            "http_method": self.scope.get("method", "GET"),
            "path": self.scope.get("path", "/"),
        }

    def create_stream(self, status: int, mime_type: Optional[str], charset: Optional[str]) -> ASGIStream:
        return ASGIStream(self.channel, status, mime_type, charset)

    def redirect(self, location: str) -> None:
        self.channel.put(_Start(302, [(b"location", location.encode("latin-1"))]))
        self.channel.put(_End())

    def render_view(self, view: View) -> None:
        """
        Redirect the browser to the view after a POST, unless the view sets
        ``REDIRECT_AFTER_ACTION`` to False; render it in place otherwise.
        """
        target = getattr(view, "interaction", None)
        if target is None:
            raise TypeError(f"Cannot render {type(view).__name__} over HTTP")
        interaction = target()
        redirect = view.properties.get_value(PropertyType.REDIRECT_AFTER_ACTION)
        if redirect is None:
            redirect = True
        if redirect and self.scope.get("method", "GET") not in ("GET", "HEAD"):
            self.redirect(self.app.url_for(interaction, self.scope.get("root_path", "")))
            return
        derived = ASGIBridge(self.app, interaction, self.scope, self.channel)
        self.app.application.dispatcher.serve(derived)


# ============================================================================
# Application
# ============================================================================

class ASGIBridgeApp:
    """
    ASGI callable wrapping an Application.

    Args:
        application: Application to serve, started on lifespan startup or on
            the first request
    """

    def __init__(self, application: "Application"):
        self.application = application

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            logger.warning("Unsupported ASGI scope type: %s", scope_type)

    # ========================================================================
    # HTTP
    # ========================================================================

    async def handle_http(self, scope: dict, receive: Callable, send: Callable) -> None:
        body = await self._read_body(receive)
        try:
            interaction = self.interaction_for(scope, body)
        except RoutingFault as e:
            logger.log(e.log_level, "Bad request %s: %s", scope.get("path"), e)
            await self._send_status(send, e.status, str(e))
            return

        channel = _Channel(asyncio.get_running_loop())
        bridge = ASGIBridge(self, interaction, scope, channel)
        producer = asyncio.ensure_future(asyncio.to_thread(self._produce, bridge))
        watcher = asyncio.ensure_future(self._watch_disconnect(receive, channel))
        head = scope.get("method") == "HEAD"
        try:
            while True:
                event = await channel.get()
                if event is None:
                    break
                if isinstance(event, _Start):
                    await send({"type": "http.response.start", "status": event.status, "headers": event.headers})
                elif isinstance(event, _Data):
                    if not head:
                        await send({"type": "http.response.body", "body": event.body, "more_body": True})
                else:
                    if event.error is not None:
                        raise StreamAbortedFault(bridge.interaction.method_id) from event.error
                    await send({"type": "http.response.body", "body": b"", "more_body": False})
                    break
        finally:
            channel.cancel()
            watcher.cancel()
            await asyncio.gather(producer, watcher, return_exceptions=True)

    def _produce(self, bridge: ASGIBridge) -> None:
        """Worker thread: dispatch and push the response into the channel."""
        channel = bridge.channel
        try:
            self.application.serve(bridge)
        except ClientDisconnected:
            logger.info("Client disconnected during %s", bridge.interaction.method_id or "default view")
            return
        except Exception as e:
            logger.error("Cannot serve %s: %s", bridge.interaction.method_id, e, exc_info=e)
            if channel.cancelled.is_set() or channel.finished:
                return
            if not channel.started:
                channel.put(_Start(500, [(b"content-type", b"text/plain; charset=UTF-8")]))
                channel.put(_Data(b"Internal Server Error"))
                channel.put(_End())
            else:
                channel.put(_End(e))
            return
        if not channel.finished and not channel.cancelled.is_set():
            if not channel.started:
                channel.put(_Start(500))
            channel.put(_End())

    async def _read_body(self, receive: Callable) -> bytes:
        parts = []
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
            parts.append(message.get("body", b""))
            if not message.get("more_body", False):
                break
        return b"".join(parts)

    async def _watch_disconnect(self, receive: Callable, channel: _Channel) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                channel.cancel()
                return

    async def _send_status(self, send: Callable, status: int, text: str) -> None:
        await send({
            "type": "http.response.start",
            "status": status,
            "headers": [(b"content-type", b"text/plain; charset=UTF-8")],
        })
        await send({"type": "http.response.body", "body": text.encode("utf-8")})

    # ========================================================================
    # Interaction mapping
    # ========================================================================

    def interaction_for(self, scope: Mapping[str, Any], body: bytes = b"") -> Interaction:
        """
        Read the interaction of an HTTP request.

        Raises:
            RoutingFault: If the phase hint is not a phase
        """
        encoding = self.application.config.request_encoding
        parameters: Dict[str, List[str]] = {}
        query = scope.get("query_string", b"").decode("latin-1")
        for name, value in parse_qsl(query, keep_blank_values=True, encoding=encoding):
            parameters.setdefault(name, []).append(value)
        if body and _content_type(scope).startswith("application/x-www-form-urlencoded"):
            for name, value in parse_qsl(body.decode("latin-1"), keep_blank_values=True, encoding=encoding):
                parameters.setdefault(name, []).append(value)

        method_ids = parameters.pop(METHOD_PARAMETER, None)
        phases = parameters.pop(PHASE_PARAMETER, None)
        method_id = method_ids[0] if method_ids else None
        if method_id is None:
            path = scope.get("path", "/")
            method = self.application.registry.find_route(path)
            if method is not None:
                method_id = method.id
            elif path.strip("/"):
                method_id = path.strip("/")

        phase = None
        if phases:
            try:
                phase = Phase(phases[0].lower())
            except ValueError:
                raise RoutingFault("INVALID_PHASE", f"'{phases[0]}' is not a phase", metadata={"phase": phases[0]})
        return Interaction.of(phase, method_id, parameters)

    def url_for(self, interaction: Interaction, root_path: str = "") -> str:
        """URL running ``interaction`` with a GET request."""
        path = "/"
        if interaction.method_id is not None:
            method = self.application.registry.resolve(interaction.method_id)
            path = method.route or f"/{method.id}"
        pairs = [(name, value) for name, values in interaction.parameters.items() for value in values]
        query = urlencode(pairs, encoding=self.application.config.request_encoding)
        return f"{root_path}{path}?{query}" if query else f"{root_path}{path}"

    # ========================================================================
    # Lifespan
    # ========================================================================

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    await asyncio.to_thread(self.application.start)
                except Exception as e:
                    logger.error("Startup error: %s", e, exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    return
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                self.application.stop()
                await send({"type": "lifespan.shutdown.complete"})
                return


def _content_type(scope: Mapping[str, Any]) -> str:
    for name, value in scope.get("headers", ()):
        if name.lower() == b"content-type":
            return value.decode("latin-1").lower()
    return ""


_TEXTUAL_TYPES = frozenset({
    "application/javascript",
    "application/json",
    "application/x-www-form-urlencoded",
    "application/xml",
    "image/svg+xml",
})


def is_textual(mime_type: str) -> bool:
    """Whether a body of this mime type is text, and so carries a charset."""
    mime_type = mime_type.split(";", 1)[0].strip().lower()
    return (
        mime_type.startswith("text/")
        or mime_type in _TEXTUAL_TYPES
        or mime_type.endswith(("+xml", "+json"))
    )
