"""Server command.

Loads an Application (or a ready ASGI callable) from ``module:attribute``
and serves it with uvicorn.
"""

import logging
import sys
from pathlib import Path
from typing import Any

from ...application import Application
from ...templates.tags.registry import import_object


def load_target(target: str) -> Any:
    """
    Import ``module:attribute`` from the working directory.

    An Application is wrapped in its ASGI bridge; anything else is returned
    as is.

    Raises:
        ImportError: If the target cannot be imported
    """
    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)
    app = import_object(target)
    if isinstance(app, Application):
        return app.asgi()
    return app


def serve_application(target: str, host: str = "127.0.0.1", port: int = 8000, log_level: str = "info") -> None:
    """
    Start uvicorn on the target application.

    Args:
        target: ``module:attribute`` of an Application or ASGI callable
        host: Bind host
        port: Bind port
        log_level: Root logging level
    """
    import uvicorn

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = load_target(target)
    uvicorn.run(app, host=host, port=port, log_level=log_level.lower())
