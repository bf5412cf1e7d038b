"""
Ardea Testing - in-process harness.

    from ardea.testing import MockApplication

    app = MockApplication([Home], {"index.gtmpl": "hello ${name}"})
    bridge = app.client().view("Home.index", name="you")
    assert bridge.text == "hello you"

Components:
    - MockBridge:      Bridge recording status, properties, body, redirect and view
    - MockClient:      Runs interactions through MockBridges
    - MockApplication: Application over a MemoryLoader
"""

from .application import MockApplication
from .bridge import MockBridge, MockStream
from .client import MockClient

__all__ = [
    "MockApplication",
    "MockBridge",
    "MockStream",
    "MockClient",
]
