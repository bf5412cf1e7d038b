"""
Ardea Testing - in-process client.

Runs interactions against an Application through MockBridges:

    client = MockClient(app)
    bridge = client.view("Home.show", name="ardea")
    assert bridge.status == 200
    assert "ardea" in bridge.text
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from ..request import Interaction, Phase
from .bridge import MockBridge

if TYPE_CHECKING:
    from ..application import Application


class MockClient:
    """
    Args:
        application: Application to drive, started on first use
        follow: Render the view chosen by an action in a second interaction
    """

    def __init__(self, application: "Application", *, follow: bool = False):
        self.application = application
        self.follow = follow

    def invoke(self, phase: Optional[Phase], method_id: Optional[str] = None, **parameters: Any) -> MockBridge:
        """Serve one interaction and return the bridge that recorded it."""
        interaction = Interaction.of(phase, method_id, _parameters(parameters))
        bridge = self._bridge(interaction)
        self.application.serve(bridge)
        interaction_of = getattr(bridge.view, "interaction", None)
        if self.follow and interaction_of is not None:
            followed = self._bridge(interaction_of())
            self.application.serve(followed)
            return followed
        return bridge

    def view(self, method_id: Optional[str] = None, **parameters: Any) -> MockBridge:
        return self.invoke(Phase.VIEW, method_id, **parameters)

    def action(self, method_id: str, **parameters: Any) -> MockBridge:
        return self.invoke(Phase.ACTION, method_id, **parameters)

    def resource(self, method_id: str, **parameters: Any) -> MockBridge:
        return self.invoke(Phase.RESOURCE, method_id, **parameters)

    def _bridge(self, interaction: Interaction) -> MockBridge:
        config = self.application.config
        return MockBridge(interaction, run_mode=config.run_mode, request_encoding=config.request_encoding)


def _parameters(parameters: Any) -> dict:
    values = {}
    for name, value in parameters.items():
        if isinstance(value, (list, tuple)):
            values[name] = [str(v) for v in value]
        else:
            values[name] = str(value)
    return values
