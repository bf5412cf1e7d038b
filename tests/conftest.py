"""
Shared test fixtures and helpers for the Ardea test suite.
"""

import pytest

from ardea.request import RunMode
from ardea.templates import MemoryLoader, TagRegistry, TemplateCache, TemplateRenderer
from ardea.testing import MockApplication, MockBridge


# ============================================================================
# Templates
# ============================================================================

def make_cache(templates, *, run_mode=RunMode.PROD, tags=True):
    """TemplateCache over in-memory templates, simple tags registered."""
    loader = MemoryLoader(dict(templates))
    registry = TagRegistry.with_builtins()
    if tags:
        registry.register_simple_tags(loader.list_templates())
    return TemplateCache(loader, registry, run_mode=run_mode)


def render(templates, path="index.gtmpl", parameters=None, *, autoescape=False):
    """Render one template of an in-memory set, return the RenderResult."""
    cache = make_cache(templates)
    renderer = TemplateRenderer(cache, cache.compiler.registry, autoescape=autoescape)
    return renderer.render(path, parameters or {})


@pytest.fixture
def loader():
    return MemoryLoader()


@pytest.fixture
def registry():
    return TagRegistry.with_builtins()


# ============================================================================
# Application
# ============================================================================

@pytest.fixture
def bridge():
    return MockBridge()


@pytest.fixture
def make_app():
    """Factory building a MockApplication."""
    created = []

    def factory(controllers=(), templates=None, **kwargs):
        app = MockApplication(controllers, templates, **kwargs)
        created.append(app)
        return app

    yield factory
    for app in created:
        app.stop()
