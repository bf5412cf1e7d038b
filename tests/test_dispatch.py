"""
Controller registration, argument binding and dispatch
(controller/*).
"""

from typing import List, Optional

import pytest

from ardea.controller import ControllerRegistry, Dispatcher, MethodView, action, resource, view
from ardea.controller.dispatcher import bind_arguments
from ardea.controller.factory import ControllerFactory, InstantiationMode
from ardea.faults import (
    ControllerNotFoundFault,
    ForbiddenFault,
    MissingParameterFault,
    PhaseMismatchFault,
    RoutingFault,
)
from ardea.request import Interaction, Phase, Request
from ardea.response import Content, Error, Forbidden, Redirect, Response, Status
from ardea.streaming import DataChunk


# ============================================================================
# Controllers
# ============================================================================

class Home:
    @view
    def index(self):
        return Response.ok("home")

    @view(route="/greet")
    def greet(self, name: str):
        return f"hello {name}"

    @view
    def nothing(self):
        return None

    @view
    def count(self, n: int, scale: float = 1.0, loud: bool = False):
        return Response.ok(f"{n * scale}{'!' if loud else ''}")

    @view
    def tags(self, tag: List[str]):
        return Response.ok(",".join(tag))

    @view
    def maybe(self, q: Optional[str] = None):
        return Response.ok(repr(q))

    @view
    def invalid(self):
        return 42

    @view
    def boom(self):
        raise RuntimeError("boom")

    @view
    def denied(self):
        raise PermissionError("not yours")

    @view
    def fault_denied(self):
        raise ForbiddenFault("members only")

    @view
    def current(self):
        request = Request.current()
        return Response.ok(f"{request.method.id}:{request.phase.value}")

    @action
    def save(self, title: str):
        return None

    @action
    def back(self):
        return Response.redirect("/elsewhere")

    @action
    def show_greet(self, name: str):
        return MethodView(Home.registry.resolve("Home.greet"), {"name": name})

    @action
    def bad_action(self):
        return Response.ok("not allowed")

    @resource
    def data(self):
        return Response.ok(b"\x00\x01")


Home.registry = ControllerRegistry([Home])


@pytest.fixture
def dispatcher():
    return Dispatcher(Home.registry)


# ============================================================================
# Registry
# ============================================================================

class TestRegistry:

    def test_methods_are_registered(self):
        registry = Home.registry
        assert "Home.index" in registry
        assert registry.resolve("Home.save").phase is Phase.ACTION
        assert registry.resolve("Home.data").phase is Phase.RESOURCE
        assert registry.find_route("/greet").id == "Home.greet"
        assert registry.find_route("/nope") is None

    def test_default_view_is_index(self):
        assert Home.registry.default_view().id == "Home.index"

    def test_explicit_default_view(self):
        class Site:
            @view
            def index(self):
                pass

            @view(default=True)
            def landing(self):
                pass

        assert ControllerRegistry([Site]).default_view().id == "Site.landing"

    def test_no_default_view(self):
        class Api:
            @resource
            def data(self):
                pass

        with pytest.raises(ControllerNotFoundFault):
            ControllerRegistry([Api]).default_view()

    def test_unknown_method(self):
        with pytest.raises(ControllerNotFoundFault) as info:
            Home.registry.resolve("Home.missing")
        assert info.value.status == 404

    def test_duplicate_registration(self):
        registry = ControllerRegistry([Home])
        with pytest.raises(ValueError):
            registry.register(Home)

    def test_register_requires_class(self):
        with pytest.raises(TypeError):
            ControllerRegistry([object()])

    def test_var_args_rejected(self):
        class Bad:
            @view
            def index(self, *names):
                pass

        with pytest.raises(TypeError):
            ControllerRegistry([Bad])


# ============================================================================
# Argument binding
# ============================================================================

class TestBinding:

    def test_zero_argument_view(self):
        assert bind_arguments(Home.registry.resolve("Home.index"), {}) == {}

    def test_missing_parameter(self):
        with pytest.raises(MissingParameterFault) as info:
            bind_arguments(Home.registry.resolve("Home.greet"), {})
        assert info.value.name == "name"
        assert info.value.code == "MISSING_PARAMETER"
        assert info.value.status == 400

    def test_conversions(self):
        method = Home.registry.resolve("Home.count")
        arguments = bind_arguments(method, {"n": ("3",), "scale": ("0.5",), "loud": ("yes",)})
        assert arguments == {"n": 3, "scale": 0.5, "loud": True}

    def test_defaults(self):
        method = Home.registry.resolve("Home.count")
        assert bind_arguments(method, {"n": ("3",)}) == {"n": 3, "scale": 1.0, "loud": False}

    def test_invalid_value(self):
        with pytest.raises(RoutingFault) as info:
            bind_arguments(Home.registry.resolve("Home.count"), {"n": ("three",)})
        assert info.value.code == "INVALID_PARAMETER"

    def test_invalid_boolean(self):
        with pytest.raises(RoutingFault):
            bind_arguments(Home.registry.resolve("Home.count"), {"n": ("1",), "loud": ("maybe",)})

    def test_multivalued(self):
        method = Home.registry.resolve("Home.tags")
        assert bind_arguments(method, {"tag": ("a", "b")}) == {"tag": ["a", "b"]}

    def test_first_value_for_single_parameter(self):
        method = Home.registry.resolve("Home.greet")
        assert bind_arguments(method, {"name": ("a", "b")}) == {"name": "a"}

    def test_optional(self):
        method = Home.registry.resolve("Home.maybe")
        assert bind_arguments(method, {}) == {"q": None}


# ============================================================================
# Dispatch
# ============================================================================

class TestDispatch:

    def test_default_view(self, dispatcher):
        response = dispatcher.dispatch(Interaction())
        assert isinstance(response, Content)

    def test_string_becomes_content(self, dispatcher):
        response = dispatcher.dispatch(Interaction.of(Phase.VIEW, "Home.greet", {"name": "you"}))
        assert isinstance(response, Content)
        assert response.code == 200

    def test_none_view_is_ok(self, dispatcher):
        response = dispatcher.dispatch(Interaction.of(Phase.VIEW, "Home.nothing"))
        assert type(response) is Status
        assert response.code == 200

    def test_action_none_renders_default_view(self, dispatcher):
        response = dispatcher.dispatch(Interaction.of(Phase.ACTION, "Home.save", {"title": "t"}))
        assert response == MethodView(Home.registry.default_view())

    def test_action_redirect(self, dispatcher):
        response = dispatcher.dispatch(Interaction.of(Phase.ACTION, "Home.back"))
        assert response == Redirect("/elsewhere")

    def test_action_method_view(self, dispatcher):
        response = dispatcher.dispatch(Interaction.of(Phase.ACTION, "Home.show_greet", {"name": "x"}))
        assert response == MethodView(Home.registry.resolve("Home.greet"), {"name": "x"})
        assert response.interaction() == Interaction(Phase.VIEW, "Home.greet", {"name": ("x",)})

    def test_action_cannot_return_content(self, dispatcher):
        response = dispatcher.dispatch(Interaction.of(Phase.ACTION, "Home.bad_action"))
        assert isinstance(response, Error)
        assert "not a valid action response" in response.message

    def test_invalid_return_value(self, dispatcher):
        response = dispatcher.dispatch(Interaction.of(Phase.VIEW, "Home.invalid"))
        assert isinstance(response, Error)
        assert response.status == 500

    def test_exception_becomes_error(self, dispatcher):
        response = dispatcher.dispatch(Interaction.of(Phase.VIEW, "Home.boom"))
        assert isinstance(response, Error)
        assert isinstance(response.cause, RuntimeError)

    def test_permission_error_is_forbidden(self, dispatcher):
        response = dispatcher.dispatch(Interaction.of(Phase.VIEW, "Home.denied"))
        assert isinstance(response, Forbidden)
        assert response.status == 403

    def test_forbidden_fault(self, dispatcher):
        response = dispatcher.dispatch(Interaction.of(Phase.VIEW, "Home.fault_denied"))
        assert isinstance(response, Forbidden)

    def test_phase_mismatch(self, dispatcher):
        with pytest.raises(PhaseMismatchFault):
            dispatcher.dispatch(Interaction.of(Phase.ACTION, "Home.index"))

    def test_no_phase_hint(self, dispatcher):
        response = dispatcher.dispatch(Interaction.of(None, "Home.data"))
        assert isinstance(response, Content)

    def test_current_request(self, dispatcher):
        assert Request.current() is None
        response = dispatcher.dispatch(Interaction.of(Phase.VIEW, "Home.current"))
        text = "".join(c.data for c in response.streamable().chunks() if isinstance(c, DataChunk))
        assert text == "Home.current:view"
        assert Request.current() is None


# ============================================================================
# Controller instantiation
# ============================================================================

class TestFactory:

    def test_per_request(self):
        factory = ControllerFactory()
        assert factory.create(Home) is not factory.create(Home)

    def test_singleton(self):
        class Shared:
            instantiation_mode = InstantiationMode.SINGLETON

        factory = ControllerFactory()
        assert factory.create(Shared) is factory.create(Shared)

    def test_provider(self):
        created = []

        def provider(cls):
            created.append(cls)
            return cls()

        dispatcher = Dispatcher(Home.registry, factory=ControllerFactory(provider))
        dispatcher.dispatch(Interaction())
        assert created == [Home]
