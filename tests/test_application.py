"""
Application lifecycle and serving through the mock bridge
(application.py, bridge.py, testing/).
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from ardea import Application, ArdeaConfig, MethodView, Response, Template, action, view
from ardea.faults import ConfigInvalidFault, TemplateCompilationFault
from ardea.request import Interaction, Phase, RunMode
from ardea.testing import MockApplication, MockBridge


class Blog:
    page = Template("page.gtmpl")

    @view
    def index(self):
        return self.page.ok(title="Home", items=["a", "b"])

    @view(route="/post")
    def post(self, id: int):
        if id > 10:
            return self.page.not_found(title="Missing", items=[])
        return Response.ok(f"post {id}").with_mime_type("text/plain")

    @action
    def publish(self, id: int):
        return MethodView(Blog.registry_method, {"id": id})

    @action
    def reset(self):
        return None

    @action
    def away(self):
        return Response.redirect("https://example.com/")

    @view
    def broken(self):
        raise RuntimeError("<b>unsafe</b>")

    @view
    def denied(self):
        raise PermissionError("nope")


PAGE = """#{title value=${title}/}<ul><% for item in items %><li>${item}</li><% end %></ul>"""


@pytest.fixture
def app(make_app):
    application = make_app([Blog], {"page.gtmpl": PAGE})
    Blog.registry_method = application.registry.resolve("Blog.post")
    return application


# ============================================================================
# Lifecycle
# ============================================================================

class TestLifecycle:

    def test_start_compiles_templates(self, app):
        app.start()
        assert app.started
        assert app.templates.compilations["/page.gtmpl"] == 1
        assert Blog.page.bound

    def test_start_is_idempotent(self, app):
        app.start()
        app.start()
        assert app.templates.compilations["/page.gtmpl"] == 1

    def test_concurrent_start(self, app):
        with ThreadPoolExecutor(max_workers=4) as pool:
            started = list(pool.map(lambda _: app.start(), range(4)))
        assert started == [app] * 4
        assert app.templates.compilations["/page.gtmpl"] == 1

    def test_start_fails_on_invalid_template(self, make_app):
        application = make_app([Blog], {"page.gtmpl": "#{missing/}", "other.gtmpl": "${"})
        with pytest.raises(TemplateCompilationFault) as info:
            application.start()
        assert {e.code for e in info.value.errors} == {"UNKNOWN_TAG", "TEMPLATE_SYNTAX_ERROR"}
        assert not application.started

    def test_start_fails_on_bad_tag_library(self, make_app):
        config = ArdeaConfig(run_mode=RunMode.DEV)
        config.tags.libraries.append("ardea_no_such_module")
        application = make_app([Blog], {"page.gtmpl": PAGE}, config=config)
        with pytest.raises(ConfigInvalidFault):
            application.start()

    def test_stop_clears_templates(self, app):
        app.start()
        app.stop()
        assert not app.started
        assert app.templates.model("page.gtmpl") is None

    def test_from_config(self, tmp_path):
        (tmp_path / "index.gtmpl").write_text("hi")
        application = Application.from_config(
            [Blog],
            paths=[],
            overrides={"templates": {"root": str(tmp_path)}, "run_mode": "dev"},
        )
        assert application.config.run_mode is RunMode.DEV
        assert application.loader.list_templates() == ["index.gtmpl"]

    def test_repr(self, app):
        assert "run_mode=dev" in repr(app)


# ============================================================================
# Serving
# ============================================================================

class TestServing:

    def test_default_view_renders_template(self, app):
        bridge = app.client().view()
        assert bridge.status == 200
        assert bridge.mime_type == "text/html"
        assert bridge.title == "Home"
        assert bridge.text == "<ul><li>a</li><li>b</li></ul>"
        assert bridge.closed
        assert bridge.error is None

    def test_template_not_found_status(self, app):
        bridge = app.client().view("Blog.post", id=11)
        assert bridge.status == 404
        assert bridge.title == "Missing"

    def test_plain_content(self, app):
        bridge = app.client().view("Blog.post", id=3)
        assert bridge.status == 200
        assert bridge.mime_type == "text/plain"
        assert bridge.text == "post 3"

    def test_missing_parameter_is_bad_request(self, app):
        bridge = app.client().view("Blog.post")
        assert bridge.status == 400
        assert bridge.parts == []

    def test_invalid_parameter_is_bad_request(self, app):
        assert app.client().view("Blog.post", id="x").status == 400

    def test_unknown_method_is_not_found(self, app):
        assert app.client().view("Blog.nope").status == 404

    def test_phase_mismatch_is_bad_request(self, app):
        assert app.client().action("Blog.index").status == 400

    def test_action_renders_view(self, app):
        bridge = app.client().action("Blog.publish", id=4)
        assert bridge.status is None
        assert bridge.view == MethodView(app.registry.resolve("Blog.post"), {"id": 4})

    def test_action_follow(self, app):
        bridge = app.client(follow=True).action("Blog.publish", id=4)
        assert bridge.text == "post 4"

    def test_action_none_renders_default_view(self, app):
        bridge = app.client(follow=True).action("Blog.reset")
        assert bridge.title == "Home"

    def test_redirect(self, app):
        bridge = app.client().action("Blog.away")
        assert bridge.location == "https://example.com/"
        assert bridge.status is None

    def test_error_verbose_in_dev(self, app):
        bridge = app.client().view("Blog.broken")
        assert bridge.status == 500
        assert "RuntimeError" in bridge.text
        assert "&lt;b&gt;unsafe&lt;/b&gt;" in bridge.text
        assert "<b>unsafe</b>" not in bridge.text

    def test_error_terse_in_prod(self, make_app):
        application = make_app([Blog], {"page.gtmpl": PAGE}, run_mode=RunMode.PROD)
        bridge = application.client().view("Blog.broken")
        assert bridge.status == 500
        assert bridge.parts == []

    def test_forbidden(self, app):
        assert app.client().view("Blog.denied").status == 403

    def test_serve_starts_application(self, app):
        bridge = MockBridge(Interaction.of(Phase.VIEW, "Blog.post", {"id": "1"}))
        app.serve(bridge)
        assert app.started
        assert bridge.text == "post 1"

    def test_dispatch_returns_response(self, app):
        response = app.dispatch(Interaction.of(Phase.VIEW, "Blog.post", {"id": "2"}))
        assert response.code == 200


# ============================================================================
# Live template reloading
# ============================================================================

class TestLiveMode:

    def test_live_mode_picks_up_template_edits(self, make_app):
        application = make_app([Blog], {"page.gtmpl": PAGE}, run_mode=RunMode.LIVE)
        assert application.client().view().text == "<ul><li>a</li><li>b</li></ul>"
        application.touch("page.gtmpl", "<p>${items[0]}</p>")
        assert application.client().view().text == "<p>a</p>"
        assert application.templates.model("page.gtmpl").version == 2

    def test_dev_mode_keeps_compiled(self, app):
        app.client().view()
        app.touch("page.gtmpl", "<p>changed</p>")
        assert app.client().view().text == "<ul><li>a</li><li>b</li></ul>"
