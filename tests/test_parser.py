"""
Template parser (templates/parser.py)

Tests the gtmpl syntax: text, expressions, scriptlets, tags and errors.
"""

import pytest

from ardea.templates import ast
from ardea.templates.parser import TemplateSyntaxError, parse


# ============================================================================
# Text and expressions
# ============================================================================

class TestExpressions:

    def test_text_only(self):
        root = parse("hello")
        assert root.children == [ast.Text("hello", ast.Location(1, 1))]

    def test_dollar_expression(self):
        root = parse("a${name}b")
        text, expression, tail = root.children
        assert text.text == "a"
        assert expression.source == "name"
        assert expression.location == ast.Location(1, 2)
        assert tail.text == "b"

    def test_scriptlet_expression(self):
        (expression,) = parse("<%= user.name %>").children
        assert isinstance(expression, ast.Expression)
        assert expression.source == "user.name"

    def test_nested_braces(self):
        (expression,) = parse("${ {'a': 1}['a'] }").children
        assert expression.source == "{'a': 1}['a']"

    def test_brace_inside_string(self):
        (expression,) = parse("${ '}' ~ x }").children
        assert expression.source == "'}' ~ x"

    def test_escapes(self):
        (text,) = parse(r"\${a} \#{b} \<%c").children
        assert text.text == "${a} #{b} <%c"

    def test_location_on_later_line(self):
        root = parse("line1\n  ${x}")
        assert root.children[1].location == ast.Location(2, 3)

    def test_empty_expression(self):
        with pytest.raises(TemplateSyntaxError):
            parse("${  }")

    def test_unterminated_expression(self):
        with pytest.raises(TemplateSyntaxError) as info:
            parse("abc ${x")
        assert info.value.reason == "Unterminated expression"
        assert info.value.location == ast.Location(1, 5)


# ============================================================================
# Scriptlets
# ============================================================================

class TestScriptlets:

    def test_if_elif_else(self):
        (node,) = parse("<% if a %>A<% elif b %>B<% else %>C<% end %>").children
        assert isinstance(node, ast.If)
        assert [c.source for c, _ in node.branches] == ["a", "b"]
        assert node.branches[0][1][0].text == "A"
        assert node.branches[1][1][0].text == "B"
        assert node.orelse[0].text == "C"

    def test_trailing_colon(self):
        (node,) = parse("<% if a: %>A<% else: %>B<% end %>").children
        assert node.orelse[0].text == "B"

    def test_for_with_targets(self):
        (node,) = parse("<% for k, v in items.items() %>${k}<% end %>").children
        assert isinstance(node, ast.For)
        assert node.targets == ("k", "v")
        assert node.iterable.source == "items.items()"
        assert node.body[0].source == "k"

    def test_set(self):
        (node,) = parse("<% set total = a + b %>").children
        assert isinstance(node, ast.Set)
        assert node.name == "total"
        assert node.expression.source == "a + b"

    def test_unclosed_block(self):
        with pytest.raises(TemplateSyntaxError, match="Unclosed if block"):
            parse("<% if a %>x")

    def test_stray_end(self):
        with pytest.raises(TemplateSyntaxError, match="Unexpected 'end'"):
            parse("<% end %>")

    def test_else_outside_if(self):
        with pytest.raises(TemplateSyntaxError):
            parse("<% for x in y %><% else %><% end %>")

    def test_unsupported_statement(self):
        with pytest.raises(TemplateSyntaxError, match="Unsupported statement"):
            parse("<% while x %>")


# ============================================================================
# Tags
# ============================================================================

class TestTags:

    def test_empty_tag(self):
        (tag,) = parse("#{include path=foo.gtmpl/}").children
        assert tag.name == "include"
        assert tag.parameters == {"path": "foo.gtmpl"}
        assert tag.body is None

    def test_parameter_forms(self):
        (tag,) = parse("#{box a=1 b=\"two words\" c='x' d=${user.name}/}").children
        assert tag.parameters["a"] == "1"
        assert tag.parameters["b"] == "two words"
        assert tag.parameters["c"] == "x"
        assert isinstance(tag.parameters["d"], ast.Expression)
        assert tag.parameters["d"].source == "user.name"

    def test_body_tag(self):
        (tag,) = parse("#{foo}bar#{/foo}").children
        assert tag.body == [ast.Text("bar", ast.Location(1, 7))]

    def test_nested_tags(self):
        (outer,) = parse("#{foo}#{bar}x#{/bar}#{/foo}").children
        (inner,) = outer.body
        assert inner.name == "bar"
        assert inner.body[0].text == "x"

    def test_mismatched_close(self):
        with pytest.raises(TemplateSyntaxError, match="Unexpected closing tag 'bar'"):
            parse("#{foo}x#{/bar}")

    def test_unclosed_tag(self):
        with pytest.raises(TemplateSyntaxError, match="Unclosed tag 'foo'"):
            parse("#{foo}x")

    def test_missing_parameter_value(self):
        with pytest.raises(TemplateSyntaxError):
            parse("#{foo a=/}")


# ============================================================================
# Walking
# ============================================================================

class TestWalk:

    def test_expressions_in_order(self):
        root = parse("${a}<% if b %>#{t v=${c}/}<% end %>")
        sources = [e.source for node in ast.walk(root) for e in ast.expressions_of(node)]
        assert sources == ["a", "b", "c"]
