"""
Template parser for the gtmpl dialect.

Syntax:
    ${expr}                     print an expression
    <%= expr %>                 print an expression
    <% if expr %> ... <% elif expr %> ... <% else %> ... <% end %>
    <% for a, b in expr %> ... <% end %>
    <% set name = expr %>
    #{name k=v k2="v 2" k3=${expr}/}         empty tag
    #{name k=v}body#{/name}                  tag with a body
    \\${ \\#{ \\<%                              literal delimiters
"""

from __future__ import annotations

import bisect
import re
from typing import Dict, List, Optional, Tuple, Union

from . import ast


_TAG_NAME = re.compile(r"[A-Za-z_][\w.\-]*")
_IDENTIFIER = re.compile(r"[A-Za-z_]\w*$")
_FOR = re.compile(r"for\s+(?P<targets>[A-Za-z_][\w\s,]*?)\s+in\s+(?P<iterable>.+)$", re.S)
_SET = re.compile(r"set\s+(?P<name>[A-Za-z_]\w*)\s*=\s*(?P<expression>.+)$", re.S)
_PARAMETER = re.compile(r"([A-Za-z_][\w.\-]*)\s*=\s*")


class TemplateSyntaxError(ValueError):
    """Malformed template source."""

    def __init__(self, message: str, location: ast.Location):
        super().__init__(f"{message} at {location}")
        self.reason = message
        self.location = location


class _Frame:
    """An open container while parsing: the root, a tag body, an if or a for."""

    def __init__(self, node: ast.Node, body: List[ast.Node]):
        self.node = node
        self.body = body


class TemplateParser:
    """
    Parse template source into an ``ast.Template``.

    Example:
        root = TemplateParser("Hello ${name}").parse()
    """

    def __init__(self, source: str):
        self.source = source
        self._pos = 0
        self._text_start = 0
        self._line_starts = [0] + [m.end() for m in re.finditer("\n", source)]
        self._text: List[str] = []

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def _location(self, offset: int) -> ast.Location:
        line = bisect.bisect_right(self._line_starts, offset) - 1
        return ast.Location(line + 1, offset - self._line_starts[line] + 1)

    def _error(self, message: str, offset: int) -> TemplateSyntaxError:
        return TemplateSyntaxError(message, self._location(offset))

    # ------------------------------------------------------------------
    # Scanning helpers
    # ------------------------------------------------------------------

    def _scan_balanced(self, start: int) -> int:
        """Return the offset of the ``}`` closing an expression opened before ``start``."""
        depth = 0
        quote: Optional[str] = None
        i = start
        source = self.source
        while i < len(source):
            c = source[i]
            if quote:
                if c == "\\":
                    i += 1
                elif c == quote:
                    quote = None
            elif c in "\"'":
                quote = c
            elif c == "{":
                depth += 1
            elif c == "}":
                if depth == 0:
                    return i
                depth -= 1
            i += 1
        raise self._error("Unterminated expression", start - 2)

    def _scan_until(self, start: int, terminator: str, what: str) -> int:
        """Return the offset of ``terminator`` outside quotes."""
        quote: Optional[str] = None
        i = start
        source = self.source
        while i < len(source):
            c = source[i]
            if quote:
                if c == "\\":
                    i += 1
                elif c == quote:
                    quote = None
            elif c in "\"'":
                quote = c
            elif source.startswith(terminator, i):
                return i
            i += 1
        raise self._error(f"Unterminated {what}", start)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self) -> ast.Template:
        """
        Parse the whole source.

        Raises:
            TemplateSyntaxError: On malformed source
        """
        root = ast.Template()
        stack: List[_Frame] = [_Frame(root, root.children)]
        source = self.source
        text_offset = 0

        while self._pos < len(source):
            c = source[self._pos]
            if c == "\\" and source.startswith(("${", "#{", "<%"), self._pos + 1):
                self._text.append(source[self._pos + 1:self._pos + 3])
                self._pos += 3
                continue
            if source.startswith("${", self._pos):
                self._flush(stack, text_offset)
                start = self._pos
                end = self._scan_balanced(self._pos + 2)
                stack[-1].body.append(self._expression(source[start + 2:end], start))
                self._pos = end + 1
                text_offset = self._pos
                continue
            if source.startswith("<%", self._pos):
                self._flush(stack, text_offset)
                start = self._pos
                end = self._scan_until(self._pos + 2, "%>", "scriptlet")
                self._scriptlet(stack, source[start + 2:end], start)
                self._pos = end + 2
                text_offset = self._pos
                continue
            if source.startswith("#{", self._pos):
                self._flush(stack, text_offset)
                start = self._pos
                end = self._scan_balanced(self._pos + 2)
                self._tag(stack, source[start + 2:end], start)
                self._pos = end + 1
                text_offset = self._pos
                continue
            if not self._text:
                text_offset = self._pos
            self._text.append(c)
            self._pos += 1

        self._flush(stack, text_offset)
        if len(stack) > 1:
            frame = stack[-1]
            raise TemplateSyntaxError(f"Unclosed {self._describe(frame.node)}", frame.node.location)
        return root

    def _flush(self, stack: List[_Frame], offset: int) -> None:
        if self._text:
            stack[-1].body.append(ast.Text("".join(self._text), self._location(offset)))
            self._text = []

    def _expression(self, source: str, offset: int) -> ast.Expression:
        source = source.strip()
        if not source:
            raise self._error("Empty expression", offset)
        return ast.Expression(source, self._location(offset))

    @staticmethod
    def _describe(node: ast.Node) -> str:
        if isinstance(node, ast.Tag):
            return f"tag '{node.name}'"
        if isinstance(node, ast.If):
            return "if block"
        return "for block"

    # ------------------------------------------------------------------
    # Scriptlets
    # ------------------------------------------------------------------

    def _scriptlet(self, stack: List[_Frame], content: str, offset: int) -> None:
        if content.startswith("="):
            stack[-1].body.append(self._expression(content[1:], offset))
            return

        statement = content.strip()
        if statement.endswith(":"):
            statement = statement[:-1].rstrip()
        keyword = statement.split(None, 1)[0] if statement else ""
        location = self._location(offset)

        if keyword == "if":
            node = ast.If(location=location)
            body: List[ast.Node] = []
            node.branches.append((self._expression(statement[2:], offset), body))
            stack[-1].body.append(node)
            stack.append(_Frame(node, body))
        elif keyword in ("elif", "else"):
            frame = stack[-1]
            if not isinstance(frame.node, ast.If) or frame.node.orelse is not None:
                raise self._error(f"Unexpected '{keyword}'", offset)
            body = []
            if keyword == "elif":
                frame.node.branches.append((self._expression(statement[4:], offset), body))
            else:
                if statement != "else":
                    raise self._error("Unexpected content after 'else'", offset)
                frame.node.orelse = body
            frame.body = body
        elif keyword == "for":
            match = _FOR.match(statement)
            if match is None:
                raise self._error("Malformed for statement", offset)
            targets = tuple(t.strip() for t in match.group("targets").split(","))
            if not all(_IDENTIFIER.match(t) for t in targets):
                raise self._error("Malformed for targets", offset)
            node = ast.For(targets, self._expression(match.group("iterable"), offset), location=location)
            stack[-1].body.append(node)
            stack.append(_Frame(node, node.body))
        elif keyword == "set":
            match = _SET.match(statement)
            if match is None:
                raise self._error("Malformed set statement", offset)
            stack[-1].body.append(
                ast.Set(match.group("name"), self._expression(match.group("expression"), offset), location)
            )
        elif keyword == "end":
            if statement != "end":
                raise self._error("Unexpected content after 'end'", offset)
            if len(stack) == 1 or not isinstance(stack[-1].node, (ast.If, ast.For)):
                raise self._error("Unexpected 'end'", offset)
            stack.pop()
        else:
            raise self._error(f"Unsupported statement '{statement}'", offset)

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def _tag(self, stack: List[_Frame], content: str, offset: int) -> None:
        content = content.strip()
        if content.startswith("/"):
            name = content[1:].strip()
            frame = stack[-1]
            if len(stack) == 1 or not isinstance(frame.node, ast.Tag) or frame.node.name != name:
                raise self._error(f"Unexpected closing tag '{name}'", offset)
            stack.pop()
            return

        empty = content.endswith("/")
        if empty:
            content = content[:-1].rstrip()
        match = _TAG_NAME.match(content)
        if match is None:
            raise self._error("Missing tag name", offset)
        name = match.group(0)
        parameters = self._parameters(content[match.end():], offset)
        node = ast.Tag(name, parameters, None if empty else [], self._location(offset))
        stack[-1].body.append(node)
        if not empty:
            stack.append(_Frame(node, node.body))

    def _parameters(self, content: str, offset: int) -> Dict[str, Union[str, ast.Expression]]:
        parameters: Dict[str, Union[str, ast.Expression]] = {}
        i = 0
        n = len(content)
        while i < n:
            if content[i].isspace():
                i += 1
                continue
            match = _PARAMETER.match(content, i)
            if match is None:
                raise self._error(f"Malformed tag parameter '{content[i:].strip()}'", offset)
            key = match.group(1)
            i = match.end()
            if i >= n:
                raise self._error(f"Missing value for tag parameter '{key}'", offset)
            value, i = self._parameter_value(content, i, offset)
            parameters[key] = value
        return parameters

    def _parameter_value(self, content: str, i: int, offset: int) -> Tuple[Union[str, ast.Expression], int]:
        c = content[i]
        if c in "\"'":
            end = content.find(c, i + 1)
            while end != -1 and content[end - 1] == "\\":
                end = content.find(c, end + 1)
            if end == -1:
                raise self._error("Unterminated tag parameter value", offset)
            return content[i + 1:end].replace("\\" + c, c), end + 1
        if content.startswith("${", i):
            depth = 0
            for j in range(i + 2, len(content)):
                if content[j] == "{":
                    depth += 1
                elif content[j] == "}":
                    if depth == 0:
                        return self._expression(content[i + 2:j], offset), j + 1
                    depth -= 1
            raise self._error("Unterminated tag parameter expression", offset)
        end = i
        while end < len(content) and not content[end].isspace():
            end += 1
        return content[i:end], end


def parse(source: str) -> ast.Template:
    """Parse template source."""
    return TemplateParser(source).parse()
