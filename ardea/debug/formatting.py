"""
Ardea error formatting - HTML fragments for verbose error responses.

Self-contained HTML/CSS generators. No external dependencies, styles are
inlined so the fragment renders inside any host page.
"""

from __future__ import annotations

import html
import linecache
import os
from typing import Any, Dict, List, Optional, Tuple

from ..faults import Fault


_STYLESHEET = r"""
.ardea { font-family: 'SF Mono', 'Fira Code', 'Consolas', monospace; color: #001E2B; line-height: 1.5; }
.ardea h1 { font-size: 20px; color: #CF4A22; margin: 0 0 12px 0; }
.ardea .ardea-throwable { border-left: 3px solid #CF4A22; background: #FCEEE9; padding: 8px 12px; margin-bottom: 12px; }
.ardea .ardea-throwable p { font-weight: 700; margin: 0 0 6px 0; }
.ardea .ardea-cause-label { font-size: 12px; text-transform: uppercase; color: #5C6C75; margin: 8px 0 4px 0; }
.ardea ul.ardea-frames { list-style: none; margin: 0; padding: 0; font-size: 12px; }
.ardea ul.ardea-frames li { padding: 1px 0; }
.ardea ul.ardea-frames li code { color: #00684A; }
.ardea pre.ardea-source { background: #E8EDEB; padding: 4px 8px; margin: 2px 0 6px 0; font-size: 12px; }
"""


def _esc(text: Any) -> str:
    """HTML-escape a string."""
    return html.escape(str(text), quote=True)


def render_stylesheet(buffer: List[str]) -> None:
    """Append the error stylesheet to ``buffer``."""
    buffer.append("<style type=\"text/css\">")
    buffer.append(_STYLESHEET)
    buffer.append("</style>")


def _short_filename(filename: str) -> str:
    try:
        cwd = os.getcwd()
        if filename.startswith(cwd):
            return os.path.relpath(filename, cwd)
    except OSError:
        pass
    return filename


def _extract_frames(exc: BaseException) -> List[Tuple[str, int, str, str]]:
    """Return (filename, lineno, function, source line) for each traceback frame."""
    frames = []
    tb = exc.__traceback__
    while tb is not None:
        code = tb.tb_frame.f_code
        line = linecache.getline(code.co_filename, tb.tb_lineno).strip()
        frames.append((code.co_filename, tb.tb_lineno, code.co_name, line))
        tb = tb.tb_next
    return frames


def cause_chain(exc: BaseException) -> List[BaseException]:
    """
    Return ``exc`` followed by its causes, outermost first.

    Explicit causes (``raise ... from``) win over implicit context. Loops in
    the chain are cut.
    """
    chain: List[BaseException] = []
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        chain.append(current)
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None
    return chain


def render_throwable(buffer: List[str], exc: BaseException, *, source_lines: bool = True) -> None:
    """Append the HTML rendering of ``exc`` and its cause chain to ``buffer``."""
    for index, current in enumerate(cause_chain(exc)):
        if index > 0:
            buffer.append("<div class=\"ardea-cause-label\">Caused by</div>")
        buffer.append("<div class=\"ardea-throwable\">")
        message = str(current)
        title = type(current).__name__ + (f": {message}" if message else "")
        buffer.append(f"<p>{_esc(title)}</p>")
        buffer.append("<ul class=\"ardea-frames\">")
        for filename, lineno, function, line in _extract_frames(current):
            buffer.append(
                f"<li><code>{_esc(_short_filename(filename))}:{lineno}</code>"
                f" in <strong>{_esc(function)}</strong>"
            )
            if source_lines and line:
                buffer.append(f"<pre class=\"ardea-source\">{_esc(line)}</pre>")
            buffer.append("</li>")
        buffer.append("</ul>")
        buffer.append("</div>")


def fault_summary(exc: BaseException) -> Dict[str, Any]:
    """Plain data view of an exception for logs, fault fields included."""
    summary: Dict[str, Any] = {
        "type": type(exc).__name__,
        "message": str(exc),
        "chain": [type(e).__name__ for e in cause_chain(exc)],
    }
    if isinstance(exc, Fault):
        summary.update(exc.to_dict())
    return summary
