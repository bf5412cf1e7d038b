"""
Ardea debug helpers.

HTML rendering of faults for verbose error responses (development run modes).
"""

from .formatting import render_stylesheet, render_throwable, cause_chain, fault_summary

__all__ = [
    "render_stylesheet",
    "render_throwable",
    "cause_chain",
    "fault_summary",
]
