"""
Styled CLI output built on click.

click.style handles NO_COLOR and dumb terminals.
"""

from __future__ import annotations

import click


_BULLET = "•"
_CHECK = "✓"
_CROSS = "✗"


def success(message: str) -> None:
    """Print success message in green."""
    click.echo(click.style(message, fg="green"))


def error(message: str) -> None:
    """Print error message in red."""
    click.echo(click.style(message, fg="red"), err=True)


def warning(message: str) -> None:
    click.echo(click.style(message, fg="yellow"))


def info(message: str) -> None:
    click.echo(click.style(message, fg="cyan"))


def kv(key: str, value: str, *, key_width: int = 16, indent: int = 2) -> None:
    """
    Print an aligned key-value pair.

        Templates:      8
        Output:         build/templates
    """
    prefix = " " * indent
    padding = " " * max(1, key_width - len(key) - 1)
    click.echo(f"{prefix}{key}:{padding}{click.style(str(value), fg='cyan')}")


def bullet(text: str, *, indent: int = 2, fg: str = "white", err: bool = False) -> None:
    prefix = " " * indent
    click.echo(f"{prefix}{click.style(_BULLET, fg='cyan')} {click.style(text, fg=fg)}", err=err)
