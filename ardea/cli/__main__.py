"""Ardea CLI - Main Entry Point.

Commands:
    compile  - Compile a template tree, report every diagnostic
    serve    - Serve an application with uvicorn
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from . import __version__, __cli_name__
from ..faults import ConfigInvalidFault, TemplateCompilationFault
from .utils.colors import _CHECK, _CROSS, bullet, error, info, kv, success, warning


@click.group()
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, verbose: bool):
    """Ardea: controllers, responses and compiled gtmpl templates.

    \b
    Quick start:
      ardea compile templates/
      ardea serve myapp:app
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


# ============================================================================
# Commands
# ============================================================================

@cli.command('compile')
@click.argument('root', type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option('--output', '-o', type=click.Path(file_okay=False, path_type=Path), help='Write generated modules here')
@click.option('--library', '-l', 'libraries', multiple=True, help='Tag library module exposing TAGS')
@click.option('--force', is_flag=True, help='Overwrite generated modules')
@click.pass_context
def compile_cmd(ctx, root: Path, output: Optional[Path], libraries: Tuple[str, ...], force: bool):
    """
    Compile every template under ROOT.

    Examples:
      ardea compile templates/
      ardea compile templates/ --output build/templates --force
    """
    from .commands.compile import compile_templates

    try:
        result = compile_templates(root, output, libraries, overwrite=force)
    except TemplateCompilationFault as e:
        error(f"  {_CROSS} Compilation failed: {len(e.errors)} error(s)")
        for diagnostic in e.errors:
            location = f" at {diagnostic.location}" if diagnostic.location else ""
            bullet(
                f"{diagnostic.code} {list(diagnostic.arguments)} in {diagnostic.source or '?'}{location}",
                fg="red",
                err=True,
            )
        sys.exit(1)
    except ConfigInvalidFault as e:
        error(f"  {_CROSS} {e}")
        sys.exit(1)

    if not result.models:
        warning(f"  No templates found under {root}")
        return

    success(f"  {_CHECK} Compilation complete")
    kv("Templates", str(len(result.models)))
    if output is not None:
        kv("Output", str(output))
    if ctx.obj['verbose']:
        for key, model in sorted(result.models.items()):
            bullet(f"{key} (version {model.version})")


@cli.command('serve')
@click.argument('target')
@click.option('--host', type=str, default='127.0.0.1', help='Server host')
@click.option('--port', type=int, default=8000, help='Server port')
@click.option(
    '--log-level',
    type=click.Choice(['critical', 'error', 'warning', 'info', 'debug']),
    default='info',
    help='Logging level',
)
def serve(target: str, host: str, port: int, log_level: str):
    """
    Serve TARGET (module:attribute of an Application or ASGI app).

    Examples:
      ardea serve myapp:app
      ardea serve myapp:app --port 8080 --log-level debug
    """
    from .commands.serve import serve_application

    try:
        serve_application(target, host=host, port=port, log_level=log_level)
    except KeyboardInterrupt:
        click.echo()
        info(f"  {_CHECK} Server stopped")
    except ImportError as e:
        error(f"  {_CROSS} Cannot load {target}: {e}")
        sys.exit(1)


def main():
    """Entry point for `ardea` command."""
    cli(obj={})


if __name__ == '__main__':
    main()
