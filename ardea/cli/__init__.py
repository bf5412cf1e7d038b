"""
Ardea CLI.

Usage:
    ardea compile templates/
    ardea compile templates/ --output build/templates
    ardea serve myapp:app --port 8080
"""

__version__ = "0.1.0"
__cli_name__ = "ardea"


def main():
    """Wrapper to avoid eager import of __main__ which causes warnings with -m."""
    from .__main__ import main as _main
    return _main()
