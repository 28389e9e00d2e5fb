"""CLI entry point.

Allows running the CLI as a module: python -m jsmon_cli.cli
"""

from jsmon_cli.cli import app

if __name__ == "__main__":
    app()
