# File: ddlapi/__main__.py
"""
ddlapi - Module entry point.

Allows running the tool directly via::

    python -m ddlapi schema.sql --format yaml

This module simply delegates to the CLI entry point defined in ``ddlapi.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from ddlapi.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
