"""
CLI layer for guardlog.

Entry point::

    guardlog --help
"""

from guardlog.cli.app import app

__all__ = ["app"]
