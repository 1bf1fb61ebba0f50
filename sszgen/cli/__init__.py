"""
sszgen.cli
==========

Typer application behind the ``sszgen`` console script. The ``main(argv)``
entry point lives in :mod:`sszgen.cli.main`; it is not re-exported here so
that ``sszgen.cli.main`` keeps naming the module.
"""

from .main import app, run

__all__ = ["app", "run"]
