"""
sszgen.cli.main
===============

`sszgen`: generate SSZ marshal / unmarshal / size routines for annotated
record classes.

Examples
--------
    $ sszgen generate --path ./types                  # one *_encoding.py per module
    $ sszgen generate --path ./types/beacon.py --objs Attestation,Checkpoint
    $ sszgen generate --path ./types --output ./types/all_encoding.py
    $ sszgen generate --path ./types --best-effort --log-level INFO
    $ sszgen inspect --path ./types/beacon.py         # classified IR as JSON
    $ sszgen version

Configuration
-------------
- Suffix     : `--suffix` or env `SSZGEN_SUFFIX` or `[tool.sszgen] suffix`
- Policy     : `--fail-fast/--best-effort` or env `SSZGEN_FAIL_FAST`
- Logging    : `--log-level`, `--log-format` or env `SSZGEN_LOG_LEVEL`, `SSZGEN_LOG_FORMAT`

Exit codes: 0 success, 2 configuration error (bad annotations, unsupported
shapes, unknown records, nothing to generate, bad input), 1 any other error.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, NoReturn, Optional

import click
import typer

from .. import logging as slog
from .. import pipeline
from ..config import GeneratorConfig, load_config
from ..errors import SszgenError
from ..version import __version__

app = typer.Typer(
    name="sszgen",
    help="SSZ code generator: encoders, decoders and size routines for annotated record classes.",
    no_args_is_help=True,
    add_completion=False,
)

__all__ = ["app", "main", "run"]

EXIT_CONFIG = 2
EXIT_ERROR = 1


def _print_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _setup_logging(level: Optional[str], fmt: Optional[str]) -> None:
    if fmt is not None and fmt not in ("json", "text"):
        raise typer.BadParameter("expected 'json' or 'text'", param_hint="--log-format")
    slog.configure(json=None if fmt is None else fmt == "json", level=level)


def _fail(err: BaseException) -> NoReturn:
    if isinstance(err, SszgenError):
        typer.echo(f"error: {err}", err=True)
        for sub in getattr(err, "errors", []):
            typer.echo(f"  - {sub}", err=True)
        raise typer.Exit(EXIT_CONFIG if err.is_config else EXIT_ERROR)
    if isinstance(err, SyntaxError):
        typer.echo(f"error: {err.filename}:{err.lineno}: {err.msg}", err=True)
        raise typer.Exit(EXIT_CONFIG)
    raise err


def _config(path: Path, **overrides: Any) -> GeneratorConfig:
    try:
        return load_config(path, **overrides)
    except SszgenError as e:
        _fail(e)


_LOG_LEVEL = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING (default), ERROR.")
_LOG_FORMAT = typer.Option(None, "--log-format", help="Log format: json or text (default: text on a TTY).")
_PATH = typer.Option(..., "--path", "-p", help="Source file or directory of record declarations.")
_OBJS = typer.Option(None, "--objs", help="Comma separated record names (default: all records).")


@app.command("generate")
def generate(
    path: Path = _PATH,
    objs: Optional[str] = _OBJS,
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write every record into this single module."
    ),
    suffix: Optional[str] = typer.Option(None, "--suffix", help="Output module suffix (default: _encoding.py)."),
    fail_fast: Optional[bool] = typer.Option(
        None,
        "--fail-fast/--best-effort",
        help="Abort on the first bad record, or skip bad records and keep going.",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Generate and check everything, write nothing."),
    log_level: Optional[str] = _LOG_LEVEL,
    log_format: Optional[str] = _LOG_FORMAT,
) -> None:
    """Generate SSZ encoding modules."""
    _setup_logging(log_level, log_format)
    cfg = _config(path, suffix=suffix, fail_fast=fail_fast)
    try:
        result = pipeline.run(path, objs, output=output, config=cfg, dry_run=dry_run)
    except (SszgenError, SyntaxError) as e:
        _fail(e)

    for err in result.errors:
        typer.echo(f"warning: skipped record: {err}", err=True)
    verb = "would write" if dry_run else "wrote"
    for out in result.outputs:
        typer.echo(f"{verb} {out.path} ({', '.join(out.records)})")


@app.command("inspect")
def inspect(
    path: Path = _PATH,
    objs: Optional[str] = _OBJS,
    log_level: Optional[str] = _LOG_LEVEL,
    log_format: Optional[str] = _LOG_FORMAT,
) -> None:
    """Print the classified IR of the selected records as JSON."""
    _setup_logging(log_level, log_format)
    cfg = _config(path)
    try:
        with slog.run_scope():
            result = pipeline.build(path, objs, config=cfg)
    except (SszgenError, SyntaxError) as e:
        _fail(e)
    _print_json(result.schema.to_dict())


@app.command("version")
def version() -> None:
    """Print the sszgen version."""
    typer.echo(f"sszgen {__version__}")


def main(argv: Optional[list[str]] = None) -> int:
    """
    Run the CLI. Returns an integer exit code.
    """
    try:
        rv = app(prog_name="sszgen", standalone_mode=False, args=argv)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.exceptions.Abort:
        typer.echo("aborted", err=True)
        return EXIT_ERROR
    return rv if isinstance(rv, int) else 0


def run(argv: Optional[list[str]] = None) -> int:
    """Alias for :func:`main`."""
    return main(argv)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
