"""
Generation pipeline: scan -> resolve -> classify -> generate -> assemble -> write.

Single-threaded and batch oriented. Nothing is written unless every output
module was generated and formatted.

Batch policy (``GeneratorConfig.fail_fast``):
  - fail-fast (default): the first resolution error aborts the run.
  - best-effort: a failing record, and every record that references it, is
    skipped; the errors are logged and returned in `RunResult.errors`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from . import logging as slog
from .assemble import OutputUnit, assemble, write_outputs
from .classify import build_schema
from .config import GeneratorConfig
from .errors import BatchError, ConfigError, SszgenError, wrap
from .ir import Schema
from .resolver import ResolutionContext
from .scanner import CompilationUnit, scan_path

log = slog.get_logger(__name__)


@dataclass
class RunResult:
    run_id: str
    units: List[CompilationUnit]
    schema: Schema
    outputs: List[OutputUnit]
    written: List[Path] = field(default_factory=list)
    errors: List[SszgenError] = field(default_factory=list)

    @property
    def records(self) -> List[str]:
        return [r for o in self.outputs for r in o.records]


def parse_targets(objs: str | Iterable[str] | None) -> List[str]:
    """``"A, B"`` or ``["A", "B"]`` -> ``["A", "B"]``; empty means all records."""
    if objs is None:
        return []
    items = objs.split(",") if isinstance(objs, str) else list(objs)
    out: List[str] = []
    for item in items:
        name = item.strip()
        if name and name not in out:
            out.append(name)
    return out


def load_units(path: Path | str, config: GeneratorConfig) -> List[CompilationUnit]:
    """Scan the input path. Syntax errors in the sources propagate unchanged."""
    try:
        return scan_path(path, suffix=config.suffix, reserved_prefixes=config.reserved_prefixes)
    except FileNotFoundError as e:
        raise ConfigError("input path does not exist", path=str(path)) from e
    except (OSError, UnicodeDecodeError) as e:
        raise wrap(e, as_=ConfigError, path=str(path)) from e


def resolve_targets(
    ctx: ResolutionContext,
    targets: Sequence[str],
    config: GeneratorConfig,
    errors: List[SszgenError],
) -> List[str]:
    """Resolve the targets (all declared records when empty); returns those that resolved."""
    names = list(targets) or ctx.declared()
    ok: List[str] = []
    for name in names:
        slog.bind(record=name)
        try:
            ctx.resolve(name)
        except SszgenError as e:
            if config.fail_fast:
                raise
            log.warning("skipping record", extra={"error": e.message, "where": e.location()})
            errors.append(e)
            continue
        finally:
            slog.unbind("record")
        ok.append(name)
    return ok


def build(
    path: Path | str,
    targets: str | Iterable[str] | None = None,
    *,
    output: Path | str | None = None,
    config: Optional[GeneratorConfig] = None,
) -> RunResult:
    """Everything up to, but excluding, writing files."""
    cfg = (config or GeneratorConfig()).validate()
    wanted = parse_targets(targets)
    errors: List[SszgenError] = []

    units = load_units(path, cfg)
    log.info("scanned input", extra={"units": len(units), "path": str(path)})

    ctx = ResolutionContext(units)
    resolve_targets(ctx, wanted, cfg, errors)
    schema = build_schema(ctx, errors=None if cfg.fail_fast else errors)

    if errors and not schema.order:
        raise BatchError(errors)
    outputs = assemble(schema, units, schema.order, output=output, config=cfg)
    return RunResult(run_id=slog.context().get("run_id", ""), units=units, schema=schema, outputs=outputs, errors=errors)


def run(
    path: Path | str,
    targets: str | Iterable[str] | None = None,
    *,
    output: Path | str | None = None,
    config: Optional[GeneratorConfig] = None,
    dry_run: bool = False,
) -> RunResult:
    """
    Generate SSZ encoding modules for the records declared under `path`.

    `targets` restricts generation to those records (and the records they
    reference); `output` merges everything into one module at that path.
    """
    with slog.run_scope():
        result = build(path, targets, output=output, config=config)
        if not dry_run:
            result.written = write_outputs(result.outputs)
        log.info(
            "generation finished",
            extra={
                "files": len(result.outputs),
                "records_out": len(result.records),
                "skipped": len(result.errors),
                "dry_run": dry_run,
            },
        )
    return result


__all__ = ["RunResult", "run", "build", "parse_targets", "load_units", "resolve_targets"]
