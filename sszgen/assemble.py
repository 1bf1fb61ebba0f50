"""
Output assembler.

Groups generated routines into output modules:

- default: one module per compilation unit, ``<stem><suffix>`` next to
  the source, holding that unit's records in declaration order
- override: a single module at an explicit path with every record, in
  unit order

Units are visited sorted by path, so repeated runs are byte-identical.
The sentinel error classes are defined once, in the first module with
content, ahead of that module's cross-unit imports; every other module
imports them from there. Records owned by another unit are reached through
a module import of that unit's generated module.
"""

from __future__ import annotations

import contextlib
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .codegen import Writer, generate_records, public_names
from .codegen.runtime import helper_blocks, sentinel_names, sentinel_source
from .config import GeneratorConfig
from .errors import FormatError, GenerationError, NoOutput, WriteError
from .ir import Kind, Schema
from .logging import get_logger
from .scanner import CompilationUnit

log = get_logger(__name__)

_BLANKS_RE = re.compile(r"\n{4,}")


@dataclass(frozen=True)
class OutputUnit:
    path: Path
    source: str
    records: Tuple[str, ...]
    has_sentinels: bool = False


def output_path(unit: CompilationUnit, suffix: str) -> Path:
    return unit.path.with_name(unit.path.stem + suffix)


def module_name(path: Path) -> str:
    return path.name[: -len(".py")] if path.name.endswith(".py") else path.stem


def format_source(text: str, filename: str = "<generated>") -> str:
    """
    Normalize layout (no trailing whitespace, at most two blank lines in a
    row, one final newline) and make sure the result compiles.
    """
    lines = [ln.rstrip() for ln in text.replace("\r\n", "\n").split("\n")]
    out = _BLANKS_RE.sub("\n\n\n", "\n".join(lines)).strip("\n") + "\n"
    try:
        compile(out, filename, "exec")
    except SyntaxError as e:
        raise FormatError(
            f"generated code does not compile: {e.msg}",
            path=filename,
            line=e.lineno,
            text=(e.text or "").strip(),
        ) from e
    return out


class _Plan:
    """Which output module owns which record, and how modules import each other."""

    def __init__(
        self,
        schema: Schema,
        units: Sequence[CompilationUnit],
        selected: Set[str],
        output: Optional[Path],
        suffix: str,
    ) -> None:
        self.schema = schema
        self.merged = output is not None
        self.groups: List[Tuple[Path, List[CompilationUnit], List[str]]] = []
        self.owner: Dict[str, Path] = {}
        self.unit_of: Dict[str, CompilationUnit] = {}

        ordered = sorted(units, key=lambda u: str(u.path))
        for unit in ordered:
            for name in unit.names:
                self.unit_of[name] = unit

        if output is not None:
            names = [n for u in ordered for n in u.names if n in selected and n in schema.records]
            if names:
                self.groups.append((output, ordered, names))
        else:
            for unit in ordered:
                names = [n for n in unit.names if n in selected and n in schema.records]
                if names:
                    self.groups.append((output_path(unit, suffix), [unit], names))
        for path, _, names in self.groups:
            for n in names:
                self.owner[n] = path

    @property
    def first(self) -> Optional[Path]:
        return self.groups[0][0] if self.groups else None

    def referenced(self, names: Iterable[str]) -> List[str]:
        """Records called directly (one field or element hop) from `names`."""
        seen: List[str] = []
        for name in names:
            for _, node in self.schema.field_nodes(name):
                while node.kind in (Kind.LIST, Kind.VECTOR):
                    node = self.schema.node(node.element)
                if node.kind is Kind.CONTAINER and node.record not in seen:
                    seen.append(node.record)
        return seen


def _import_prefix(dest: Path, unit_dir: Path, in_package: bool) -> str:
    """'.' for a sibling module inside a package, else '' (absolute by stem)."""
    return "." if in_package and dest.parent.resolve() == unit_dir.resolve() else ""


def _from_import(prefix: str, module: str, names: Sequence[str]) -> str:
    return f"from {prefix}{module} import {', '.join(names)}"


def _module_import(prefix: str, module: str) -> str:
    return f"from . import {module}" if prefix else f"import {module}"


def _render(plan: _Plan, path: Path, units: List[CompilationUnit], names: List[str], config: GeneratorConfig) -> OutputUnit:
    schema = plan.schema
    is_first = path == plan.first
    local = set(names)

    for bad in sorted(local & set(sentinel_names())):
        raise GenerationError(f"record {bad!r} clashes with a generated error class", record=bad)
    routines: Dict[str, str] = {}
    for n in names:
        for fn in public_names(n):
            if fn in routines:
                raise GenerationError(
                    f"records {routines[fn]!r} and {n!r} generate the same routine {fn!r}",
                    record=n,
                )
            routines[fn] = n

    # cross-unit references become module imports
    foreign: Dict[str, str] = {}
    for ref in plan.referenced(names):
        if ref in local:
            continue
        owner = plan.owner.get(ref)
        if owner is None:
            raise GenerationError(f"record {ref!r} is referenced but not generated", record_ref=ref)
        foreign[ref] = module_name(owner)

    def qualify(record: str) -> str:
        mod = foreign.get(record)
        return f"{mod}." if mod else ""

    body: Writer = generate_records(schema, names, qualify)

    sources = ", ".join(u.path.name for u in units if set(u.names) & local)
    parts: List[str] = [f"{config.header}\n# source: {sources}"]

    imports: List[str] = []
    for unit in units:
        classes = [n for n in unit.names if n in local]
        if classes:
            prefix = _import_prefix(path, unit.path.parent, unit.in_package)
            imports.append(_from_import(prefix, unit.module, classes))
    parts.append("\n".join(imports))

    if is_first:
        parts.append(sentinel_source())
    else:
        first_unit = plan.unit_of[plan.groups[0][2][0]]
        prefix = _import_prefix(path, first_unit.path.parent, first_unit.in_package)
        parts.append(_from_import(prefix, module_name(plan.first), sentinel_names()))

    if foreign:
        mods = sorted(set(foreign.values()))
        prefix = "." if units[0].in_package else ""
        parts.append("\n".join(_module_import(prefix, m) for m in mods))

    parts.extend(helper_blocks(body.helpers))
    parts.append(body.text())

    exported = (sentinel_names() if is_first else []) + [fn for n in names for fn in public_names(n)]
    parts.append("__all__ = [\n" + "".join(f"    {e!r},\n" for e in exported) + "]")

    source = format_source("\n\n\n".join(p for p in parts if p), str(path))
    return OutputUnit(path=path, source=source, records=tuple(names), has_sentinels=is_first)


def assemble(
    schema: Schema,
    units: Sequence[CompilationUnit],
    selected: Optional[Iterable[str]] = None,
    *,
    output: Path | str | None = None,
    config: Optional[GeneratorConfig] = None,
) -> List[OutputUnit]:
    """
    Build the output modules for `selected` records (default: every record
    in the schema). Raises NoOutput when nothing would be generated.
    """
    cfg = config or GeneratorConfig()
    chosen = set(schema.order if selected is None else selected)
    plan = _Plan(schema, units, chosen, Path(output) if output is not None else None, cfg.suffix)
    if not plan.groups:
        raise NoOutput()
    outs = [_render(plan, path, group_units, names, cfg) for path, group_units, names in plan.groups]
    log.info("assembled outputs", extra={"files": len(outs), "records": sum(len(o.records) for o in outs)})
    return outs


def write_outputs(outputs: Sequence[OutputUnit]) -> List[Path]:
    """
    All-or-nothing write: stage every file as a temporary sibling first and
    only move them into place once all of them are staged.
    """
    staged: List[Tuple[str, Path]] = []
    try:
        for out in outputs:
            out.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                newline="\n",
                dir=out.path.parent,
                prefix=f".{out.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                staged.append((tmp.name, out.path))
                tmp.write(out.source)
                tmp.flush()
                os.fsync(tmp.fileno())
        for tmp_name, dest in staged:
            os.replace(tmp_name, dest)
    except OSError as e:
        raise WriteError(f"failed to write output: {e}", path=getattr(e, "filename", None)) from e
    finally:
        for tmp_name, _ in staged:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
    written = [dest for _, dest in staged]
    for p in written:
        log.info("wrote file", extra={"path": str(p)})
    return written


__all__ = ["OutputUnit", "assemble", "format_source", "write_outputs", "output_path", "module_name"]
