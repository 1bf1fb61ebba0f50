"""
Declaration scanner.

Turns Python source into compilation units: the ordered list of exported
record declarations of one module, each with its ordered field list and the
raw annotation string of every field. Nothing is resolved here; field shapes
are kept as `ast` expressions for the resolver.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from .logging import get_logger

log = get_logger(__name__)

DEFAULT_RESERVED_PREFIXES: Tuple[str, ...] = ("XXX_",)

_ANNOTATED_NAMES = {"Annotated"}
_CLASSVAR_NAMES = {"ClassVar"}


@dataclass(frozen=True)
class FieldDecl:
    name: str
    shape: ast.expr
    annotation: str
    line: int

    def shape_text(self) -> str:
        return ast.unparse(self.shape)


@dataclass(frozen=True)
class RecordDecl:
    name: str
    fields: Tuple[FieldDecl, ...]
    path: str
    line: int


@dataclass(frozen=True)
class CompilationUnit:
    """One input module; owns declaration order, never IR."""

    path: Path
    module: str
    in_package: bool
    records: Tuple[RecordDecl, ...]

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(r.name for r in self.records)


def is_exported(name: str) -> bool:
    return bool(name) and not name.startswith("_")


def scan_source(
    source: str,
    path: Path | str = "<string>",
    *,
    reserved_prefixes: Sequence[str] = DEFAULT_RESERVED_PREFIXES,
    in_package: bool = False,
) -> CompilationUnit:
    """Scan module source text. Syntax errors propagate unchanged."""
    p = Path(path)
    tree = ast.parse(source, filename=str(p))
    records: List[RecordDecl] = []
    for node in tree.body:
        if not isinstance(node, ast.ClassDef) or not is_exported(node.name):
            continue
        fields = tuple(_scan_fields(node, str(p), reserved_prefixes))
        if not fields and not _is_dataclass(node):
            # not a record: plain class, enum, exception...
            continue
        records.append(RecordDecl(name=node.name, fields=fields, path=str(p), line=node.lineno))
    return CompilationUnit(path=p, module=p.stem, in_package=in_package, records=tuple(records))


def scan_file(
    path: Path | str,
    *,
    reserved_prefixes: Sequence[str] = DEFAULT_RESERVED_PREFIXES,
) -> CompilationUnit:
    p = Path(path)
    unit = scan_source(
        p.read_text(encoding="utf-8"),
        p,
        reserved_prefixes=reserved_prefixes,
        in_package=(p.parent / "__init__.py").exists(),
    )
    log.debug("scanned unit", extra={"unit": str(p), "records": list(unit.names)})
    return unit


def scan_path(
    source: Path | str,
    *,
    suffix: str = "_encoding.py",
    reserved_prefixes: Sequence[str] = DEFAULT_RESERVED_PREFIXES,
) -> List[CompilationUnit]:
    """
    Scan a file or every ``*.py`` file of a directory (non-recursive), sorted
    by name. Previously generated modules (ending in `suffix`) are skipped.
    """
    p = Path(source)
    if p.is_dir():
        files = sorted(f for f in p.glob("*.py") if not f.name.endswith(suffix))
    elif p.exists():
        files = [p]
    else:
        raise FileNotFoundError(str(p))
    return [scan_file(f, reserved_prefixes=reserved_prefixes) for f in files]


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


def _scan_fields(
    cls: ast.ClassDef, path: str, reserved_prefixes: Sequence[str]
) -> Iterable[FieldDecl]:
    for stmt in cls.body:
        if not isinstance(stmt, ast.AnnAssign) or not isinstance(stmt.target, ast.Name):
            continue
        name = stmt.target.id
        if not is_exported(name) or any(name.startswith(p) for p in reserved_prefixes):
            continue
        expr = unquote(stmt.annotation)
        if _head_name(expr) in _CLASSVAR_NAMES:
            continue
        shape, annotation = _split_annotated(expr)
        yield FieldDecl(name=name, shape=shape, annotation=annotation, line=stmt.lineno)


def _split_annotated(expr: ast.expr) -> Tuple[ast.expr, str]:
    """``Annotated[T, "a", "b"]`` -> (T, 'a b'); anything else -> (expr, '')."""
    if isinstance(expr, ast.Subscript) and _head_name(expr) in _ANNOTATED_NAMES:
        sl = expr.slice
        items = list(sl.elts) if isinstance(sl, ast.Tuple) else [sl]
        if not items:
            return expr, ""
        tags = [
            i.value
            for i in items[1:]
            if isinstance(i, ast.Constant) and isinstance(i.value, str)
        ]
        return unquote(items[0]), " ".join(t.strip() for t in tags if t.strip())
    return expr, ""


def unquote(expr: ast.expr) -> ast.expr:
    """Forward references (``"Record"``) are parsed back into expressions."""
    if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
        try:
            inner = ast.parse(expr.value, mode="eval").body
        except SyntaxError:
            return expr
        return ast.copy_location(inner, expr)
    return expr


def _head_name(expr: ast.expr) -> Optional[str]:
    """`List` for ``List[int]``, ``typing.List[int]``, ``List``."""
    if isinstance(expr, ast.Subscript):
        expr = expr.value
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return expr.attr
    return None


def _is_dataclass(cls: ast.ClassDef) -> bool:
    for dec in cls.decorator_list:
        target = dec.func if isinstance(dec, ast.Call) else dec
        if _head_name(target) == "dataclass":
            return True
    return False


__all__ = [
    "FieldDecl",
    "RecordDecl",
    "CompilationUnit",
    "DEFAULT_RESERVED_PREFIXES",
    "scan_source",
    "scan_file",
    "scan_path",
    "is_exported",
    "unquote",
]
