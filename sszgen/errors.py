"""
sszgen.errors
-------------

A small, consistent error system for the generator.

Design goals
------------
- One root `SszgenError` with machine-friendly `code` and optional `data`.
- Concrete subclasses for the failure domains of a generation run
  (configuration, generation/formatting, writing).
- Non-invasive helpers to enrich errors with contextual fields
  (unit path, record, field, line, offending shape).
- Safe JSON representation (`to_dict`) suitable for logs and the CLI.

Errors raised by *generated* code (offsets, sizes, bounds) are not defined
here: they are emitted into the generated modules, see
`sszgen.codegen.runtime.SENTINELS`.

This module uses only stdlib to avoid import cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type, TypeVar

# ---------------------------------------------------------------------------
# Error codes & classes
# ---------------------------------------------------------------------------


class ErrorCode(str, Enum):
    # Generic
    INTERNAL = "SSZGEN/INTERNAL"

    # Configuration (caller-fixable)
    CONFIG = "SSZGEN/CONFIG"
    ANNOTATION_MISSING = "SSZGEN/ANNOTATION_MISSING"
    ANNOTATION_MALFORMED = "SSZGEN/ANNOTATION_MALFORMED"
    UNSUPPORTED_SHAPE = "SSZGEN/UNSUPPORTED_SHAPE"
    UNKNOWN_RECORD = "SSZGEN/UNKNOWN_RECORD"
    INFINITE_SIZE = "SSZGEN/INFINITE_SIZE"
    NO_OUTPUT = "SSZGEN/NO_OUTPUT"
    BATCH = "SSZGEN/BATCH"

    # Generation / assembly
    GENERATION = "SSZGEN/GENERATION"
    FORMAT = "SSZGEN/FORMAT"

    # Filesystem
    IO = "SSZGEN/IO"


@dataclass(eq=False)
class SszgenError(Exception):
    """
    Root error for sszgen components.

    Attributes
    ----------
    code: str
        Machine-stable error code (see ErrorCode).
    message: str
        Human hint suitable for logs.
    data: dict
        Optional machine data (paths, record names, lines). JSON-serializable.
    cause: Optional[BaseException]
        Wrapped original exception; not included in equality comparison.
    """

    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        super().__init__(f"{self.code}: {self.message}")

    # ---------------- Public API ----------------

    @property
    def is_config(self) -> bool:
        """True for caller-fixable configuration errors."""
        return isinstance(self, ConfigError)

    def with_context(self, **ctx: Any) -> "SszgenError":
        """Return a *new* error with extra context merged (does not mutate)."""
        d = dict(self.data)
        for k, v in ctx.items():
            if v is not None:
                d.setdefault(k, _coerce_json(v))
        err = _clone(self)
        err.data = d
        return err

    def with_cause(self, exc: BaseException) -> "SszgenError":
        """Attach/replace the causal exception (returns a new instance)."""
        err = _clone(self)
        err.cause = exc
        return err

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """JSON-safe shape suitable for logs and `--json` CLI output."""
        out = {
            "code": _coerce_json(self.code),
            "message": self.message,
            "data": _coerce_json(self.data),
        }
        if include_cause and self.cause is not None:
            out["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return out

    def location(self) -> str:
        """`path:line` (or whatever part of it is known)."""
        path = self.data.get("path")
        line = self.data.get("line")
        if path and line:
            return f"{path}:{line}"
        return str(path or "")

    def __str__(self) -> str:
        code = self.code.value if isinstance(self.code, Enum) else self.code
        parts = [f"{code}: {self.message}"]
        if self.data:
            preview = ", ".join(f"{k}={_preview(v)}" for k, v in self.data.items())
            parts.append(f"[{preview}]")
        return " ".join(parts)


# Concrete subclasses (thin wrappers for ergonomics)
class InternalError(SszgenError):
    def __init__(self, message="internal error", **data: Any) -> None:
        super().__init__(code=ErrorCode.INTERNAL, message=message, data=_jsonmap(data))


class ConfigError(SszgenError):
    default_code = ErrorCode.CONFIG

    def __init__(self, message="invalid configuration", **data: Any) -> None:
        super().__init__(
            code=self.default_code, message=message, data=_jsonmap(data)
        )


class MissingAnnotation(ConfigError):
    default_code = ErrorCode.ANNOTATION_MISSING


class MalformedAnnotation(ConfigError):
    default_code = ErrorCode.ANNOTATION_MALFORMED


class UnsupportedShape(ConfigError):
    default_code = ErrorCode.UNSUPPORTED_SHAPE


class UnknownRecord(ConfigError):
    default_code = ErrorCode.UNKNOWN_RECORD

    def __init__(self, name: str, **data: Any) -> None:
        super().__init__(f"unknown record type {name!r}", record_ref=name, **data)


class InfiniteSize(ConfigError):
    default_code = ErrorCode.INFINITE_SIZE

    def __init__(self, cycle: Sequence[str], **data: Any) -> None:
        super().__init__(
            "record references itself without passing through a list",
            cycle=" -> ".join(cycle),
            **data,
        )


class NoOutput(ConfigError):
    default_code = ErrorCode.NO_OUTPUT

    def __init__(self, message="no files to generate", **data: Any) -> None:
        super().__init__(message, **data)


class BatchError(ConfigError):
    """Several records failed to resolve (best-effort runs collect them)."""

    default_code = ErrorCode.BATCH

    def __init__(self, errors: Sequence[SszgenError]) -> None:
        super().__init__(
            f"{len(errors)} record(s) failed to resolve",
            errors=[e.to_dict() for e in errors],
        )
        self.errors: List[SszgenError] = list(errors)


class GenerationError(SszgenError):
    def __init__(self, message="code generation failed", **data: Any) -> None:
        super().__init__(
            code=ErrorCode.GENERATION, message=message, data=_jsonmap(data)
        )


class FormatError(GenerationError):
    def __init__(self, message="generated source failed to format", **data: Any) -> None:
        super().__init__(message, **data)
        self.code = ErrorCode.FORMAT


class WriteError(SszgenError):
    def __init__(self, message="failed to write output", **data: Any) -> None:
        super().__init__(code=ErrorCode.IO, message=message, data=_jsonmap(data))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

T = TypeVar("T", bound=SszgenError)


def wrap(exc: BaseException, *, as_: Type[T] = InternalError, **ctx: Any) -> T:
    """
    Wrap any exception into an SszgenError subclass, attaching context.
    If `exc` is already an SszgenError, returns a context-enriched copy.
    """
    if isinstance(exc, SszgenError):
        return exc.with_context(**ctx)  # type: ignore[return-value]
    err = as_(str(exc) or type(exc).__name__, **ctx)  # type: ignore[call-arg]
    return err.with_cause(exc)  # type: ignore[return-value]


def _clone(err: SszgenError) -> SszgenError:
    new = BaseException.__new__(type(err))
    new.__dict__.update(err.__dict__)
    new.data = dict(err.data)
    Exception.__init__(new, f"{err.code}: {err.message}")
    return new


def _jsonmap(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: _coerce_json(v) for k, v in data.items() if v is not None}


def _coerce_json(v: Any) -> Any:
    # Keep JSON primitives; stringify the rest; hex-encode bytes.
    if isinstance(v, Enum):
        return v.value
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (list, tuple)):
        return [_coerce_json(x) for x in v]
    if isinstance(v, dict):
        return {str(k): _coerce_json(x) for k, x in v.items()}
    if isinstance(v, (bytes, bytearray)):
        return v.hex()
    return str(v)


def _preview(v: Any, limit: int = 96) -> str:
    s = str(_coerce_json(v))
    return s if len(s) <= limit else s[:limit] + "…"


__all__ = [
    "ErrorCode",
    "SszgenError",
    "InternalError",
    "ConfigError",
    "MissingAnnotation",
    "MalformedAnnotation",
    "UnsupportedShape",
    "UnknownRecord",
    "InfiniteSize",
    "NoOutput",
    "BatchError",
    "GenerationError",
    "FormatError",
    "WriteError",
    "wrap",
]
