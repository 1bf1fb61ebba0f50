"""
Generator configuration.

All fields have defaults; a run can override them, in increasing order of
precedence, from:

  1. the ``[tool.sszgen]`` table of the nearest ``pyproject.toml``
  2. environment variables
  3. explicit overrides (CLI flags, keyword arguments)

Environment variables (all optional):

  SSZGEN_SUFFIX=_encoding.py          # output file suffix per unit
  SSZGEN_FAIL_FAST=1                  # 0: skip failing records, keep going
  SSZGEN_RESERVED_PREFIXES=XXX_       # comma separated field prefixes to ignore
  SSZGEN_HEADER="# Code generated by sszgen. DO NOT EDIT."

pyproject.toml:

  [tool.sszgen]
  suffix = "_ssz.py"
  fail-fast = false
  reserved-prefixes = ["XXX_", "cached_"]
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import ConfigError
from .scanner import DEFAULT_RESERVED_PREFIXES

DEFAULT_SUFFIX = "_encoding.py"
DEFAULT_HEADER = "# Code generated by sszgen. DO NOT EDIT."

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


# ------------------------------- helpers ------------------------------------


def _getenv(env: Mapping[str, str], key: str) -> Optional[str]:
    v = env.get(key)
    return v if v is not None and v.strip() != "" else None


def _parse_bool(key: str, v: str) -> bool:
    s = v.strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean for {key}: {v!r}", key=key)


def _split_csv(s: str) -> Tuple[str, ...]:
    return tuple(x.strip() for x in s.split(",") if x.strip())


def find_pyproject(start: Path | str) -> Optional[Path]:
    """Nearest ``pyproject.toml`` in `start` or one of its parents."""
    p = Path(start).resolve()
    if p.is_file():
        p = p.parent
    for d in [p] + list(p.parents):
        candidate = d / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None


# ------------------------------- config -------------------------------------


@dataclass(frozen=True)
class GeneratorConfig:
    """
    - suffix: appended to a unit's stem to name its generated module
    - reserved_prefixes: field names starting with one of these are not encoded
    - fail_fast: abort on the first resolution error (else skip and collect)
    - header: first line of every generated module
    """

    suffix: str = DEFAULT_SUFFIX
    reserved_prefixes: Tuple[str, ...] = field(default_factory=lambda: DEFAULT_RESERVED_PREFIXES)
    fail_fast: bool = True
    header: str = DEFAULT_HEADER

    def validate(self) -> "GeneratorConfig":
        if not self.suffix.endswith(".py") or self.suffix == ".py":
            raise ConfigError("suffix must end with '.py' and add something to the stem", suffix=self.suffix)
        if any(sep in self.suffix for sep in ("/", "\\")):
            raise ConfigError("suffix must not contain a path separator", suffix=self.suffix)
        if any(not p for p in self.reserved_prefixes):
            raise ConfigError("reserved prefixes must be non-empty")
        if not self.header.startswith("#") or "\n" in self.header:
            raise ConfigError("header must be a single comment line", header=self.header)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ------------------------------- loader -------------------------------------

_PYPROJECT_KEYS = {
    "suffix": "suffix",
    "fail-fast": "fail_fast",
    "reserved-prefixes": "reserved_prefixes",
    "header": "header",
}


def _from_pyproject(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as f:
            doc = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid TOML: {e}", path=str(path)) from e
    table = doc.get("tool", {}).get("sszgen", {})
    out: Dict[str, Any] = {}
    for key, value in table.items():
        attr = _PYPROJECT_KEYS.get(key)
        if attr is None:
            raise ConfigError(f"unknown [tool.sszgen] key {key!r}", path=str(path))
        if attr == "reserved_prefixes":
            if isinstance(value, str):
                value = _split_csv(value)
            elif isinstance(value, list) and all(isinstance(v, str) for v in value):
                value = tuple(value)
            else:
                raise ConfigError("reserved-prefixes must be a list of strings", path=str(path))
        elif attr == "fail_fast" and not isinstance(value, bool):
            raise ConfigError("fail-fast must be a boolean", path=str(path))
        elif attr in ("suffix", "header") and not isinstance(value, str):
            raise ConfigError(f"{key} must be a string", path=str(path))
        out[attr] = value
    return out


def _from_env(env: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    suffix = _getenv(env, "SSZGEN_SUFFIX")
    if suffix is not None:
        out["suffix"] = suffix.strip()
    fail_fast = _getenv(env, "SSZGEN_FAIL_FAST")
    if fail_fast is not None:
        out["fail_fast"] = _parse_bool("SSZGEN_FAIL_FAST", fail_fast)
    prefixes = _getenv(env, "SSZGEN_RESERVED_PREFIXES")
    if prefixes is not None:
        out["reserved_prefixes"] = _split_csv(prefixes)
    header = _getenv(env, "SSZGEN_HEADER")
    if header is not None:
        out["header"] = header
    return out


def load_config(
    start: Path | str | None = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> GeneratorConfig:
    """
    Build a validated config: defaults < pyproject.toml < env < overrides.

    `start` is where the pyproject.toml search begins (usually the input
    path); None skips the file layer. Overrides that are None are ignored.
    """
    cfg = GeneratorConfig()
    if start is not None:
        pyproject = find_pyproject(start)
        if pyproject is not None:
            cfg = replace(cfg, **_from_pyproject(pyproject))
    cfg = replace(cfg, **_from_env(os.environ if env is None else env))
    unknown = set(overrides) - set(GeneratorConfig.__dataclass_fields__)
    if unknown:
        raise ConfigError(f"unknown config keys: {sorted(unknown)}")
    cfg = replace(cfg, **{k: v for k, v in overrides.items() if v is not None})
    if isinstance(cfg.reserved_prefixes, list):
        cfg = replace(cfg, reserved_prefixes=tuple(cfg.reserved_prefixes))
    return cfg.validate()


__all__ = ["GeneratorConfig", "load_config", "find_pyproject", "DEFAULT_SUFFIX", "DEFAULT_HEADER"]
