from __future__ import annotations

from pathlib import Path

import pytest

from sszgen.config import DEFAULT_HEADER, GeneratorConfig, find_pyproject, load_config
from sszgen.errors import ConfigError


def _pyproject(root: Path, body: str) -> Path:
    p = root / "pyproject.toml"
    p.write_text(body, encoding="utf-8")
    return p


def test_defaults() -> None:
    cfg = load_config(env={})
    assert cfg == GeneratorConfig()
    assert cfg.suffix == "_encoding.py"
    assert cfg.reserved_prefixes == ("XXX_",)
    assert cfg.fail_fast is True
    assert cfg.header == DEFAULT_HEADER


def test_pyproject_table(tmp_path: Path) -> None:
    _pyproject(
        tmp_path,
        """
[project]
name = "types"

[tool.sszgen]
suffix = "_ssz.py"
fail-fast = false
reserved-prefixes = ["XXX_", "cached_"]
""",
    )
    src = tmp_path / "types"
    src.mkdir()
    assert find_pyproject(src) == tmp_path / "pyproject.toml"

    cfg = load_config(src, env={})
    assert cfg.suffix == "_ssz.py"
    assert cfg.fail_fast is False
    assert cfg.reserved_prefixes == ("XXX_", "cached_")


def test_precedence_pyproject_env_overrides(tmp_path: Path) -> None:
    _pyproject(tmp_path, '[tool.sszgen]\nsuffix = "_file.py"\nfail-fast = false\n')
    env = {"SSZGEN_SUFFIX": "_env.py", "SSZGEN_RESERVED_PREFIXES": "a_, b_"}

    cfg = load_config(tmp_path, env=env)
    assert cfg.suffix == "_env.py"
    assert cfg.fail_fast is False
    assert cfg.reserved_prefixes == ("a_", "b_")

    cfg = load_config(tmp_path, env=env, suffix="_flag.py", fail_fast=None)
    assert cfg.suffix == "_flag.py"
    assert cfg.fail_fast is False


def test_blank_env_values_are_ignored() -> None:
    assert load_config(env={"SSZGEN_SUFFIX": "  ", "SSZGEN_FAIL_FAST": ""}) == GeneratorConfig()


@pytest.mark.parametrize("raw, expected", [("0", False), ("off", False), ("YES", True), ("1", True)])
def test_env_booleans(raw: str, expected: bool) -> None:
    assert load_config(env={"SSZGEN_FAIL_FAST": raw}).fail_fast is expected


def test_invalid_env_boolean() -> None:
    with pytest.raises(ConfigError) as ei:
        load_config(env={"SSZGEN_FAIL_FAST": "maybe"})
    assert ei.value.data["key"] == "SSZGEN_FAIL_FAST"


@pytest.mark.parametrize(
    "body",
    [
        '[tool.sszgen]\nprefix = "x"\n',
        "[tool.sszgen]\nfail-fast = 1\n",
        "[tool.sszgen]\nreserved-prefixes = [1, 2]\n",
        "[tool.sszgen]\nsuffix = 3\n",
        "[tool.sszgen\n",
    ],
)
def test_bad_pyproject(tmp_path: Path, body: str) -> None:
    _pyproject(tmp_path, body)
    with pytest.raises(ConfigError):
        load_config(tmp_path, env={})


@pytest.mark.parametrize(
    "overrides",
    [
        {"suffix": ".py"},
        {"suffix": "_encoding.txt"},
        {"suffix": "/x_encoding.py"},
        {"reserved_prefixes": ("",)},
        {"header": "not a comment"},
        {"header": "# two\n# lines"},
    ],
)
def test_validation(overrides: dict) -> None:
    with pytest.raises(ConfigError):
        load_config(env={}, **overrides)


def test_unknown_override() -> None:
    with pytest.raises(ConfigError):
        load_config(env={}, colour="blue")


def test_list_prefixes_become_tuple() -> None:
    cfg = load_config(env={}, reserved_prefixes=["tmp_"])
    assert cfg.reserved_prefixes == ("tmp_",)
    assert cfg.to_dict()["reserved_prefixes"] == ("tmp_",)
