from __future__ import annotations

import importlib
import logging
import sys
import textwrap
import uuid
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Dict, Iterator, List, Optional

import pytest

from sszgen import logging as slog
from sszgen import pipeline
from sszgen.config import GeneratorConfig
from sszgen.pipeline import RunResult

PRELUDE = """\
from dataclasses import dataclass
from typing import Annotated, List

from sszgen.types import Bitlist, Bitvector, uint8, uint16, uint32, uint64
"""

BEACON = '''
@dataclass
class Checkpoint:
    epoch: uint64
    root: Annotated[bytes, 'ssz-size:"32"']


@dataclass
class AttestationData:
    slot: uint64
    index: uint64
    beacon_block_root: Annotated[bytes, 'ssz-size:"32"']
    source: Checkpoint
    target: Checkpoint


@dataclass
class Attestation:
    aggregation_bits: Annotated[Bitlist, 'ssz-max:"2048"']
    data: AttestationData
    signature: Annotated[bytes, 'ssz-size:"96"']
'''


def source(body: str) -> str:
    return PRELUDE + textwrap.dedent(body)


@dataclass
class Generated:
    root: Path
    package: Optional[str]
    result: RunResult

    def module(self, stem: str) -> ModuleType:
        name = f"{self.package}.{stem}" if self.package else stem
        return importlib.import_module(name)

    def text(self, filename: str) -> str:
        return (self.root / filename).read_text(encoding="utf-8")


@pytest.fixture
def generate(tmp_path: Path, monkeypatch: Any) -> Iterator[Callable[..., Generated]]:
    """
    Write declaration modules into a fresh directory, run the generator on
    it and make the result importable. Every call uses a unique package
    name so generated modules never collide in ``sys.modules``.
    """
    loaded: List[str] = []

    def _generate(
        sources: Dict[str, str],
        *,
        targets: Any = None,
        output: Optional[str] = None,
        config: Optional[GeneratorConfig] = None,
        package: bool = True,
        dry_run: bool = False,
    ) -> Generated:
        token = uuid.uuid4().hex[:8]
        pkg = f"sszcase_{token}" if package else None
        root = tmp_path / (pkg or f"plain_{token}")
        root.mkdir()
        if package:
            (root / "__init__.py").write_text("", encoding="utf-8")
        for stem, body in sources.items():
            (root / f"{stem}.py").write_text(source(body), encoding="utf-8")

        result = pipeline.run(
            root,
            targets,
            output=(root / output) if output else None,
            config=config,
            dry_run=dry_run,
        )
        if package:
            monkeypatch.syspath_prepend(str(tmp_path))
            loaded.append(pkg)
        else:
            monkeypatch.syspath_prepend(str(root))
            loaded.extend(p.stem for p in root.glob("*.py"))
        importlib.invalidate_caches()
        return Generated(root=root, package=pkg, result=result)

    yield _generate

    for name in list(sys.modules):
        if any(name == p or name.startswith(p + ".") for p in loaded):
            del sys.modules[name]


@pytest.fixture
def beacon(generate: Callable[..., Generated]) -> Generated:
    return generate({"beacon": BEACON})


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    # the CLI attaches handlers to streams that are closed after each invoke
    yield
    logger = logging.getLogger("sszgen")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    slog.clear_context()
