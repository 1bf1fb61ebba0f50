"""
sszgen: SSZ code generator for annotated Python record classes.

Reads record declarations (``Annotated[...]`` fields with ``ssz-size`` /
``ssz-max`` / ``ssz:"bitlist"`` annotations) and writes Python modules with
``marshal_<record>``, ``unmarshal_<record>`` and ``size_<record>`` routines.

    from sszgen import run
    run("types/", targets="BeaconBlock")
"""

from .config import GeneratorConfig, load_config
from .errors import ConfigError, ErrorCode, SszgenError
from .pipeline import RunResult, build, run
from .version import __version__

__all__ = [
    "__version__",
    "GeneratorConfig",
    "load_config",
    "SszgenError",
    "ConfigError",
    "ErrorCode",
    "RunResult",
    "build",
    "run",
]
