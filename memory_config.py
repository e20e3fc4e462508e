"""
memory_config.py

Engine configuration loading.

Sources are merged in priority order (lowest to highest):
    1. Defaults (defined in EngineConfig)
    2. Global config (~/.memviz.toml)
    3. Project config (./memviz.toml)
    4. Explicit config file
    5. Environment variables (MEMVIZ_* prefix)
    6. Keyword overrides

Example:
    >>> config = load_config(max_depth=16)
    >>> config.max_depth
    16
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from memory_errors import ConfigurationError

BYTE_ORDERS = ("little", "big")
UNTYPED_POINTER_POLICIES = ("opaque", "hinted")
VERBOSITIES = ("quiet", "normal", "verbose")


@dataclass(frozen=True)
class EngineConfig:
    """Tuning knobs for graph building and snapshot retention.

    Attributes:
        max_depth: Maximum pointer hops followed from a root
        retention: Number of snapshots kept by the graph store (>= 2)
        word_size: Pointer width applied to catalogs that do not report one
        byte_order: Byte order ("little" or "big") applied to catalogs that
            do not report one
        untyped_pointers: "opaque" ignores pointer hints for void pointers,
            "hinted" resolves them through the pointer hint table
        verbosity: "quiet", "normal" or "verbose"; maps onto
            ``setup_logging(verbose=..., quiet=...)``
    """
    max_depth: int = 64
    retention: int = 2
    word_size: int = 8
    byte_order: str = "little"
    untyped_pointers: str = "hinted"
    verbosity: str = "normal"

    def __post_init__(self) -> None:
        if self.max_depth < 0:
            raise ConfigurationError("max_depth must be >= 0", {"max_depth": str(self.max_depth)})
        if self.retention < 2:
            raise ConfigurationError("retention must keep at least 2 snapshots",
                                     {"retention": str(self.retention)})
        if self.word_size not in (1, 2, 4, 8):
            raise ConfigurationError("word_size must be 1, 2, 4 or 8",
                                     {"word_size": str(self.word_size)})
        if self.byte_order not in BYTE_ORDERS:
            raise ConfigurationError("byte_order must be 'little' or 'big'",
                                     {"byte_order": self.byte_order})
        if self.untyped_pointers not in UNTYPED_POINTER_POLICIES:
            raise ConfigurationError("untyped_pointers must be 'opaque' or 'hinted'",
                                     {"untyped_pointers": self.untyped_pointers})
        if self.verbosity not in VERBOSITIES:
            raise ConfigurationError("verbosity must be quiet, normal or verbose",
                                     {"verbosity": self.verbosity})

    @property
    def verbose(self) -> bool:
        return self.verbosity == "verbose"

    @property
    def quiet(self) -> bool:
        return self.verbosity == "quiet"


def load_config(config_file: Optional[Path] = None, **overrides: Any) -> EngineConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit TOML file
        **overrides: Direct overrides (highest priority)

    Returns:
        Validated EngineConfig

    Raises:
        ConfigurationError: If a config file is missing/invalid or a value is
            out of range
    """
    merged: Dict[str, Any] = {}

    global_config = Path.home() / ".memviz.toml"
    if global_config.exists():
        merged.update(_load_toml_file(global_config))

    project_config = Path.cwd() / "memviz.toml"
    if project_config.exists():
        merged.update(_load_toml_file(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        merged.update(_load_toml_file(config_file))

    merged.update(_load_env_vars())

    if "verbose" in overrides:
        if overrides.pop("verbose"):
            overrides["verbosity"] = "verbose"
    if "quiet" in overrides:
        if overrides.pop("quiet"):
            overrides["verbosity"] = "quiet"
    merged.update(overrides)

    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(merged) - known)
    if unknown:
        raise ConfigurationError("Unknown configuration keys", {"keys": ", ".join(unknown)})

    try:
        return EngineConfig(**merged)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _load_toml_file(path: Path) -> Dict[str, Any]:
    """Load a TOML file, reading the ``[memviz]`` table if present."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Invalid config file '{path}': {e}") from e
    section = data.get("memviz", data)
    if not isinstance(section, dict):
        raise ConfigurationError(f"Invalid config file '{path}': [memviz] must be a table")
    return dict(section)


def _load_env_vars() -> Dict[str, Any]:
    """Load configuration from MEMVIZ_* environment variables.

    Supported variables:
        MEMVIZ_MAX_DEPTH: int
        MEMVIZ_RETENTION: int
        MEMVIZ_WORD_SIZE: int
        MEMVIZ_BYTE_ORDER: little/big
        MEMVIZ_UNTYPED_POINTERS: opaque/hinted
        MEMVIZ_VERBOSITY: quiet/normal/verbose
    """
    result: Dict[str, Any] = {}
    for f in fields(EngineConfig):
        env_key = f"MEMVIZ_{f.name.upper()}"
        raw = os.environ.get(env_key)
        if raw is None:
            continue
        if f.type in ("int", int):
            try:
                result[f.name] = int(raw.strip(), 0)
            except ValueError:
                raise ConfigurationError(f"Invalid {env_key}: expected an integer, got '{raw}'")
        else:
            result[f.name] = raw.strip().lower()
    return result
