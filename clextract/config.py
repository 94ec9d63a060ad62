"""Load clextract configuration from pyproject.toml and optional .clextract.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass
class ExtractConfig:
    """Runtime configuration for clextract."""

    # Compiler arguments used when no compilation database provides them
    clang_args: List[str] = field(
        default_factory=lambda: ["-x", "c++", "-std=c++17"]
    )
    # Explicit path to the libclang shared library.  None lets the bindings
    # locate it (the libclang wheel ships one).
    libclang_path: Optional[str] = None
    # Proceed with extraction even when the translation unit has error
    # diagnostics.  Unresolved references will still abort the run.
    ignore_parse_errors: bool = False

    # Character appended to a parameter name until it is unique; also joins
    # a receiver qualifier to a member name (e.g. "this_count").
    separator: str = "_"
    # Maximum number of separator appends tried before giving up on a name.
    max_name_attempts: int = 64

    # Storage class written in front of the new function's declaration.
    # Empty string emits a plain "void name(...)".
    storage_class: str = "static"


def _read_toml(path: Path) -> dict:
    """Read a TOML file; return empty dict if missing or unparseable."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except Exception:
        return {}


def _apply(cfg: ExtractConfig, d: dict) -> None:
    """Overlay dict values onto cfg, ignoring unknown keys."""
    valid = set(cfg.__dataclass_fields__)
    for key, val in d.items():
        if key in valid:
            setattr(cfg, key, val)


def load_config(project_root: Optional[Path] = None) -> ExtractConfig:
    """Load config from pyproject.toml [tool.clextract], then .clextract.toml."""
    if project_root is None:
        project_root = Path.cwd()
    cfg = ExtractConfig()
    pyproject = _read_toml(project_root / "pyproject.toml")
    _apply(cfg, pyproject.get("tool", {}).get("clextract", {}))
    local = _read_toml(project_root / ".clextract.toml")
    _apply(cfg, local)
    return cfg
