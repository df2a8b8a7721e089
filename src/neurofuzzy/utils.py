"""
neurofuzzy.utils

Small shared utility helpers used across the neurofuzzy codebase.

Design principles:
  - No business logic here; only generic helpers.
  - Avoid circular imports (utils should not import model/train/etc.).

Current responsibilities:
  - JSON write helper (training summaries)
  - YAML config loading
  - Path normalization helpers
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict

import yaml


def ensure_dir(path: str | Path) -> Path:
    """
    Ensure a directory exists and return it as a Path.
    """
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def _finite_or_none(obj: Any) -> Any:
    # Strict JSON has no NaN/Infinity
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    if isinstance(obj, dict):
        return {k: _finite_or_none(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_finite_or_none(v) for v in obj]
    return obj


def write_json(
    obj: Dict[str, Any],
    path: str | Path,
    indent: int = 2,
    sort_keys: bool = True,
) -> None:
    """
    Write a Python dict to strict JSON; non-finite floats become null.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(_finite_or_none(obj), f, indent=indent, sort_keys=sort_keys, allow_nan=False)


def load_yaml(path: str | Path) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    This is optional sugar for users who prefer YAML over CLI flags.
    """
    with Path(path).open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level.")
    return data
