"""
Loading of render contexts from JSON and YAML files.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, cast

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import ContextLoadError
from .values import ObjectValue, Value, from_python

logger = logging.getLogger(__name__)

_yaml = YAML(typ="safe")

YAML_SUFFIXES = {".yaml", ".yml"}


def _read_raw(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ContextLoadError(f"Cannot read context file: {e}", source=str(path)) from e

    if path.suffix.lower() in YAML_SUFFIXES:
        try:
            return _yaml.load(text)
        except YAMLError as e:
            raise ContextLoadError(f"Invalid YAML: {e}", source=str(path)) from e

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ContextLoadError(f"Invalid JSON: {e.msg}", e.lineno, e.colno, source=str(path)) from e


def load_context(path: Path) -> Dict[str, Value]:
    """
    Reads a context file into variable bindings.

    `.yaml`/`.yml` files are parsed as YAML, anything else as JSON. The top
    level must be an object; its keys become the root variables.

    Raises:
        ContextLoadError: On unreadable files, syntax errors or unsupported values
    """
    raw = _read_raw(path)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ContextLoadError(f"Context must be an object, got {type(raw).__name__}", source=str(path))

    try:
        value = from_python(raw)
    except TypeError as e:
        raise ContextLoadError(str(e), source=str(path)) from e

    fields = cast(ObjectValue, value).fields
    logger.debug("Loaded context %s: %d variables", path, len(fields))
    return dict(fields)


__all__ = ["load_context"]
