from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import ConfigError
from .types import RenderOptions

logger = logging.getLogger(__name__)

DEFAULT_CFG_FILE = "pomd.yaml"

# --------------------------------------------------------------------------- #
# DEFAULTS (mirror RenderOptions)
# --------------------------------------------------------------------------- #
_DEFAULT_CFG: Dict[str, Any] = {
    field.name: field.default for field in dataclasses.fields(RenderOptions)
}

_UNKNOWN_TAG_POLICIES = ("error", "passthrough")

# --------------------------------------------------------------------------- #
# YAML loader
# --------------------------------------------------------------------------- #
_yaml = YAML(typ="safe")


# --------------------------------------------------------------------------- #
# HELPERS
# --------------------------------------------------------------------------- #
def _merge_defaults(raw: Dict[str, Any]) -> Dict[str, Any]:
    """User values override the defaults."""
    cfg = _DEFAULT_CFG.copy()
    cfg.update(raw)
    return cfg


def _validate(cfg: Dict[str, Any], path: Path) -> None:
    unknown = sorted(set(cfg) - set(_DEFAULT_CFG))
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}", source=str(path))

    for key, default in _DEFAULT_CFG.items():
        value = cfg[key]
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise ConfigError(f"'{key}' must be a boolean, got {value!r}", source=str(path))
        elif isinstance(default, int):
            # bool is an int subclass, reject it explicitly
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"'{key}' must be a positive integer, got {value!r}", source=str(path))

    if cfg["unknown_tags"] not in _UNKNOWN_TAG_POLICIES:
        raise ConfigError(
            f"'unknown_tags' must be one of {', '.join(_UNKNOWN_TAG_POLICIES)}, got {cfg['unknown_tags']!r}",
            source=str(path),
        )


# --------------------------------------------------------------------------- #
# PUBLIC API
# --------------------------------------------------------------------------- #
def load_options(path: Path) -> RenderOptions:
    """
    Load renderer options from a YAML file.

    A missing file yields the defaults. Unknown keys and values of the
    wrong type are rejected.

    Raises:
        ConfigError: On unreadable, malformed or invalid configuration
    """
    if not path.exists():
        logger.debug("Config %s not found, using defaults", path)
        return RenderOptions()

    try:
        with path.open(encoding="utf-8") as f:
            raw = _yaml.load(f) or {}
    except (OSError, YAMLError) as e:
        raise ConfigError(f"Cannot read config: {e}", source=str(path)) from e

    if not isinstance(raw, dict):
        raise ConfigError("Config must be a mapping", source=str(path))

    cfg = _merge_defaults(raw)
    _validate(cfg, path)
    logger.debug("Loaded config %s", path)
    return RenderOptions(**cfg)


def discover_options(cwd: Path) -> RenderOptions:
    """Options from pomd.yaml in the given directory, or the defaults."""
    return load_options(cwd / DEFAULT_CFG_FILE)


__all__ = ["load_options", "discover_options", "DEFAULT_CFG_FILE"]
