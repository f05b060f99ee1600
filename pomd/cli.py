from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .config import discover_options, load_options
from .context import load_context
from .errors import PomdError
from .render.engine import Renderer
from .types import RenderOptions
from .values import Value
from .version import tool_version

logger = logging.getLogger("pomd")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pomd",
        description="Render POML-style markup templates to Markdown",
        add_help=True,
    )
    p.add_argument("-v", "--version", action="version", version=f"%(prog)s {tool_version()}")
    p.add_argument("template", help="template file to render")
    p.add_argument(
        "context",
        nargs="?",
        help="context data: JSON object (.json) or YAML mapping (.yaml/.yml)",
    )
    p.add_argument(
        "--config",
        metavar="FILE",
        help="renderer options (YAML); defaults to ./pomd.yaml when present",
    )
    p.add_argument(
        "--debug",
        action="store_true",
        help="verbose diagnostics on stderr (also enabled by POMD_DEBUG)",
    )
    return p


def _setup_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.WARNING
    logger.setLevel(level)
    if not logger.handlers:
        h = logging.StreamHandler(sys.stderr)
        h.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logger.addHandler(h)


def _options(ns: argparse.Namespace) -> RenderOptions:
    if ns.config:
        path = Path(ns.config)
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found: {path}")
        return load_options(path)
    return discover_options(Path.cwd())


def _context(ns: argparse.Namespace) -> Dict[str, Value]:
    if not ns.context:
        return {}
    path = Path(ns.context)
    if not path.is_file():
        raise FileNotFoundError(f"Context file not found: {path}")
    return load_context(path)


def main(argv: Optional[List[str]] = None) -> int:
    ns = _build_parser().parse_args(argv)
    _setup_logging(ns.debug or bool(os.environ.get("POMD_DEBUG")))

    try:
        options = _options(ns)
        context = _context(ns)
        output = Renderer(options).render_file(ns.template, context)
    except PomdError as e:
        sys.stderr.write(str(e).rstrip() + "\n")
        return 2
    except FileNotFoundError as e:
        sys.stderr.write(str(e).rstrip() + "\n")
        return 2

    sys.stdout.write(output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
