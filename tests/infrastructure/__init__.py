"""
Shared test infrastructure.

Modules:
- file_utils: Creating template, context and config files
- cli_utils: Running the CLI in a subprocess
"""

from .file_utils import write, write_template, write_json
from .cli_utils import run_cli

__all__ = ["write", "write_template", "write_json", "run_cli"]
