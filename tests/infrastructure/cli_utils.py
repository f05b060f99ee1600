"""
Utilities for working with CLI in tests.
"""

import os
import subprocess
import sys
from pathlib import Path


def run_cli(root: Path, *args: str, **env_overrides: str) -> subprocess.CompletedProcess:
    """
    Runs pomd.cli with the given arguments in the given directory.

    Args:
        root: Working directory for command execution
        *args: Command line arguments
        **env_overrides: Extra environment variables

    Returns:
        CompletedProcess with execution results
    """
    env = os.environ.copy()
    env.pop("POMD_DEBUG", None)
    env.update(env_overrides)
    # The package may not be installed when tests run from a checkout
    repo_root = str(Path(__file__).resolve().parents[2])
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [repo_root, env.get("PYTHONPATH")]))
    return subprocess.run(
        [sys.executable, "-m", "pomd.cli", *args],
        cwd=root, env=env, capture_output=True, text=True, encoding="utf-8"
    )
