"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running the Elm
toolchain and git, plus output formatting helpers.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path


def git(*args: str, cwd: Path | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--porcelain").
        cwd: Directory to run in; defaults to the current directory.
        check: If True (default), raise on non-zero exit.

    Returns:
        Stripped stdout from the git command.
    """
    result = subprocess.run(
        ["git", *args], capture_output=True, text=True, check=check, cwd=cwd
    )
    return result.stdout.strip()


def run(
    *args: str,
    cwd: Path | None = None,
    input: str | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run an external command, feeding it ``input`` and capturing its output.

    Args:
        *args: Command and arguments (e.g., "elm", "install", "elm/json").
        cwd: Directory to run in.
        input: Text written to the command's stdin (e.g. prompt answers).
        check: If True (default), raise on non-zero exit.
    """
    return subprocess.run(
        args, cwd=cwd, input=input, capture_output=True, text=True, check=check
    )


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate the phases of a vendoring run in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def warn(msg: str) -> None:
    """Print a warning to stderr without stopping."""
    print(f"WARNING: {msg}", file=sys.stderr)
