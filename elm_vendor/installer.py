"""Running ``elm install`` / ``lamdera install``.

Lamdera projects depend on ``lamdera/core`` and must be managed with the
lamdera binary; everything else uses elm. Both ask for confirmation before
touching elm.json, so the prompt is answered on stdin.
"""

from __future__ import annotations

import subprocess
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

from .errors import InstallError
from .shell import run

LAMDERA_MARKER = "lamdera/core"


class Dialect(str, Enum):
    ELM = "elm"
    LAMDERA = "lamdera"


def detect_dialect(dependencies: Mapping[str, object]) -> Dialect:
    """Pick the binary from the host's direct dependencies."""
    return Dialect.LAMDERA if LAMDERA_MARKER in dependencies else Dialect.ELM


def install_dependency(dialect: Dialect, dependency: str, *, cwd: Path) -> str:
    """Install ``dependency`` into the elm.json in ``cwd``.

    Returns:
        The binary's stdout.

    Raises:
        InstallError: If the binary is missing or exits non-zero.
    """
    try:
        result = run(dialect.value, "install", dependency, cwd=cwd, input="y\n", check=False)
    except FileNotFoundError as exc:
        raise InstallError(f"{dialect.value} is not installed or not on PATH") from exc
    except subprocess.SubprocessError as exc:
        raise InstallError(f"{dialect.value} install {dependency} failed: {exc}") from exc

    if result.returncode != 0:
        output = (result.stderr or result.stdout).strip()
        raise InstallError(
            f"{dialect.value} install {dependency} exited with "
            f"{result.returncode}:\n{output}"
        )
    return result.stdout
