"""Errors raised by elm-vendor operations.

Every error carries the exit code the CLI uses for it, so automation can
tell a version conflict from a concurrent edit without parsing messages.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Conflict, DriftReport


class VendorError(Exception):
    """Base class for every failure surfaced to the user."""

    exit_code = 1


class MalformedManifest(VendorError):
    """A manifest or registry file is unparsable or missing a required field."""

    exit_code = 3

    def __init__(self, path: Path | str, field: str, reason: str) -> None:
        self.path = Path(path)
        self.field = field
        self.reason = reason
        super().__init__(f"{self.path}: field {field!r}: {reason}")


class UnknownVendorDirectory(VendorError):
    exit_code = 4

    def __init__(self, directory: str) -> None:
        self.directory = directory
        super().__init__(f"{directory} is not a vendored directory")


class ConflictError(VendorError):
    """Vendored packages requested incompatible versions of a dependency."""

    exit_code = 5

    def __init__(self, conflict: Conflict) -> None:
        self.conflict = conflict
        lines: list[str] = []
        for item in conflict.conflicts:
            lines.append(
                "There were dependency specification conflicts for the "
                f"dependency {item.name}:"
            )
            for demand in item.demands:
                lines.append(f"\t{demand.source} wanted {demand.constraint}")
        super().__init__("\n".join(lines))


class WriteConflict(VendorError):
    """A file changed on disk between being read and being replaced."""

    exit_code = 6

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(
            f"{self.path} was modified by someone else while elm-vendor was "
            "running; re-run the command against the new contents"
        )


class MissingVendoredManifest(VendorError):
    """One or more vendored directories have no readable elm.json."""

    exit_code = 7

    def __init__(self, missing: dict[str, str]) -> None:
        self.missing = missing
        details = "\n".join(
            f"  {directory}: {reason}" for directory, reason in sorted(missing.items())
        )
        super().__init__(f"There was no elm.json found for:\n{details}")


class RegistryNotFound(VendorError):
    exit_code = 8

    def __init__(self, root: Path) -> None:
        self.root = root
        super().__init__(
            f"No elm-vendor.json or elm-vendor.toml in {root}; "
            "run `elm-vendor init` first"
        )


class RegistryExists(VendorError):
    exit_code = 9

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"An elm-vendor file already exists: {path}")


class UncommittedManifest(VendorError):
    """elm.json has uncommitted changes (or is not under git at all)."""

    exit_code = 10


class InstallError(VendorError):
    """The elm/lamdera binary failed to install a dependency."""

    exit_code = 11


class DriftDetected(VendorError):
    exit_code = 12

    def __init__(self, report: DriftReport) -> None:
        self.report = report
        super().__init__("elm.json has drifted from elm-vendor's records")
