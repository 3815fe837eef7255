"""Version availability lookups.

The reconciler only narrows ranges; deciding which concrete versions exist
belongs to a catalog. ``ElmHomeCatalog`` answers from the local Elm package
cache, so no network access is ever needed.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

import semver

from .versions import InvalidConstraintError, VersionConstraint, parse_version


class VersionCatalog(Protocol):
    """Answers "what is the newest version of D inside range R"."""

    def newest(self, name: str, constraint: VersionConstraint) -> semver.Version | None:
        ...


def default_elm_home() -> Path:
    """$ELM_HOME if set, otherwise ~/.elm."""
    env = os.environ.get("ELM_HOME")
    return Path(env) if env else Path.home() / ".elm"


class ElmHomeCatalog:
    """Versions already downloaded into the Elm package cache.

    The cache layout is ``<elm_home>/<compiler>/packages/<author>/<project>/<version>/``;
    every compiler directory is searched.
    """

    def __init__(self, elm_home: Path | None = None) -> None:
        self.elm_home = elm_home or default_elm_home()
        self._cache: dict[str, list[semver.Version]] = {}

    def versions(self, name: str) -> list[semver.Version]:
        """All cached versions of ``name``, oldest first."""
        if name not in self._cache:
            found: set[semver.Version] = set()
            if self.elm_home.is_dir():
                for compiler_dir in self.elm_home.iterdir():
                    package_dir = compiler_dir / "packages" / name
                    if not package_dir.is_dir():
                        continue
                    for version_dir in package_dir.iterdir():
                        if not version_dir.is_dir():
                            continue
                        try:
                            found.add(parse_version(version_dir.name))
                        except InvalidConstraintError:
                            continue
            self._cache[name] = sorted(found)
        return self._cache[name]

    def newest(self, name: str, constraint: VersionConstraint) -> semver.Version | None:
        matching = [v for v in self.versions(name) if constraint.contains(v)]
        return matching[-1] if matching else None
