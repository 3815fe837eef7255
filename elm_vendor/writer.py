"""Manifest writing.

Two halves: ``apply_merge`` builds the new host manifest in memory, and
``Transaction`` persists any number of files so that each one is either
fully replaced or left untouched.

Every file is captured as a ``FileState`` when read. Before anything is
replaced, each file is fingerprinted again; if any changed, the whole
transaction aborts with WriteConflict instead of overwriting someone
else's edit.
"""

from __future__ import annotations

import hashlib
import os
import stat
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from .errors import WriteConflict
from .manifest import to_document
from .models import DependencySet, HostState, Manifest, ManifestKind, Merged
from .versions import VersionConstraint


@dataclass(frozen=True)
class FileState:
    """A file's bytes and content hash at read time.

    ``data`` and ``fingerprint`` are None when the file did not exist.
    """

    path: Path
    data: bytes | None
    fingerprint: str | None

    @property
    def text(self) -> str:
        return (self.data or b"").decode("utf-8")


def fingerprint(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def read_state(path: Path) -> FileState:
    """Read ``path`` once and remember what it looked like."""
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return FileState(path=path, data=None, fingerprint=None)
    return FileState(path=path, data=data, fingerprint=fingerprint(data))


def ensure_unchanged(state: FileState) -> None:
    """Raise WriteConflict if ``state.path`` no longer matches ``state``."""
    if read_state(state.path).fingerprint != state.fingerprint:
        raise WriteConflict(state.path)


def apply_merge(manifest: Manifest, host: HostState, merged: Merged) -> Manifest:
    """Replace only the managed fields of ``manifest`` with the merged result.

    Applications receive exact pins; names promoted to direct dependencies
    are dropped from the indirect and test buckets. Packages receive the
    merged ranges.
    """
    if manifest.kind is ManifestKind.APPLICATION:
        direct = {
            name: VersionConstraint.exact(dep.pin)
            for name, dep in merged.dependencies.items()
        }
    else:
        direct = {name: dep.constraint for name, dep in merged.dependencies.items()}

    dependencies, test_dependencies = managed_dependencies(host, direct)
    updated = manifest.model_copy(
        update={
            "source_directories": list(merged.source_directories),
            "dependencies": dependencies,
            "test_dependencies": test_dependencies,
        }
    )
    return updated.model_copy(update={"document": to_document(updated)})


def managed_dependencies(
    host: HostState, direct: dict[str, VersionConstraint]
) -> tuple[DependencySet, DependencySet]:
    """Both dependency buckets as written around the given direct entries.

    The host's own indirect and test entries are kept except for names
    that ``direct`` now lists.
    """
    dependencies = DependencySet(
        direct=direct,
        indirect={
            name: constraint
            for name, constraint in host.dependencies.indirect.items()
            if name not in direct
        },
    )
    test_dependencies = DependencySet(
        direct={
            name: constraint
            for name, constraint in host.test_dependencies.direct.items()
            if name not in direct
        },
        indirect={
            name: constraint
            for name, constraint in host.test_dependencies.indirect.items()
            if name not in direct
        },
    )
    return dependencies, test_dependencies


class Transaction:
    """Stage file contents, then swap them all in or none at all.

    Usage::

        with Transaction() as txn:
            txn.stage(manifest_state, manifest_text)
            txn.stage(registry_state, registry_text)

    Leaving the block normally commits; an exception discards every staged
    temp file and leaves the originals untouched. Every state handed to
    ``stage`` or ``watch`` is re-checked before the first rename, including
    files whose content did not change.
    """

    def __init__(self) -> None:
        self._watched: list[FileState] = []
        self._staged: list[tuple[FileState, Path]] = []

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                self.commit()
        finally:
            self._discard()

    @property
    def paths(self) -> list[Path]:
        return [state.path for state, _ in self._staged]

    def watch(self, state: FileState) -> None:
        """Abort the commit if ``state.path`` changes before it happens."""
        if state not in self._watched:
            self._watched.append(state)

    def stage(self, state: FileState, text: str) -> bool:
        """Write ``text`` to a temp file beside ``state.path``.

        Returns False (and stages nothing) when the content is unchanged.
        The file is watched either way.
        """
        self.watch(state)
        data = text.encode("utf-8")
        if data == state.data:
            return False
        with _temp_file(state.path) as (handle, tmp_path):
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        _copy_mode(state.path, tmp_path)
        self._staged.append((state, tmp_path))
        return True

    def commit(self) -> None:
        for state in self._watched:
            ensure_unchanged(state)
        for state, tmp_path in self._staged:
            os.replace(tmp_path, state.path)

    def _discard(self) -> None:
        for _, tmp_path in self._staged:
            if tmp_path.exists():
                tmp_path.unlink()
        self._staged.clear()
        self._watched.clear()


@contextmanager
def _temp_file(path: Path) -> Iterator[tuple[IO[bytes], Path]]:
    """Yield an open binary temp file in ``path``'s directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "wb", dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp", delete=False
    )
    tmp_path = Path(handle.name)
    try:
        with handle:
            yield handle, tmp_path
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _copy_mode(original: Path, tmp_path: Path) -> None:
    """Give the temp file the original's permissions (0644 for new files)."""
    try:
        mode = stat.S_IMODE(original.stat().st_mode)
    except FileNotFoundError:
        mode = 0o644
    os.chmod(tmp_path, mode)
