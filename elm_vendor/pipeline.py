"""Vendoring pipeline: init → vendor → check → unvendor → install.

This module orchestrates every elm-vendor operation:
1. Read elm.json and the registry once, remembering their fingerprints
2. Re-read every registered vendored package's elm.json
3. Reconcile dependency constraints and merge source directories in memory
4. Write elm.json and the registry together, aborting if either changed
   on disk in the meantime

Nothing on disk changes unless the whole merged state was computed
successfully. ``check`` runs the same computation but never writes.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from .catalog import VersionCatalog
from .drift import detect_drift
from .errors import (
    ConflictError,
    InstallError,
    MissingVendoredManifest,
    RegistryExists,
    RegistryNotFound,
    UncommittedManifest,
    VendorError,
)
from .installer import detect_dialect, install_dependency
from .manifest import (
    MANIFEST_FILENAME,
    dumps_manifest,
    load_manifest,
    loads_manifest,
    with_host_state,
)
from .models import (
    Conflict,
    DependencySet,
    DriftReport,
    HostState,
    Manifest,
    ManifestKind,
    Merged,
    Registry,
    VendoredPackage,
    VendorEntry,
)
from .reconcile import reconcile
from .registry import (
    dumps_registry,
    entries,
    find_registry,
    loads_registry,
    new_registry,
    normalize_vendor_path,
    record_entry,
    registry_filename,
    remove_entry,
)
from .shell import git, step, warn
from .versions import InvalidConstraintError, VersionConstraint, parse_constraint
from .writer import FileState, Transaction, apply_merge, read_state


@dataclass(frozen=True)
class ProjectState:
    """elm.json and the registry as read at the start of one command."""

    root: Path
    manifest_state: FileState
    manifest: Manifest
    registry_state: FileState
    registry: Registry


def load_project(root: Path) -> ProjectState:
    """Take one consistent snapshot of elm.json and the registry.

    Raises:
        RegistryNotFound: If ``init`` has not been run.
        VendorError: If elm.json is missing.
        MalformedManifest: If either file is invalid.
    """
    registry_path = find_registry(root)
    if registry_path is None:
        raise RegistryNotFound(root)

    manifest_state = read_state(root / MANIFEST_FILENAME)
    if manifest_state.data is None:
        raise VendorError(f"No {MANIFEST_FILENAME} found in {root}")
    registry_state = read_state(registry_path)

    return ProjectState(
        root=root,
        manifest_state=manifest_state,
        manifest=loads_manifest(manifest_state.text, manifest_state.path),
        registry_state=registry_state,
        registry=loads_registry(registry_state.text, registry_path),
    )


def load_vendored(root: Path, vendor_entries: list[VendorEntry]) -> list[VendoredPackage]:
    """Read the elm.json of every vendored directory.

    Directories whose manifest is missing or unreadable do not stop the
    others from being read; they are all reported together afterwards.

    Raises:
        MissingVendoredManifest: If any directory lacks a readable elm.json.
        MalformedManifest: If a vendored elm.json is invalid.
    """
    packages: list[VendoredPackage] = []
    missing: dict[str, str] = {}

    for entry in vendor_entries:
        path = root / entry.path / MANIFEST_FILENAME
        try:
            manifest = load_manifest(path)
        except FileNotFoundError:
            missing[entry.path] = f"{path} does not exist"
            warn(f"{entry.path} has no elm.json")
            continue
        except (OSError, UnicodeDecodeError) as exc:
            missing[entry.path] = f"cannot read {path}: {exc}"
            warn(f"{entry.path}/elm.json could not be read")
            continue

        packages.append(VendoredPackage(path=entry.path, manifest=manifest))
        deps = manifest.dependencies.direct
        print(f"  {entry.path}: {manifest.identity} ({len(deps)} dependencies)")

    if missing:
        raise MissingVendoredManifest(missing)
    return packages


def plan(
    host: HostState, packages: list[VendoredPackage], catalog: VersionCatalog | None
) -> Merged:
    """Reconcile, turning a Conflict result into ConflictError."""
    result = reconcile(host, packages, catalog)
    if isinstance(result, Conflict):
        raise ConflictError(result)
    return result


def ensure_committed(root: Path) -> None:
    """Refuse to touch elm.json unless git says it is committed.

    Raises:
        UncommittedManifest: If elm.json has local changes or git is unusable.
    """
    try:
        status = git("status", "--porcelain", "--", MANIFEST_FILENAME, cwd=root)
    except (subprocess.CalledProcessError, FileNotFoundError) as exc:
        raise UncommittedManifest(
            f"Could not ask git about {MANIFEST_FILENAME} in {root}; "
            "is it a git repository?"
        ) from exc
    if status:
        raise UncommittedManifest(
            f"{MANIFEST_FILENAME} is not committed! Commit it first so the "
            "changes elm-vendor makes can be reviewed and reverted."
        )


def init_project(root: Path, registry_format: str = "json") -> Registry:
    """Create the registry from the current elm.json.

    Raises:
        RegistryExists: If a registry file is already present.
    """
    step("Initializing elm-vendor")

    existing = find_registry(root)
    if existing is not None:
        raise RegistryExists(existing)

    manifest_path = root / MANIFEST_FILENAME
    try:
        manifest = load_manifest(manifest_path)
    except FileNotFoundError:
        raise VendorError(f"No {MANIFEST_FILENAME} found in {root}") from None

    registry = new_registry(manifest)
    registry_path = root / registry_filename(registry_format)
    with Transaction() as txn:
        txn.stage(read_state(registry_path), dumps_registry(registry, registry_path))

    print(f"  Extracted {len(manifest.dependencies.direct)} direct dependencies")
    print(f"  Wrote {registry_path.name}")
    return registry


def vendor(
    root: Path,
    directory: str | Path | None = None,
    *,
    catalog: VersionCatalog | None = None,
    require_clean: bool = False,
) -> Merged:
    """Vendor ``directory`` (if given) and resync every registered package.

    Args:
        root: Project root holding elm.json and the registry.
        directory: Directory to start vendoring. Already-registered
                   directories are accepted and left as they are.
        catalog: Source of available versions for choosing pins.
        require_clean: Refuse to run unless elm.json is committed in git.

    Returns:
        The merged manifest fragment that was written.
    """
    if require_clean:
        ensure_committed(root)

    state = load_project(root)
    registry = state.registry

    if directory is not None:
        path = normalize_vendor_path(root, directory)
        known = registry.entry(path) is not None
        registry, _ = record_entry(registry, path, state.manifest)
        step(f"{'Resyncing' if known else 'Vendoring'} {path}")

    step("Reading vendored packages")
    packages = load_vendored(root, entries(registry))
    if not packages:
        print("  Nothing is vendored")

    step("Reconciling dependencies")
    merged = plan(registry.main, packages, catalog)
    for name, dep in merged.dependencies.items():
        print(f"  {name} {dep.constraint} → {dep.pin}")
    _warn_guessed(state.manifest, merged)

    manifest = apply_merge(state.manifest, registry.main, merged)
    _write(state, manifest, registry)
    return merged


def unvendor(
    root: Path,
    directory: str | Path | None = None,
    *,
    catalog: VersionCatalog | None = None,
) -> Manifest:
    """Stop vendoring ``directory``, or every directory when None.

    With packages still registered afterwards, elm.json is recomputed from
    them so shared dependencies survive. Removing the last package restores
    the snapshot taken before anything was vendored.

    Raises:
        UnknownVendorDirectory: If ``directory`` is not registered.
    """
    state = load_project(root)
    registry = state.registry

    if directory is None:
        targets = [entry.path for entry in entries(registry)]
    else:
        targets = [normalize_vendor_path(root, directory)]

    if not targets:
        step("Nothing is vendored")
        return state.manifest

    removed: list[VendorEntry] = []
    for path in targets:
        registry, entry = remove_entry(registry, path)
        removed.append(entry)
        step(f"Unvendoring {path}")

    if registry.vendored:
        step("Reading remaining vendored packages")
        packages = load_vendored(root, entries(registry))
        merged = plan(registry.main, packages, catalog)
        _warn_guessed(state.manifest, merged)
        manifest = apply_merge(state.manifest, registry.main, merged)
    else:
        manifest = with_host_state(state.manifest, removed[0].snapshot)

    _write(state, manifest, registry)
    return manifest


def check(root: Path, *, catalog: VersionCatalog | None = None) -> DriftReport:
    """Compare elm.json with what the registry expects. Never writes."""
    state = load_project(root)
    merged = None
    if state.registry.vendored:
        step("Reading vendored packages")
        packages = load_vendored(root, entries(state.registry))
        merged = plan(state.registry.main, packages, catalog)
    step("Checking elm.json for drift")
    return detect_drift(state.manifest, state.registry, merged)


def install(root: Path, dependency: str, version: str | None = None) -> DependencySet:
    """Install a dependency with elm (or lamdera) and record it as the host's own.

    The binary edits elm.json itself; afterwards every direct or indirect
    entry it added or changed is copied into the registry, including into
    the pre-vendoring snapshots so a later unvendor keeps it.

    Args:
        root: Project root.
        dependency: Package name, e.g. "elm/json".
        version: Optional constraint the installed version must satisfy.

    Returns:
        The dependency entries copied into the registry.
    """
    requested: VersionConstraint | None = None
    if version is not None:
        try:
            requested = parse_constraint(version)
        except InvalidConstraintError as exc:
            raise InstallError(str(exc)) from exc

    state = load_project(root)
    dialect = detect_dialect(state.registry.main.dependencies.direct)

    step(f"Installing {dependency} with {dialect.value}")
    install_dependency(dialect, dependency, cwd=root)

    after = load_manifest(state.manifest_state.path)
    before = state.manifest.dependencies
    added = DependencySet(
        direct={
            name: constraint
            for name, constraint in after.dependencies.direct.items()
            if name == dependency or before.direct.get(name) != constraint
        },
        indirect={
            name: constraint
            for name, constraint in after.dependencies.indirect.items()
            if before.indirect.get(name) != constraint
        },
    )

    installed = added.direct.get(dependency)
    if installed is None:
        raise InstallError(f"{dependency} is not a direct dependency after installing")
    if requested is not None and installed.intersect(requested) is None:
        raise InstallError(
            f"{dialect.value} installed {dependency} {installed}, "
            f"which does not satisfy {requested}"
        )

    registry = state.registry.model_copy(
        update={
            "main": _extend(state.registry.main, added),
            "vendored": [
                entry.model_copy(update={"snapshot": _extend(entry.snapshot, added)})
                for entry in entries(state.registry)
            ],
        }
    )
    with Transaction() as txn:
        txn.stage(
            state.registry_state, dumps_registry(registry, state.registry_state.path)
        )

    for name, constraint in added.direct.items():
        print(f"  {name} {constraint}")
    return added


def _extend(host: HostState, added: DependencySet) -> HostState:
    direct = {**host.dependencies.direct, **added.direct}
    indirect = {
        name: constraint
        for name, constraint in {**host.dependencies.indirect, **added.indirect}.items()
        if name not in direct
    }
    return host.model_copy(
        update={"dependencies": DependencySet(direct=direct, indirect=indirect)}
    )


def _warn_guessed(manifest: Manifest, merged: Merged) -> None:
    # Packages are written as ranges, so only application pins can be guesses.
    if manifest.kind is not ManifestKind.APPLICATION:
        return
    for name, dep in merged.dependencies.items():
        if dep.guessed:
            warn(
                f"{name}: no known version in {dep.constraint}; pinned {dep.pin}, "
                "the lowest it admits, without checking that it exists"
            )


def _write(state: ProjectState, manifest: Manifest, registry: Registry) -> None:
    """Persist elm.json and the registry in one transaction."""
    step("Writing changes")
    with Transaction() as txn:
        txn.stage(state.manifest_state, dumps_manifest(manifest))
        txn.stage(
            state.registry_state, dumps_registry(registry, state.registry_state.path)
        )
        written = [path.name for path in txn.paths]

    if written:
        for name in written:
            print(f"  Updated {name}")
    else:
        print("  Already up to date")
