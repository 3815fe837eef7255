"""Vendor registry: the elm-vendor.{json,toml} file.

The registry records the host project's own fields (captured by ``init``)
and one entry per vendored directory with a snapshot of the host's managed
fields from before anything was vendored. Entries are keyed by directory
path; the vendored manifests themselves are re-read on every run.
"""

from __future__ import annotations

import json
from pathlib import Path

import tomlkit
from pydantic import ValidationError
from tomlkit.exceptions import TOMLKitError

from .errors import MalformedManifest, UnknownVendorDirectory, VendorError
from .manifest import normalize_path
from .models import HostState, Manifest, Registry, VendorEntry

REGISTRY_FILENAMES = ("elm-vendor.json", "elm-vendor.toml")


def find_registry(root: Path) -> Path | None:
    """Locate the registry file in ``root``.

    Raises:
        VendorError: If both the JSON and the TOML flavour exist.
    """
    found = [root / name for name in REGISTRY_FILENAMES if (root / name).exists()]
    if len(found) > 1:
        raise VendorError(f"Multiple elm-vendor.{{json,toml}} found in {root}")
    return found[0] if found else None


def registry_filename(registry_format: str) -> str:
    if registry_format not in ("json", "toml"):
        raise VendorError(f"Unknown registry format {registry_format!r}")
    return f"elm-vendor.{registry_format}"


def loads_registry(text: str, path: Path) -> Registry:
    """Parse registry text; the flavour is picked from the file suffix."""
    if path.suffix == ".toml":
        try:
            data = tomlkit.parse(text).unwrap()
        except TOMLKitError as exc:
            raise MalformedManifest(path, "<root>", f"invalid TOML: {exc}") from exc
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedManifest(path, "<root>", f"invalid JSON: {exc}") from exc

    try:
        return Registry.model_validate(data)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "<root>"
        raise MalformedManifest(path, field, error["msg"]) from exc


def dumps_registry(registry: Registry, path: Path) -> str:
    """Serialize the registry with entries in path order."""
    data = registry.model_dump(mode="json", by_alias=True)
    data["vendored"] = sorted(data["vendored"], key=lambda entry: entry["path"])
    if path.suffix == ".toml":
        return tomlkit.dumps(data)
    return json.dumps(data, indent=4, ensure_ascii=False) + "\n"


def new_registry(manifest: Manifest) -> Registry:
    """Capture the host's own fields, as ``init`` does."""
    return Registry(
        main=HostState.of(manifest),
        extras=manifest.passthrough_fields(),
    )


def normalize_vendor_path(root: Path, directory: str | Path) -> str:
    """Express ``directory`` as a normalized POSIX path relative to ``root``.

    Raises:
        VendorError: If the directory is the root itself or lies outside it.
    """
    candidate = Path(directory)
    if candidate.is_absolute():
        try:
            candidate = candidate.resolve().relative_to(root.resolve())
        except ValueError:
            raise VendorError(f"{directory} is outside the project {root}") from None
    relative = normalize_path(candidate.as_posix())
    if relative == "." or relative == ".." or relative.startswith("../"):
        raise VendorError(f"{directory} is not a directory inside the project {root}")
    return relative


def entries(registry: Registry) -> list[VendorEntry]:
    """All entries in lexicographic path order."""
    return sorted(registry.vendored, key=lambda entry: entry.path)


def record_entry(
    registry: Registry, path: str, manifest: Manifest
) -> tuple[Registry, VendorEntry]:
    """Register a vendored directory.

    Re-registering a known path returns the existing entry unchanged. The
    first entry snapshots the current host manifest; later entries share
    that snapshot so it always describes the pre-vendoring state.
    """
    existing = registry.entry(path)
    if existing is not None:
        return registry, existing

    if registry.vendored:
        snapshot = entries(registry)[0].snapshot
    else:
        snapshot = HostState.of(manifest)
    entry = VendorEntry(path=path, snapshot=snapshot)
    vendored = sorted([*registry.vendored, entry], key=lambda e: e.path)
    return registry.model_copy(update={"vendored": vendored}), entry


def remove_entry(registry: Registry, path: str) -> tuple[Registry, VendorEntry]:
    """Drop a vendored directory from the registry.

    Raises:
        UnknownVendorDirectory: If ``path`` has no entry.
    """
    existing = registry.entry(path)
    if existing is None:
        raise UnknownVendorDirectory(path)
    remaining = [entry for entry in entries(registry) if entry.path != path]
    return registry.model_copy(update={"vendored": remaining}), existing
