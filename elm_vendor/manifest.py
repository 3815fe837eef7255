"""elm.json reading and writing utilities.

The raw JSON object is kept alongside the parsed fields so that anything
elm-vendor does not manage is written back exactly as it was read. This is
important for maintaining readable, diff-friendly files.
"""

from __future__ import annotations

import json
import posixpath
from itertools import combinations
from pathlib import Path
from typing import Any

from .errors import MalformedManifest
from .models import DependencySet, HostState, Manifest, ManifestKind
from .versions import InvalidConstraintError, VersionConstraint, parse_constraint

MANIFEST_FILENAME = "elm.json"
PACKAGE_SOURCE_DIRECTORIES = ["src"]


def normalize_path(path: str) -> str:
    """Normalize a relative source or vendor path to POSIX form.

    Examples:
        "./src/" → "src"
        "vendor\\ui\\..\\core" → "vendor/core"
    """
    return posixpath.normpath(path.replace("\\", "/"))


def loads_manifest(text: str, path: Path | str) -> Manifest:
    """Parse elm.json text.

    Raises:
        MalformedManifest: If the text is not JSON or violates the schema.
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedManifest(path, "<root>", f"invalid JSON: {exc}") from exc
    return parse_manifest(document, path)


def load_manifest(path: Path) -> Manifest:
    """Load and parse an elm.json file.

    Raises:
        OSError: If the file cannot be read.
        MalformedManifest: If the content is invalid.
    """
    return loads_manifest(path.read_text(encoding="utf-8"), path)


def dumps_manifest(manifest: Manifest) -> str:
    """Serialize a manifest the way the Elm compiler formats elm.json."""
    return json.dumps(to_document(manifest), indent=4, ensure_ascii=False) + "\n"


def parse_manifest(document: Any, path: Path | str) -> Manifest:
    """Validate a decoded elm.json object and build a Manifest from it."""
    if not isinstance(document, dict):
        raise MalformedManifest(path, "<root>", "expected a JSON object")

    raw_kind = _require(document, "type", path)
    try:
        kind = ManifestKind(raw_kind)
    except ValueError:
        raise MalformedManifest(
            path, "type", f"unknown project type {raw_kind!r}"
        ) from None

    name: str | None = None
    if kind is ManifestKind.APPLICATION:
        raw_dirs = _require(document, "source-directories", path)
        dependencies = _parse_bucketed(
            _require(document, "dependencies", path), "dependencies", path
        )
        test_dependencies = _parse_bucketed(
            document.get("test-dependencies", {"direct": {}, "indirect": {}}),
            "test-dependencies",
            path,
        )
    else:
        name = _require(document, "name", path)
        if not isinstance(name, str):
            raise MalformedManifest(path, "name", "expected a string")
        raw_dirs = document.get("source-directories", PACKAGE_SOURCE_DIRECTORIES)
        dependencies = DependencySet(
            direct=_parse_constraints(
                _require(document, "dependencies", path), "dependencies", path
            )
        )
        test_dependencies = DependencySet(
            direct=_parse_constraints(
                document.get("test-dependencies", {}), "test-dependencies", path
            )
        )

    manifest = Manifest(
        kind=kind,
        name=name,
        source_directories=_parse_source_directories(raw_dirs, path),
        dependencies=dependencies,
        test_dependencies=test_dependencies,
        document=document,
    )
    _check_buckets(manifest, path)
    return manifest


def to_document(manifest: Manifest) -> dict[str, Any]:
    """Rebuild the JSON object, replacing only the managed fields.

    Existing keys keep their position; managed keys absent from the original
    document are appended.
    """
    document = dict(manifest.document)
    document["type"] = document.get("type", manifest.kind.value)

    if (
        manifest.kind is ManifestKind.APPLICATION
        or "source-directories" in document
        or manifest.source_directories != PACKAGE_SOURCE_DIRECTORIES
    ):
        document["source-directories"] = list(manifest.source_directories)

    if manifest.kind is ManifestKind.APPLICATION:
        document["dependencies"] = _dump_bucketed(manifest.dependencies)
        test = manifest.test_dependencies
        if "test-dependencies" in document or test.direct or test.indirect:
            document["test-dependencies"] = _dump_bucketed(test)
    else:
        document["dependencies"] = _dump_constraints(manifest.dependencies.direct)
        if "test-dependencies" in document or manifest.test_dependencies.direct:
            document["test-dependencies"] = _dump_constraints(
                manifest.test_dependencies.direct
            )
    return document


def with_host_state(manifest: Manifest, state: HostState) -> Manifest:
    """Return a copy of ``manifest`` with its managed fields replaced."""
    replaced = manifest.model_copy(
        update={
            "source_directories": list(state.source_directories),
            "dependencies": state.dependencies,
            "test_dependencies": state.test_dependencies,
        }
    )
    return replaced.model_copy(update={"document": to_document(replaced)})


def _require(
    document: dict[str, Any], field: str, path: Path | str, parent: str = ""
) -> Any:
    if field not in document:
        name = f"{parent}.{field}" if parent else field
        raise MalformedManifest(path, name, "required field is missing")
    return document[field]


def _parse_source_directories(raw: Any, path: Path | str) -> list[str]:
    if not isinstance(raw, list) or not all(isinstance(d, str) for d in raw):
        raise MalformedManifest(path, "source-directories", "expected a list of strings")
    seen: dict[str, str] = {}
    for directory in raw:
        normalized = normalize_path(directory)
        if normalized in seen:
            raise MalformedManifest(
                path,
                "source-directories",
                f"{directory!r} duplicates {seen[normalized]!r}",
            )
        seen[normalized] = directory
    return list(raw)


def _parse_constraints(
    raw: Any, field: str, path: Path | str
) -> dict[str, VersionConstraint]:
    if not isinstance(raw, dict):
        raise MalformedManifest(path, field, "expected an object")
    constraints: dict[str, VersionConstraint] = {}
    for name, text in raw.items():
        if not isinstance(text, str):
            raise MalformedManifest(path, f"{field}.{name}", "expected a string")
        try:
            constraints[name] = parse_constraint(text)
        except InvalidConstraintError as exc:
            raise MalformedManifest(path, f"{field}.{name}", exc.reason) from exc
    return constraints


def _parse_bucketed(raw: Any, field: str, path: Path | str) -> DependencySet:
    if not isinstance(raw, dict):
        raise MalformedManifest(path, field, "expected an object")
    return DependencySet(
        direct=_parse_constraints(
            _require(raw, "direct", path, field), f"{field}.direct", path
        ),
        indirect=_parse_constraints(
            _require(raw, "indirect", path, field), f"{field}.indirect", path
        ),
    )


def _check_buckets(manifest: Manifest, path: Path | str) -> None:
    """A name may sit in several buckets only with compatible constraints."""
    buckets = {
        "dependencies.direct": manifest.dependencies.direct,
        "dependencies.indirect": manifest.dependencies.indirect,
        "test-dependencies.direct": manifest.test_dependencies.direct,
        "test-dependencies.indirect": manifest.test_dependencies.indirect,
    }
    for (left, left_deps), (right, right_deps) in combinations(buckets.items(), 2):
        for name in left_deps.keys() & right_deps.keys():
            if left_deps[name].intersect(right_deps[name]) is None:
                raise MalformedManifest(
                    path,
                    f"{right}.{name}",
                    f"{right_deps[name]} is incompatible with {left}.{name} "
                    f"{left_deps[name]}",
                )


def _dump_constraints(constraints: dict[str, VersionConstraint]) -> dict[str, str]:
    return {name: str(constraint) for name, constraint in constraints.items()}


def _dump_bucketed(deps: DependencySet) -> dict[str, dict[str, str]]:
    return {
        "direct": _dump_constraints(deps.direct),
        "indirect": _dump_constraints(deps.indirect),
    }
