"""Data models for elm-vendor.

These Pydantic models represent the core data structures used throughout
the vendoring pipeline: parsed manifests, the vendor registry, and the
results of reconciliation and drift detection.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Union

import semver
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer

from .versions import VersionConstraint, parse_constraint

MANAGED_FIELDS = ("source-directories", "dependencies", "test-dependencies")

# Drift reports name the bucket a dependency sits in by its elm.json path.
DIRECT_BUCKET = "dependencies.direct"


def _coerce_constraint(value: Any) -> Any:
    if isinstance(value, str):
        return parse_constraint(value)
    return value


# Constraints are stored as strings in every file we read or write.
Constraint = Annotated[
    VersionConstraint,
    BeforeValidator(_coerce_constraint),
    PlainSerializer(str, return_type=str),
]


class ManifestKind(str, Enum):
    """Project type from the ``"type"`` field of elm.json.

    Applications pin exact versions; packages (libraries) declare ranges.
    """

    APPLICATION = "application"
    PACKAGE = "package"


class DependencySet(BaseModel):
    """One dependency bucket of a manifest.

    Packages only have direct dependencies; applications also list the
    indirect (transitive) ones.
    """

    direct: dict[str, Constraint] = Field(default_factory=dict)
    indirect: dict[str, Constraint] = Field(default_factory=dict)

    def get(self, name: str) -> VersionConstraint | None:
        return self.direct.get(name, self.indirect.get(name))


class Manifest(BaseModel):
    """A parsed elm.json, host or vendored.

    Attributes:
        kind: Application or package.
        name: Package name ("author/project"); applications have none.
        source_directories: Source paths relative to the manifest's directory,
            as written in the file.
        dependencies: Runtime dependency constraints.
        test_dependencies: Test-only dependency constraints.
        document: The raw JSON object in file order. Fields the tool does not
            manage are written back from here untouched.
    """

    kind: ManifestKind
    name: str | None = None
    source_directories: list[str] = Field(default_factory=list)
    dependencies: DependencySet = Field(default_factory=DependencySet)
    test_dependencies: DependencySet = Field(default_factory=DependencySet)
    document: dict[str, Any] = Field(default_factory=dict)

    @property
    def identity(self) -> str:
        return self.name or "main package"

    def passthrough_fields(self) -> dict[str, Any]:
        """Every field the reconciler does not own, in file order."""
        return {k: v for k, v in self.document.items() if k not in MANAGED_FIELDS}


class HostState(BaseModel):
    """The managed fields of a host manifest at some point in time."""

    model_config = ConfigDict(populate_by_name=True)

    source_directories: list[str] = Field(
        default_factory=list, alias="source-directories"
    )
    dependencies: DependencySet = Field(default_factory=DependencySet)
    test_dependencies: DependencySet = Field(
        default_factory=DependencySet, alias="test-dependencies"
    )

    @classmethod
    def of(cls, manifest: Manifest) -> HostState:
        return cls(
            source_directories=list(manifest.source_directories),
            dependencies=manifest.dependencies,
            test_dependencies=manifest.test_dependencies,
        )


class VendorEntry(BaseModel):
    """Registry record for one vendored directory.

    Attributes:
        path: POSIX path of the vendored package, relative to the project root.
        snapshot: Host managed fields from before anything was vendored.
    """

    path: str
    snapshot: HostState


class Registry(BaseModel):
    """The elm-vendor.{json,toml} file.

    Attributes:
        main: The host project's own source directories and dependencies.
        extras: Unmanaged elm.json fields captured by ``init``.
        vendored: One entry per vendored directory, sorted by path.
    """

    main: HostState = Field(default_factory=HostState)
    extras: dict[str, Any] = Field(default_factory=dict)
    vendored: list[VendorEntry] = Field(default_factory=list)

    def entry(self, path: str) -> VendorEntry | None:
        return next((e for e in self.vendored if e.path == path), None)


class VendoredPackage(BaseModel):
    """A vendored directory together with its freshly read manifest."""

    path: str
    manifest: Manifest


class Demand(BaseModel):
    """One manifest's constraint on a dependency."""

    source: str
    constraint: Constraint


class DependencyConflict(BaseModel):
    """A dependency whose demands have no version in common."""

    name: str
    demands: list[Demand]


class MergedDependency(BaseModel):
    """The reconciled constraint for one dependency.

    Attributes:
        constraint: Intersection of every demand on the dependency.
        pin: Exact version to write when the host is an application.
        sources: Manifests that asked for the dependency, host first.
        guessed: True when ``pin`` is merely the lowest version the range
            admits because neither the package cache nor the host's own
            pins named a version inside it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    constraint: Constraint
    pin: Annotated[semver.Version, PlainSerializer(str, return_type=str)]
    sources: list[str] = Field(default_factory=list)
    guessed: bool = False


class Merged(BaseModel):
    """A conflict-free merged manifest fragment."""

    source_directories: list[str] = Field(default_factory=list)
    dependencies: dict[str, MergedDependency] = Field(default_factory=dict)


class Conflict(BaseModel):
    """Irreconcilable constraints, one record per dependency."""

    conflicts: list[DependencyConflict]


ReconciliationResult = Union[Merged, Conflict]


class AddedDependency(BaseModel):
    """A dependency in elm.json that nothing in the registry accounts for."""

    name: str
    constraint: Constraint
    bucket: str = DIRECT_BUCKET


class DependencyMismatch(BaseModel):
    """A dependency the tool expects that is missing or has the wrong version."""

    name: str
    expected: Constraint
    actual: Constraint | None = None
    bucket: str = DIRECT_BUCKET


class FieldDrift(BaseModel):
    """An unmanaged elm.json field that no longer matches the registry."""

    field: str
    expected: Any = None
    actual: Any = None


class SourceDirectoryDrift(BaseModel):
    """The source-directories list differs from the expected merged list."""

    expected: list[str]
    actual: list[str]


class DriftReport(BaseModel):
    """Differences between elm.json and what the registry expects.

    Each category is independent; an empty report means no drift.
    """

    added: list[AddedDependency] = Field(default_factory=list)
    mismatched: list[DependencyMismatch] = Field(default_factory=list)
    fields: list[FieldDrift] = Field(default_factory=list)
    source_directories: SourceDirectoryDrift | None = None

    @property
    def is_empty(self) -> bool:
        return (
            not self.added
            and not self.mismatched
            and not self.fields
            and self.source_directories is None
        )
