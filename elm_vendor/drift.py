"""Drift detection.

Compares the current elm.json against what the registry expects it to hold.
Read-only: neither the manifest nor the registry is ever modified here.
"""

from __future__ import annotations

from .manifest import normalize_path
from .models import (
    DIRECT_BUCKET,
    AddedDependency,
    DependencyMismatch,
    DependencySet,
    DriftReport,
    FieldDrift,
    Manifest,
    ManifestKind,
    Merged,
    Registry,
    SourceDirectoryDrift,
)
from .versions import VersionConstraint
from .writer import managed_dependencies

Buckets = dict[str, dict[str, VersionConstraint]]

# Buckets whose name is left out of the report, since they are the obvious ones.
_PLAIN_BUCKETS = (DIRECT_BUCKET, "dependencies")


def expected_dependencies(
    registry: Registry, merged: Merged | None
) -> dict[str, VersionConstraint]:
    """Direct constraints the host should carry right now."""
    if merged is None:
        return dict(registry.main.dependencies.direct)
    return {name: dep.constraint for name, dep in merged.dependencies.items()}


def expected_buckets(
    kind: ManifestKind, registry: Registry, merged: Merged | None
) -> Buckets:
    """Every dependency bucket the host should carry, keyed by its elm.json path.

    Direct entries are ranges for vendored names; the other buckets are the
    host's own entries minus names promoted to direct, as they are written.
    """
    dependencies, test_dependencies = managed_dependencies(
        registry.main, expected_dependencies(registry, merged)
    )
    return buckets(kind, dependencies, test_dependencies)


def buckets(
    kind: ManifestKind, dependencies: DependencySet, test_dependencies: DependencySet
) -> Buckets:
    if kind is ManifestKind.APPLICATION:
        return {
            DIRECT_BUCKET: dict(dependencies.direct),
            "dependencies.indirect": dict(dependencies.indirect),
            "test-dependencies.direct": dict(test_dependencies.direct),
            "test-dependencies.indirect": dict(test_dependencies.indirect),
        }
    return {
        "dependencies": dict(dependencies.direct),
        "test-dependencies": dict(test_dependencies.direct),
    }


def detect_drift(
    manifest: Manifest, registry: Registry, merged: Merged | None = None
) -> DriftReport:
    """Report every way ``manifest`` diverges from the registry's expectation.

    Args:
        manifest: The host elm.json as currently on disk.
        registry: The vendor registry.
        merged: Reconciliation of the registered vendored packages, or None
                when nothing is vendored.
    """
    expected = expected_buckets(manifest.kind, registry, merged)
    actual = buckets(manifest.kind, manifest.dependencies, manifest.test_dependencies)
    snapshots = [
        buckets(manifest.kind, entry.snapshot.dependencies, entry.snapshot.test_dependencies)
        for entry in registry.vendored
    ]

    added: list[AddedDependency] = []
    mismatched: list[DependencyMismatch] = []
    for bucket, wanted in expected.items():
        present = actual[bucket]

        # A snapshot name only counts where it is not expected in another bucket.
        elsewhere = {
            name for other, names in expected.items() if other != bucket for name in names
        }
        accounted = set(wanted)
        for snapshot in snapshots:
            accounted |= set(snapshot[bucket]) - elsewhere

        added.extend(
            AddedDependency(name=name, constraint=constraint, bucket=bucket)
            for name, constraint in present.items()
            if name not in accounted
        )
        for name, constraint in wanted.items():
            found = present.get(name)
            if found is None or not _satisfies(bucket, found, constraint):
                mismatched.append(
                    DependencyMismatch(
                        name=name, expected=constraint, actual=found, bucket=bucket
                    )
                )

    fields: list[FieldDrift] = []
    current = manifest.passthrough_fields()
    for field in [*registry.extras, *(k for k in current if k not in registry.extras)]:
        if registry.extras.get(field) != current.get(field):
            fields.append(
                FieldDrift(
                    field=field,
                    expected=registry.extras.get(field),
                    actual=current.get(field),
                )
            )

    if merged is None:
        expected_dirs = list(registry.main.source_directories)
    else:
        expected_dirs = list(merged.source_directories)
    source_directories = None
    if [normalize_path(d) for d in manifest.source_directories] != [
        normalize_path(d) for d in expected_dirs
    ]:
        source_directories = SourceDirectoryDrift(
            expected=expected_dirs, actual=list(manifest.source_directories)
        )

    return DriftReport(
        added=added,
        mismatched=mismatched,
        fields=fields,
        source_directories=source_directories,
    )


def _satisfies(bucket: str, found: VersionConstraint, expected: VersionConstraint) -> bool:
    # Applications hold pins chosen from the merged range; any pin inside it is fine.
    if bucket == DIRECT_BUCKET and found.is_pin:
        return expected.contains(found.lower)
    return found == expected


def _where(bucket: str) -> str:
    return "" if bucket in _PLAIN_BUCKETS else f" ({bucket})"


def format_report(report: DriftReport) -> list[str]:
    """Render a drift report as indented lines for the terminal."""
    lines: list[str] = []
    if report.added:
        lines.append("Dependencies added outside elm-vendor:")
        lines.extend(
            f"  {item.name} {item.constraint}{_where(item.bucket)}" for item in report.added
        )
    if report.mismatched:
        lines.append("Dependencies missing or at the wrong version:")
        for item in report.mismatched:
            actual = item.actual if item.actual is not None else "<missing>"
            lines.append(
                f"  {item.name}{_where(item.bucket)}: expected {item.expected}, found {actual}"
            )
    if report.fields:
        lines.append("Fields changed since `elm-vendor init`:")
        for drift in report.fields:
            lines.append(
                f"  {drift.field}: expected {drift.expected!r}, found {drift.actual!r}"
            )
    if report.source_directories is not None:
        lines.append("Source directories differ:")
        lines.append(f"  expected {report.source_directories.expected}")
        lines.append(f"  found    {report.source_directories.actual}")
    return lines
