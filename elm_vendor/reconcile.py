"""Constraint reconciliation.

Merges the host's own direct dependency constraints with the declared direct
constraints of every vendored package into one consistent set.

Each vendored package is treated as a single node contributing only its
declared direct constraints. Its transitive closure was already resolved by
the package manager before it was vendored, so it is not re-solved here.

For every dependency name, the merged constraint is the intersection of all
demands on it. An empty intersection is a conflict; all conflicts are
collected before returning so the user sees every problem at once.

Reconciliation is a pure function of its inputs: it never mutates them and
always returns the same result for the same inputs.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

import semver

from .catalog import VersionCatalog
from .models import (
    Conflict,
    Demand,
    DependencyConflict,
    HostState,
    Merged,
    MergedDependency,
    ReconciliationResult,
    VendoredPackage,
)
from .sources import merge_source_directories
from .versions import VersionConstraint

HOST_SOURCE = "main package"
HOST_TEST_SOURCE = "main package (test-dependencies)"


def collect_demands(
    host: Mapping[str, VersionConstraint], packages: Iterable[VendoredPackage]
) -> dict[str, list[Demand]]:
    """Group every direct constraint by dependency name.

    Demands are ordered host first, then vendored packages by path.
    """
    demands: dict[str, list[Demand]] = {}
    for name, constraint in host.items():
        demands.setdefault(name, []).append(
            Demand(source=HOST_SOURCE, constraint=constraint)
        )
    for package in sorted(packages, key=lambda p: p.path):
        for name, constraint in package.manifest.dependencies.direct.items():
            demands.setdefault(name, []).append(
                Demand(source=package.path, constraint=constraint)
            )
    return demands


def intersect_all(demands: Sequence[Demand]) -> VersionConstraint | None:
    """Intersect every demand's constraint, or None if they share no version."""
    narrowed: VersionConstraint | None = demands[0].constraint
    for demand in demands[1:]:
        if narrowed is None:
            return None
        narrowed = narrowed.intersect(demand.constraint)
    return narrowed


def select_pin(
    name: str,
    constraint: VersionConstraint,
    hints: Iterable[semver.Version] = (),
    catalog: VersionCatalog | None = None,
) -> semver.Version:
    """Choose the exact version to write for an application host.

    A pin or an inclusive upper bound decides on its own. Otherwise the
    catalog's newest matching version wins, then the newest hint inside the
    range, then the lowest version the range admits.
    """
    known = known_pin(name, constraint, hints, catalog)
    return known if known is not None else constraint.effective_lower


def known_pin(
    name: str,
    constraint: VersionConstraint,
    hints: Iterable[semver.Version] = (),
    catalog: VersionCatalog | None = None,
) -> semver.Version | None:
    """Like select_pin, but None instead of guessing the lowest version."""
    if constraint.is_pin or (
        constraint.upper is not None and constraint.upper_inclusive
    ):
        return constraint.preferred_version()
    if catalog is not None:
        found = catalog.newest(name, constraint)
        if found is not None and constraint.contains(found):
            return found
    candidates = [hint for hint in hints if constraint.contains(hint)]
    return max(candidates) if candidates else None


def reconcile_constraints(
    host: HostState,
    packages: Iterable[VendoredPackage],
    catalog: VersionCatalog | None = None,
) -> dict[str, MergedDependency] | Conflict:
    """Merge host and vendored direct constraints.

    A merged dependency must also stay compatible with any test-only
    constraint the host declares on the same name.

    Returns:
        Map of dependency name → MergedDependency in name order, or a
        Conflict listing every dependency whose demands are disjoint.
    """
    demands = collect_demands(host.dependencies.direct, packages)
    merged: dict[str, MergedDependency] = {}
    conflicts: list[DependencyConflict] = []

    for name in sorted(demands):
        wanted = demands[name]
        narrowed = intersect_all(wanted)
        if narrowed is None:
            conflicts.append(DependencyConflict(name=name, demands=wanted))
            continue

        test_constraint = host.test_dependencies.get(name)
        if test_constraint is not None and narrowed.intersect(test_constraint) is None:
            conflicts.append(
                DependencyConflict(
                    name=name,
                    demands=[
                        *wanted,
                        Demand(source=HOST_TEST_SOURCE, constraint=test_constraint),
                    ],
                )
            )
            continue

        known = known_pin(name, narrowed, _hints(host, name), catalog)
        merged[name] = MergedDependency(
            constraint=narrowed,
            pin=known if known is not None else narrowed.effective_lower,
            sources=[demand.source for demand in wanted],
            guessed=known is None,
        )

    if conflicts:
        return Conflict(conflicts=conflicts)
    return merged


def reconcile(
    host: HostState,
    packages: Sequence[VendoredPackage],
    catalog: VersionCatalog | None = None,
) -> ReconciliationResult:
    """Compute the merged manifest fragment for a host and its vendored packages."""
    dependencies = reconcile_constraints(host, packages, catalog)
    if isinstance(dependencies, Conflict):
        return dependencies
    return Merged(
        source_directories=merge_source_directories(
            host.source_directories, packages
        ),
        dependencies=dependencies,
    )


def _hints(host: HostState, name: str) -> list[semver.Version]:
    """Versions the host already pins for ``name`` outside its direct deps."""
    hints: list[semver.Version] = []
    for constraint in (
        host.dependencies.indirect.get(name),
        host.test_dependencies.get(name),
    ):
        if constraint is not None and constraint.is_pin:
            hints.append(constraint.lower)
    return hints
