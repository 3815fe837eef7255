"""Tests for elm_vendor.reconcile."""

from __future__ import annotations

import semver

from elm_vendor.errors import ConflictError
from elm_vendor.models import (
    Conflict,
    DependencySet,
    HostState,
    Manifest,
    ManifestKind,
    Merged,
    VendoredPackage,
)
from elm_vendor.reconcile import (
    HOST_SOURCE,
    HOST_TEST_SOURCE,
    collect_demands,
    intersect_all,
    known_pin,
    reconcile,
    select_pin,
)
from elm_vendor.versions import VersionConstraint, parse_constraint


def _package(path: str, dependencies: dict[str, str]) -> VendoredPackage:
    return VendoredPackage(
        path=path,
        manifest=Manifest(
            kind=ManifestKind.PACKAGE,
            name=f"author/{path.rsplit('/', 1)[-1]}",
            source_directories=["src"],
            dependencies=DependencySet(direct=dependencies),
        ),
    )


def _host(
    direct: dict[str, str],
    indirect: dict[str, str] | None = None,
    test: dict[str, str] | None = None,
) -> HostState:
    return HostState(
        source_directories=["src"],
        dependencies=DependencySet(direct=direct, indirect=indirect or {}),
        test_dependencies=DependencySet(direct=test or {}),
    )


class _FixedCatalog:
    def __init__(self, versions: dict[str, list[str]]) -> None:
        self.versions = {
            name: [semver.Version.parse(v) for v in found]
            for name, found in versions.items()
        }
        self.calls: list[str] = []

    def newest(self, name: str, constraint: VersionConstraint) -> semver.Version | None:
        self.calls.append(name)
        matching = [v for v in self.versions.get(name, []) if constraint.contains(v)]
        return max(matching) if matching else None


class TestCollectDemands:
    """Tests for collect_demands()."""

    def test_host_first_then_packages_by_path(self) -> None:
        host = {"elm/core": parse_constraint("1.0.5")}
        packages = [
            _package("vendor/b", {"elm/core": "1.0.0 <= v < 2.0.0"}),
            _package("vendor/a", {"elm/core": "1.0.2 <= v < 2.0.0"}),
        ]
        demands = collect_demands(host, packages)
        assert [d.source for d in demands["elm/core"]] == [
            HOST_SOURCE,
            "vendor/a",
            "vendor/b",
        ]


class TestIntersectAll:
    def test_narrows(self) -> None:
        demands = collect_demands(
            {"elm/json": parse_constraint(">=1.0")},
            [_package("vendor/a", {"elm/json": ">=1.5 <2.0"})],
        )
        assert intersect_all(demands["elm/json"]) == parse_constraint("1.5.0 <= v < 2.0.0")

    def test_disjoint(self) -> None:
        demands = collect_demands(
            {},
            [
                _package("vendor/a", {"elm/json": ">=1.0 <2.0"}),
                _package("vendor/b", {"elm/json": ">=2.0 <3.0"}),
                _package("vendor/c", {"elm/json": ">=1.0"}),
            ],
        )
        assert intersect_all(demands["elm/json"]) is None


class TestSelectPin:
    """Tests for select_pin()."""

    def test_pin_wins(self) -> None:
        catalog = _FixedCatalog({"elm/core": ["1.0.9"]})
        assert select_pin("elm/core", parse_constraint("1.0.5"), catalog=catalog) == (
            semver.Version(1, 0, 5)
        )
        assert catalog.calls == []

    def test_inclusive_upper_bound(self) -> None:
        assert select_pin("elm/core", parse_constraint("1.0.0 <= v <= 1.0.4")) == (
            semver.Version(1, 0, 4)
        )

    def test_catalog_before_hints(self) -> None:
        catalog = _FixedCatalog({"elm/json": ["1.1.2", "1.1.3", "2.0.0"]})
        pin = select_pin(
            "elm/json",
            parse_constraint("1.0.0 <= v < 2.0.0"),
            hints=[semver.Version(1, 0, 0)],
            catalog=catalog,
        )
        assert pin == semver.Version(1, 1, 3)

    def test_hint_when_catalog_has_nothing(self) -> None:
        pin = select_pin(
            "elm/json",
            parse_constraint("1.0.0 <= v < 2.0.0"),
            hints=[semver.Version(1, 1, 3), semver.Version(3, 0, 0)],
            catalog=_FixedCatalog({}),
        )
        assert pin == semver.Version(1, 1, 3)

    def test_lower_bound_as_last_resort(self) -> None:
        assert select_pin("elm/json", parse_constraint("1.0.0 < v < 2.0.0")) == (
            semver.Version(1, 0, 1)
        )

    def test_known_pin_refuses_to_guess(self) -> None:
        constraint = parse_constraint("1.0.0 <= v < 2.0.0")
        assert known_pin("elm/json", constraint, catalog=_FixedCatalog({})) is None
        assert known_pin("elm/json", constraint, hints=[semver.Version(1, 1, 3)]) == (
            semver.Version(1, 1, 3)
        )


class TestReconcile:
    """Tests for reconcile()."""

    def test_conflict_between_host_and_package(self) -> None:
        host = _host({"elm/json": ">=1.0 <2.0"})
        result = reconcile(host, [_package("vendor/a", {"elm/json": ">=2.0 <3.0"})])

        assert isinstance(result, Conflict)
        assert [c.name for c in result.conflicts] == ["elm/json"]
        assert [d.source for d in result.conflicts[0].demands] == [HOST_SOURCE, "vendor/a"]

    def test_every_conflict_is_reported(self) -> None:
        host = _host({"elm/json": "1.1.3", "elm/url": "1.0.0"})
        package = _package(
            "vendor/a",
            {"elm/json": "2.0.0 <= v < 3.0.0", "elm/url": "2.0.0 <= v < 3.0.0"},
        )
        result = reconcile(host, [package])

        assert isinstance(result, Conflict)
        assert [c.name for c in result.conflicts] == ["elm/json", "elm/url"]

    def test_conflict_message(self) -> None:
        host = _host({"elm/json": "1.0.0 <= v < 2.0.0"})
        result = reconcile(host, [_package("vendor/a", {"elm/json": ">=2.0 <3.0"})])
        assert isinstance(result, Conflict)

        message = str(ConflictError(result))
        assert (
            "There were dependency specification conflicts for the dependency elm/json:"
            in message
        )
        assert "\tmain package wanted 1.0.0 <= v < 2.0.0" in message
        assert "\tvendor/a wanted 2.0.0 <= v < 3.0.0" in message

    def test_narrowing(self) -> None:
        """The merged constraint is the intersection of every demand."""
        host = _host({"elm/json": ">=1.0"})
        result = reconcile(host, [_package("vendor/a", {"elm/json": ">=1.5 <2.0"})])

        assert isinstance(result, Merged)
        merged = result.dependencies["elm/json"]
        assert str(merged.constraint) == "1.5.0 <= v < 2.0.0"
        assert merged.pin == semver.Version(1, 5, 0)
        assert merged.sources == [HOST_SOURCE, "vendor/a"]

    def test_host_pin_inside_package_range(self) -> None:
        host = _host({"elm/core": "1.0.5"})
        result = reconcile(host, [_package("vendor/a", {"elm/core": "1.0.0 <= v < 2.0.0"})])
        assert isinstance(result, Merged)
        assert result.dependencies["elm/core"].constraint == parse_constraint("1.0.5")

    def test_indirect_pin_is_used_as_hint(self) -> None:
        """A newly direct dependency keeps the version already resolved."""
        host = _host({"elm/core": "1.0.5"}, indirect={"elm/json": "1.1.3"})
        result = reconcile(host, [_package("vendor/a", {"elm/json": "1.0.0 <= v < 2.0.0"})])
        assert isinstance(result, Merged)
        assert result.dependencies["elm/json"].pin == semver.Version(1, 1, 3)

    def test_catalog_is_consulted(self) -> None:
        catalog = _FixedCatalog({"elm/url": ["1.0.0", "1.0.1"]})
        result = reconcile(
            _host({}), [_package("vendor/a", {"elm/url": "1.0.0 <= v < 2.0.0"})], catalog
        )
        assert isinstance(result, Merged)
        assert result.dependencies["elm/url"].pin == semver.Version(1, 0, 1)
        assert not result.dependencies["elm/url"].guessed

    def test_unknown_version_is_marked_guessed(self) -> None:
        host = _host({"elm/core": "1.0.5"}, indirect={"elm/json": "1.1.3"})
        package = _package(
            "vendor/a",
            {"elm/core": "1.0.0 <= v < 2.0.0", "elm/svg": "1.0.0 <= v < 2.0.0"},
        )
        result = reconcile(host, [package])

        assert isinstance(result, Merged)
        assert result.dependencies["elm/svg"].guessed
        assert result.dependencies["elm/svg"].pin == semver.Version(1, 0, 0)
        assert not result.dependencies["elm/core"].guessed

    def test_test_dependency_conflict(self) -> None:
        """The merged range must stay compatible with host test pins."""
        host = _host({}, test={"elm/json": "2.0.0"})
        result = reconcile(host, [_package("vendor/a", {"elm/json": "1.0.0 <= v < 2.0.0"})])

        assert isinstance(result, Conflict)
        sources = [d.source for d in result.conflicts[0].demands]
        assert sources == ["vendor/a", HOST_TEST_SOURCE]

    def test_dependencies_in_name_order(self) -> None:
        result = reconcile(
            _host({"elm/url": "1.0.0", "elm/core": "1.0.5"}),
            [_package("vendor/a", {"elm/browser": "1.0.0 <= v < 2.0.0"})],
        )
        assert isinstance(result, Merged)
        assert list(result.dependencies) == ["elm/browser", "elm/core", "elm/url"]

    def test_source_directories_merged(self) -> None:
        result = reconcile(
            _host({}), [_package("vendor/b", {}), _package("vendor/a", {})]
        )
        assert isinstance(result, Merged)
        assert result.source_directories == ["src", "vendor/a/src", "vendor/b/src"]

    def test_nothing_vendored(self) -> None:
        host = _host({"elm/core": "1.0.5"})
        result = reconcile(host, [])
        assert isinstance(result, Merged)
        assert result.source_directories == ["src"]
        assert result.dependencies["elm/core"].pin == semver.Version(1, 0, 5)

    def test_indirect_dependencies_of_packages_are_ignored(self) -> None:
        package = _package("vendor/a", {"elm/core": "1.0.0 <= v < 2.0.0"})
        package.manifest.dependencies.indirect["elm/virtual-dom"] = parse_constraint("9.9.9")
        result = reconcile(_host({}), [package])
        assert isinstance(result, Merged)
        assert "elm/virtual-dom" not in result.dependencies

    def test_does_not_mutate_inputs(self) -> None:
        host = _host({"elm/json": ">=1.0"}, indirect={"elm/url": "1.0.0"})
        packages = [_package("vendor/a", {"elm/json": ">=1.5 <2.0", "elm/url": ">=1.0"})]
        host_before = host.model_dump(mode="json")
        packages_before = [p.model_dump(mode="json") for p in packages]

        reconcile(host, packages)

        assert host.model_dump(mode="json") == host_before
        assert [p.model_dump(mode="json") for p in packages] == packages_before

    def test_is_deterministic(self) -> None:
        host = _host({"elm/core": "1.0.5"}, indirect={"elm/json": "1.1.3"})
        packages = [
            _package("vendor/b", {"elm/json": "1.0.0 <= v < 2.0.0"}),
            _package("vendor/a", {"elm/core": "1.0.0 <= v < 2.0.0"}),
        ]
        assert reconcile(host, packages) == reconcile(host, list(reversed(packages)))
