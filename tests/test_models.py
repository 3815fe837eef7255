"""Tests for elm_vendor.models."""

from __future__ import annotations

import semver

from elm_vendor.models import (
    DependencySet,
    DriftReport,
    FieldDrift,
    HostState,
    Manifest,
    MergedDependency,
    Registry,
    VendorEntry,
)
from elm_vendor.versions import VersionConstraint, parse_constraint


class TestDependencySet:
    """Tests for DependencySet."""

    def test_strings_become_constraints(self) -> None:
        """Constraint strings are parsed on construction."""
        deps = DependencySet(direct={"elm/core": "1.0.0 <= v < 2.0.0"})
        assert isinstance(deps.direct["elm/core"], VersionConstraint)
        assert deps.direct["elm/core"] == parse_constraint("1.0.0 <= v < 2.0.0")

    def test_get_prefers_direct(self) -> None:
        """get() looks in direct before indirect."""
        deps = DependencySet(
            direct={"elm/json": "1.1.3"}, indirect={"elm/time": "1.0.0"}
        )
        assert deps.get("elm/json") == parse_constraint("1.1.3")
        assert deps.get("elm/time") == parse_constraint("1.0.0")
        assert deps.get("elm/url") is None

    def test_dumps_constraints_as_strings(self) -> None:
        """Serialization writes the canonical string form."""
        deps = DependencySet(direct={"elm/core": ">=1.0 <2.0"})
        assert deps.model_dump(mode="json") == {
            "direct": {"elm/core": "1.0.0 <= v < 2.0.0"},
            "indirect": {},
        }


class TestManifest:
    """Tests for Manifest."""

    def test_identity_of_application(self, app_manifest: Manifest) -> None:
        assert app_manifest.identity == "main package"

    def test_passthrough_fields_exclude_managed(self, app_manifest: Manifest) -> None:
        """Only the fields elm-vendor does not rewrite are passed through."""
        assert app_manifest.passthrough_fields() == {
            "type": "application",
            "elm-version": "0.19.1",
        }


class TestHostState:
    """Tests for HostState."""

    def test_of_copies_managed_fields(self, app_manifest: Manifest) -> None:
        state = HostState.of(app_manifest)
        assert state.source_directories == ["src"]
        assert state.dependencies == app_manifest.dependencies
        assert state.test_dependencies == app_manifest.test_dependencies

    def test_dumps_with_elm_json_keys(self) -> None:
        """Aliases match the elm.json field names."""
        state = HostState(source_directories=["src"])
        data = state.model_dump(mode="json", by_alias=True)
        assert set(data) == {"source-directories", "dependencies", "test-dependencies"}

    def test_loads_from_elm_json_keys(self) -> None:
        state = HostState.model_validate(
            {
                "source-directories": ["src", "lib"],
                "dependencies": {"direct": {"elm/core": "1.0.5"}, "indirect": {}},
            }
        )
        assert state.source_directories == ["src", "lib"]
        assert state.test_dependencies == DependencySet()


class TestRegistry:
    """Tests for Registry."""

    def test_entry_lookup(self) -> None:
        entry = VendorEntry(path="vendor/ui", snapshot=HostState())
        registry = Registry(vendored=[entry])
        assert registry.entry("vendor/ui") == entry
        assert registry.entry("vendor/other") is None


class TestMergedDependency:
    """Tests for MergedDependency."""

    def test_serializes_pin_as_string(self) -> None:
        dep = MergedDependency(
            constraint="1.0.0 <= v < 2.0.0",
            pin=semver.Version(1, 1, 3),
            sources=["main package"],
        )
        assert dep.model_dump(mode="json") == {
            "constraint": "1.0.0 <= v < 2.0.0",
            "pin": "1.1.3",
            "sources": ["main package"],
        }


class TestDriftReport:
    """Tests for DriftReport."""

    def test_empty_by_default(self) -> None:
        assert DriftReport().is_empty

    def test_any_category_makes_it_non_empty(self) -> None:
        assert not DriftReport(
            added=[{"name": "elm/random", "constraint": "1.0.0"}]
        ).is_empty
        assert not DriftReport(fields=[FieldDrift(field="elm-version")]).is_empty
