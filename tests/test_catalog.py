"""Tests for elm_vendor.catalog."""

from __future__ import annotations

from pathlib import Path

import pytest
import semver

from elm_vendor.catalog import ElmHomeCatalog, default_elm_home
from elm_vendor.versions import parse_constraint


def _cache(elm_home: Path, compiler: str, name: str, *versions: str) -> None:
    for version in versions:
        (elm_home / compiler / "packages" / name / version).mkdir(parents=True)


class TestDefaultElmHome:
    def test_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ELM_HOME", str(tmp_path))
        assert default_elm_home() == tmp_path

    def test_falls_back_to_home(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ELM_HOME", raising=False)
        assert default_elm_home() == Path.home() / ".elm"


class TestElmHomeCatalog:
    """Tests for ElmHomeCatalog."""

    def test_versions_across_compilers(self, tmp_path: Path) -> None:
        _cache(tmp_path, "0.19.0", "elm/json", "1.0.0")
        _cache(tmp_path, "0.19.1", "elm/json", "1.1.3", "1.1.2", "1.0.0")
        catalog = ElmHomeCatalog(tmp_path)
        assert catalog.versions("elm/json") == [
            semver.Version(1, 0, 0),
            semver.Version(1, 1, 2),
            semver.Version(1, 1, 3),
        ]

    def test_ignores_non_version_entries(self, tmp_path: Path) -> None:
        _cache(tmp_path, "0.19.1", "elm/json", "1.1.3", "not-a-version")
        (tmp_path / "0.19.1" / "packages" / "elm" / "json" / "README").write_text("")
        assert ElmHomeCatalog(tmp_path).versions("elm/json") == [semver.Version(1, 1, 3)]

    def test_newest_inside_range(self, tmp_path: Path) -> None:
        _cache(tmp_path, "0.19.1", "elm/json", "1.0.0", "1.1.3", "2.0.0")
        catalog = ElmHomeCatalog(tmp_path)
        assert catalog.newest("elm/json", parse_constraint("1.0.0 <= v < 2.0.0")) == (
            semver.Version(1, 1, 3)
        )

    def test_newest_none_when_nothing_matches(self, tmp_path: Path) -> None:
        _cache(tmp_path, "0.19.1", "elm/json", "1.1.3")
        catalog = ElmHomeCatalog(tmp_path)
        assert catalog.newest("elm/json", parse_constraint(">=2.0")) is None
        assert catalog.newest("elm/url", parse_constraint(">=1.0")) is None

    def test_missing_elm_home(self, tmp_path: Path) -> None:
        assert ElmHomeCatalog(tmp_path / "nowhere").versions("elm/json") == []
