"""Shared test fixtures."""

from __future__ import annotations

import copy
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from elm_vendor.manifest import parse_manifest
from elm_vendor.models import Manifest

APP_ELM_JSON: dict[str, Any] = {
    "type": "application",
    "source-directories": ["src"],
    "elm-version": "0.19.1",
    "dependencies": {
        "direct": {
            "elm/browser": "1.0.2",
            "elm/core": "1.0.5",
            "elm/html": "1.0.0",
        },
        "indirect": {
            "elm/json": "1.1.3",
            "elm/time": "1.0.0",
            "elm/url": "1.0.0",
            "elm/virtual-dom": "1.0.3",
        },
    },
    "test-dependencies": {"direct": {}, "indirect": {}},
}


def dump_json(data: Any) -> str:
    """Format JSON the way the Elm compiler does."""
    return json.dumps(data, indent=4) + "\n"


def package_json(
    name: str,
    dependencies: dict[str, str],
    source_directories: list[str] | None = None,
) -> dict[str, Any]:
    """Build a package-style elm.json document."""
    doc: dict[str, Any] = {
        "type": "package",
        "name": name,
        "summary": f"The {name} package",
        "license": "BSD-3-Clause",
        "version": "1.0.0",
        "exposed-modules": [],
        "elm-version": "0.19.0 <= v < 0.20.0",
        "dependencies": dependencies,
        "test-dependencies": {},
    }
    if source_directories is not None:
        doc["source-directories"] = source_directories
    return doc


@pytest.fixture
def app_project(tmp_path: Path) -> Path:
    """A project root holding an application elm.json."""
    (tmp_path / "elm.json").write_text(dump_json(APP_ELM_JSON))
    (tmp_path / "src").mkdir()
    return tmp_path


@pytest.fixture
def add_package() -> Callable[..., Path]:
    """Write a vendored package's elm.json under a project root."""

    def _add(
        root: Path,
        path: str,
        name: str,
        dependencies: dict[str, str],
        source_directories: list[str] | None = None,
    ) -> Path:
        package_dir = root / path
        package_dir.mkdir(parents=True, exist_ok=True)
        (package_dir / "elm.json").write_text(
            dump_json(package_json(name, dependencies, source_directories))
        )
        return package_dir

    return _add


@pytest.fixture
def ui_package() -> dict[str, str]:
    """Dependencies of a typical vendored UI package."""
    return {
        "elm/core": "1.0.0 <= v < 2.0.0",
        "elm/html": "1.0.0 <= v < 2.0.0",
        "elm/json": "1.0.0 <= v < 2.0.0",
    }


@pytest.fixture
def app_document() -> dict[str, Any]:
    """A fresh copy of the application elm.json object."""
    return copy.deepcopy(APP_ELM_JSON)


@pytest.fixture
def app_manifest(app_document: dict[str, Any]) -> Manifest:
    """The application elm.json, parsed."""
    return parse_manifest(app_document, "elm.json")
