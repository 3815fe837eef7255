"""elm-vendor: keep elm.json in sync with vendored Elm packages."""

from .errors import (
    ConflictError,
    MalformedManifest,
    MissingVendoredManifest,
    UnknownVendorDirectory,
    VendorError,
    WriteConflict,
)
from .pipeline import check, init_project, install, unvendor, vendor

__all__ = [
    "ConflictError",
    "MalformedManifest",
    "MissingVendoredManifest",
    "UnknownVendorDirectory",
    "VendorError",
    "WriteConflict",
    "check",
    "init_project",
    "install",
    "unvendor",
    "vendor",
]
