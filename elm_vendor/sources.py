"""Source-directory merging.

Every vendored package's source directories are re-expressed relative to the
host project root and appended to the host's list. The resulting order is
part of the observable output, so it must be stable across runs.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Sequence

from .manifest import normalize_path
from .models import VendoredPackage


def contextualize(vendor_path: str, source_directories: Iterable[str]) -> list[str]:
    """Join each of a vendored package's source directories onto its path.

    Example:
        contextualize("vendor/elm-ui", ["src", "./lib"])
        → ["vendor/elm-ui/src", "vendor/elm-ui/lib"]
    """
    return [
        normalize_path(posixpath.join(vendor_path, normalize_path(directory)))
        for directory in source_directories
    ]


def merge_source_directories(
    host_directories: Sequence[str], packages: Iterable[VendoredPackage]
) -> list[str]:
    """Union the host's source directories with every vendored package's.

    Host directories come first, unchanged. Vendored packages follow in
    lexicographic path order, each contributing its directories in declared
    order. Paths that normalize to one already present are dropped.
    """
    merged = list(host_directories)
    seen = {normalize_path(directory) for directory in host_directories}
    for package in sorted(packages, key=lambda p: p.path):
        for directory in contextualize(
            package.path, package.manifest.source_directories
        ):
            if directory not in seen:
                merged.append(directory)
                seen.add(directory)
    return merged
