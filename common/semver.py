"""
common/semver.py

Semantic version validation and ordering.

Versions must be strict ``MAJOR.MINOR.PATCH`` strings, optionally with a
pre-release and build suffix, ordered by SemVer 2.0 precedence rules:
numeric pre-release identifiers compare numerically, alphanumeric ones
lexically, and build metadata is ignored.
"""

from typing import Iterable, List, Optional

from semver import Version


def parse_version(value: str) -> Optional[Version]:
    """
    Parse a semantic version string.

    Args:
        value: Candidate version (e.g. '1.2.3', '1.0.0-rc.1')

    Returns:
        Comparable Version, or None if value is not a valid semantic version
    """
    if not isinstance(value, str):
        return None
    try:
        return Version.parse(value)
    except ValueError:
        return None


def is_valid(value: str) -> bool:
    """Check whether value is a usable semantic version."""
    return parse_version(value) is not None


def _require(value: str) -> Version:
    parsed = parse_version(value)
    if parsed is None:
        raise ValueError(f"Invalid semantic version: {value!r}")
    return parsed


def compare(left: str, right: str) -> int:
    """
    Compare two valid versions.

    Returns:
        -1, 0 or 1

    Raises:
        ValueError: If either version is invalid
    """
    left_parsed = _require(left)
    right_parsed = _require(right)
    return left_parsed.compare(right_parsed)


def lt(left: str, right: str) -> bool:
    return compare(left, right) < 0


def lte(left: str, right: str) -> bool:
    return compare(left, right) <= 0


def gt(left: str, right: str) -> bool:
    return compare(left, right) > 0


def sort_versions(versions: Iterable[str]) -> List[str]:
    """Sort valid versions ascending. Raises ValueError on invalid input."""
    versions = list(versions)
    for value in versions:
        _require(value)
    return sorted(versions, key=Version.parse)
