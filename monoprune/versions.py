"""Version parsing for the root package.json `packageManager` field.

Handles incomplete version strings (e.g., "3" → "3.0.0") the same way for
every manager, and ignores the corepack hash suffix.
"""

from __future__ import annotations

import semver


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3" → "1.2.3"

    Only the first 3 components are used (major.minor.patch).
    """
    core = version_str.split("-", 1)[0].split("+", 1)[0]
    parts = core.split(".")
    while len(parts) < 3:
        parts.append("0")
    return semver.Version.parse(".".join(parts[:3]))


def parse_package_manager(value: str) -> tuple[str, semver.Version] | None:
    """Split a `packageManager` value into manager name and version.

    Examples:
        "yarn@3.2.1" → ("yarn", Version(3, 2, 1))
        "npm@9.8.0+sha256.abc" → ("npm", Version(9, 8, 0))
        "yarn" → None
    """
    name, sep, version = value.strip().partition("@")
    if not sep or not name or not version:
        return None
    try:
        return name, parse_version(version)
    except ValueError:
        return None
