"""Package manager detection and lockfile dialects.

Each supported manager gets an adapter that knows its lockfile name, how to
parse it, and how to write a subset of it back in the exact form the
manager expects.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .lockfile import (
    CLASSIC_HEADER,
    LockfileSyntaxError,
    berry_header,
    dump_yaml,
    fixup_yarn_lockfile,
    parse_yarn_berry,
    parse_yarn_classic,
)
from .models import PackageManagerVariant
from .versions import parse_package_manager

# Probed in this order; first match wins.
LOCKFILE_PROBES: list[tuple[str, PackageManagerVariant]] = [
    ("package-lock.json", PackageManagerVariant.NPM),
    ("yarn.lock", PackageManagerVariant.YARN),
    ("pnpm-lock.yaml", PackageManagerVariant.PNPM),
]

PRUNABLE = {
    PackageManagerVariant.NPM,
    PackageManagerVariant.YARN,
    PackageManagerVariant.BERRY,
}


def _is_berry(lockfile: Path, root_manifest: dict[str, Any] | None) -> bool:
    declared = (root_manifest or {}).get("packageManager")
    if isinstance(declared, str):
        parsed = parse_package_manager(declared)
        if parsed and parsed[0] == "yarn":
            return parsed[1].major >= 2
    try:
        with lockfile.open(encoding="utf-8") as fh:
            return any(line.startswith("__metadata:") for line in fh)
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"failed to read {lockfile}: {exc}") from exc


def detect(
    repo_root: Path, root_manifest: dict[str, Any] | None = None
) -> PackageManagerVariant:
    """Work out which package manager governs the repo from its lockfile.

    Args:
        repo_root: Monorepo root directory.
        root_manifest: Parsed root package.json, used to tell yarn 1 from
            yarn 2+ through its `packageManager` field.

    Returns:
        The detected variant, or PackageManagerVariant.NONE.
    """
    for filename, variant in LOCKFILE_PROBES:
        path = repo_root / filename
        if path.is_file():
            if variant is PackageManagerVariant.YARN and _is_berry(path, root_manifest):
                return PackageManagerVariant.BERRY
            return variant
    return PackageManagerVariant.NONE


def can_prune(variant: PackageManagerVariant) -> bool:
    return variant in PRUNABLE


class PackageManager:
    """Base adapter. Subclasses fill in the dialect."""

    variant: PackageManagerVariant = PackageManagerVariant.NONE
    lockfile_name: str = ""

    @property
    def name(self) -> str:
        return self.variant.value

    @property
    def can_prune(self) -> bool:
        return can_prune(self.variant)

    def parse_lockfile(self, text: str) -> tuple[dict[str, Any], dict[str, Any]]:
        """Parse the on-disk lockfile.

        Returns:
            Tuple of (entries keyed by resolved key, lockfile metadata).
        """
        raise ConfigError(f"cannot read lockfiles for {self.name}")

    def serialize(self, entries: dict[str, Any], metadata: dict[str, Any]) -> str:
        """Write entries back out in this manager's dialect."""
        raise ConfigError(f"this command is not yet implemented for {self.name}")

    @staticmethod
    def for_variant(variant: PackageManagerVariant) -> PackageManager:
        adapters: dict[PackageManagerVariant, type[PackageManager]] = {
            PackageManagerVariant.NPM: NpmPackageManager,
            PackageManagerVariant.YARN: YarnPackageManager,
            PackageManagerVariant.BERRY: BerryPackageManager,
            PackageManagerVariant.PNPM: PnpmPackageManager,
        }
        if variant not in adapters:
            raise ConfigError(
                "no recognized package manager: expected one of "
                + ", ".join(name for name, _ in LOCKFILE_PROBES)
            )
        return adapters[variant]()


class NpmPackageManager(PackageManager):
    """npm 7+ (package-lock.json v2/v3). Plain JSON, no fixup needed."""

    variant = PackageManagerVariant.NPM
    lockfile_name = "package-lock.json"

    def parse_lockfile(self, text: str) -> tuple[dict[str, Any], dict[str, Any]]:
        try:
            doc = json.loads(text)
        except json.JSONDecodeError as exc:
            raise LockfileSyntaxError(str(exc)) from exc
        if doc.get("lockfileVersion", 1) < 2 or "packages" not in doc:
            raise ConfigError(
                "package-lock.json v1 is not supported; regenerate it with npm 7 or newer"
            )
        packages = dict(doc["packages"])
        metadata = {k: v for k, v in doc.items() if k not in ("packages", "dependencies")}
        # The root entry describes the monorepo itself, not any workspace.
        if "" in packages:
            metadata["root"] = packages.pop("")
        return packages, metadata

    def serialize(self, entries: dict[str, Any], metadata: dict[str, Any]) -> str:
        doc: dict[str, Any] = {k: v for k, v in metadata.items() if k != "root"}
        doc.setdefault("lockfileVersion", 3)
        doc.setdefault("requires", True)
        packages: dict[str, Any] = {}
        if "root" in metadata:
            packages[""] = metadata["root"]
        for key in sorted(entries):
            packages[key] = entries[key]
        doc["packages"] = packages
        return json.dumps(doc, indent=2, ensure_ascii=False) + "\n"


class YarnPackageManager(PackageManager):
    """yarn 1.x, SYML lockfile."""

    variant = PackageManagerVariant.YARN
    lockfile_name = "yarn.lock"

    def parse_lockfile(self, text: str) -> tuple[dict[str, Any], dict[str, Any]]:
        return parse_yarn_classic(text), {}

    def header(self, metadata: dict[str, Any]) -> str:
        return CLASSIC_HEADER

    def serialize(self, entries: dict[str, Any], metadata: dict[str, Any]) -> str:
        body = dump_yaml(entries, indent=2) if entries else ""
        return fixup_yarn_lockfile(body, self.header(metadata))


class BerryPackageManager(YarnPackageManager):
    """yarn 2+, YAML lockfile with a __metadata block."""

    variant = PackageManagerVariant.BERRY

    def parse_lockfile(self, text: str) -> tuple[dict[str, Any], dict[str, Any]]:
        return parse_yarn_berry(text)

    def header(self, metadata: dict[str, Any]) -> str:
        return berry_header(metadata)


class PnpmPackageManager(PackageManager):
    """pnpm is detected so it can be reported, but pruning is unsupported."""

    variant = PackageManagerVariant.PNPM
    lockfile_name = "pnpm-lock.yaml"
