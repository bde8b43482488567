"""Workspace discovery and lockfile fragment resolution.

Reads the root package.json to find workspace directories, loads each
workspace's package.json, splits its dependencies into internal (another
workspace) and external (registry) ones, and works out which lockfile
entries each workspace needs.
"""

from __future__ import annotations

import glob
import json
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict

from .errors import ConfigError
from .models import PackageManagerVariant, PruneConfig, WorkspaceManifest
from .package_manager import PackageManager, detect
from .shell import output, step, trace

DEP_FIELDS = ("dependencies", "devDependencies", "optionalDependencies")
LOCKFILE_DEP_FIELDS = ("dependencies", "optionalDependencies", "peerDependencies")

# Ranges like "npm:^1.0.0", "workspace:*", "patch:..." already carry a protocol.
_PROTOCOL = re.compile(r"^[a-z][a-z0-9+.-]*:")


class RepoContext(BaseModel):
    """Everything the pruner needs to know about a repository."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    config: PruneConfig
    manager: PackageManager
    manifests: list[WorkspaceManifest]
    root_manifest: dict[str, Any]


def read_text(path: Path) -> str:
    """Read a UTF-8 file, reporting any failure against its path."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(f"{path} not found") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"failed to read {path}: {exc}") from exc


def read_json(path: Path) -> dict[str, Any]:
    try:
        doc = json.loads(read_text(path))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"failed to read {path}: {exc}") from exc
    if not isinstance(doc, dict):
        raise ConfigError(f"failed to read {path}: expected a JSON object")
    return doc


def load_root_manifest(repo_root: Path, filename: str = "package.json") -> dict[str, Any]:
    """Load the monorepo's root package.json."""
    return read_json(repo_root / filename)


def get_workspace_globs(
    root_manifest: dict[str, Any],
    repo_root: Path,
    variant: PackageManagerVariant,
) -> list[str]:
    """Extract workspace glob patterns.

    npm and yarn list them under "workspaces", either as an array or as
    {"packages": [...]}. pnpm keeps them in pnpm-workspace.yaml.

    Raises:
        ConfigError: If no workspaces are defined.
    """
    if variant is PackageManagerVariant.PNPM:
        path = repo_root / "pnpm-workspace.yaml"
        try:
            doc = yaml.safe_load(read_text(path)) if path.exists() else {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"failed to read {path}: {exc}") from exc
        globs = (doc or {}).get("packages") or []
    else:
        workspaces = root_manifest.get("workspaces") or []
        if isinstance(workspaces, dict):
            workspaces = workspaces.get("packages") or []
        globs = workspaces
    if not globs:
        raise ConfigError("No workspaces defined in root package.json")
    return [str(g) for g in globs]


def expand_workspace_globs(repo_root: Path, globs: list[str]) -> list[Path]:
    """Expand glob patterns into workspace directories containing a package.json.

    Patterns starting with "!" exclude directories. Results keep the order
    of the patterns, each expanded alphabetically.
    """
    excluded: set[Path] = set()
    for pattern in globs:
        if pattern.startswith("!"):
            for match in glob.glob(str(repo_root / pattern[1:])):
                excluded.add(Path(match).resolve())

    dirs: list[Path] = []
    seen: set[Path] = set()
    for pattern in globs:
        if pattern.startswith("!"):
            continue
        for match in sorted(glob.glob(str(repo_root / pattern))):
            p = Path(match)
            resolved = p.resolve()
            if resolved in seen or resolved in excluded or "node_modules" in p.parts:
                continue
            if (p / "package.json").is_file():
                dirs.append(p)
                seen.add(resolved)
    return dirs


def discover_workspaces(repo_root: Path, globs: list[str]) -> list[WorkspaceManifest]:
    """Load a WorkspaceManifest for every workspace matched by `globs`.

    Lockfile fragments are left empty; see resolve_fragments().
    """
    member_dirs = expand_workspace_globs(repo_root, globs)
    if not member_dirs:
        raise ConfigError("No packages found matching workspace globs")

    # First pass: basic info from each package.json
    manifests: list[WorkspaceManifest] = []
    raw_deps: dict[str, dict[str, str]] = {}
    for d in member_dirs:
        doc = read_json(d / "package.json")
        name = doc.get("name") or d.name
        rel = d.relative_to(repo_root).as_posix()
        manifests.append(
            WorkspaceManifest(name=name, dir=rel, version=doc.get("version", "0.0.0"))
        )
        deps: dict[str, str] = {}
        for field in DEP_FIELDS:
            deps.update(doc.get(field) or {})
        raw_deps[name] = deps

    # Second pass: split internal from external deps
    workspace_names = {m.name for m in manifests}
    for m in manifests:
        for dep_name, dep_range in raw_deps[m.name].items():
            if dep_name in workspace_names:
                m.internal_deps.add(dep_name)
            else:
                m.external_deps[dep_name] = str(dep_range)

    return manifests


def _descriptor_index(entries: dict[str, Any]) -> dict[str, str]:
    """Map every descriptor to the block key that lists it."""
    index: dict[str, str] = {}
    for key in entries:
        for descriptor in key.split(","):
            index[descriptor.strip()] = key
    return index


def _yarn_fragment(
    manifest: WorkspaceManifest,
    entries: dict[str, Any],
    index: dict[str, str],
    normalize: Callable[[str], str],
) -> dict[str, Any]:
    fragment: dict[str, Any] = {}

    def walk(name: str, dep_range: str) -> None:
        dep_range = normalize(dep_range)
        if dep_range.startswith("workspace:"):
            return
        key = index.get(f"{name}@{dep_range}")
        if key is None:
            trace("unresolved descriptor", workspace=manifest.name, value=f"{name}@{dep_range}")
            return
        if key in fragment:
            return
        record = entries[key]
        fragment[key] = record
        for field in LOCKFILE_DEP_FIELDS[:2]:
            for child, child_range in (record.get(field) or {}).items():
                walk(child, str(child_range))

    for name, dep_range in sorted(manifest.external_deps.items()):
        walk(name, dep_range)
    return fragment


def _classic_range(dep_range: str) -> str:
    return dep_range


def _berry_range(dep_range: str) -> str:
    return dep_range if _PROTOCOL.match(dep_range) else f"npm:{dep_range}"


def _npm_parent(base: str) -> str:
    idx = base.rfind("node_modules/")
    return base[:idx].rstrip("/") if idx >= 0 else ""


def _npm_lookup(name: str, base: str, entries: dict[str, Any]) -> str | None:
    """Find the package-lock key `name` resolves to from `base`.

    Follows node's resolution: the nearest node_modules wins.
    """
    while True:
        key = f"{base}/node_modules/{name}" if base else f"node_modules/{name}"
        if key in entries:
            return key
        if not base:
            return None
        base = _npm_parent(base)


def _npm_fragment(manifest: WorkspaceManifest, entries: dict[str, Any]) -> dict[str, Any]:
    fragment: dict[str, Any] = {}
    if manifest.dir in entries:
        fragment[manifest.dir] = entries[manifest.dir]
    link = f"node_modules/{manifest.name}"
    if entries.get(link, {}).get("link"):
        fragment[link] = entries[link]

    def walk(name: str, base: str) -> None:
        key = _npm_lookup(name, base, entries)
        if key is None:
            trace("unresolved dependency", workspace=manifest.name, value=name, base=base)
            return
        record = entries[key]
        if key in fragment or record.get("link"):
            return
        fragment[key] = record
        for field in LOCKFILE_DEP_FIELDS:
            for child in sorted(record.get(field) or {}):
                walk(child, key)

    for name in sorted(manifest.external_deps):
        walk(name, manifest.dir)
    return fragment


def resolve_fragments(
    manifests: list[WorkspaceManifest],
    variant: PackageManagerVariant,
    entries: dict[str, Any],
) -> None:
    """Fill in each manifest's lockfile_fragment from the full lockfile.

    Descriptors the lockfile does not know are traced and skipped: the
    lockfile was written by the real manager, so they are optional or
    platform-specific entries it chose not to record.
    """
    if variant is PackageManagerVariant.NPM:
        for m in manifests:
            m.lockfile_fragment = _npm_fragment(m, entries)
        return

    index = _descriptor_index(entries)
    normalize = _berry_range if variant is PackageManagerVariant.BERRY else _classic_range
    for m in manifests:
        fragment = _yarn_fragment(m, entries, index, normalize)
        if variant is PackageManagerVariant.BERRY:
            own = index.get(f"{m.name}@workspace:{m.dir}")
            if own is not None:
                fragment[own] = entries[own]
        m.lockfile_fragment = fragment


def load_context(repo_root: Path) -> RepoContext:
    """Discover workspaces and the package manager for a repository.

    Raises:
        ConfigError: If the root package.json is missing, no package
            manager is recognized, or no workspaces are defined.
    """
    step("Discovering workspaces")

    root_manifest = load_root_manifest(repo_root)
    variant = detect(repo_root, root_manifest)
    manager = PackageManager.for_variant(variant)
    globs = get_workspace_globs(root_manifest, repo_root, variant)
    manifests = discover_workspaces(repo_root, globs)

    metadata: dict[str, Any] = {}
    if manager.can_prune:
        lockfile = repo_root / manager.lockfile_name
        entries, metadata = manager.parse_lockfile(read_text(lockfile))
        resolve_fragments(manifests, variant, entries)

    output(f"  package manager: {manager.name}")
    for m in manifests:
        deps = f" → [{', '.join(sorted(m.internal_deps))}]" if m.internal_deps else ""
        output(f"  {m.name} {m.version} ({m.dir}){deps}")

    config = PruneConfig(
        repo_root=repo_root,
        variant=variant,
        lockfile_metadata=metadata,
    )
    return RepoContext(
        config=config,
        manager=manager,
        manifests=manifests,
        root_manifest=root_manifest,
    )
