"""Data models for monoprune.

These Pydantic models represent the core data structures shared by the
workspace graph, the lockfile subsetter, and the pruner.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator

ROOT_NODE = "___ROOT___"


class PackageManagerVariant(str, Enum):
    """Dependency managers monoprune knows how to detect."""

    NPM = "npm"
    YARN = "yarn"
    BERRY = "berry"
    PNPM = "pnpm"
    NONE = "none"


class WorkspaceManifest(BaseModel):
    """Metadata for a single workspace in the monorepo.

    Attributes:
        name: Workspace name from its package.json, unique in the repo.
        dir: Relative POSIX path from repo root to the workspace directory.
        manifest_path: Relative path to the workspace's package.json.
            Defaults to ``<dir>/package.json``.
        version: Version string from package.json.
        internal_deps: Names of other workspaces this one depends on.
        external_deps: Map of registry package name → version range.
        lockfile_fragment: The slice of the lockfile this workspace needs,
            keyed by the manager's resolved key.
    """

    name: str
    dir: str
    manifest_path: str = ""
    version: str = "0.0.0"
    internal_deps: set[str] = Field(default_factory=set)
    external_deps: dict[str, str] = Field(default_factory=dict)
    lockfile_fragment: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _default_manifest_path(self) -> WorkspaceManifest:
        if not self.manifest_path:
            self.manifest_path = f"{self.dir.rstrip('/')}/package.json"
        return self


class PruneRequest(BaseModel):
    """One invocation of the prune command.

    Attributes:
        scope: Name of the workspace to act as the entry point.
        docker: Split output into full/ and json/ trees for layer caching.
        out_dir: Output directory, relative to the repo root.
    """

    scope: str
    docker: bool = False
    out_dir: str = "out"


class PruneConfig(BaseModel):
    """Explicit configuration handed to the Pruner.

    Nothing in the pruning core reads the environment or the current
    directory; everything it needs comes through here.
    """

    repo_root: Path
    variant: PackageManagerVariant
    root_manifest: str = "package.json"
    passthrough_files: list[str] = Field(
        default_factory=lambda: [".gitignore", "turbo.json"]
    )
    lockfile_metadata: dict[str, Any] = Field(default_factory=dict)


class PruneResult(BaseModel):
    """What a successful prune produced."""

    out_dir: Path
    workspaces: list[str]
    lockfile: Path
