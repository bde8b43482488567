"""Prune pipeline: validate → closure → stage files → subset lockfile.

This module produces a self-contained slice of the monorepo for one target
workspace:
1. Validate the target and the package manager
2. Resolve the target's closure (itself plus everything it depends on)
3. Copy each workspace in the closure into the output directory
4. Merge their lockfile fragments and write the lockfile subset

Nothing is rolled back when a step fails. The output directory is meant to
be disposable, and partial output helps when debugging.
"""

from __future__ import annotations

import shutil
from enum import Enum
from pathlib import Path

from .errors import ConfigError, PruneError, PruneIOError, UnknownWorkspace
from .graph import WorkspaceGraph
from .models import ROOT_NODE, PruneConfig, PruneRequest, PruneResult, WorkspaceManifest
from .package_manager import PackageManager
from .shell import output, step, trace
from .subset import LockfileSubset, write_atomic
from .workspace import load_context


class PruneState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RESOLVING_CLOSURE = "resolving-closure"
    STAGING_FILES = "staging-files"
    SUBSETTING_LOCKFILE = "subsetting-lockfile"
    FINALIZED = "finalized"
    ABORTED = "aborted"


def _copy_tree(src: Path, dst: Path, out_dir: Path) -> None:
    """Recursively copy src into dst, never descending into out_dir."""
    out_resolved = out_dir.resolve()

    def ignore(directory: str, names: list[str]) -> list[str]:
        return [n for n in names if (Path(directory) / n).resolve() == out_resolved]

    nested = out_resolved.is_relative_to(src.resolve())
    shutil.copytree(
        src, dst, symlinks=True, ignore=ignore if nested else None, dirs_exist_ok=True
    )


def _copy_file(src: Path, dst: Path) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)


class Pruner:
    """Orchestrates one prune run.

    Everything the run needs is passed in: the repo config, the package
    manager adapter, and every workspace manifest. `state` tracks progress
    and ends as FINALIZED or ABORTED.
    """

    def __init__(
        self,
        config: PruneConfig,
        manager: PackageManager,
        manifests: list[WorkspaceManifest],
    ) -> None:
        self.config = config
        self.manager = manager
        self.manifests = {m.name: m for m in manifests}
        self._manifest_list = manifests
        self.state = PruneState.IDLE

    def _enter(self, state: PruneState) -> None:
        trace("state", value=state.value, previous=self.state.value)
        self.state = state

    def run(self, request: PruneRequest) -> PruneResult:
        """Execute the prune.

        Raises:
            PruneError: Any failure. The state is left at ABORTED and
                whatever was already written stays on disk.
        """
        try:
            return self._run(request)
        except PruneError as exc:
            failed_in = self.state
            self._enter(PruneState.ABORTED)
            trace("error", state=failed_in.value, error=exc)
            raise

    def _run(self, request: PruneRequest) -> PruneResult:
        self._enter(PruneState.VALIDATING)
        trace("scope", value=request.scope)
        graph = self.validate(request)

        target = self.manifests[request.scope]
        out_dir = self.config.repo_root / request.out_dir
        full_dir = out_dir / "full" if request.docker else out_dir

        trace("target", value=target.name)
        trace("directory", value=target.dir)
        trace("external deps", value=target.external_deps)
        trace("internal deps", value=target.internal_deps)
        trace("docker", value=request.docker)
        trace("out dir", value=out_dir)

        output(f"Generating pruned monorepo for {request.scope} in {out_dir}")

        self._enter(PruneState.RESOLVING_CLOSURE)
        closure = self.resolve_closure(graph, request.scope)

        self._enter(PruneState.STAGING_FILES)
        self.stage_workspaces(closure, out_dir, full_dir, request.docker)
        self.stage_root_files(out_dir, full_dir, request.docker)

        self._enter(PruneState.SUBSETTING_LOCKFILE)
        lockfile = self.write_lockfile(closure, out_dir)

        self._enter(PruneState.FINALIZED)
        for name in closure:
            output(f" - Added {name}")
        return PruneResult(out_dir=out_dir, workspaces=closure, lockfile=lockfile)

    def validate(self, request: PruneRequest) -> WorkspaceGraph:
        """Check the request before anything touches the disk.

        Returns:
            The workspace graph the closure is resolved against.

        Raises:
            ConfigError: Empty scope, or a package manager that cannot be
                pruned.
            UnknownWorkspace: The scope is not a workspace.
            GraphError: The workspace graph has a cycle or duplicates.
        """
        if not request.scope.strip():
            raise ConfigError("at least one target must be specified")
        graph = WorkspaceGraph.build(self._manifest_list)
        if request.scope == ROOT_NODE or request.scope not in graph:
            raise UnknownWorkspace(request.scope)
        if not self.manager.can_prune:
            raise ConfigError(
                f"this command is not yet implemented for {self.manager.name}"
            )
        return graph

    def resolve_closure(self, graph: WorkspaceGraph, scope: str) -> list[str]:
        """Return the target plus everything it depends on, dependencies first."""
        closure = graph.ancestors(scope) | {scope}
        closure.discard(ROOT_NODE)
        for name in closure:
            if name not in self.manifests:
                raise UnknownWorkspace(name)
        return graph.topo_order(closure)

    def stage_workspaces(
        self, closure: list[str], out_dir: Path, full_dir: Path, docker: bool
    ) -> None:
        """Copy each workspace's directory (and, for docker, its manifest)."""
        root = self.config.repo_root
        workspaces: list[str] = []
        for name in closure:
            info = self.manifests[name]
            workspaces.append(info.dir)
            target_dir = full_dir / info.dir
            try:
                target_dir.mkdir(parents=True, exist_ok=True)
                _copy_tree(root / info.dir, target_dir, out_dir)
            except (OSError, shutil.Error) as exc:
                raise PruneIOError(f"copy {name} into", target_dir, exc) from exc

            if docker:
                json_path = out_dir / "json" / info.manifest_path
                try:
                    _copy_file(root / info.manifest_path, json_path)
                except OSError as exc:
                    raise PruneIOError(f"copy {name} manifest into", json_path, exc) from exc
        trace("new workspaces", value=workspaces)

    def stage_root_files(self, out_dir: Path, full_dir: Path, docker: bool) -> None:
        """Copy root passthrough files and the root manifest.

        Missing passthrough files are skipped. A missing root manifest is
        an error.
        """
        root = self.config.repo_root
        for filename in self.config.passthrough_files:
            src = root / filename
            if not src.is_file():
                continue
            try:
                _copy_file(src, full_dir / filename)
            except OSError as exc:
                raise PruneIOError(f"copy root {filename} to", full_dir / filename, exc) from exc

        manifest = self.config.root_manifest
        destinations = [full_dir / manifest]
        if docker:
            destinations.append(out_dir / "json" / manifest)
        for dst in destinations:
            try:
                _copy_file(root / manifest, dst)
            except OSError as exc:
                raise PruneIOError(f"copy root {manifest} to", dst, exc) from exc

    def write_lockfile(self, closure: list[str], out_dir: Path) -> Path:
        """Merge lockfile fragments in closure order and write the subset."""
        subset = LockfileSubset()
        for name in closure:
            subset.merge(self.manifests[name].lockfile_fragment, name)
        trace("lockfile entries", value=len(subset))

        content = subset.serialize(self.manager, self.config.lockfile_metadata)
        path = out_dir / self.manager.lockfile_name
        write_atomic(path, content)
        return path


def prune(repo_root: Path, request: PruneRequest) -> PruneResult:
    """Load the repository at repo_root and prune it for request.scope."""
    context = load_context(repo_root)
    step(f"Pruning for {request.scope}")
    pruner = Pruner(context.config, context.manager, context.manifests)
    return pruner.run(request)
