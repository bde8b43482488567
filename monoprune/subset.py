"""Lockfile subsetting: merge per-workspace fragments, write atomically."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .errors import InconsistentLockfile, PruneIOError
from .package_manager import PackageManager
from .shell import trace


class LockfileSubset:
    """Union of the lockfile fragments of every pruned workspace.

    Each key remembers the workspace that first contributed it so a
    conflicting contribution can be attributed to both sides.
    """

    def __init__(self) -> None:
        self.entries: dict[str, Any] = {}
        self.owners: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    def merge(self, fragment: Mapping[str, Any], workspace: str) -> None:
        """Union a workspace's fragment into the subset.

        Adding a key that is already present with an identical record is a
        no-op, which keeps merging order-independent.

        Raises:
            InconsistentLockfile: If the key is present with a different
                record.
        """
        for key, record in fragment.items():
            if key in self.entries:
                if self.entries[key] != record:
                    raise InconsistentLockfile(key, self.owners[key], workspace)
                continue
            self.entries[key] = record
            self.owners[key] = workspace

    def serialize(self, manager: PackageManager, metadata: dict[str, Any]) -> str:
        return manager.serialize(self.entries, metadata)


def write_atomic(path: Path, content: str) -> None:
    """Write content so `path` holds either the old or the new file, never half.

    The data goes to a temp file in the same directory, is fsynced, then
    renamed over the destination.

    Raises:
        PruneIOError: If any step fails. The temp file is removed.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
    except OSError as exc:
        raise PruneIOError("create temporary lockfile in", path.parent, exc) from exc

    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
    except OSError as exc:
        tmp.unlink(missing_ok=True)
        raise PruneIOError("write temporary lockfile", tmp, exc) from exc

    try:
        os.replace(tmp, path)
    except OSError as exc:
        tmp.unlink(missing_ok=True)
        raise PruneIOError("finalize lockfile", path, exc) from exc
    trace("lockfile written", path=path, bytes=len(content.encode("utf-8")))
