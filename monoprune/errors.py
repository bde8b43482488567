"""Errors raised while pruning a monorepo.

Every error is terminal for the current invocation. Nothing is retried:
all causes are local and deterministic.
"""

from __future__ import annotations


class PruneError(Exception):
    """Base class for all pruning failures."""


class ConfigError(PruneError):
    """No package manager was recognized, or it does not support pruning."""


class UnknownWorkspace(PruneError):
    """A workspace name is not part of the workspace graph."""

    def __init__(self, name: str, referenced_by: str | None = None) -> None:
        self.name = name
        self.referenced_by = referenced_by
        if referenced_by:
            msg = f"workspace {referenced_by} depends on unknown workspace {name}"
        else:
            msg = f"invalid scope: package {name} not found"
        super().__init__(msg)


class GraphError(PruneError):
    """The workspace graph is malformed (cycle, duplicate name or dir)."""


class InconsistentLockfile(PruneError):
    """Two workspaces contribute different resolutions for the same key."""

    def __init__(self, key: str, first: str, second: str) -> None:
        self.key = key
        self.first = first
        self.second = second
        super().__init__(
            f"lockfile entry {key!r} resolves differently in {first} and {second}"
        )


class PruneIOError(PruneError):
    """A copy, write, or rename failed.

    Attributes:
        path: The file or directory the operation was acting on.
        operation: What was being attempted (e.g., "copy", "rename").
    """

    def __init__(self, operation: str, path: object, reason: object = None) -> None:
        self.operation = operation
        self.path = str(path)
        msg = f"failed to {operation} {self.path}"
        if reason is not None:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
