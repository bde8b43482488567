"""Terminal output and trace utilities.

User-facing progress goes to stdout through plain prints. Structured trace
events go to stderr and are only shown when verbosity is raised with -v.
"""

from __future__ import annotations

import sys

_verbosity = 0


def set_verbosity(level: int) -> None:
    """Set how chatty trace() is. 0 disables trace output entirely."""
    global _verbosity
    _verbosity = level


def get_verbosity() -> int:
    return _verbosity


def _format_value(value: object) -> str:
    if isinstance(value, (set, frozenset)):
        value = sorted(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(str(v) for v in value) + "]"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{k}: {v}" for k, v in sorted(value.items())) + "}"
    return str(value)


def trace(event: str, **fields: object) -> None:
    """Emit a structured trace event.

    Args:
        event: Short event name (e.g., "target", "state").
        **fields: Key/value pairs rendered as key=value.

    Example:
        trace("out dir", value="out") → "[trace] out dir value=out"
    """
    if _verbosity < 1:
        return
    parts = [f"[trace] {event}"]
    parts.extend(f"{key}={_format_value(value)}" for key, value in fields.items())
    print(" ".join(parts), file=sys.stderr)


def step(msg: str) -> None:
    """Print a visually distinct step header."""
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def output(msg: str) -> None:
    """Print a progress line for the user."""
    print(msg)


def error(msg: str) -> None:
    """Print an error message to stderr without exiting."""
    print(f"ERROR: {msg}", file=sys.stderr)


def fatal(msg: str) -> None:
    """Print an error message and exit with code 1.

    Use for unrecoverable errors that should halt the command.
    """
    error(msg)
    sys.exit(1)
