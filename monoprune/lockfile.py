"""Lockfile dialect parsing and serialization.

Yarn lockfiles are not quite YAML. Classic (v1) lockfiles use a SYML
dialect with space-separated key/value pairs; berry lockfiles are YAML but
yarn's own reader expects blank lines between top-level blocks and double
quotes. Plain YAML output from a generic emitter is rejected by yarn, so
every yarn lockfile we write goes through fixup_yarn_lockfile().
"""

from __future__ import annotations

import re
from typing import Any

import yaml

from .errors import ConfigError

CLASSIC_HEADER = (
    "# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS FILE DIRECTLY.\n"
    "# yarn lockfile v1\n\n"
)

BERRY_HEADER = (
    '# This file is generated by running "yarn install" inside your project.\n'
    "# Manual changes might be lost - proceed with caution!\n\n"
)

DEFAULT_BERRY_METADATA = {"version": 5, "cacheKey": 8}

# A double-quoted token (with escapes) or a run of non-space characters.
_TOKEN = re.compile(r'"((?:[^"\\]|\\.)*)"|(\S+)')


class LockfileSyntaxError(ConfigError):
    """Raised when a lockfile cannot be read at all."""


def _unquote(token: str) -> str:
    token = token.strip()
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
        return token[1:-1].replace('\\"', '"')
    return token


def _coerce(value: str) -> Any:
    if value == "true":
        return True
    if value == "false":
        return False
    return value


def _parse_block_key(raw: str) -> str:
    """Normalize a block key like `"a@^1", a@^2` into `a@^1, a@^2`."""
    return ", ".join(_unquote(part) for part in raw.split(",") if part.strip())


def _parse_pair(line: str, lineno: int) -> tuple[str, Any]:
    tokens: list[str] = []
    for match in _TOKEN.finditer(line):
        tokens.append(match.group(1) if match.group(1) is not None else match.group(2))
    if not tokens:
        raise LockfileSyntaxError(f"line {lineno}: expected a key/value pair")
    key = tokens[0]
    quoted_key = line.lstrip().startswith('"')
    if not quoted_key and key.endswith(":"):
        key = key[:-1]
    elif len(tokens) > 1 and tokens[1] == ":":
        tokens.pop(1)
    if len(tokens) == 1:
        raise LockfileSyntaxError(f"line {lineno}: missing value for {key!r}")
    return key, _coerce(" ".join(tokens[1:]))


def parse_yarn_classic(text: str) -> dict[str, Any]:
    """Parse a yarn v1 lockfile into nested dicts.

    The parser is lenient: the file on disk was written by yarn itself, so
    we only need to follow indentation and split tokens. Block keys listing
    several descriptors are kept as one comma-joined key, exactly as the
    block is keyed on disk.

    Example:
        'lodash@^4.0.0, lodash@^4.17.0:\\n  version "4.17.21"'
        → {"lodash@^4.0.0, lodash@^4.17.0": {"version": "4.17.21"}}
    """
    root: dict[str, Any] = {}
    stack: list[tuple[int, dict[str, Any]]] = [(-1, root)]

    for lineno, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        indent = len(raw) - len(raw.lstrip(" "))
        while stack[-1][0] >= indent:
            stack.pop()
        parent = stack[-1][1]

        if stripped.endswith(":"):
            child: dict[str, Any] = {}
            parent[_parse_block_key(stripped[:-1])] = child
            stack.append((indent, child))
        else:
            key, value = _parse_pair(stripped, lineno)
            parent[key] = value

    return root


def _strings_to_bools(node: Any) -> Any:
    if isinstance(node, dict):
        return {k: _strings_to_bools(v) for k, v in node.items()}
    if isinstance(node, str):
        return _coerce(node)
    return node


def parse_yarn_berry(text: str) -> tuple[dict[str, Any], dict[str, Any]]:
    """Parse a yarn 2+ lockfile.

    Values are loaded as strings (BaseLoader) so versions like ``1.10`` are
    not turned into floats and written back as ``1.1``.

    Returns:
        Tuple of (entries, metadata). Metadata is the ``__metadata`` block.
    """
    try:
        doc = yaml.load(text, Loader=yaml.BaseLoader) or {}
    except yaml.YAMLError as exc:
        raise LockfileSyntaxError(str(exc)) from exc
    if not isinstance(doc, dict):
        raise LockfileSyntaxError("expected a mapping at the top level")
    metadata = doc.pop("__metadata", {}) or {}
    return _strings_to_bools(doc), dict(metadata)


class LockfileDumper(yaml.SafeDumper):
    """SafeDumper that never emits complex (`? `) keys.

    PyYAML switches to complex-key syntax for keys of 128 characters or
    more. Yarn block keys joining many descriptors easily exceed that.
    """

    def check_simple_key(self) -> bool:
        if isinstance(self.event, yaml.ScalarEvent):
            if self.analysis is None:
                self.analysis = self.analyze_scalar(self.event.value)
            return not self.analysis.empty and not self.analysis.multiline
        return super().check_simple_key()


def dump_yaml(data: dict[str, Any], indent: int = 2) -> str:
    """Serialize to generic block YAML with sorted keys and no line folding."""
    return yaml.dump(
        data,
        Dumper=LockfileDumper,
        indent=indent,
        default_flow_style=False,
        sort_keys=True,
        allow_unicode=True,
        width=1 << 16,
    )


def berry_header(metadata: dict[str, Any] | None = None) -> str:
    meta = {**DEFAULT_BERRY_METADATA, **(metadata or {})}
    return (
        BERRY_HEADER
        + "__metadata:\n"
        + f"  version: {meta['version']}\n"
        + f"  cacheKey: {meta['cacheKey']}\n\n"
    )


def fixup_yarn_lockfile(body: str, header: str) -> str:
    """Turn generic YAML into the dialect yarn's lockfile reader accepts.

    Pure function, no I/O:
    1. Prefix the dialect header.
    2. Start every top-level (non-indented) line on a fresh line after a
       blank one.
    3. Rewrite every single quote to a double quote.

    Args:
        body: Output of dump_yaml().
        header: CLASSIC_HEADER or berry_header().
    """
    out = [header]
    for line in body.splitlines():
        line = line.replace("'", '"')
        if line.startswith(" "):
            out.append(f"{line}\n")
        else:
            out.append(f"\n{line}\n")
    return "".join(out)
