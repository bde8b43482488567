"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from monoprune.shell import set_verbosity

YARN_LOCK = """\
# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS FILE DIRECTLY.
# yarn lockfile v1


"@babel/code-frame@^7.10.4":
  version "7.12.13"
  resolved "https://registry.yarnpkg.com/@babel/code-frame/-/code-frame-7.12.13.tgz#dcfc826b"
  integrity sha512-HV1Cm0Q3ZrpCR93tkWOYiuYIgLxZXZlVG2VgK+Ko6fbE==
  dependencies:
    "@babel/highlight" "^7.12.13"

"@babel/highlight@^7.12.13":
  version "7.13.10"
  resolved "https://registry.yarnpkg.com/@babel/highlight/-/highlight-7.13.10.tgz#a8b2a66f"
  integrity sha512-5aPpe5XQPzflQrFwL1/QoeHkP2MsA4JCntcXHRhEsdsfPVkvPi2w7Qix4iV7t5S==
  dependencies:
    js-tokens "^4.0.0"

is-number@^6.0.0:
  version "6.0.0"
  resolved "https://registry.yarnpkg.com/is-number/-/is-number-6.0.0.tgz#e6d15ad3"
  integrity sha512-Wu1VHeILBK8KAWJUAiSZQX94GmOE45Rg6/538fKwiloUu21KncEkYGPqob2oSZ5mUT73vLGrHQjKw3KMPwfDzg==

is-odd@^3.0.0:
  version "3.0.1"
  resolved "https://registry.yarnpkg.com/is-odd/-/is-odd-3.0.1.tgz#65101baf"
  integrity sha512-CQpnWPrDwmP1+SMHXZhtLtJv90yiyVfluGsX5iNCVkrhQtU3TQHsUWPG9wkdk9Lgd5yNpAg9jQEo90CBaXgWMA==
  dependencies:
    is-number "^6.0.0"

js-tokens@^4.0.0:
  version "4.0.0"
  resolved "https://registry.yarnpkg.com/js-tokens/-/js-tokens-4.0.0.tgz#19203fb5"
  integrity sha512-RdJUflcE3cUzKiMqQgsCu06FPu9UdIJO0beYbPhHN4k6apgJtifcoCtT9bcxOpYBtpD2kCM6Sbzg4CausW/PKQ==

left-pad@^1.3.0:
  version "1.3.0"
  resolved "https://registry.yarnpkg.com/left-pad/-/left-pad-1.3.0.tgz#5b8a3a7c"
  integrity sha512-XI5MPzVNApjAyhQzphX8BkmKsKUxD4LdyK24iZeQPHJMtCl6/5qkE/4QpvLaWlxxzyDmY03nwgaZvufqaqb3zg==

lodash@^4.17.20, lodash@^4.17.21:
  version "4.17.21"
  resolved "https://registry.yarnpkg.com/lodash/-/lodash-4.17.21.tgz#679591c5"
  integrity sha512-v2kDEe57lecTulaDIuNTPy3Ry4gLGJ6Z1O3vE1krgXZNrsQ+LFTGHVxVjcXPs17LhbZVGedAJv8XZ1tvj5FvSg==
"""

BERRY_LOCK = """\
# This file is generated by running "yarn install" inside your project.
# Manual changes might be lost - proceed with caution!

__metadata:
  version: 6
  cacheKey: 8

"left-pad@npm:^1.3.0":
  version: 1.3.0
  resolution: "left-pad@npm:1.3.0"
  checksum: 13fa96e17b
  languageName: node
  linkType: hard

"lodash@npm:^4.17.20, lodash@npm:^4.17.21":
  version: 4.17.21
  resolution: "lodash@npm:4.17.21"
  checksum: eb835a2e51
  languageName: node
  linkType: hard

"monorepo@workspace:.":
  version: 0.0.0-use.local
  resolution: "monorepo@workspace:."
  languageName: unknown
  linkType: soft

"pkg-a@workspace:packages/a":
  version: 0.0.0-use.local
  resolution: "pkg-a@workspace:packages/a"
  dependencies:
    lodash: "npm:^4.17.21"
    pkg-b: "workspace:*"
  languageName: unknown
  linkType: soft

"pkg-b@workspace:*, pkg-b@workspace:packages/b":
  version: 0.0.0-use.local
  resolution: "pkg-b@workspace:packages/b"
  dependencies:
    left-pad: "npm:^1.3.0"
  languageName: unknown
  linkType: soft
"""

NPM_LOCK: dict[str, Any] = {
    "name": "monorepo",
    "lockfileVersion": 3,
    "requires": True,
    "packages": {
        "": {"name": "monorepo", "workspaces": ["packages/*"]},
        "node_modules/@babel/code-frame": {
            "version": "7.12.13",
            "dependencies": {"@babel/highlight": "^7.12.13"},
            "dev": True,
        },
        "node_modules/@babel/highlight": {
            "version": "7.13.10",
            "dependencies": {"js-tokens": "^4.0.0"},
            "dev": True,
        },
        "node_modules/is-number": {"version": "6.0.0"},
        "node_modules/is-odd": {
            "version": "3.0.1",
            "dependencies": {"is-number": "^6.0.0"},
        },
        "node_modules/js-tokens": {"version": "4.0.0", "dev": True},
        "node_modules/left-pad": {"version": "1.3.0"},
        "node_modules/lodash": {"version": "4.17.21"},
        "node_modules/pkg-a": {"resolved": "packages/a", "link": True},
        "node_modules/pkg-b": {"resolved": "packages/b", "link": True},
        "node_modules/pkg-c": {"resolved": "packages/c", "link": True},
        "node_modules/pkg-d": {"resolved": "packages/d", "link": True},
        "packages/a": {
            "name": "pkg-a",
            "version": "1.0.0",
            "dependencies": {"lodash": "^4.17.21", "pkg-b": "*", "pkg-c": "*"},
        },
        "packages/b": {
            "name": "pkg-b",
            "version": "1.0.0",
            "dependencies": {"left-pad": "^1.3.0"},
        },
        "packages/c": {
            "name": "pkg-c",
            "version": "1.0.0",
            "devDependencies": {"@babel/code-frame": "^7.10.4", "lodash": "^4.17.20"},
        },
        "packages/d": {
            "name": "pkg-d",
            "version": "1.0.0",
            "dependencies": {"is-odd": "^3.0.0"},
        },
    },
}


def write_files(root: Path, files: dict[str, Any]) -> None:
    """Write a tree of files. Dict values are written as JSON."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, dict):
            content = json.dumps(content, indent=2) + "\n"
        path.write_text(content)


def _workspace_files() -> dict[str, Any]:
    return {
        "package.json": {
            "name": "monorepo",
            "private": True,
            "workspaces": ["packages/*"],
        },
        ".gitignore": "node_modules\nout\n",
        "turbo.json": {"pipeline": {"build": {"dependsOn": ["^build"]}}},
        "packages/a/package.json": {
            "name": "pkg-a",
            "version": "1.0.0",
            "dependencies": {"pkg-b": "*", "pkg-c": "*", "lodash": "^4.17.21"},
        },
        "packages/a/src/index.js": "module.exports = 'a';\n",
        "packages/b/package.json": {
            "name": "pkg-b",
            "version": "1.0.0",
            "dependencies": {"left-pad": "^1.3.0"},
        },
        "packages/b/src/index.js": "module.exports = 'b';\n",
        "packages/c/package.json": {
            "name": "pkg-c",
            "version": "1.0.0",
            "devDependencies": {"@babel/code-frame": "^7.10.4", "lodash": "^4.17.20"},
        },
        "packages/c/lib/util.js": "module.exports = 'c';\n",
        "packages/d/package.json": {
            "name": "pkg-d",
            "version": "1.0.0",
            "dependencies": {"is-odd": "^3.0.0"},
        },
        "packages/d/index.js": "module.exports = 'd';\n",
    }


@pytest.fixture(autouse=True)
def quiet_trace() -> None:
    """Keep trace output off unless a test turns it on."""
    set_verbosity(0)


@pytest.fixture
def make_repo(tmp_path: Path) -> Callable[..., Path]:
    """Build a small monorepo: pkg-a → pkg-b, pkg-c; pkg-d is unrelated."""

    def _make(lockfile: str | None = "yarn", **extra: Any) -> Path:
        root = tmp_path / "repo"
        files = _workspace_files()
        if lockfile == "yarn":
            files["yarn.lock"] = YARN_LOCK
        elif lockfile == "berry":
            files["yarn.lock"] = BERRY_LOCK
        elif lockfile == "npm":
            files["package-lock.json"] = NPM_LOCK
        elif lockfile == "pnpm":
            files["pnpm-lock.yaml"] = "lockfileVersion: '6.0'\n"
            files["pnpm-workspace.yaml"] = "packages:\n  - 'packages/*'\n"
        files.update(extra)
        write_files(root, files)
        return root

    return _make


@pytest.fixture
def yarn_repo(make_repo: Callable[..., Path]) -> Path:
    return make_repo("yarn")
