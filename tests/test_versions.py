"""Tests for monoprune.versions."""

from __future__ import annotations

from monoprune.versions import parse_package_manager, parse_version


class TestParseVersion:
    def test_full_semver(self) -> None:
        v = parse_version("1.2.3")
        assert (v.major, v.minor, v.patch) == (1, 2, 3)

    def test_two_part_version(self) -> None:
        v = parse_version("3.2")
        assert (v.major, v.minor, v.patch) == (3, 2, 0)

    def test_single_part_version(self) -> None:
        assert parse_version("4").major == 4

    def test_prerelease_ignored(self) -> None:
        v = parse_version("4.0.0-rc.42")
        assert (v.major, v.minor, v.patch) == (4, 0, 0)


class TestParsePackageManager:
    def test_yarn(self) -> None:
        name, version = parse_package_manager("yarn@3.2.1")
        assert name == "yarn"
        assert version.major == 3

    def test_corepack_hash_suffix(self) -> None:
        name, version = parse_package_manager("npm@9.8.0+sha256.abcdef")
        assert name == "npm"
        assert str(version) == "9.8.0"

    def test_no_version(self) -> None:
        assert parse_package_manager("yarn") is None

    def test_garbage_version(self) -> None:
        assert parse_package_manager("yarn@latest") is None
