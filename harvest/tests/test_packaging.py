"""
Tests for the distribution layout declared in pyproject.toml.

Tests verify:
- The package finder ships harvest.src and its subpackages.
- The test suite is never packaged into the wheel.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from setuptools import find_namespace_packages

REPO_ROOT = Path(__file__).resolve().parents[2]


def _packaged() -> set[str]:
    """Resolve the package list the way setuptools does for the build."""
    with (REPO_ROOT / "pyproject.toml").open("rb") as fh:
        find = tomllib.load(fh)["tool"]["setuptools"]["packages"]["find"]
    return set(
        find_namespace_packages(
            where=str(REPO_ROOT / find["where"][0]),
            include=find["include"],
            exclude=find.get("exclude", ()),
        )
    )


class TestPackageDiscovery:
    """Wheel contents."""

    def test_source_packages_are_included(self) -> None:
        packages = _packaged()

        assert {"harvest.src", "harvest.src.api", "harvest.src.clients"} <= packages
        assert "harvest.src.db.migrations" in packages

    def test_tests_are_excluded(self) -> None:
        packages = _packaged()

        assert "harvest.tests" not in packages
        assert not any(p.startswith("harvest.tests.") for p in packages)
