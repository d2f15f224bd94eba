"""Tests for factscan.discovery module."""

from pathlib import Path

from factscan.config import ROUTE_PATTERNS
from factscan.discovery import (
    IgnoreMatcher,
    expand_braces,
    find_files,
    find_modules,
    walk_files,
)


class TestExpandBraces:
    """Brace alternation."""

    def test_single_group(self) -> None:
        assert expand_braces("src/**/*.{js,ts}") == [
            "src/**/*.js",
            "src/**/*.ts",
        ]

    def test_multiple_groups(self) -> None:
        assert expand_braces("{a,b}.{1,2}") == ["a.1", "a.2", "b.1", "b.2"]

    def test_no_braces(self) -> None:
        assert expand_braces("**/schema.prisma") == ["**/schema.prisma"]


class TestIgnoreMatcher:
    """Always-excluded and configured paths."""

    def test_excluded_directories(self) -> None:
        matcher = IgnoreMatcher()
        assert matcher.should_ignore("node_modules", is_dir=True)
        assert matcher.should_ignore("src/__tests__", is_dir=True)
        assert matcher.should_ignore("src/testing", is_dir=True)
        assert matcher.should_ignore("packages/api/dist", is_dir=True)
        assert not matcher.should_ignore("src/routes", is_dir=True)
        assert not matcher.should_ignore("src/routes/orders.js")

    def test_extra_globs(self) -> None:
        matcher = IgnoreMatcher(["legacy/**"])
        assert matcher.should_ignore("legacy/old.js")
        assert not matcher.should_ignore("src/new.js")


class TestFindFiles:
    """Glob discovery over a pruned walk."""

    def test_route_files(self, project: Path) -> None:
        files = find_files(project, ROUTE_PATTERNS)
        assert files == [project.resolve() / "src/routes/orderRoutes.js"]

    def test_walk_prunes_excluded_trees(self, project: Path) -> None:
        rels = walk_files(project)
        assert "package.json" in rels
        assert not any(r.startswith("node_modules/") for r in rels)
        assert not any("__tests__" in r for r in rels)
        assert rels == sorted(rels)

    def test_missing_root(self, tmp_path: Path) -> None:
        assert walk_files(tmp_path / "nope") == []
        assert find_files(tmp_path / "nope", ROUTE_PATTERNS) == []

    def test_modules(self, project: Path) -> None:
        assert find_modules(project) == [
            "models",
            "routes",
            "services",
            "utils",
        ]
