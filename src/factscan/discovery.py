"""File discovery: inclusion globs against a pruned walk of the tree.

Globs use gitignore wildmatch semantics (``**`` spans directories) with
one extension, ``{a,b}`` brace alternation, expanded before compiling.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable
from pathlib import Path

import pathspec
import structlog

from factscan.config import IGNORED_PATHS, MODULE_PATTERNS

logger = structlog.get_logger(__name__)

# directory names pruned before descending, whatever the exclude globs say
EXCLUDED_DIR_NAMES = frozenset(
    {
        "node_modules",
        "dist",
        "build",
        "coverage",
        "out",
        "__tests__",
        "tmp",
        ".next",
        ".git",
        "logs",
        ".idea",
    }
)

_BRACES = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> list[str]:
    """``*.{js,ts}`` -> ``['*.js', '*.ts']``; nested groups expand fully."""
    m = _BRACES.search(pattern)
    if m is None:
        return [pattern]
    head, tail = pattern[: m.start()], pattern[m.end() :]
    expanded: list[str] = []
    for option in m.group(1).split(","):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


def compile_patterns(patterns: Iterable[str]) -> pathspec.PathSpec:
    lines = [p for raw in patterns for p in expand_braces(raw)]
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


class IgnoreMatcher:
    """Decides which relative paths the walk never looks at."""

    def __init__(self, exclude: Iterable[str] = ()) -> None:
        self.spec = compile_patterns([*IGNORED_PATHS, *exclude])

    def should_ignore(self, rel_path: str, is_dir: bool = False) -> bool:
        rel = rel_path.replace("\\", "/").strip("/")
        if not rel:
            return False
        name = rel.rsplit("/", 1)[-1]
        if is_dir and (name in EXCLUDED_DIR_NAMES or name.startswith("test")):
            return True
        if self.spec.match_file(rel):
            return True
        return is_dir and self.spec.match_file(f"{rel}/")


def walk_files(root: Path, exclude: Iterable[str] = ()) -> list[str]:
    """Every non-ignored file under ``root``, as sorted relative paths."""
    root = Path(root)
    if not root.is_dir():
        logger.warning("scan root is not a directory", root=str(root))
        return []

    matcher = IgnoreMatcher(exclude)
    found: list[str] = []
    for current, dirs, files in os.walk(root):
        rel_root = Path(current).relative_to(root).as_posix()
        rel_root = "" if rel_root == "." else rel_root

        kept = []
        for dirname in dirs:
            child = f"{rel_root}/{dirname}".strip("/")
            if not matcher.should_ignore(child, is_dir=True):
                kept.append(dirname)
        dirs[:] = sorted(kept)

        for filename in files:
            rel = f"{rel_root}/{filename}".strip("/")
            if not matcher.should_ignore(rel):
                found.append(rel)
    return sorted(found)


def find_files(
    root: Path,
    patterns: Iterable[str],
    exclude: Iterable[str] = (),
) -> list[Path]:
    """Absolute paths of files under ``root`` matching any inclusion glob.

    node_modules, build output, coverage and test directories are always
    excluded; ``exclude`` adds further globs.
    """
    root = Path(root).resolve()
    spec = compile_patterns(patterns)
    files = [
        root / rel
        for rel in walk_files(root, exclude)
        if spec.match_file(rel)
    ]
    logger.debug("files discovered", root=str(root), count=len(files))
    return files


def find_modules(root: Path, exclude: Iterable[str] = ()) -> list[str]:
    """Names of top-level module directories (``src/*``, ``apps/*``, ...)."""
    root = Path(root)
    matcher = IgnoreMatcher(exclude)
    names: set[str] = set()
    for pattern in MODULE_PATTERNS:
        parent, _, star = pattern.rpartition("/")
        if star != "*":
            continue
        base = root / parent
        if not base.is_dir():
            continue
        for child in base.iterdir():
            rel = f"{parent}/{child.name}"
            if child.is_dir() and not matcher.should_ignore(rel, is_dir=True):
                names.add(child.name)
    return sorted(names)
