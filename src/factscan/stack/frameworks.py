"""Framework strings and global patterns for a project."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from factscan.config import SOURCE_PATTERNS
from factscan.discovery import find_files
from factscan.rules import DEPENDENCY_PATTERNS, SOURCE_PATTERN_RULES
from factscan.stack.manifest import Manifest, parse_manifest

logger = structlog.get_logger(__name__)

# dependency name -> display label; ``True`` appends the cleaned version
BACKEND_FRAMEWORKS: tuple[tuple[str, str, bool], ...] = (
    ("express", "Express", True),
    ("koa", "Koa", True),
    ("fastify", "Fastify", True),
    ("@nestjs/core", "NestJS", True),
    ("hapi", "Hapi", True),
    ("apollo-server", "Apollo GraphQL", True),
    ("prisma", "Prisma ORM", False),
    ("@prisma/client", "Prisma ORM", False),
    ("typeorm", "TypeORM", False),
)

FRONTEND_FRAMEWORKS: tuple[tuple[str, str, bool], ...] = (
    ("react", "React", True),
    ("next", "Next.js", True),
    ("vue", "Vue", True),
    ("nuxt", "Nuxt.js", True),
    ("@angular/core", "Angular", True),
    ("svelte", "Svelte", True),
    ("@remix-run/react", "Remix", False),
    ("gatsby", "Gatsby", False),
    ("vite", "Vite", False),
    ("webpack", "Webpack", False),
)

UNKNOWN_BACKEND = "Unknown"
NO_FRONTEND = "None detected"
SOURCE_SAMPLE_SIZE = 50

_NOT_VERSION = re.compile(r"[^0-9.]")


@dataclass
class StackInfo:
    backend: str = UNKNOWN_BACKEND
    frontend: str = NO_FRONTEND
    patterns: list[str] = field(default_factory=list)
    dependencies: dict[str, str] = field(default_factory=dict)


def _labels(
    deps: dict[str, str], table: tuple[tuple[str, str, bool], ...]
) -> list[str]:
    labels: list[str] = []
    for name, label, versioned in table:
        if name not in deps:
            continue
        if versioned:
            label = f"{label} {_NOT_VERSION.sub('', deps[name])}".strip()
        if label not in labels:
            labels.append(label)
    return labels


def detect_frameworks(manifest: Manifest) -> tuple[str, str]:
    """``(backend, frontend)`` display strings."""
    if not manifest.found:
        return UNKNOWN_BACKEND, NO_FRONTEND
    deps = manifest.versions()
    backend = ["Node.js", *_labels(deps, BACKEND_FRAMEWORKS)]
    frontend = _labels(deps, FRONTEND_FRAMEWORKS)
    return ", ".join(backend), ", ".join(frontend) or NO_FRONTEND


def dependency_patterns(deps: dict[str, str]) -> list[str]:
    return [
        label
        for label, names in DEPENDENCY_PATTERNS
        if any(name in deps for name in names)
    ]


def _read_sample(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("sample read failed", path=str(path), error=str(e))
        return ""


def source_patterns(root: Path, exclude: tuple[str, ...] = ()) -> list[str]:
    """Patterns recognized in a sample of the project's source files."""
    files = find_files(root, SOURCE_PATTERNS, exclude)
    combined = "\n".join(
        _read_sample(p) for p in files[:SOURCE_SAMPLE_SIZE]
    )
    if not combined:
        return []
    return SOURCE_PATTERN_RULES.all(combined)


def detect_stack(root: Path, exclude: tuple[str, ...] = ()) -> StackInfo:
    manifest = parse_manifest(root)
    backend, frontend = detect_frameworks(manifest)
    deps = manifest.versions()
    patterns = {*dependency_patterns(deps), *source_patterns(root, exclude)}
    return StackInfo(
        backend=backend,
        frontend=frontend,
        patterns=sorted(patterns),
        dependencies=deps,
    )
