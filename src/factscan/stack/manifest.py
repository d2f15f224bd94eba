"""package.json parsing."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class RawDependency:
    name: str
    version_spec: str
    dev: bool = False
    source: str = "package.json"


@dataclass
class Manifest:
    """Declared dependencies; ``found`` is False when unreadable."""

    dependencies: list[RawDependency]
    found: bool = True

    def versions(self) -> dict[str, str]:
        """Name -> version spec, dev entries overriding runtime ones."""
        merged: dict[str, str] = {}
        for dep in sorted(self.dependencies, key=lambda d: d.dev):
            merged[dep.name] = dep.version_spec
        return merged


def parse_manifest(root: Path) -> Manifest:
    """Read ``root/package.json``.

    A missing or malformed manifest is a configuration error: it is
    logged once and yields an empty, not-found manifest.
    """
    path = Path(root) / "package.json"
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(
            "failed to parse package.json", path=str(path), error=str(e)
        )
        return Manifest([], found=False)
    if not isinstance(data, dict):
        logger.warning("package.json is not an object", path=str(path))
        return Manifest([], found=False)

    deps: list[RawDependency] = []
    for section, dev in (("dependencies", False), ("devDependencies", True)):
        entries = data.get(section) or {}
        if not isinstance(entries, dict):
            continue
        for name, version in entries.items():
            deps.append(RawDependency(name, str(version), dev=dev))
    return Manifest(deps)
