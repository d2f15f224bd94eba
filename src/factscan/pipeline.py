"""Fan-out of per-file scans with a bounded pool, then one merge.

Each file is read on a worker thread and scanned independently; the
aggregator only runs once every scan has settled. A file that cannot be
read or scanned becomes a failed :class:`FileResult` and contributes
nothing.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

import structlog

from factscan.aggregate import FactGraph, aggregate
from factscan.config import (
    MODEL_PATTERNS,
    ROUTE_PATTERNS,
    SERVICE_PATTERNS,
    UTIL_PATTERNS,
    ScanConfig,
)
from factscan.discovery import find_files
from factscan.extract import FileScanner
from factscan.facts import FileResult

logger = structlog.get_logger(__name__)

Reader = Callable[[Path], str]

ROLE_PATTERNS: dict[str, tuple[str, ...]] = {
    "service": SERVICE_PATTERNS,
    "route": ROUTE_PATTERNS,
    "model": MODEL_PATTERNS,
    "utility": UTIL_PATTERNS,
}


@dataclass(frozen=True)
class ScanTarget:
    path: Path
    rel: str
    roles: frozenset[str]


def read_text(path: Path) -> str:
    return Path(path).read_text(encoding="utf-8")


def scan_text(
    path: str,
    text: str,
    roles: Iterable[str],
    default_service_category: str = "business",
) -> FileResult:
    """Scan already-read text; the synchronous core of one file scan."""
    return FileScanner(default_service_category).scan(path, text, roles)


def collect_targets(config: ScanConfig) -> list[ScanTarget]:
    """Discover files per role and merge them into one target per file."""
    root = Path(config.root).resolve()
    roles: dict[Path, set[str]] = {}
    for role, patterns in ROLE_PATTERNS.items():
        for path in find_files(root, patterns, config.exclude):
            roles.setdefault(path, set()).add(role)

    targets = [
        ScanTarget(
            path=path,
            rel=path.relative_to(root).as_posix(),
            roles=frozenset(found),
        )
        for path, found in roles.items()
    ]
    targets.sort(key=lambda t: t.rel)
    logger.info("scan targets collected", root=str(root), count=len(targets))
    return targets


async def scan_targets(
    targets: Sequence[ScanTarget],
    config: ScanConfig,
    reader: Reader = read_text,
) -> list[FileResult]:
    """Scan every target, at most ``config.concurrency`` reads in flight.

    Never raises for a single file: read errors and detector errors are
    logged and turned into failed results.
    """
    semaphore = asyncio.Semaphore(config.concurrency)
    scanner = FileScanner(config.default_service_category)

    async def scan_with_sem(target: ScanTarget) -> FileResult:
        async with semaphore:
            try:
                text = await asyncio.to_thread(reader, target.path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(
                    "file read failed", path=target.rel, error=str(e)
                )
                return FileResult.failed(target.rel, str(e))
        try:
            return scanner.scan(target.rel, text, target.roles)
        except ValueError as e:
            logger.warning("file scan failed", path=target.rel, error=str(e))
            return FileResult.failed(target.rel, str(e))

    results = await asyncio.gather(
        *[scan_with_sem(t) for t in targets],
        return_exceptions=True,
    )

    settled: list[FileResult] = []
    for target, result in zip(targets, results):
        if isinstance(result, Exception):
            logger.warning(
                "file scan failed", path=target.rel, error=str(result)
            )
            settled.append(FileResult.failed(target.rel, f"{result}"))
        else:
            settled.append(result)
    return settled


async def run_scan(
    config: ScanConfig,
    reader: Reader = read_text,
    targets: Sequence[ScanTarget] | None = None,
) -> FactGraph:
    """Discover, scan and merge; the merge waits for every scan."""
    if targets is None:
        targets = collect_targets(config)
    results = await scan_targets(targets, config, reader)
    graph = aggregate(results, config.limit, config.conflict_policy)
    logger.info(
        "scan complete",
        files=graph.files_scanned,
        failures=len(graph.failures),
    )
    return graph
