"""Scan commands - build the summary document or one slice of it."""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path

from factscan import console
from factscan.aggregate import FactGraph
from factscan.config import DEFAULT_OUTPUT, ScanConfig
from factscan.discovery import find_modules
from factscan.git import git_metadata
from factscan.logging_config import configure_logging
from factscan.output import build_document, write_document
from factscan.pipeline import run_scan
from factscan.stack import detect_stack


@dataclass
class _ScanOptions:
    directory: Path = field(
        default_factory=Path.cwd,
        metadata={"help": "Project root to scan"},
    )
    limit: int | None = field(
        default=None,
        metadata={"help": "Max entries per output category (default 100)"},
    )
    concurrency: int | None = field(
        default=None,
        metadata={"help": "Max file reads in flight"},
    )
    verbose: bool = field(
        default=False,
        metadata={"help": "Log per-file and per-fragment decisions"},
    )

    def config(self) -> ScanConfig:
        if self.verbose:
            configure_logging(verbose=True, force=True)
        root = self.directory.resolve()
        if not root.is_dir():
            raise NotADirectoryError(f"not a directory: {root}")
        return ScanConfig.from_env(root).with_overrides(
            limit=self.limit,
            concurrency=self.concurrency,
        )

    def scan(self, config: ScanConfig) -> FactGraph:
        with console.status(f"scanning {config.root}..."):
            graph = asyncio.run(run_scan(config))
        if graph.failures:
            console.warning(
                f"{len(graph.failures)} file(s) could not be scanned"
            )
        return graph


@dataclass
class Scan(_ScanOptions):
    """Scan a project and write the codebase summary JSON."""

    output: str = field(
        default=DEFAULT_OUTPUT,
        metadata={"help": "Output file, relative to the scanned directory"},
    )
    timestamp: bool = field(
        default=False,
        metadata={"help": "Include generatedAt (output is no longer stable)"},
    )
    stdout: bool = field(
        default=False,
        metadata={"help": "Print the document instead of writing it"},
    )

    def run(self) -> int:
        """Execute the scan command."""
        config = self.config().with_overrides(
            output=self.output, timestamp=self.timestamp
        )
        graph = self.scan(config)
        document = build_document(
            graph,
            git=git_metadata(config.root),
            stack=detect_stack(config.root, config.exclude),
            modules=find_modules(config.root, config.exclude),
            limit=config.limit,
            timestamp=config.timestamp,
        )

        if self.stdout:
            sys.stdout.write(document.to_json())
            return 0

        target = Path(config.output)
        if not target.is_absolute():
            target = config.root / target
        write_document(document, target)
        console.success(
            f"summary of {graph.files_scanned} files written to {target}"
        )
        return 0


@dataclass
class ScanModels(_ScanOptions):
    """List database models and their field counts."""

    def run(self) -> int:
        """Execute the scan:models command."""
        graph = self.scan(self.config())
        if not graph.models:
            console.dim("no models found")
            return 0
        console.table(
            "Models",
            ["model", "fields"],
            [(m, len(graph.schemas.get(m, {}))) for m in graph.models],
        )
        return 0


@dataclass
class ScanRoutes(_ScanOptions):
    """List API routes with their auth policies."""

    def run(self) -> int:
        """Execute the scan:routes command."""
        graph = self.scan(self.config())
        rows = [
            (key, visibility, graph.auth.get(key, "-"))
            for key, visibility in graph.routes.items()
        ]
        if not rows:
            console.dim("no routes found")
            return 0
        console.table("Routes", ["route", "visibility", "auth"], rows)
        return 0


@dataclass
class ScanServices(_ScanOptions):
    """List services by category with their dependencies."""

    def run(self) -> int:
        """Execute the scan:services command."""
        graph = self.scan(self.config())
        rows = [
            (name, category, ", ".join(graph.dependencies.get(name, ())))
            for category, names in (
                ("business", graph.business_services),
                ("utility", graph.utility_services),
            )
            for name in names
        ]
        if not rows:
            console.dim("no services found")
            return 0
        console.table("Services", ["service", "category", "depends on"], rows)
        return 0


@dataclass
class ScanFlows(_ScanOptions):
    """Show business flows per service method."""

    def run(self) -> int:
        """Execute the scan:flows command."""
        graph = self.scan(self.config())
        if not graph.flows:
            console.dim("no business flows found")
            return 0
        for service, methods in graph.flows.items():
            console.subheader(service)
            for method, steps in methods.items():
                console.key_value(method, " -> ".join(steps))
        return 0
