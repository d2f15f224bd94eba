"""Stack command - detect frameworks and global patterns."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from factscan import console
from factscan.config import ScanConfig
from factscan.stack import detect_stack


@dataclass
class StackDetect:
    """Detect frameworks and global patterns from package.json and code."""

    directory: Path = field(
        default_factory=Path.cwd,
        metadata={"help": "Project root"},
    )

    def run(self) -> int:
        """Execute the stack command."""
        root = self.directory.resolve()
        config = ScanConfig.from_env(root)
        info = detect_stack(root, config.exclude)

        console.header("Stack")
        console.key_value("backend", info.backend)
        console.key_value("frontend", info.frontend)

        console.subheader("Global patterns")
        if not info.patterns:
            console.dim("  none detected")
        for pattern in info.patterns:
            console.info(f"  {pattern}")
        return 0
