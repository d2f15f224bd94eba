"""factscan CLI - summarize a JavaScript/TypeScript backend.

Uses tyro for type-driven CLI generation from dataclasses.
"""

from __future__ import annotations

from typing import Annotated

import tyro

from factscan.cli.commands.scan import (
    Scan,
    ScanFlows,
    ScanModels,
    ScanRoutes,
    ScanServices,
)
from factscan.cli.commands.stack import StackDetect

# Type aliases for subcommand annotations
_Scan = Annotated[Scan, tyro.conf.subcommand("scan")]
_ScanModels = Annotated[ScanModels, tyro.conf.subcommand("scan:models")]
_ScanRoutes = Annotated[ScanRoutes, tyro.conf.subcommand("scan:routes")]
_ScanServices = Annotated[
    ScanServices, tyro.conf.subcommand("scan:services")
]
_ScanFlows = Annotated[ScanFlows, tyro.conf.subcommand("scan:flows")]
_StackDetect = Annotated[StackDetect, tyro.conf.subcommand("stack")]

Command = (
    _Scan
    | _ScanModels
    | _ScanRoutes
    | _ScanServices
    | _ScanFlows
    | _StackDetect
)


def main(args: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    # configure structlog (respects FACTSCAN_DEBUG env var)
    from factscan.logging_config import configure_logging

    configure_logging()

    try:
        cmd = tyro.cli(
            Command,
            prog="factscan",
            description="Extract a fact summary from a JS/TS backend.",
            args=args,
        )
        return cmd.run()
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        from factscan import console

        console.error(str(e))
        return 1
