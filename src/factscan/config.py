"""Scan configuration: tunables, environment overrides, discovery tables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal

import structlog

logger = structlog.get_logger(__name__)

# Environment variable names
ENV_LIMIT = "FACTSCAN_LIMIT"
ENV_CONCURRENCY = "FACTSCAN_CONCURRENCY"
ENV_DEFAULT_SERVICE_CATEGORY = "FACTSCAN_DEFAULT_SERVICE_CATEGORY"
ENV_CONFLICT_POLICY = "FACTSCAN_CONFLICT_POLICY"
ENV_EXCLUDE = "FACTSCAN_EXCLUDE"

DEFAULT_LIMIT = 100
DEFAULT_CONCURRENCY = 16
DEFAULT_OUTPUT = "codebase-summary.json"
SCHEMA_VERSION = "3.0.0"

ServiceCategory = Literal["business", "utility"]
ConflictPolicy = Literal["first", "last", "error"]

SERVICE_CATEGORIES: tuple[str, ...] = ("business", "utility")
CONFLICT_POLICIES: tuple[str, ...] = ("first", "last", "error")

IGNORED_PATHS: tuple[str, ...] = (
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/coverage/**",
    "**/out/**",
    "**/test*/**",
    "**/__tests__/**",
    "**/tmp/**",
    "**/.next/**",
    "**/.git/**",
    "**/logs/**",
    "**/.idea/**",
)

MODULE_PATTERNS: tuple[str, ...] = (
    "src/modules/*",
    "src/*",
    "packages/*",
    "apps/*",
)

SERVICE_PATTERNS: tuple[str, ...] = (
    "**/*Service.{js,ts}",
    "**/*service.{js,ts}",
    "**/services/**/*.{js,ts}",
    "**/*Util.{js,ts}",
    "**/*Helper.{js,ts}",
    "**/*utils*.{js,ts}",
    "**/*helper*.{js,ts}",
    "**/*util*.{js,ts}",
)

ROUTE_PATTERNS: tuple[str, ...] = (
    "**/routes/**/*.{js,ts}",
    "**/controllers/**/*.{js,ts}",
    "**/api/**/*.{js,ts}",
    "**/*router*.{js,ts}",
    "**/*route*.{js,ts}",
    "**/*controller*.{js,ts}",
)

MODEL_PATTERNS: tuple[str, ...] = (
    "**/models/**/*.{js,ts}",
    "**/schemas/**/*.{js,ts}",
    "**/entities/**/*.{js,ts}",
    "**/*Model.{js,ts}",
    "**/*Schema.{js,ts}",
    "**/*.entity.ts",
    "**/schema.prisma",
    "**/*.prisma",
)

UTIL_PATTERNS: tuple[str, ...] = (
    "**/utils/**/*.{js,ts}",
    "**/helpers/**/*.{js,ts}",
    "**/lib/**/*.{js,ts}",
    "**/*util*.{js,ts}",
    "**/*helper*.{js,ts}",
)

# sampled for global code patterns
SOURCE_PATTERNS: tuple[str, ...] = (
    "src/**/*.{js,ts}",
)


def parse_limit(raw: object, default: int = DEFAULT_LIMIT) -> int:
    """Parse a size limit, falling back to ``default`` when malformed.

    Non-integers, zero and negative values are configuration errors: they
    are reported once and replaced by the default.
    """
    if raw is None or raw == "":
        return default
    if isinstance(raw, bool):
        value = None
    elif isinstance(raw, int):
        value = raw
    else:
        try:
            value = int(str(raw).strip())
        except ValueError:
            value = None
    if value is None or value <= 0:
        logger.warning(
            "invalid limit, using default", value=raw, default=default
        )
        return default
    return value


def _parse_positive(raw: str | None, default: int, name: str) -> int:
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value <= 0:
        logger.warning("invalid setting, using default", name=name, value=raw)
        return default
    return value


def _parse_choice(
    raw: str | None,
    choices: tuple[str, ...],
    default: str,
    name: str,
) -> str:
    if not raw:
        return default
    value = raw.strip().lower()
    if value not in choices:
        logger.warning("invalid setting, using default", name=name, value=raw)
        return default
    return value


@dataclass(frozen=True)
class ScanConfig:
    """Tunables for one scan run."""

    root: Path = field(default_factory=Path.cwd)
    limit: int = DEFAULT_LIMIT
    concurrency: int = DEFAULT_CONCURRENCY
    default_service_category: ServiceCategory = "business"
    conflict_policy: ConflictPolicy = "first"
    exclude: tuple[str, ...] = ()
    output: str = DEFAULT_OUTPUT
    timestamp: bool = False

    @classmethod
    def from_env(cls, root: Path | None = None) -> ScanConfig:
        """Load config from environment variables."""
        exclude_raw = os.environ.get(ENV_EXCLUDE, "")
        exclude = tuple(p.strip() for p in exclude_raw.split(",") if p.strip())

        return cls(
            root=(root or Path.cwd()).resolve(),
            limit=parse_limit(os.environ.get(ENV_LIMIT)),
            concurrency=_parse_positive(
                os.environ.get(ENV_CONCURRENCY),
                DEFAULT_CONCURRENCY,
                ENV_CONCURRENCY,
            ),
            default_service_category=_parse_choice(  # type: ignore[arg-type]
                os.environ.get(ENV_DEFAULT_SERVICE_CATEGORY),
                SERVICE_CATEGORIES,
                "business",
                ENV_DEFAULT_SERVICE_CATEGORY,
            ),
            conflict_policy=_parse_choice(  # type: ignore[arg-type]
                os.environ.get(ENV_CONFLICT_POLICY),
                CONFLICT_POLICIES,
                "first",
                ENV_CONFLICT_POLICY,
            ),
            exclude=exclude,
        )

    def with_overrides(self, **overrides: object) -> ScanConfig:
        """Copy with non-None overrides applied (CLI flags win over env)."""
        values = {k: v for k, v in overrides.items() if v is not None}
        if "limit" in values:
            values["limit"] = parse_limit(values["limit"])
        return replace(self, **values)  # type: ignore[arg-type]
