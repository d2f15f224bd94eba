"""Route path normalization and matching.

Parameter segments in every supported syntax (``:id``, ``[id]``,
``{id}``, ``<int:id>``, catch-alls) collapse to one placeholder, so the
same route declared in different frameworks yields one key.
"""

from __future__ import annotations

import re

INTERNAL_KEYWORDS: tuple[str, ...] = (
    "admin",
    "internal",
    "debug",
    "metrics",
    "analytics",
    "cron",
    "webhook",
    "logs",
)

PLACEHOLDER = ":id"

_PARAM_PATTERNS: list[re.Pattern] = [
    re.compile(r"\[\[?\.\.\.[^\]/]+\]\]?"),  # [...slug], [[...slug]]
    re.compile(r"\[[^\]/]+\]"),  # [orderId]
    re.compile(r"<[^>/]+>"),  # <int:order_id>
    re.compile(r"\{[^}/]+\}"),  # {orderId}
    re.compile(r":[^/]+"),  # :orderId, :id(\\d+), :id?
]

_SKIP_PATTERNS: list[re.Pattern] = [
    re.compile(r"^/+$"),
    re.compile(r"^(?:/:id)+$"),
    re.compile(r"^/middleware", re.I),
    re.compile(r"^/test", re.I),
    re.compile(r"^/health", re.I),
]


def normalize_path(path: str) -> str:
    """Collapse parameters to ``:id``, strip query and trailing slash.

    ``/orders/:orderId/cancel`` and ``/orders/[orderId]/cancel`` both
    become ``/orders/:id/cancel``.
    """
    path = path.strip().split("?", 1)[0].split("#", 1)[0]
    for pattern in _PARAM_PATTERNS:
        path = pattern.sub(PLACEHOLDER, path)
    path = re.sub(r"/{2,}", "/", path)
    if not path.startswith("/"):
        path = "/" + path
    path = path.rstrip("/")
    return path or "/"


def join_paths(prefix: str, sub: str) -> str:
    prefix = prefix.strip().strip("/")
    sub = sub.strip().strip("/")
    joined = "/".join(p for p in (prefix, sub) if p)
    return "/" + joined


def is_valid_path(path: str) -> bool:
    return not any(p.search(path) for p in _SKIP_PATTERNS)


def is_internal(path: str) -> bool:
    """Internal when any literal segment starts with an internal keyword.

    Evaluated on the normalized path, so placeholders are skipped and
    never hide a keyword.
    """
    for segment in path.split("/"):
        if not segment or segment == PLACEHOLDER:
            continue
        if segment.lower().startswith(INTERNAL_KEYWORDS):
            return True
    return False


def path_has_prefix(path: str, prefix: str) -> bool:
    """Segment-aware prefix test: ``/admin`` covers ``/admin/x`` only."""
    prefix = prefix.rstrip("/")
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")

