"""Within-file association of context fragments to routes.

Fragments are processed tier by tier (route-local, path-scoped,
file-global) and, inside a tier, by ``(rank, offset)``. Every write is
first-writer-wins, so a lower tier can only fill what a higher tier left
empty. Auth is one value per route; payload fields are unioned by name.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

import structlog

from factscan.dialects import FieldMap
from factscan.facts import (
    AssociationRecord,
    ContextFragment,
    PayloadShape,
    RouteDescriptor,
)
from factscan.paths import PLACEHOLDER, path_has_prefix

logger = structlog.get_logger(__name__)

_NON_WORD = re.compile(r"[\W_]+")


def _segments(path: str) -> list[str]:
    return [
        _NON_WORD.sub("", s).lower()
        for s in path.split("/")
        if s and s != PLACEHOLDER
    ]


def hint_matches(hint: str, path: str) -> bool:
    """Naming-convention link: ``order`` matches ``/api/orders/:id``."""
    hint = _NON_WORD.sub("", hint).lower()
    if not hint:
        return False
    return any(hint in segment for segment in _segments(path))


def targets(
    fragment: ContextFragment, routes: Sequence[RouteDescriptor]
) -> list[RouteDescriptor]:
    """Routes a fragment applies to; empty when its scope is unresolved."""
    if fragment.scope == "route-local":
        matched = [r for r in routes if r.key == fragment.route_key]
    elif fragment.scope == "path-scoped":
        if fragment.prefix is not None:
            matched = [
                r for r in routes if path_has_prefix(r.path, fragment.prefix)
            ]
        elif fragment.path_hint:
            matched = [
                r for r in routes if hint_matches(fragment.path_hint, r.path)
            ]
        else:
            matched = []
    else:
        matched = list(routes)

    if fragment.methods:
        matched = [r for r in matched if r.method in fragment.methods]
    return matched


def _fill(target: FieldMap, fields: FieldMap) -> None:
    for name, record in fields.items():
        target.setdefault(name, record)


def associate(
    routes: Sequence[RouteDescriptor],
    fragments: Iterable[ContextFragment],
) -> dict[str, AssociationRecord]:
    """Map each route key to its auth policy and payload shape.

    Only routes that received at least one contribution appear in the
    result. Fragments whose scope cannot be resolved contribute nothing.
    """
    auth: dict[str, str] = {}
    requests: dict[str, FieldMap] = {}
    responses: dict[str, FieldMap] = {}

    for fragment in sorted(fragments, key=lambda f: f.sort_key):
        applicable = targets(fragment, routes)
        if not applicable:
            logger.debug(
                "fragment unresolved",
                scope=fragment.scope,
                file=fragment.source,
                offset=fragment.offset,
            )
            continue
        for route in applicable:
            key = route.key
            if fragment.auth and key not in auth:
                auth[key] = fragment.auth
            if fragment.request:
                _fill(requests.setdefault(key, {}), fragment.request)
            if fragment.response:
                _fill(responses.setdefault(key, {}), fragment.response)

    records: dict[str, AssociationRecord] = {}
    for route in routes:
        key = route.key
        if key not in auth and key not in requests and key not in responses:
            continue
        records[key] = AssociationRecord(
            route_key=key,
            auth=auth.get(key),
            payload=PayloadShape(
                request=requests.get(key, {}),
                response=responses.get(key, {}),
            ),
        )
    return records
