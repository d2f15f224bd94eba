"""Single-threaded merge of per-file results into the fact graph.

Results are folded in lexicographic path order, never completion order,
so the graph only depends on the file set and its content. Every output
collection is sorted and cut to a lexicographic prefix of ``limit``
entries; flow step sequences keep their order and are cut in place.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from factscan.config import DEFAULT_LIMIT, ConflictPolicy
from factscan.dialects import FieldMap, merge_declaration
from factscan.facts import FileResult
from factscan.names import fold

logger = structlog.get_logger(__name__)


class AssociationConflictError(ValueError):
    """Two files disagree on the auth policy of one route key."""

    def __init__(self, route_key: str, first: str, second: str) -> None:
        self.route_key = route_key
        self.values = (first, second)
        super().__init__(
            f"conflicting auth policies for {route_key}: "
            f"{first!r} vs {second!r}"
        )


@dataclass(frozen=True)
class UtilityFile:
    name: str
    domain: str
    functions: tuple[str, ...]


@dataclass(frozen=True)
class FactGraph:
    """The merged, deduplicated, size-limited result of one scan."""

    business_services: tuple[str, ...] = ()
    utility_services: tuple[str, ...] = ()
    public_routes: tuple[str, ...] = ()
    internal_routes: tuple[str, ...] = ()
    routes: Mapping[str, str] = field(default_factory=dict)
    models: tuple[str, ...] = ()
    schemas: Mapping[str, FieldMap] = field(default_factory=dict)
    dependencies: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    payloads: Mapping[str, tuple[FieldMap, FieldMap]] = field(
        default_factory=dict
    )
    auth: Mapping[str, str] = field(default_factory=dict)
    flows: Mapping[str, Mapping[str, tuple[str, ...]]] = field(
        default_factory=dict
    )
    utilities: tuple[UtilityFile, ...] = ()
    files_scanned: int = 0
    failures: tuple[tuple[str, str], ...] = ()

    def utilities_by_domain(self) -> dict[str, list[UtilityFile]]:
        grouped: dict[str, list[UtilityFile]] = {}
        for util in self.utilities:
            grouped.setdefault(util.domain, []).append(util)
        return grouped


def _prefix(values: Iterable[str], limit: int) -> tuple[str, ...]:
    return tuple(sorted(set(values))[:limit])


def _limit_keys(mapping: Mapping[str, Any], limit: int) -> dict[str, Any]:
    return {key: mapping[key] for key in sorted(mapping)[:limit]}


class Aggregator:
    """Folds :class:`FileResult` values; call :meth:`finish` once."""

    def __init__(self, conflict_policy: ConflictPolicy = "first") -> None:
        self.conflict_policy = conflict_policy
        self.business: set[str] = set()
        self.utility: set[str] = set()
        self.public: set[str] = set()
        self.internal: set[str] = set()
        self.routes: dict[str, str] = {}
        self.models: set[str] = set()
        self.schemas: dict[str, FieldMap] = {}
        self.dependencies: dict[str, dict[str, str]] = {}
        self.requests: dict[str, FieldMap] = {}
        self.responses: dict[str, FieldMap] = {}
        self.auth: dict[str, str] = {}
        self.flows: dict[str, dict[str, tuple[str, ...]]] = {}
        self.utilities: dict[str, UtilityFile] = {}
        self.files_scanned = 0
        self.failures: list[tuple[str, str]] = []

    def add(self, result: FileResult) -> None:
        self.files_scanned += 1
        if result.error is not None:
            self.failures.append((result.path, result.error))
            return

        for entity in result.entities:
            attrs = entity.attributes
            name = entity.canonical_name
            if entity.kind == "service":
                if attrs.get("category") == "utility":
                    self.utility.add(name)
                else:
                    self.business.add(name)
            elif entity.kind == "route":
                # route sets hold paths; the METHOD /path key stays the
                # index for payloads and auth
                visibility = attrs.get("visibility", "public")
                route_path = attrs.get("path", name)
                if visibility == "internal":
                    self.internal.add(route_path)
                else:
                    self.public.add(route_path)
                self.routes.setdefault(name, visibility)
            elif entity.kind == "model":
                self.models.add(name)
                merge_declaration(self.schemas, name, attrs.get("fields", {}))
            elif entity.kind == "flow-step":
                methods = self.flows.setdefault(name, {})
                for method, steps in attrs.get("flows", {}).items():
                    methods.setdefault(method, tuple(steps))
            elif entity.kind == "utility":
                self.utilities.setdefault(
                    result.path,
                    UtilityFile(
                        attrs.get("file", name),
                        attrs.get("domain", "General"),
                        tuple(attrs.get("functions", ())),
                    ),
                )

        for edge in result.edges:
            targets = self.dependencies.setdefault(edge.from_service, {})
            targets.setdefault(fold(edge.to_service), edge.to_service)

        for record in result.associations:
            key = record.route_key
            for name, value in record.payload.request.items():
                self.requests.setdefault(key, {}).setdefault(name, value)
            for name, value in record.payload.response.items():
                self.responses.setdefault(key, {}).setdefault(name, value)
            if record.auth is not None:
                self._merge_auth(key, record.auth, result.path)

    def _merge_auth(self, key: str, policy: str, path: str) -> None:
        current = self.auth.get(key)
        if current is None or current == policy:
            self.auth[key] = policy
            return
        if self.conflict_policy == "error":
            raise AssociationConflictError(key, current, policy)
        kept = policy if self.conflict_policy == "last" else current
        logger.info(
            "association conflict",
            route=key,
            kept=kept,
            dropped=current if kept == policy else policy,
            file=path,
        )
        self.auth[key] = kept

    def finish(self, limit: int = DEFAULT_LIMIT) -> FactGraph:
        payload_keys = set(self.requests) | set(self.responses)
        payloads = {
            key: (
                _limit_keys(self.requests.get(key, {}), limit),
                _limit_keys(self.responses.get(key, {}), limit),
            )
            for key in sorted(payload_keys)[:limit]
        }
        flows = {
            service: {
                method: steps[:limit]
                for method, steps in _limit_keys(methods, limit).items()
            }
            for service, methods in _limit_keys(self.flows, limit).items()
        }
        utilities = sorted(
            self.utilities.values(), key=lambda u: (u.name, u.domain)
        )[:limit]
        return FactGraph(
            business_services=_prefix(self.business, limit),
            utility_services=_prefix(self.utility, limit),
            public_routes=_prefix(self.public, limit),
            internal_routes=_prefix(self.internal, limit),
            routes=_limit_keys(self.routes, limit),
            models=_prefix(self.models, limit),
            schemas={
                name: _limit_keys(fields, limit)
                for name, fields in _limit_keys(self.schemas, limit).items()
            },
            dependencies={
                source: _prefix(targets.values(), limit)
                for source, targets in _limit_keys(
                    self.dependencies, limit
                ).items()
            },
            payloads=payloads,
            auth=_limit_keys(self.auth, limit),
            flows=flows,
            utilities=tuple(
                UtilityFile(u.name, u.domain, _prefix(u.functions, limit))
                for u in utilities
            ),
            files_scanned=self.files_scanned,
            failures=tuple(sorted(self.failures)),
        )


def aggregate(
    results: Iterable[FileResult],
    limit: int = DEFAULT_LIMIT,
    conflict_policy: ConflictPolicy = "first",
) -> FactGraph:
    """Merge per-file results into one fact graph.

    Raises:
        AssociationConflictError: With ``conflict_policy="error"``, when
            two files assign different auth policies to one route key.
    """
    aggregator = Aggregator(conflict_policy)
    for result in sorted(results, key=lambda r: r.path):
        aggregator.add(result)
    return aggregator.finish(limit)
