"""Immutable fact values produced by per-file scans."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from factscan.dialects import FieldMap

EntityKind = Literal["service", "model", "route", "flow-step", "utility"]
Visibility = Literal["public", "internal"]
Scope = Literal["route-local", "path-scoped", "file-global"]

HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE")

# processing order of the association engine
SCOPE_TIERS: dict[str, int] = {
    "route-local": 0,
    "path-scoped": 1,
    "file-global": 2,
}

# within-tier order of fragment producers
RANK_VALIDATION = 0
RANK_DOCS = 1
RANK_HANDLER = 2


def route_key(method: str, path: str) -> str:
    return f"{method.upper()} {path}"


@dataclass(frozen=True)
class Entity:
    """One discovered architectural element."""

    kind: EntityKind
    canonical_name: str
    source_file: str
    attributes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RouteDescriptor:
    """A normalized route declaration.

    ``text_offset`` and ``span`` only matter while associating fragments
    inside the declaring file; they never reach the output document.
    """

    method: str
    path: str
    visibility: Visibility
    text_offset: int
    span_start: int
    span_end: int
    source_file: str = ""

    @property
    def key(self) -> str:
        return route_key(self.method, self.path)


@dataclass(frozen=True)
class PayloadShape:
    request: FieldMap = field(default_factory=dict)
    response: FieldMap = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.request and not self.response


@dataclass(frozen=True)
class ContextFragment:
    """A scoped auth policy or payload contribution awaiting a route.

    Exactly one of the targeting attributes is used, depending on scope:
    ``route_key`` for route-local fragments, ``prefix`` (or ``path_hint``
    for naming-convention links) for path-scoped ones, nothing for
    file-global ones. A path-scoped fragment with neither is unresolved.
    A non-empty ``methods`` further restricts the targeted routes.
    """

    scope: Scope
    offset: int
    rank: int = 0
    route_key: str | None = None
    prefix: str | None = None
    path_hint: str | None = None
    methods: tuple[str, ...] = ()
    auth: str | None = None
    request: FieldMap = field(default_factory=dict)
    response: FieldMap = field(default_factory=dict)
    source: str = ""

    @property
    def sort_key(self) -> tuple[int, int, int]:
        return (SCOPE_TIERS[self.scope], self.rank, self.offset)


@dataclass(frozen=True)
class AssociationRecord:
    """Auth policy and payload shape attached to one route key."""

    route_key: str
    auth: str | None = None
    payload: PayloadShape = field(default_factory=PayloadShape)


@dataclass(frozen=True)
class ServiceDependencyEdge:
    from_service: str
    to_service: str
    signal: str = ""


@dataclass(frozen=True)
class FileResult:
    """Everything one file scan produced. Never mutated after creation."""

    path: str
    entities: tuple[Entity, ...] = ()
    edges: tuple[ServiceDependencyEdge, ...] = ()
    associations: tuple[AssociationRecord, ...] = ()
    error: str | None = None

    @classmethod
    def failed(cls, path: str, error: str) -> FileResult:
        return cls(path=path, error=error)
