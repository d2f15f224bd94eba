"""Per-file entity extraction.

:func:`extract` runs the detector battery for one entity kind;
:class:`FileScanner` runs every battery a file's roles call for, plus the
context-fragment producers and within-file association, returning one
immutable :class:`~factscan.facts.FileResult`.
"""

from __future__ import annotations

from collections.abc import Iterable

from factscan.association import associate
from factscan.extract.auth import AuthFragmentExtractor
from factscan.extract.flows import FlowExtractor
from factscan.extract.models import ModelExtractor
from factscan.extract.payloads import PayloadFragmentExtractor
from factscan.extract.routes import RouteExtractor, RouteSite
from factscan.extract.services import ServiceExtractor
from factscan.extract.utilities import UtilityExtractor
from factscan.facts import Entity, EntityKind, FileResult


def route_entities(sites: list[RouteSite], path: str) -> list[Entity]:
    return [
        Entity(
            kind="route",
            canonical_name=site.descriptor.key,
            source_file=path,
            attributes={
                "method": site.descriptor.method,
                "path": site.descriptor.path,
                "visibility": site.descriptor.visibility,
            },
        )
        for site in sites
    ]


def extract(
    text: str,
    kind: EntityKind,
    path: str = "",
    default_service_category: str = "business",
) -> list[Entity]:
    """Entities of one kind found in ``text``, deduplicated by name."""
    if kind == "route":
        entities = route_entities(RouteExtractor().sites(text, path), path)
    elif kind == "model":
        entities = ModelExtractor().extract(text, path)
    elif kind == "service":
        entities = ServiceExtractor(default_service_category).extract(
            text, path
        )
    elif kind == "flow-step":
        entities = FlowExtractor().extract(text, path)
    elif kind == "utility":
        entities = UtilityExtractor().extract(text, path)
    else:
        raise ValueError(f"unknown entity kind: {kind}")

    seen: set[str] = set()
    unique = []
    for entity in entities:
        if entity.canonical_name not in seen:
            seen.add(entity.canonical_name)
            unique.append(entity)
    return unique


class FileScanner:
    """Side-effect-free scan of one file's text."""

    def __init__(self, default_service_category: str = "business") -> None:
        self.routes = RouteExtractor()
        self.models = ModelExtractor()
        self.services = ServiceExtractor(default_service_category)
        self.flows = FlowExtractor()
        self.utilities = UtilityExtractor()
        self.auth = AuthFragmentExtractor()
        self.payloads = PayloadFragmentExtractor()

    def scan(self, path: str, text: str, roles: Iterable[str]) -> FileResult:
        roles = set(roles)
        entities: list[Entity] = []
        edges = []
        associations = []

        if "route" in roles:
            sites = self.routes.sites(text, path)
            entities.extend(route_entities(sites, path))
            fragments = self.auth.fragments(text, sites, path)
            fragments.extend(self.payloads.fragments(text, sites, path))
            records = associate([s.descriptor for s in sites], fragments)
            associations.extend(records.values())
        if "model" in roles:
            entities.extend(self.models.extract(text, path))
        if "service" in roles:
            entities.extend(self.services.extract(text, path))
            entities.extend(self.flows.extract(text, path))
            edges.extend(self.services.edges(text, path))
        if "utility" in roles:
            entities.extend(self.utilities.extract(text, path))

        return FileResult(
            path=path,
            entities=tuple(entities),
            edges=tuple(edges),
            associations=tuple(associations),
        )


__all__ = [
    "FileScanner",
    "extract",
    "route_entities",
]
