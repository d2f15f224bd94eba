"""Service entities, their classification and dependency edges."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

import structlog

from factscan.facts import Entity, ServiceDependencyEdge
from factscan.names import (
    canonicalize,
    fold,
    name_from_import_path,
    role_of,
    strip_source_suffix,
)
from factscan.rules import ServiceSubject, service_classification
from factscan.textscan import blank_comments, find_closing, function_body

logger = structlog.get_logger(__name__)

# suffix-less names that only ever mean "some service"
GENERIC_NAMES = frozenset({"Service", "Controller"})

_CLASS = re.compile(r"\bclass\s+(?P<name>[A-Za-z_$][\w$]*)")
_ROLE_CLASS = re.compile(
    r"\bclass\s+(?P<name>[A-Za-z0-9_$]+"
    r"(?:Service|Controller|Svc|Srv|Ctrl|Ctl))\b"
)
_ERROR_CLASS = re.compile(r"(?:Error|Exception)$")
_ROLE_HINT = re.compile(r"service|controller|ctrl|svc|srv", re.I)

_IMPORT = re.compile(
    r"\bimport\s+(?:[\w${}\s,*]+?\s+from\s+)?['\"](?P<spec>[^'\"]+)['\"]"
    r"|\brequire\s*\(\s*['\"](?P<req>[^'\"]+)['\"]\s*\)"
)
_CONSTRUCTOR = re.compile(r"\bconstructor\s*\(")
_ROLE_IDENTIFIER = re.compile(
    r"\b[A-Za-z0-9_$]*(?:[Ss]ervice|Controller|Svc|Srv|Ctrl)\b"
)
_THIS_ASSIGN = re.compile(r"this\.(?P<name>\w*[Ss]ervice\w*)\s*=")
_NEW_SERVICE = re.compile(
    r"\bnew\s+(?P<name>[A-Za-z0-9_$]+(?:Service|Controller|Svc|Srv|Ctrl))"
    r"\s*\("
)
_THIS_CALL = re.compile(r"this\.(?P<name>\w*[Ss]ervice\w*)\.[\w.]+\s*\(")
_STATIC_CALL = re.compile(
    r"(?<![\w$.])(?P<name>[A-Za-z0-9_$]+(?:Service|Controller))"
    r"\.[\w.]+\s*\("
)


def dependency_name(raw: str) -> str | None:
    """Canonical service name for a dependency signal, if meaningful."""
    name = canonicalize(raw, role_of(raw))
    if name is None or name in GENERIC_NAMES:
        return None
    return name


def service_name_of(text: str, path: str) -> str | None:
    """Name of the service a file defines.

    A role-suffixed class wins over a role-hinting file name.
    """
    code = blank_comments(text)
    m = _ROLE_CLASS.search(code)
    if m:
        return dependency_name(m.group("name"))
    stem = strip_source_suffix(PurePosixPath(path).name)
    if path and _ROLE_HINT.search(stem):
        return dependency_name(stem)
    return None


class ServiceExtractor:
    """Service entities with their business/utility category."""

    def __init__(self, default_category: str = "business") -> None:
        self.classification = service_classification(default_category)

    def raw_names(self, code: str, path: str) -> list[str]:
        names = [
            m.group("name")
            for m in _CLASS.finditer(code)
            if not _ERROR_CLASS.search(m.group("name"))
        ]
        if names:
            return names
        stem = strip_source_suffix(PurePosixPath(path).name)
        return [stem] if stem else []

    def extract(self, text: str, path: str = "") -> list[Entity]:
        code = blank_comments(text)
        filename = PurePosixPath(path).name
        entities: dict[str, Entity] = {}
        for raw in self.raw_names(code, path):
            category = self.classification.first(
                ServiceSubject(raw, filename, code)
            )
            role = "utility" if category == "utility" else role_of(raw)
            name = canonicalize(raw, role)
            if name is None or name in GENERIC_NAMES or name in entities:
                continue
            entities[name] = Entity(
                kind="service",
                canonical_name=name,
                source_file=path,
                attributes={"category": category},
            )
        return list(entities.values())

    # -- dependency edges -----------------------------------------------------

    def edges(self, text: str, path: str = "") -> list[ServiceDependencyEdge]:
        source = service_name_of(text, path)
        if source is None:
            return []
        code = blank_comments(text)
        found: list[ServiceDependencyEdge] = []
        seen: set[str] = set()

        def _add(name: str | None, signal: str) -> None:
            if name is None or fold(name) in seen:
                return
            seen.add(fold(name))
            found.append(ServiceDependencyEdge(source, name, signal))

        for name in self._imports(code):
            _add(name, "import")
        for name in self._injections(code):
            _add(name, "injection")
        for m in _NEW_SERVICE.finditer(code):
            _add(dependency_name(m.group("name")), "instantiation")
        for pattern in (_THIS_CALL, _STATIC_CALL):
            for m in pattern.finditer(code):
                _add(dependency_name(m.group("name")), "method-call")

        if found:
            logger.debug(
                "service dependencies", service=source, count=len(found)
            )
        return found

    @staticmethod
    def _imports(code: str) -> list[str]:
        names = []
        for m in _IMPORT.finditer(code):
            spec = m.group("spec") or m.group("req")
            last = spec.rstrip("/").rsplit("/", 1)[-1]
            if _ROLE_HINT.search(last):
                name = name_from_import_path(spec, role_of(last))
            elif "/services/" in spec:
                name = name_from_import_path(spec, "service")
            else:
                continue
            if name is not None and name not in GENERIC_NAMES:
                names.append(name)
        return names

    @staticmethod
    def _injections(code: str) -> list[str]:
        names = []
        for m in _CONSTRUCTOR.finditer(code):
            close = find_closing(code, m.end() - 1)
            if close is None:
                continue
            for ident in _ROLE_IDENTIFIER.finditer(code[m.end() : close]):
                name = dependency_name(ident.group(0))
                if name is not None:
                    names.append(name)
            body = function_body(code, m.start())
            if body is None:
                continue
            for assign in _THIS_ASSIGN.finditer(body.slice(code)):
                name = dependency_name(assign.group("name"))
                if name is not None:
                    names.append(name)
        return names
