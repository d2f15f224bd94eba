"""Utility files: domain and exported function names."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from factscan.facts import Entity
from factscan.names import canonicalize, strip_source_suffix
from factscan.rules import UTILITY_DOMAIN_RULES, UtilitySubject
from factscan.textscan import blank_comments

_FUNCTION_NAMES = re.compile(
    r"\bfunction\s*\*?\s*(?P<decl>[A-Za-z0-9_$]+)"
    r"|(?:const|let|var)\s+(?P<assign>[A-Za-z0-9_$]+)\s*=\s*(?:async\s+)?"
    r"(?:\(|function\b|[A-Za-z_$][\w$]*\s*=>)"
    r"|\bexports\.(?P<export>[A-Za-z0-9_$]+)"
)


def function_names(code: str) -> list[str]:
    names = set()
    for m in _FUNCTION_NAMES.finditer(code):
        names.add(m.group("decl") or m.group("assign") or m.group("export"))
    return sorted(names)


def utility_domain(filename: str, content: str) -> str:
    domain = UTILITY_DOMAIN_RULES.first(UtilitySubject(filename, content))
    return domain or "General"


class UtilityExtractor:
    def extract(self, text: str, path: str = "") -> list[Entity]:
        filename = PurePosixPath(path).name
        if not filename:
            return []
        code = blank_comments(text)
        name = canonicalize(strip_source_suffix(filename), "utility")
        return [
            Entity(
                kind="utility",
                canonical_name=name or filename,
                source_file=path,
                attributes={
                    "file": filename,
                    "domain": utility_domain(filename, code),
                    "functions": tuple(function_names(code)),
                },
            )
        ]
