"""Database model declarations and their field tables.

Detectors run in a fixed order: declarative ``model X { }`` blocks,
document-schema constructors, relational ``define``/``init`` calls,
decorated entity classes, and bare classes with typed properties (only
when nothing named matched). Every body is located with the bracket
scanner so nested field objects never truncate it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from factscan.dialects import (
    FieldMap,
    FieldRecord,
    is_detailed,
    merge_declaration,
    merge_pass,
    normalize_declarative,
    normalize_decorated,
    normalize_document,
    normalize_relational,
)
from factscan.facts import Entity
from factscan.names import canonicalize, name_from_filename
from factscan.textscan import (
    Span,
    blank_comments,
    call_arguments,
    find_closing,
    iter_entries,
    iter_members,
)

logger = structlog.get_logger(__name__)

RESERVED_CLASS_NAMES = frozenset({"Model", "Entity", "Schema"})

_PRISMA_MODEL = re.compile(r"^\s*model\s+(?P<name>[A-Za-z_]\w*)\s*\{", re.M)
_SCHEMA_NEW = re.compile(
    r"\bnew\s+(?:mongoose\s*\.\s*)?Schema\s*(?:<[^>]*>)?\s*\("
)
_SCHEMA_VAR = re.compile(
    r"(?:const|let|var)\s+(?P<var>[A-Za-z_$][\w$]*)\s*(?::[^=]+)?=\s*$"
)
_MONGOOSE_MODEL = re.compile(
    r"\b(?:mongoose\s*\.\s*)?model\s*(?:<[^>]*>)?\s*\(\s*"
    r"['\"`](?P<name>[\w$]+)['\"`]\s*(?:,\s*(?P<schema>[A-Za-z_$][\w$]*))?"
)
_DEFINE = re.compile(
    r"\b[\w$]+\s*\.\s*define\s*\(\s*['\"`](?P<name>[\w$]+)['\"`]"
)
_INIT = re.compile(r"\b(?P<name>[A-Z][\w$]*)\s*\.\s*init\s*\(")
_MODEL_CLASS = re.compile(
    r"\bclass\s+([A-Za-z_$][\w$]*)\s+extends\s+(?:[\w$]+\s*\.\s*)?Model\b"
)
_ENTITY_DECORATOR = re.compile(r"@Entity\s*\(")
_CLASS = re.compile(
    r"\bclass\s+(?P<name>[A-Za-z_$][\w$]*)(?:\s+extends\s+[\w$.<>, ]+)?"
    r"(?:\s+implements\s+[\w$.<>, ]+)?\s*\{"
)
_TYPED_PROPERTY = re.compile(
    r"^(?:(?:public|private|protected|readonly|declare)\s+)*"
    r"[A-Za-z_$][\w$]*\s*[?!]?\s*:\s*[^(]+$"
)


@dataclass(frozen=True)
class Declaration:
    """One top-level model declaration found in a file."""

    name: str
    dialect: str
    fields: FieldMap
    offset: int


def _two_pass(body: str, normalize) -> FieldMap:
    """Detailed object-form fields first, then simple one-liners.

    The simple pass never overwrites a field the detailed pass filled.
    """
    entries = list(iter_entries(body))
    fields: FieldMap = {}
    merge_pass(
        fields,
        (
            normalize(e.key, e.value)
            for e in entries
            if is_detailed(e.value)
        ),
        overwrite=True,
    )
    merge_pass(
        fields,
        (
            normalize(e.key, e.value)
            for e in entries
            if e.value is not None and not is_detailed(e.value)
        ),
        overwrite=False,
    )
    return fields


def _first_object(code: str, open_paren: int, index: int = 0) -> str | None:
    args = call_arguments(code, open_paren)
    if len(args) <= index:
        return None
    text = args[index].text
    if not text.startswith("{"):
        return None
    close = find_closing(text, 0)
    return text[1:close] if close is not None else None


def class_fields(code: str, body: Span) -> FieldMap:
    """Typed properties of a class body; decorated ones win."""
    detailed: list[FieldRecord] = []
    simple: list[FieldRecord] = []
    for member in iter_members(code, body.start, body.end):
        if member.body is not None or "(" in member.header:
            continue
        if not _TYPED_PROPERTY.match(member.header):
            continue
        record = normalize_decorated(code[member.start : member.end])
        if record is None:
            continue
        (detailed if member.decorators else simple).append(record)
    fields: FieldMap = {}
    merge_pass(fields, detailed, overwrite=True)
    merge_pass(fields, simple, overwrite=False)
    return fields


class ModelExtractor:
    """Extracts model entities (with field tables) from one file."""

    def extract(self, text: str, path: str = "") -> list[Entity]:
        declarations = self.declarations(text, path)
        snapshots: dict[str, FieldMap] = {}
        dialects: dict[str, str] = {}
        order: list[str] = []
        for decl in sorted(declarations, key=lambda d: d.offset):
            if decl.name not in snapshots:
                order.append(decl.name)
            merge_declaration(snapshots, decl.name, decl.fields)
            dialects[decl.name] = decl.dialect

        return [
            Entity(
                kind="model",
                canonical_name=name,
                source_file=path,
                attributes={
                    "fields": snapshots[name],
                    "dialect": dialects[name],
                },
            )
            for name in order
        ]

    def declarations(self, text: str, path: str = "") -> list[Declaration]:
        code = blank_comments(text)
        found: list[Declaration] = []
        found.extend(self._declarative(code))
        found.extend(self._document(code, path))
        found.extend(self._relational(code))
        found.extend(self._decorated(code))
        if not found:
            found.extend(self._bare_classes(code))
        return found

    # -- declarative (prisma) ---------------------------------------------

    def _declarative(self, code: str) -> list[Declaration]:
        found = []
        for m in _PRISMA_MODEL.finditer(code):
            name = canonicalize(m.group("name"), "model")
            close = find_closing(code, m.end() - 1)
            if name is None or close is None:
                continue
            fields: FieldMap = {}
            for line in code[m.end() : close].splitlines():
                record = normalize_declarative(line)
                if record is not None:
                    fields[record.name] = record
            found.append(Declaration(name, "declarative", fields, m.start()))
        return found

    # -- document (mongoose) ------------------------------------------------

    def _document(self, code: str, path: str) -> list[Declaration]:
        bindings: dict[str, str] = {}
        model_calls = list(_MONGOOSE_MODEL.finditer(code))
        for mm in model_calls:
            if mm.group("schema"):
                bindings[mm.group("schema")] = mm.group("name")

        found = []
        for m in _SCHEMA_NEW.finditer(code):
            body = _first_object(code, m.end() - 1)
            if body is None:
                continue
            raw_name = self._schema_name(code, m, bindings, model_calls, path)
            name = canonicalize(raw_name, "model")
            if name is None:
                logger.debug("unnamed schema skipped", file=path)
                continue
            fields = _two_pass(body, normalize_document)
            found.append(Declaration(name, "document", fields, m.start()))

        # model('User', userSchema) registers a model even when the schema
        # is imported from elsewhere
        parsed = {decl.name for decl in found}
        for mm in model_calls:
            name = canonicalize(mm.group("name"), "model")
            if name is not None and name not in parsed:
                parsed.add(name)
                found.append(Declaration(name, "document", {}, mm.start()))
        return found

    @staticmethod
    def _schema_name(
        code: str,
        m: re.Match,
        bindings: dict[str, str],
        model_calls: list[re.Match],
        path: str,
    ) -> str | None:
        line_start = code.rfind("\n", 0, m.start()) + 1
        var = _SCHEMA_VAR.search(code[line_start : m.start()])
        if var:
            bound = bindings.get(var.group("var"))
            return bound or var.group("var")
        # inline mongoose.model('X', new Schema({...}))
        for mm in model_calls:
            if mm.start() < m.start():
                close = find_closing(code, code.index("(", mm.start()))
                if close is not None and m.start() < close:
                    return mm.group("name")
        if len(model_calls) == 1:
            return model_calls[0].group("name")
        return name_from_filename(path, "model") if path else None

    # -- relational (sequelize) ---------------------------------------------

    def _relational(self, code: str) -> list[Declaration]:
        found = []
        for m in _DEFINE.finditer(code):
            open_paren = code.index("(", m.start())
            body = _first_object(code, open_paren, index=1)
            name = canonicalize(m.group("name"), "model")
            if name is None:
                continue
            # attributes held in a variable still register the model
            fields = _two_pass(body, normalize_relational) if body else {}
            found.append(Declaration(name, "relational", fields, m.start()))
        model_classes = set(_MODEL_CLASS.findall(code))
        for m in _INIT.finditer(code):
            body = _first_object(code, m.end() - 1)
            name = canonicalize(m.group("name"), "model")
            if name is None:
                continue
            if body is not None:
                fields = _two_pass(body, normalize_relational)
            elif m.group("name") in model_classes:
                fields = {}
            else:
                continue
            found.append(Declaration(name, "relational", fields, m.start()))
        return found

    # -- decorated (typeorm) ------------------------------------------------

    def _decorated(self, code: str) -> list[Declaration]:
        found = []
        for m in _ENTITY_DECORATOR.finditer(code):
            cm = _CLASS.search(code, m.end())
            if cm is None:
                continue
            name = canonicalize(cm.group("name"), "model")
            close = find_closing(code, cm.end() - 1)
            if name is None or close is None:
                continue
            fields = class_fields(code, Span(cm.end(), close))
            found.append(Declaration(name, "decorated", fields, m.start()))
        return found

    # -- bare classes -------------------------------------------------------

    def _bare_classes(self, code: str) -> list[Declaration]:
        found = []
        for cm in _CLASS.finditer(code):
            raw = cm.group("name")
            if raw in RESERVED_CLASS_NAMES:
                continue
            name = canonicalize(raw, "model")
            close = find_closing(code, cm.end() - 1)
            if name is None or close is None:
                continue
            fields = class_fields(code, Span(cm.end(), close))
            if fields:
                found.append(
                    Declaration(name, "decorated", fields, cm.start())
                )
        return found
