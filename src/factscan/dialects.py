"""Field-declaration dialects funneled into one FieldRecord shape.

Each dialect has its own fragment grammar:

- ``document``: mongoose-style ``name: String`` or
  ``name: { type: String, required: true, enum: [...] }``
- ``relational``: sequelize-style ``name: DataTypes.STRING`` or
  ``name: { type: DataTypes.INTEGER, allowNull: false }``
- ``declarative``: prisma-style ``name Int? @default(0)`` lines
- ``decorated``: typeorm-style ``@Column({ nullable: false }) name: string``
- ``validation``: Joi / yup / zod chains ``name: Joi.string().required()``
- ``interface``: TypeScript ``name?: string`` members
- ``inferred``: object-literal values seen in handler code

Type tokens map through a fixed table per dialect. Unmapped tokens pass
through verbatim; ``Unknown`` only means no type token was present.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from factscan.textscan import (
    find_closing,
    iter_entries,
    split_top_level,
    string_literal,
)

Dialect = Literal[
    "document",
    "relational",
    "declarative",
    "decorated",
    "validation",
    "interface",
    "inferred",
]

UNKNOWN = "Unknown"

DOCUMENT_TYPES: dict[str, str] = {
    "String": "String",
    "Number": "Number",
    "Boolean": "Boolean",
    "Date": "Date",
    "ObjectId": "ObjectId",
    "Mixed": "Mixed",
    "Array": "Array",
    "Buffer": "Buffer",
    "Map": "Map",
    "Decimal128": "Number",
    "Object": "Object",
}

RELATIONAL_TYPES: dict[str, str] = {
    "STRING": "String",
    "CHAR": "String",
    "CITEXT": "String",
    "INTEGER": "Number",
    "BIGINT": "Number",
    "SMALLINT": "Number",
    "FLOAT": "Number",
    "DOUBLE": "Number",
    "DECIMAL": "Number",
    "REAL": "Number",
    "BOOLEAN": "Boolean",
    "DATE": "Date",
    "DATEONLY": "Date",
    "TIME": "Date",
    "TEXT": "Text",
    "JSON": "JSON",
    "JSONB": "JSONB",
    "ENUM": "Enum",
    "UUID": "UUID",
    "UUIDV4": "UUID",
    "BLOB": "Buffer",
}

DECLARATIVE_TYPES: dict[str, str] = {
    "String": "String",
    "Int": "Number",
    "BigInt": "Number",
    "Float": "Number",
    "Decimal": "Number",
    "Boolean": "Boolean",
    "DateTime": "Date",
    "Json": "JSON",
    "Bytes": "Buffer",
}

TYPESCRIPT_TYPES: dict[str, str] = {
    "string": "String",
    "String": "String",
    "number": "Number",
    "Number": "Number",
    "bigint": "Number",
    "boolean": "Boolean",
    "Boolean": "Boolean",
    "Date": "Date",
    "any": "Mixed",
    "unknown": "Mixed",
    "object": "Object",
    "Record": "Object",
    "Buffer": "Buffer",
}

VALIDATION_TYPES: dict[str, str] = {
    "string": "String",
    "number": "Number",
    "boolean": "Boolean",
    "bool": "Boolean",
    "date": "Date",
    "array": "Array",
    "object": "Object",
    "any": "Mixed",
    "alternatives": "Mixed",
    "bigint": "Number",
}

OPENAPI_TYPES: dict[str, str] = {
    "string": "String",
    "integer": "Number",
    "number": "Number",
    "boolean": "Boolean",
    "object": "Object",
    "array": "Array",
}

# column types used when a decorated property carries no TS annotation
COLUMN_TYPES: dict[str, str] = {
    "varchar": "String",
    "text": "Text",
    "char": "String",
    "int": "Number",
    "integer": "Number",
    "bigint": "Number",
    "float": "Number",
    "decimal": "Number",
    "boolean": "Boolean",
    "bool": "Boolean",
    "date": "Date",
    "timestamp": "Date",
    "datetime": "Date",
    "json": "JSON",
    "jsonb": "JSONB",
    "uuid": "UUID",
    "enum": "Enum",
}

_VALIDATION_RECEIVER = re.compile(r"^\s*(?:Joi|joi|yup|Yup|z)\b")
_CHAIN_CALL = re.compile(r"\s*\.\s*([A-Za-z_$][\w$]*)\s*\(")
_PRISMA_LINE = re.compile(
    r"^(?P<name>[A-Za-z_]\w*)\s+(?P<type>[A-Za-z_]\w*)"
    r"(?P<array>\[\])?(?P<optional>\?)?(?P<rest>.*)$"
)
_PROPERTY = re.compile(
    r"(?:(?:public|private|protected|readonly|declare)\s+)*"
    r"(?P<name>[A-Za-z_$][\w$]*)\s*(?P<mark>[?!])?\s*:\s*(?P<type>[^;=]+)"
    r"(?:=\s*(?P<init>[^;]+))?;?\s*$",
    re.S,
)
_DECORATOR = re.compile(r"@(?P<name>[A-Za-z_]\w*)\s*\(")
_NUMBER = re.compile(r"^-?\d+(?:\.\d+)?$")


@dataclass(frozen=True)
class FieldRecord:
    """One normalized schema field."""

    name: str
    normalized_type: str = UNKNOWN
    required: bool = False
    optional: bool = False
    default: str | None = None
    is_array: bool = False
    enum_values: tuple[str, ...] = ()
    description: str | None = None

    def render(self) -> str:
        """Render as the output vocabulary string.

        ``Enum(pending, paid) (required, default: 'pending')``
        """
        if self.enum_values:
            base = f"Enum({', '.join(self.enum_values)})"
        else:
            base = self.normalized_type
        if self.is_array:
            base += "[]"
        modifiers = []
        if self.required:
            modifiers.append("required")
        if self.optional:
            modifiers.append("optional")
        if self.default is not None:
            modifiers.append(f"default: {self.default}")
        if self.description:
            modifiers.append(self.description)
        if modifiers:
            return f"{base} ({', '.join(modifiers)})"
        return base


FieldMap = dict[str, FieldRecord]


# ---------------------------------------------------------------------------
# shared helpers
# ---------------------------------------------------------------------------


def _last_segment(token: str) -> str:
    return token.strip().rsplit(".", 1)[-1]


def _strip_call(token: str) -> tuple[str, str | None]:
    """Split ``STRING(255)`` into ``("STRING", "255")``."""
    token = token.strip()
    paren = token.find("(")
    if paren == -1:
        return token, None
    close = find_closing(token, paren)
    args = token[paren + 1 : close] if close is not None else None
    return token[:paren].strip(), args


def literal_list(text: str) -> tuple[str, ...]:
    """Values of a literal list body such as ``'a', "b", 3``."""
    values = []
    for piece in split_top_level(text.strip().strip("[]"), ","):
        value = string_literal(piece.text)
        values.append(value if value is not None else piece.text.strip())
    return tuple(v for v in values if v)


def _is_true(value: str | None) -> bool:
    if value is None:
        return False
    value = value.strip()
    # mongoose allows required: [true, 'message']
    return value == "true" or value.startswith("[true")


def _entries(body: str) -> dict[str, str | None]:
    return {e.key: e.value for e in iter_entries(body)}


def _object_body(value: str) -> str | None:
    value = value.strip()
    if not value.startswith("{"):
        return None
    close = find_closing(value, 0)
    if close is None:
        return None
    return value[1:close]


def _split_name_value(raw: str) -> tuple[str, str] | None:
    entries = list(iter_entries(raw))
    if len(entries) != 1 or entries[0].value is None:
        return None
    return entries[0].key, entries[0].value


# ---------------------------------------------------------------------------
# document (mongoose)
# ---------------------------------------------------------------------------


def _document_type(token: str) -> tuple[str, bool]:
    token = token.strip()
    if token.startswith("["):
        inner = token[1:-1].strip() if token.endswith("]") else ""
        if not inner:
            return "Array", False
        first = split_top_level(inner, ",")[0].text
        body = _object_body(first)
        if body is not None:
            entries = _entries(body)
            if "type" in entries and entries["type"]:
                return _document_type(entries["type"])[0], True
            return "Object", True
        return _document_type(first)[0], True
    if token.startswith("{"):
        return "Object", False
    name = _last_segment(_strip_call(token)[0])
    if not name:
        return UNKNOWN, False
    return DOCUMENT_TYPES.get(name, name), False


def normalize_document(name: str, value: str) -> FieldRecord:
    body = _object_body(value)
    if body is None:
        type_name, is_array = _document_type(value)
        return FieldRecord(name, type_name, is_array=is_array)

    entries = _entries(body)
    if "type" not in entries:
        # nested sub-document
        return FieldRecord(name, "Object")
    type_token = entries.get("type") or ""
    type_name, is_array = _document_type(type_token)
    if not type_token.strip():
        type_name = UNKNOWN

    enum_values: tuple[str, ...] = ()
    enum_raw = entries.get("enum")
    if enum_raw:
        enum_body = _object_body(enum_raw)
        if enum_body is not None:
            enum_raw = _entries(enum_body).get("values") or ""
        if enum_raw.strip().startswith("["):
            enum_values = literal_list(enum_raw)

    return FieldRecord(
        name,
        type_name,
        required=_is_true(entries.get("required")),
        default=(entries.get("default") or None),
        is_array=is_array,
        enum_values=enum_values,
    )


def is_detailed(value: str | None) -> bool:
    """Whether a ``name: value`` member uses the per-field object form."""
    return value is not None and value.strip().startswith("{")


# ---------------------------------------------------------------------------
# relational (sequelize)
# ---------------------------------------------------------------------------


def _relational_type(token: str) -> tuple[str, tuple[str, ...], bool]:
    head, args = _strip_call(token)
    key = _last_segment(head)
    if key == "ARRAY" and args:
        inner, _, _ = _relational_type(args)
        return inner, (), True
    if not key:
        return UNKNOWN, (), False
    enum_values: tuple[str, ...] = ()
    if key == "ENUM" and args:
        enum_values = literal_list(args)
    return RELATIONAL_TYPES.get(key, key), enum_values, False


def normalize_relational(name: str, value: str) -> FieldRecord:
    body = _object_body(value)
    if body is None:
        type_name, enum_values, is_array = _relational_type(value)
        return FieldRecord(
            name, type_name, is_array=is_array, enum_values=enum_values
        )

    entries = _entries(body)
    type_token = entries.get("type")
    if type_token:
        type_name, enum_values, is_array = _relational_type(type_token)
    else:
        type_name, enum_values, is_array = UNKNOWN, (), False
    values_raw = entries.get("values")
    if values_raw and values_raw.strip().startswith("["):
        enum_values = literal_list(values_raw)
    allow_null = entries.get("allowNull")
    return FieldRecord(
        name,
        type_name,
        required=allow_null is not None and allow_null.strip() == "false",
        default=entries.get("defaultValue") or None,
        is_array=is_array,
        enum_values=enum_values,
    )


# ---------------------------------------------------------------------------
# declarative (prisma)
# ---------------------------------------------------------------------------


def _prisma_default(rest: str) -> str | None:
    idx = rest.find("@default(")
    if idx == -1:
        return None
    open_idx = idx + len("@default")
    close = find_closing(rest, open_idx)
    if close is None:
        return None
    return rest[open_idx + 1 : close].strip()


def normalize_declarative(line: str) -> FieldRecord | None:
    line = line.split("//", 1)[0].strip()
    if not line or line.startswith("@"):
        return None
    m = _PRISMA_LINE.match(line)
    if not m:
        return None
    raw_type = m.group("type")
    return FieldRecord(
        m.group("name"),
        DECLARATIVE_TYPES.get(raw_type, raw_type),
        optional=bool(m.group("optional")),
        default=_prisma_default(m.group("rest")),
        is_array=bool(m.group("array")),
    )


# ---------------------------------------------------------------------------
# typescript annotations (decorated + interface)
# ---------------------------------------------------------------------------


def _typescript_type(
    annotation: str,
) -> tuple[str, bool, tuple[str, ...], bool]:
    """Return ``(type, is_array, enum_values, nullable)``."""
    parts = [p.text for p in split_top_level(annotation.strip(), "|")]
    nullable = any(p in ("null", "undefined") for p in parts)
    parts = [p for p in parts if p not in ("null", "undefined")]
    if not parts:
        return UNKNOWN, False, (), nullable

    literals = [string_literal(p) for p in parts]
    if len(parts) > 1 and all(v is not None for v in literals):
        return "Enum", False, tuple(v for v in literals if v), nullable

    token = parts[0] if len(parts) == 1 else " | ".join(parts)
    is_array = False
    if token.endswith("[]"):
        token, is_array = token[:-2].strip(), True
    elif token.startswith("Array<") and token.endswith(">"):
        token, is_array = token[6:-1].strip(), True
    if token.startswith("{"):
        return "Object", is_array, (), nullable
    generic = token.find("<")
    key = token[:generic] if generic > 0 else token
    mapped = TYPESCRIPT_TYPES.get(key)
    if mapped is None:
        mapped = token
    return mapped, is_array, (), nullable


def _decorator_calls(text: str) -> list[tuple[str, str, int]]:
    """``(name, args, end)`` for each ``@Name(...)`` decorator in order."""
    calls = []
    for m in _DECORATOR.finditer(text):
        close = find_closing(text, m.end() - 1)
        if close is None:
            continue
        calls.append((m.group("name"), text[m.end() : close], close + 1))
    return calls


def normalize_decorated(raw: str) -> FieldRecord | None:
    """Normalize a decorated class property with its decorators."""
    calls = _decorator_calls(raw)
    prop_start = calls[-1][2] if calls else 0
    m = _PROPERTY.search(raw[prop_start:].strip())
    if not m:
        return None

    type_name, is_array, enum_values, ts_nullable = _typescript_type(
        m.group("type")
    )
    required = False
    init = m.group("init")
    default = init.strip() if init else None
    for deco, args, _ in calls:
        if deco.startswith("Primary"):
            required = True
        if deco in ("CreateDateColumn", "UpdateDateColumn"):
            type_name = "Date"
        options: dict[str, str | None] = {}
        for piece in split_top_level(args, ","):
            literal = string_literal(piece.text)
            if literal is not None and type_name == UNKNOWN:
                type_name = COLUMN_TYPES.get(literal, literal)
            body = _object_body(piece.text)
            if body is not None:
                options.update(_entries(body))
        if (options.get("nullable") or "").strip() == "false":
            required = True
        if options.get("default"):
            default = options["default"]
        enum_raw = options.get("enum")
        if enum_raw and enum_raw.strip().startswith("["):
            enum_values = literal_list(enum_raw)

    return FieldRecord(
        m.group("name"),
        type_name,
        required=required and not ts_nullable,
        default=default,
        is_array=is_array,
        enum_values=enum_values,
    )


def normalize_interface(raw: str) -> FieldRecord | None:
    raw = raw.strip()
    if "=>" in raw or re.match(r"^[\w$]+\??\s*\(", raw):
        # method signatures are not fields
        return None
    m = _PROPERTY.search(raw)
    if not m:
        return None
    type_text = m.group("type").strip()
    type_name, is_array, enum_values, nullable = _typescript_type(type_text)
    return FieldRecord(
        m.group("name"),
        type_name,
        optional=m.group("mark") == "?" or nullable,
        is_array=is_array,
        enum_values=enum_values,
    )


# ---------------------------------------------------------------------------
# validation chains (Joi / yup / zod)
# ---------------------------------------------------------------------------


def call_chain(value: str) -> list[tuple[str, str]]:
    """``Joi.string().max(5).required()`` -> ``[(string, ''), ...]``."""
    m = _VALIDATION_RECEIVER.match(value)
    if not m:
        return []
    calls = []
    pos = m.end()
    while True:
        cm = _CHAIN_CALL.match(value, pos)
        if not cm:
            break
        close = find_closing(value, cm.end() - 1)
        if close is None:
            break
        calls.append((cm.group(1), value[cm.end() : close]))
        pos = close + 1
    return calls


def normalize_validation(name: str, value: str) -> FieldRecord:
    calls = call_chain(value)
    if not calls:
        # reference to another schema constant, keep verbatim
        token = value.strip()
        return FieldRecord(name, token or UNKNOWN)

    base, base_args = calls[0]
    type_name = VALIDATION_TYPES.get(base.lower(), base)
    is_array = False
    enum_values: tuple[str, ...] = ()
    required = optional = False
    default = None

    if base == "enum":
        type_name = "Enum"
        enum_values = literal_list(base_args)
    for method, args in calls[1:]:
        if method == "required":
            required = True
        elif method in ("optional", "nullable", "nullish"):
            optional = True
        elif method == "default":
            default = args.strip() or None
        elif method in ("valid", "oneOf", "allow") and args.strip():
            values = literal_list(args)
            if method == "allow":
                if "null" in values or "" in values:
                    optional = True
                continue
            enum_values = values
        elif method in ("items", "of") and type_name == "Array" and args:
            inner = normalize_validation(name, args)
            type_name = inner.normalized_type
            enum_values = inner.enum_values or enum_values
            is_array = True

    return FieldRecord(
        name,
        type_name,
        required=required,
        optional=optional and not required,
        default=default,
        is_array=is_array,
        enum_values=enum_values,
    )


# ---------------------------------------------------------------------------
# values inferred from handler code
# ---------------------------------------------------------------------------


def infer_literal_type(value: str | None) -> str:
    if value is None:
        return UNKNOWN
    value = value.strip()
    if not value:
        return UNKNOWN
    if value[0] in "'\"`":
        return "String"
    if value in ("true", "false"):
        return "Boolean"
    if _NUMBER.match(value):
        return "Number"
    if value.startswith("["):
        return "Array"
    if value.startswith("{"):
        return "Object"
    if value.startswith("new Date"):
        return "Date"
    return UNKNOWN


def normalize_inferred(name: str, value: str | None) -> FieldRecord:
    return FieldRecord(name, infer_literal_type(value))


# ---------------------------------------------------------------------------
# openapi (parsed yaml)
# ---------------------------------------------------------------------------


def normalize_openapi(
    name: str,
    schema: Mapping[str, Any] | None,
    required: bool = False,
) -> FieldRecord:
    """Normalize one OpenAPI ``properties`` entry (already YAML-parsed)."""
    if not isinstance(schema, Mapping):
        return FieldRecord(name, required=required)
    raw_type = schema.get("type")
    is_array = False
    if raw_type == "array" and isinstance(schema.get("items"), Mapping):
        is_array = True
        schema = schema["items"]
        raw_type = schema.get("type")
    fmt = schema.get("format")
    if raw_type == "string" and fmt in ("date", "date-time"):
        type_name = "Date"
    elif raw_type:
        type_name = OPENAPI_TYPES.get(str(raw_type), str(raw_type))
    elif "$ref" in schema:
        type_name = str(schema["$ref"]).rsplit("/", 1)[-1]
    else:
        type_name = UNKNOWN
    enum_raw = schema.get("enum")
    enum_values = (
        tuple(str(v) for v in enum_raw) if isinstance(enum_raw, list) else ()
    )
    default = schema.get("default")
    description = schema.get("description")
    return FieldRecord(
        name,
        type_name,
        required=required,
        default=None if default is None else str(default),
        is_array=is_array,
        enum_values=enum_values,
        description=str(description) if description else None,
    )


# ---------------------------------------------------------------------------
# entry point and merge rules
# ---------------------------------------------------------------------------


def normalize_field(dialect: Dialect, raw: str) -> FieldRecord | None:
    """Normalize one raw field fragment of ``dialect``.

    Returns None when the fragment carries no field name.
    """
    if dialect == "declarative":
        return normalize_declarative(raw)
    if dialect == "decorated":
        return normalize_decorated(raw)
    if dialect == "interface":
        return normalize_interface(raw)

    pair = _split_name_value(raw)
    if pair is None:
        return None
    name, value = pair
    if dialect == "document":
        return normalize_document(name, value)
    if dialect == "relational":
        return normalize_relational(name, value)
    if dialect == "validation":
        return normalize_validation(name, value)
    return normalize_inferred(name, value)


def merge_pass(
    fields: FieldMap,
    records: Iterable[FieldRecord],
    *,
    overwrite: bool,
) -> FieldMap:
    """Fold one detector pass into ``fields`` in place.

    Detailed passes run with ``overwrite=True`` so the latest detailed
    definition wins; simple passes only fill names not yet present.
    """
    for record in records:
        if overwrite or record.name not in fields:
            fields[record.name] = record
    return fields


def merge_declaration(
    snapshots: dict[str, FieldMap],
    name: str,
    fields: FieldMap,
) -> None:
    """Record a top-level declaration; a later non-empty one replaces."""
    if fields or name not in snapshots:
        snapshots[name] = dict(fields)


def render_fields(fields: Mapping[str, FieldRecord]) -> dict[str, str]:
    return {name: record.render() for name, record in fields.items()}
