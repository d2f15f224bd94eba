"""Request/response payload fragments.

Three producer families feed the association engine, ranked inside each
scope tier in this order:

1. validation schemas (rank 0): ``celebrate({ body: Joi.object(...) })``,
   inline ``Joi.object``/``yup.object``/``z.object`` arguments, schema
   constants referenced by name, TypeScript ``*Request``/``*Response``/
   ``*DTO`` types linked by naming convention
2. ``@swagger`` / ``@openapi`` JSDoc blocks, parsed as YAML (rank 1)
3. handler inference (rank 2): ``req.body`` destructuring and member
   access, ``res.json({...})`` literals; error responses are ignored
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import structlog
import yaml

from factscan.dialects import (
    FieldMap,
    normalize_inferred,
    normalize_interface,
    normalize_openapi,
    normalize_validation,
)
from factscan.extract.models import class_fields
from factscan.extract.routes import RouteSite
from factscan.facts import (
    HTTP_METHODS,
    RANK_DOCS,
    RANK_HANDLER,
    RANK_VALIDATION,
    ContextFragment,
    route_key,
)
from factscan.paths import normalize_path
from factscan.textscan import (
    Piece,
    Span,
    blank_comments,
    call_arguments,
    find_closing,
    iter_entries,
    split_top_level,
)

logger = structlog.get_logger(__name__)

REQUEST_SEGMENTS = ("body", "query", "params")
SUCCESS_CODES = ("200", "201")
WRITE_METHODS = ("POST", "PUT", "PATCH")

# leading verb of a type name -> methods it documents
VERB_METHODS: dict[str, tuple[str, ...]] = {
    "Create": ("POST",),
    "Add": ("POST",),
    "Update": ("PUT", "PATCH"),
    "Patch": ("PATCH",),
    "Delete": ("DELETE",),
    "Remove": ("DELETE",),
    "Get": ("GET",),
    "List": ("GET",),
}

_SCHEMA_OBJECT = re.compile(r"\b(?:Joi|joi|yup|Yup|z)\s*\.\s*object\s*\(")
_SCHEMA_SHAPE = re.compile(r"\s*\.\s*(?:shape|keys)\s*\(")
_SCHEMA_CONST = re.compile(
    r"(?:const|let|var)\s+(?P<name>[A-Za-z_$][\w$]*)\s*=\s*"
)
_CELEBRATE = re.compile(r"\bcelebrate\s*\(")
_IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*")

_INTERFACE = re.compile(
    r"\binterface\s+(?P<name>[A-Za-z_$][\w$]*)"
    r"(?:\s+extends\s+[^{]+)?\s*\{"
)
_TYPE_ALIAS = re.compile(r"\btype\s+(?P<name>[A-Za-z_$][\w$]*)\s*=\s*\{")
_TYPE_CLASS = re.compile(
    r"\bclass\s+(?P<name>[A-Za-z_$][\w$]*)"
    r"(?:\s+(?:extends|implements)\s+[^{]+)?\s*\{"
)
_TYPE_NAME = re.compile(
    r"^(?P<verb>Create|Add|Update|Patch|Delete|Remove|Get|List)?"
    r"(?P<stem>[A-Z][A-Za-z0-9]*?)"
    r"(?P<kind>Request|Response|DTO|Dto)$"
)
_BODY_PARAM = re.compile(
    r"@Body\s*\([^)]*\)\s*[A-Za-z_$][\w$]*\s*:\s*(?P<type>[A-Za-z_$][\w$]*)"
)

_SWAGGER_BLOCK = re.compile(r"/\*\*(?P<body>.*?)\*/", re.S)
_SWAGGER_TAG = re.compile(r"@(?:swagger|openapi)\b")
_DOC_PREFIX = re.compile(r"^\s*\* ?", re.M)

_BODY_DESTRUCTURE = re.compile(
    r"(?:const|let|var)\s*\{"
    r"(?P<fields>[^}]*)\}\s*=\s*(?:await\s+)?"
    r"(?:req|request|ctx\.request)\s*\.\s*(?:body\b|json\s*\(\s*\))"
)
_BODY_MEMBER = re.compile(
    r"\b(?:req|request)\s*\.\s*body\s*\.\s*(?P<name>[A-Za-z_$][\w$]*)"
)
_RESPONSE_CALL = re.compile(
    r"\b(?:res|response|reply)\s*"
    r"(?:\.\s*(?:status|code)\s*\(\s*(?P<status>[^)]*)\))?"
    r"\s*\.\s*(?:json|send)\s*\("
)
_NEXT_RESPONSE = re.compile(r"\b(?:NextResponse|Response)\s*\.\s*json\s*\(")
_STATUS_OPTION = re.compile(r"\bstatus\s*:\s*(?P<status>\d{3})")


def _is_error_status(status: str | None) -> bool:
    status = (status or "").strip()
    return status.isdigit() and int(status) >= 400


def _object_arg(code: str, open_paren: int) -> str | None:
    """Body of the first argument when it is an object literal."""
    args = call_arguments(code, open_paren)
    if not args or not args[0].text.startswith("{"):
        return None
    text = args[0].text
    close = find_closing(text, 0)
    return text[1:close] if close is not None else None


def validation_object_fields(code: str, match: re.Match) -> FieldMap:
    """Fields of a ``Joi.object({...})`` (or ``yup.object().shape``)."""
    open_paren = match.end() - 1
    body = _object_arg(code, open_paren)
    if body is None:
        close = find_closing(code, open_paren)
        shape = _SCHEMA_SHAPE.match(code, close + 1) if close else None
        if shape is None:
            return {}
        body = _object_arg(code, shape.end() - 1)
        if body is None:
            return {}
    fields: FieldMap = {}
    for entry in iter_entries(body):
        if entry.value is None:
            continue
        fields[entry.key] = normalize_validation(entry.key, entry.value)
    return fields


def schema_constants(code: str) -> dict[str, FieldMap]:
    """``const orderSchema = Joi.object({...})`` declarations by name."""
    constants: dict[str, FieldMap] = {}
    for m in _SCHEMA_CONST.finditer(code):
        om = _SCHEMA_OBJECT.match(code, m.end())
        if om is None:
            continue
        fields = validation_object_fields(code, om)
        if fields:
            constants[m.group("name")] = fields
    return constants


def type_fields(code: str) -> dict[str, tuple[FieldMap, int]]:
    """Fields of interfaces, object type aliases and classes by name."""
    found: dict[str, tuple[FieldMap, int]] = {}
    for pattern in (_INTERFACE, _TYPE_ALIAS):
        for m in pattern.finditer(code):
            close = find_closing(code, m.end() - 1)
            if close is None:
                continue
            fields: FieldMap = {}
            for piece in split_top_level(code[m.end() : close], ";,\n"):
                record = normalize_interface(piece.text)
                if record is not None:
                    fields[record.name] = record
            found[m.group("name")] = (fields, m.start())
    for m in _TYPE_CLASS.finditer(code):
        if not _TYPE_NAME.match(m.group("name")):
            continue
        close = find_closing(code, m.end() - 1)
        if close is None:
            continue
        found[m.group("name")] = (
            class_fields(code, Span(m.end(), close)),
            m.start(),
        )
    return found


def _documented_fields(schema: Any) -> FieldMap:
    if not isinstance(schema, Mapping):
        return {}
    if schema.get("type") == "array" and isinstance(
        schema.get("items"), Mapping
    ):
        schema = schema["items"]
    properties = schema.get("properties")
    if not isinstance(properties, Mapping):
        return {}
    required = schema.get("required")
    required_names = (
        {str(r) for r in required} if isinstance(required, list) else set()
    )
    fields: FieldMap = {}
    for name, prop in properties.items():
        name = str(name)
        fields[name] = normalize_openapi(name, prop, name in required_names)
    return fields


def _content_fields(node: Any) -> FieldMap:
    """Fields of the first media type schema under ``content``."""
    if not isinstance(node, Mapping):
        return {}
    content = node.get("content")
    if isinstance(content, Mapping):
        for media in content.values():
            if isinstance(media, Mapping) and "schema" in media:
                return _documented_fields(media["schema"])
    # swagger 2 style
    return _documented_fields(node.get("schema"))


def parse_swagger_block(comment: str) -> dict[str, Any] | None:
    """YAML document following the ``@swagger`` tag of a JSDoc body."""
    text = _DOC_PREFIX.sub("", comment)
    tag = _SWAGGER_TAG.search(text)
    if tag is None:
        return None
    try:
        data = yaml.safe_load(text[tag.end() :])
    except yaml.YAMLError as e:
        logger.debug("swagger block unparseable", error=str(e))
        return None
    return data if isinstance(data, dict) else None


class PayloadFragmentExtractor:
    """Produces payload :class:`ContextFragment` values for one file."""

    def fragments(
        self,
        text: str,
        sites: list[RouteSite],
        path: str = "",
    ) -> list[ContextFragment]:
        code = blank_comments(text)
        constants = schema_constants(code)
        types = type_fields(code)
        found: list[ContextFragment] = []
        for site in sites:
            found.extend(self._validation(code, site, constants, types, path))
            found.extend(self._handler(code, site, path))
        found.extend(self._naming_convention(types, path))
        found.extend(self._swagger(text, sites, path))
        return [f for f in found if f.request or f.response]

    # -- validation schemas -----------------------------------------------

    def _validation(
        self,
        code: str,
        site: RouteSite,
        constants: dict[str, FieldMap],
        types: dict[str, tuple[FieldMap, int]],
        path: str,
    ) -> list[ContextFragment]:
        request: FieldMap = {}
        for piece in site.middleware:
            for name, record in self._middleware_fields(
                code, piece, constants
            ).items():
                request.setdefault(name, record)
        body_param = _BODY_PARAM.search(site.params)
        if body_param and body_param.group("type") in types:
            for name, record in types[body_param.group("type")][0].items():
                request.setdefault(name, record)
        if not request:
            return []
        return [
            ContextFragment(
                scope="route-local",
                offset=site.descriptor.text_offset,
                rank=RANK_VALIDATION,
                route_key=site.descriptor.key,
                request=request,
                source=path,
            )
        ]

    def _middleware_fields(
        self,
        code: str,
        piece: Piece,
        constants: dict[str, FieldMap],
    ) -> FieldMap:
        end = piece.offset + len(piece.text)
        fields: FieldMap = {}
        celebrate = _CELEBRATE.search(code, piece.offset, end)
        if celebrate is not None:
            segments = _object_arg(code, celebrate.end() - 1) or ""
            for entry in iter_entries(segments):
                key = entry.key.strip("[]").rsplit(".", 1)[-1].lower()
                if key not in REQUEST_SEGMENTS or entry.value is None:
                    continue
                value = entry.value.strip()
                if value in constants:
                    fields.update(constants[value])
                    continue
                om = _SCHEMA_OBJECT.match(value)
                if om is not None:
                    fields.update(validation_object_fields(value, om))
            return fields

        for om in _SCHEMA_OBJECT.finditer(code, piece.offset, end):
            fields.update(validation_object_fields(code, om))
        for name in _IDENTIFIER.findall(piece.text):
            if name in constants:
                fields.update(constants[name])
        return fields

    def _naming_convention(
        self, types: dict[str, tuple[FieldMap, int]], path: str
    ) -> list[ContextFragment]:
        found = []
        for name, (fields, offset) in types.items():
            m = _TYPE_NAME.match(name)
            if m is None or not fields:
                continue
            hint = m.group("stem").lower()
            verb = m.group("verb")
            is_response = m.group("kind") == "Response"
            if verb:
                methods = VERB_METHODS[verb]
            else:
                methods = () if is_response else WRITE_METHODS
            found.append(
                ContextFragment(
                    scope="path-scoped",
                    offset=offset,
                    rank=RANK_VALIDATION,
                    path_hint=hint,
                    methods=methods,
                    request={} if is_response else dict(fields),
                    response=dict(fields) if is_response else {},
                    source=path,
                )
            )
        return found

    # -- api docs -----------------------------------------------------------

    def _swagger(
        self, text: str, sites: list[RouteSite], path: str
    ) -> list[ContextFragment]:
        keys = {site.descriptor.key for site in sites}
        found = []
        for block in _SWAGGER_BLOCK.finditer(text):
            if not _SWAGGER_TAG.search(block.group("body")):
                continue
            doc = parse_swagger_block(block.group("body"))
            if doc is None:
                continue
            for doc_path, operations in doc.items():
                if not isinstance(operations, Mapping):
                    continue
                for method, operation in operations.items():
                    if not isinstance(operation, Mapping):
                        continue
                    if str(method).upper() not in HTTP_METHODS:
                        continue
                    key = route_key(str(method), normalize_path(str(doc_path)))
                    if key not in keys:
                        key = self._next_route(
                            sites, block.end(), str(method)
                        ) or key
                    responses = operation.get("responses")
                    response: FieldMap = {}
                    if isinstance(responses, Mapping):
                        for code, node in responses.items():
                            if str(code) in SUCCESS_CODES:
                                response = _content_fields(node)
                                break
                    found.append(
                        ContextFragment(
                            scope="route-local",
                            offset=block.start(),
                            rank=RANK_DOCS,
                            route_key=key,
                            request=_content_fields(
                                operation.get("requestBody")
                            ),
                            response=response,
                            source=path,
                        )
                    )
        return found

    @staticmethod
    def _next_route(
        sites: list[RouteSite], offset: int, method: str
    ) -> str | None:
        """Key of the first route of ``method`` declared after ``offset``."""
        for site in sites:
            descriptor = site.descriptor
            if (
                descriptor.text_offset >= offset
                and descriptor.method == method.upper()
            ):
                return descriptor.key
        return None

    # -- handler inference --------------------------------------------------

    def _handler(
        self, code: str, site: RouteSite, path: str
    ) -> list[ContextFragment]:
        span = site.handler
        if span is None:
            return []
        body = span.slice(code)
        request: FieldMap = {}
        for m in _BODY_DESTRUCTURE.finditer(body):
            for piece in split_top_level(m.group("fields"), ","):
                name = piece.text.split(":", 1)[0].split("=", 1)[0].strip()
                if name.startswith("...") or not name.isidentifier():
                    continue
                default = (
                    piece.text.split("=", 1)[1] if "=" in piece.text else None
                )
                request.setdefault(name, normalize_inferred(name, default))
        for m in _BODY_MEMBER.finditer(body):
            name = m.group("name")
            request.setdefault(name, normalize_inferred(name, None))

        response: FieldMap = {}
        for m in _RESPONSE_CALL.finditer(body):
            if _is_error_status(m.group("status")):
                continue
            self._literal_fields(body, m.end() - 1, response)
        for m in _NEXT_RESPONSE.finditer(body):
            args = call_arguments(body, m.end() - 1)
            if len(args) > 1:
                status = _STATUS_OPTION.search(args[1].text)
                if status and _is_error_status(status.group("status")):
                    continue
            self._literal_fields(body, m.end() - 1, response)

        if not request and not response:
            return []
        return [
            ContextFragment(
                scope="route-local",
                offset=site.descriptor.text_offset,
                rank=RANK_HANDLER,
                route_key=site.descriptor.key,
                request=request,
                response=response,
                source=path,
            )
        ]

    @staticmethod
    def _literal_fields(body: str, open_paren: int, into: FieldMap) -> None:
        literal = _object_arg(body, open_paren)
        if literal is None:
            return
        for entry in iter_entries(literal):
            into.setdefault(
                entry.key, normalize_inferred(entry.key, entry.value)
            )
