"""Route declarations.

Detectors, in order: express/koa style ``router.get('/p', ...)`` calls,
chained ``router.route('/p').get(...).post(...)``, NestJS controllers
(``@Controller('prefix')`` + ``@Get(':id')``), and Next.js file routes.
Each detector yields :class:`RouteSite` values that keep the pieces the
fragment producers need (middleware arguments, handler region,
decorators); :meth:`RouteExtractor.extract` reduces them to descriptors.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath

import structlog

from factscan.facts import RouteDescriptor
from factscan.paths import (
    is_internal,
    is_valid_path,
    join_paths,
    normalize_path,
)
from factscan.textscan import (
    Decorator,
    Piece,
    Span,
    blank_comments,
    block_after,
    call_arguments,
    decorators_in,
    find_closing,
    function_body,
    iter_entries,
    iter_members,
    split_top_level,
    string_literal,
)

logger = structlog.get_logger(__name__)

NEST_VERBS: dict[str, str] = {
    "Get": "GET",
    "Post": "POST",
    "Put": "PUT",
    "Patch": "PATCH",
    "Delete": "DELETE",
}

RECEIVER = (
    r"(?<![\w$])(?:app|router|server|api"
    r"|[A-Za-z_$][\w$]*(?:Router|App|router|Routes))"
)
_VERB_CALL = re.compile(
    RECEIVER + r"\s*\.\s*(?P<verb>get|post|put|patch|delete)\s*\("
)
_ROUTE_CALL = re.compile(RECEIVER + r"\s*\.\s*route\s*\(")
_CHAIN_VERB = re.compile(r"\s*\.\s*(?P<verb>get|post|put|patch|delete)\s*\(")
_CONTROLLER = re.compile(r"@Controller\s*\(")
_CLASS_KW = re.compile(r"\bclass\s+(?P<name>[A-Za-z_$][\w$]*)")
_NEXT_EXPORT = re.compile(
    r"export\s+(?:async\s+)?function\s+(?P<m1>GET|POST|PUT|PATCH|DELETE)\b"
    r"|export\s+const\s+(?P<m2>GET|POST|PUT|PATCH|DELETE)\s*="
)
_PAGES_METHOD = re.compile(
    r"req\.method\s*===?\s*['\"](?P<m1>GET|POST|PUT|PATCH|DELETE)['\"]"
    r"|case\s+['\"](?P<m2>GET|POST|PUT|PATCH|DELETE)['\"]\s*:"
)


# ---------------------------------------------------------------------------
# route sites
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ControllerSite:
    """A NestJS controller class and its class-level decorators."""

    prefix: str
    decorators: tuple[Decorator, ...]
    span: Span
    offset: int


@dataclass(frozen=True)
class RouteSite:
    descriptor: RouteDescriptor
    style: str
    middleware: tuple[Piece, ...] = ()
    handler: Span | None = None
    decorators: tuple[Decorator, ...] = ()
    controller: ControllerSite | None = None
    params: str = ""


def _descriptor(
    method: str,
    raw_path: str,
    offset: int,
    span: tuple[int, int],
    source_file: str,
) -> RouteDescriptor | None:
    path = normalize_path(raw_path)
    if not is_valid_path(path):
        logger.debug("route skipped", path=path, file=source_file)
        return None
    return RouteDescriptor(
        method=method.upper(),
        path=path,
        visibility="internal" if is_internal(path) else "public",
        text_offset=offset,
        span_start=span[0],
        span_end=span[1],
        source_file=source_file,
    )


def _object_path(piece: Piece) -> str | None:
    text = piece.text.strip()
    if not text.startswith("{"):
        return None
    close = find_closing(text, 0)
    if close is None:
        return None
    for entry in iter_entries(text[1:close]):
        if entry.key == "path" and entry.value:
            return string_literal(entry.value)
    return None


def _first_literal(args: str, base: int = 0) -> str | None:
    pieces = split_top_level(args, ",", base)
    if not pieces:
        return ""
    literal = string_literal(pieces[0].text)
    if literal is not None:
        return literal
    return _object_path(pieces[0])


class RouteExtractor:
    """Extracts route declarations from one file's text."""

    def extract(self, text: str, path: str = "") -> list[RouteDescriptor]:
        return [site.descriptor for site in self.sites(text, path)]

    def sites(self, text: str, path: str = "") -> list[RouteSite]:
        """All route sites, deduplicated by route key (first one wins)."""
        code = blank_comments(text)
        handlers: dict[str, Span | None] = {}
        found: list[RouteSite] = []
        found.extend(self._call_sites(code, path, handlers))
        found.extend(self._chain_sites(code, path, handlers))
        found.extend(self._nest_sites(code, path))
        found.extend(self._file_sites(code, path))

        seen: set[str] = set()
        unique: list[RouteSite] = []
        for site in sorted(found, key=lambda s: s.descriptor.text_offset):
            if site.descriptor.key in seen:
                continue
            seen.add(site.descriptor.key)
            unique.append(site)
        return unique

    def controllers(self, text: str) -> list[ControllerSite]:
        code = blank_comments(text)
        result = []
        for m in _CONTROLLER.finditer(code):
            site = self._controller(code, m)
            if site is not None:
                result.append(site)
        return result

    # -- express style ----------------------------------------------------

    def _call_sites(
        self, code: str, path: str, handlers: dict[str, Span | None]
    ) -> list[RouteSite]:
        sites = []
        for m in _VERB_CALL.finditer(code):
            open_paren = m.end() - 1
            args = call_arguments(code, open_paren)
            # app.get('setting') is a settings lookup, not a route
            if len(args) < 2:
                continue
            raw_path = string_literal(args[0].text)
            if raw_path is None or not raw_path.startswith("/"):
                continue
            close = find_closing(code, open_paren)
            end = (close + 1) if close is not None else len(code)
            descriptor = _descriptor(
                m.group("verb"), raw_path, m.start(), (m.start(), end), path
            )
            if descriptor is None:
                continue
            handler = args[-1]
            sites.append(
                RouteSite(
                    descriptor,
                    "call",
                    middleware=tuple(args[1:-1]),
                    handler=self._handler_span(code, handler, handlers),
                )
            )
        return sites

    def _chain_sites(
        self, code: str, path: str, handlers: dict[str, Span | None]
    ) -> list[RouteSite]:
        sites = []
        for m in _ROUTE_CALL.finditer(code):
            open_paren = m.end() - 1
            args = call_arguments(code, open_paren)
            if not args:
                continue
            raw_path = string_literal(args[0].text)
            close = find_closing(code, open_paren)
            if raw_path is None or close is None:
                continue
            pos = close + 1
            while True:
                vm = _CHAIN_VERB.match(code, pos)
                if not vm:
                    break
                verb_open = vm.end() - 1
                verb_close = find_closing(code, verb_open)
                if verb_close is None:
                    break
                verb_args = call_arguments(code, verb_open)
                start = code.index(".", vm.start())
                descriptor = _descriptor(
                    vm.group("verb"),
                    raw_path,
                    start,
                    (start, verb_close + 1),
                    path,
                )
                if descriptor is not None and verb_args:
                    sites.append(
                        RouteSite(
                            descriptor,
                            "chain",
                            middleware=tuple(verb_args[:-1]),
                            handler=self._handler_span(
                                code, verb_args[-1], handlers
                            ),
                        )
                    )
                pos = verb_close + 1
        return sites

    def _handler_span(
        self,
        code: str,
        handler: Piece,
        handlers: dict[str, Span | None],
    ) -> Span:
        """Region of the handler; resolves same-file named functions.

        ``handlers`` memoizes lookups for the duration of one file scan.
        """
        text = handler.text.strip()
        span = Span(handler.offset, handler.offset + len(handler.text))
        name = text.rsplit(".", 1)[-1]
        if not re.fullmatch(r"[A-Za-z_$][\w$]*", name):
            return span
        if name not in handlers:
            handlers[name] = self._find_function(code, name)
        return handlers[name] or span

    @staticmethod
    def _find_function(code: str, name: str) -> Span | None:
        escaped = re.escape(name)
        m = re.search(
            rf"(?:async\s+)?function\s+{escaped}\s*\("
            rf"|(?:const|let|var)\s+{escaped}\s*=\s*(?:async\s*)?"
            rf"(?:function\b|\(|[A-Za-z_$][\w$]*\s*=>)"
            rf"|^\s*(?:async\s+)?{escaped}\s*\([^)]*\)\s*\{{",
            code,
            re.M,
        )
        if not m:
            return None
        return function_body(code, m.start())

    # -- nestjs -------------------------------------------------------------

    def _controller(self, code: str, m: re.Match) -> ControllerSite | None:
        open_paren = m.end() - 1
        close = find_closing(code, open_paren)
        if close is None:
            return None
        prefix = _first_literal(code[open_paren + 1 : close]) or ""
        class_match = _CLASS_KW.search(code, close)
        if class_match is None:
            return None
        body = block_after(code, class_match.end())
        if body is None:
            return None
        # class-level decorators sit between the previous statement and
        # the class keyword
        region_start = max(
            code.rfind(";", 0, m.start()), code.rfind("}", 0, m.start()), 0
        )
        decorators = tuple(
            decorators_in(code, region_start, class_match.start())
        )
        return ControllerSite(prefix, decorators, body, m.start())

    def _nest_sites(self, code: str, path: str) -> list[RouteSite]:
        sites = []
        for m in _CONTROLLER.finditer(code):
            controller = self._controller(code, m)
            if controller is None:
                continue
            body = controller.span
            for member in iter_members(code, body.start, body.end):
                verb = next(
                    (d for d in member.decorators if d.name in NEST_VERBS),
                    None,
                )
                if verb is None:
                    continue
                sub = _first_literal(verb.args) or ""
                descriptor = _descriptor(
                    NEST_VERBS[verb.name],
                    join_paths(controller.prefix, sub),
                    verb.start,
                    (member.start, member.end),
                    path,
                )
                if descriptor is None:
                    continue
                sites.append(
                    RouteSite(
                        descriptor,
                        "decorator",
                        handler=member.body,
                        decorators=member.decorators,
                        controller=controller,
                        params=member.header,
                    )
                )
        return sites

    # -- next.js file routes -----------------------------------------------

    def _file_sites(self, code: str, path: str) -> list[RouteSite]:
        route_path = infer_file_route(path)
        if route_path is None:
            return []
        sites = []
        if PurePosixPath(path).stem == "route":
            for m in _NEXT_EXPORT.finditer(code):
                method = m.group("m1") or m.group("m2")
                body = block_after(code, m.end())
                end = body.end + 1 if body else len(code)
                descriptor = _descriptor(
                    method, route_path, m.start(), (m.start(), end), path
                )
                if descriptor is not None:
                    sites.append(RouteSite(descriptor, "file", handler=body))
            return sites

        methods = []
        for m in _PAGES_METHOD.finditer(code):
            method = m.group("m1") or m.group("m2")
            if method not in methods:
                methods.append(method)
        for method in methods or ["GET"]:
            descriptor = _descriptor(
                method, route_path, 0, (0, len(code)), path
            )
            if descriptor is not None:
                sites.append(
                    RouteSite(descriptor, "file", handler=Span(0, len(code)))
                )
        return sites


def infer_file_route(file_path: str) -> str | None:
    """Infer an API path from Next.js App Router / pages file layout.

    ``app/api/orders/[id]/route.ts`` -> ``/api/orders/[id]``
    ``pages/api/orders/index.ts`` -> ``/api/orders``
    """
    parts = PurePosixPath(str(file_path).replace("\\", "/")).parts
    stem = PurePosixPath(parts[-1]).stem if parts else ""

    if stem == "route" and "app" in parts:
        idx = len(parts) - 1 - parts[::-1].index("app")
        segments = [
            s
            for s in parts[idx + 1 : -1]
            if not (s.startswith("(") and s.endswith(")"))
            and not s.startswith("@")
        ]
        return "/" + "/".join(segments)

    if "pages" in parts:
        idx = len(parts) - 1 - parts[::-1].index("pages")
        rest = list(parts[idx + 1 :])
        if not rest or rest[0] != "api":
            return None
        rest[-1] = stem
        if rest[-1] == "index":
            rest = rest[:-1]
        return "/" + "/".join(rest)

    return None
