"""Auth policy fragments.

Producers:

- middleware arguments of a route call (route-local, one fragment per
  route carrying the most specific policy found)
- ``router.use(mw)`` (file-global) and ``router.use('/prefix', mw)``
  (path-scoped); a dynamic prefix drops the fragment
- NestJS ``@UseGuards``/``@Roles`` on a method (route-local) or on the
  controller class (path-scoped by the controller prefix)
"""

from __future__ import annotations

import re

import structlog

from factscan.extract.routes import (
    RECEIVER,
    ControllerSite,
    RouteSite,
)
from factscan.facts import ContextFragment
from factscan.paths import normalize_path
from factscan.rules import (
    AUTH_MIDDLEWARE_RULES,
    NEST_GUARD_RULES,
    most_specific,
)
from factscan.textscan import (
    Decorator,
    Piece,
    blank_comments,
    call_arguments,
    string_literal,
)

logger = structlog.get_logger(__name__)

_USE_CALL = re.compile(RECEIVER + r"\s*\.\s*use\s*\(")
# mounted sub-routers are not middleware
_SUB_ROUTER = re.compile(r"^[\w$.]*(?:Routes|Router|router|routes)$")
# validation middleware mentions "auth" headers without being auth
_VALIDATION_CALL = re.compile(r"^\s*(?:celebrate|validate\w*)\s*\(")
_ROLE_DECORATORS = ("Roles", "Role")


def middleware_policy(pieces: list[Piece] | tuple[Piece, ...]) -> str | None:
    """Most specific auth policy among middleware arguments."""
    policies = []
    for piece in pieces:
        text = piece.text
        if _SUB_ROUTER.match(text.strip()) or _VALIDATION_CALL.match(text):
            continue
        policy = AUTH_MIDDLEWARE_RULES.first(text)
        if policy is not None:
            policies.append(policy)
    return most_specific(policies)


def decorator_policy(decorators: tuple[Decorator, ...]) -> str | None:
    """Policy from ``@UseGuards(...)`` and ``@Roles(...)`` decorators."""
    policies = []
    for deco in decorators:
        if deco.name == "UseGuards":
            for piece in call_arguments(f"({deco.args})", 0):
                policy = NEST_GUARD_RULES.first(piece.text)
                if policy is not None:
                    policies.append(policy)
        elif deco.name in _ROLE_DECORATORS:
            args = call_arguments(f"({deco.args})", 0)
            role = string_literal(args[0].text) if args else None
            if role is not None:
                policies.append(f"Role: {role}")
    return most_specific(policies)


class AuthFragmentExtractor:
    """Produces auth :class:`ContextFragment` values for one file."""

    def fragments(
        self,
        text: str,
        sites: list[RouteSite],
        path: str = "",
    ) -> list[ContextFragment]:
        code = blank_comments(text)
        found: list[ContextFragment] = []
        found.extend(self._route_local(sites, path))
        found.extend(self._use_calls(code, path))
        found.extend(self._controllers(sites, path))
        return found

    def _route_local(
        self, sites: list[RouteSite], path: str
    ) -> list[ContextFragment]:
        found = []
        for site in sites:
            if site.decorators:
                policy = decorator_policy(site.decorators)
            else:
                policy = middleware_policy(site.middleware)
            if policy is None:
                continue
            found.append(
                ContextFragment(
                    scope="route-local",
                    offset=site.descriptor.text_offset,
                    route_key=site.descriptor.key,
                    auth=policy,
                    source=path,
                )
            )
        return found

    def _use_calls(self, code: str, path: str) -> list[ContextFragment]:
        found = []
        for m in _USE_CALL.finditer(code):
            args = call_arguments(code, m.end() - 1)
            if not args:
                continue
            first = args[0].text
            prefix: str | None = None
            middleware = args
            if first[:1] in "'\"`":
                literal = string_literal(first)
                if literal is None:
                    logger.debug(
                        "dynamic use prefix dropped", file=path, prefix=first
                    )
                    continue
                prefix = normalize_path(literal)
                middleware = args[1:]
            elif len(args) > 1 and not _SUB_ROUTER.match(first):
                # use(prefixVar, mw): the scope cannot be resolved
                logger.debug("unresolved use scope dropped", file=path)
                continue

            policy = middleware_policy(middleware)
            if policy is None:
                continue
            if prefix is None or prefix == "/":
                found.append(
                    ContextFragment(
                        scope="file-global",
                        offset=m.start(),
                        auth=policy,
                        source=path,
                    )
                )
            else:
                found.append(
                    ContextFragment(
                        scope="path-scoped",
                        offset=m.start(),
                        prefix=prefix,
                        auth=policy,
                        source=path,
                    )
                )
        return found

    def _controllers(
        self, sites: list[RouteSite], path: str
    ) -> list[ContextFragment]:
        seen: set[int] = set()
        controllers: list[ControllerSite] = []
        for site in sites:
            if site.controller and site.controller.offset not in seen:
                seen.add(site.controller.offset)
                controllers.append(site.controller)

        found = []
        for controller in controllers:
            policy = decorator_policy(controller.decorators)
            if policy is None:
                continue
            prefix = normalize_path(controller.prefix)
            if prefix == "/":
                found.append(
                    ContextFragment(
                        scope="file-global",
                        offset=controller.offset,
                        auth=policy,
                        source=path,
                    )
                )
            else:
                found.append(
                    ContextFragment(
                        scope="path-scoped",
                        offset=controller.offset,
                        prefix=prefix,
                        auth=policy,
                        source=path,
                    )
                )
        return found
