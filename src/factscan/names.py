"""Canonical entity names.

Every detector routes raw identifiers through :func:`canonicalize` before
emitting a fact, so ``paymentService``, ``PaymentService`` and
``PaymentSvc`` all land on one name. The function is idempotent for every
role and every printable-ASCII input.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Literal

Role = Literal["service", "controller", "model", "utility"]

MIN_NAME_LENGTH = 3

# role -> (canonical suffix, accepted variants, longest first)
ROLE_SUFFIXES: dict[str, tuple[str, tuple[str, ...]]] = {
    "service": ("Service", ("Service", "Srv", "Svc")),
    "controller": ("Controller", ("Controller", "Ctrl", "Ctl")),
    "model": ("", ("Entity", "Schema", "Model")),
    "utility": ("", ()),
}

SOURCE_SUFFIXES = (".js", ".ts", ".jsx", ".tsx", ".mjs", ".cjs", ".prisma")

_SEGMENT_RE = re.compile(r"[A-Za-z0-9_$]+")
_LEADING_JUNK = "_$0123456789"


def _join_segments(raw: str) -> str:
    segments = _SEGMENT_RE.findall(raw)
    if not segments:
        return ""
    head, *rest = segments
    return head + "".join(s[:1].upper() + s[1:] for s in rest)


def _suffix_match(name: str, suffix: str) -> bool:
    """Case-insensitive suffix test that respects word boundaries.

    ``UserIdentity`` does not end with the ``Entity`` suffix, while
    ``UserEntity`` and the all-lowercase ``userentity`` do.
    """
    if len(name) <= len(suffix):
        return False
    if not name.lower().endswith(suffix.lower()):
        return False
    boundary = name[-len(suffix)]
    return boundary.isupper() or name[1:].islower()


def _apply_role(name: str, role: Role) -> str:
    canonical, variants = ROLE_SUFFIXES[role]
    if not variants:
        return name

    if not canonical:
        # strip role suffixes repeatedly: UserSchemaModel -> User
        changed = True
        while changed:
            changed = False
            for variant in variants:
                if _suffix_match(name, variant):
                    base = name[: -len(variant)]
                    if len(base) >= MIN_NAME_LENGTH:
                        name = base
                        changed = True
                    break
        return name

    for variant in variants:
        if _suffix_match(name, variant):
            return name[: -len(variant)] + canonical
    if name.lower() == canonical.lower():
        return canonical
    return name + canonical


def canonicalize(raw: str | None, role: Role) -> str | None:
    """Resolve a raw identifier fragment to its canonical name.

    Non-identifier characters act as word separators and are dropped
    (``payment-service`` -> ``PaymentService``). Names shorter than
    ``MIN_NAME_LENGTH`` after trimming are rejected with None.
    """
    if not raw:
        return None
    name = _join_segments(raw).lstrip(_LEADING_JUNK)
    if len(name) < MIN_NAME_LENGTH:
        return None
    name = name[0].upper() + name[1:]
    return _apply_role(name, role)


def strip_source_suffix(filename: str) -> str:
    for suffix in SOURCE_SUFFIXES:
        if filename.endswith(suffix):
            return filename[: -len(suffix)]
    return filename


def name_from_filename(path: str, role: Role) -> str | None:
    """Canonical name derived from a file's base name.

    ``order.service.ts`` -> ``OrderService``; ``index.js`` files take the
    name of their directory.
    """
    p = PurePosixPath(str(path).replace("\\", "/"))
    stem = strip_source_suffix(p.name)
    if stem == "index" and p.parent.name:
        stem = p.parent.name
    return canonicalize(stem, role)


def name_from_import_path(spec: str, role: Role) -> str | None:
    """Canonical name from a module specifier (``../services/payment``)."""
    last = spec.rstrip("/").rsplit("/", 1)[-1]
    if not last or last in (".", ".."):
        return None
    return canonicalize(strip_source_suffix(last), role)


def fold(name: str) -> str:
    """Case-insensitive comparison key for canonical names."""
    return name.casefold()


def role_of(raw: str, default: Role = "service") -> Role:
    """``controller`` for names already carrying a controller suffix."""
    name = _join_segments(raw)
    _, variants = ROLE_SUFFIXES["controller"]
    if any(_suffix_match(name, v) for v in variants):
        return "controller"
    return default
