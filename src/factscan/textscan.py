"""Bracket-depth scanning for declaration bodies.

Regexes locate where a construct starts; the helpers here locate where it
ends. Depth is tracked explicitly over ``()``, ``[]`` and ``{}`` so nested
field objects never truncate a body. String, template and regex literals
and comments are skipped, so delimiters inside them never move the depth.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {")": "(", "]": "[", "}": "{"}
QUOTES = frozenset({'"', "'", "`"})

# a ``/`` after one of these, or at the start of input, opens a regex
REGEX_PRECEDERS = frozenset("(,=:[!&|?{};")
REGEX_KEYWORDS = frozenset(
    {
        "return",
        "typeof",
        "case",
        "throw",
        "yield",
        "await",
        "delete",
        "void",
        "in",
        "of",
        "instanceof",
        "new",
        "else",
        "do",
    }
)


@dataclass(frozen=True)
class Span:
    """Half-open region of a text, ``text[start:end]``."""

    start: int
    end: int

    def slice(self, text: str) -> str:
        return text[self.start : self.end]

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end


@dataclass(frozen=True)
class Piece:
    """A top-level segment of a delimited body with its absolute offset."""

    text: str
    offset: int


@dataclass(frozen=True)
class Entry:
    """A ``key: value`` member of an object literal body.

    ``value`` is None for shorthand members (``{ orders }``).
    """

    key: str
    value: str | None
    offset: int


def regex_allowed(text: str, i: int) -> bool:
    """Whether a ``/`` at ``i`` sits where an expression may start."""
    j = i - 1
    while j >= 0 and text[j].isspace():
        j -= 1
    if j < 0:
        return True
    prev = text[j]
    if prev in REGEX_PRECEDERS:
        return True
    # arrow function body: x => /re/.test(x)
    if prev == ">" and j > 0 and text[j - 1] == "=":
        return True
    if prev.isalpha():
        start = j
        while start > 0 and (
            text[start - 1].isalnum() or text[start - 1] in "_$"
        ):
            start -= 1
        return text[start : j + 1] in REGEX_KEYWORDS
    return False


def skip_regex(text: str, i: int) -> int:
    """Index just past a regex literal at ``i``, flags included.

    Returns ``i`` when the literal does not close on its own line, in
    which case the ``/`` is a division operator after all.
    """
    j = i + 1
    n = len(text)
    in_class = False
    while j < n:
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == "\n":
            return i
        if in_class:
            if c == "]":
                in_class = False
        elif c == "[":
            in_class = True
        elif c == "/":
            j += 1
            while j < n and text[j].isalpha():
                j += 1
            return j
        j += 1
    return i


def skip_literal(text: str, i: int) -> int:
    """Return the index just past a literal or comment starting at ``i``.

    Literals are strings, template strings and regexes. Returns ``i``
    unchanged when none starts there.
    """
    ch = text[i]
    if ch in QUOTES:
        j = i + 1
        n = len(text)
        while j < n:
            c = text[j]
            if c == "\\":
                j += 2
                continue
            if c == ch:
                return j + 1
            # plain quotes never span lines in js/ts
            if c == "\n" and ch != "`":
                return j
            j += 1
        return n
    if ch == "/" and i + 1 < len(text):
        nxt = text[i + 1]
        if nxt == "/":
            end = text.find("\n", i)
            return len(text) if end == -1 else end
        if nxt == "*":
            end = text.find("*/", i + 2)
            return len(text) if end == -1 else end + 2
        if regex_allowed(text, i):
            return skip_regex(text, i)
    return i


def find_closing(text: str, open_index: int) -> int | None:
    """Index of the delimiter closing the one at ``open_index``.

    Returns None when the character is not an opener, when the text ends
    first, or when a mismatched closer is met.
    """
    if open_index >= len(text) or text[open_index] not in OPENERS:
        return None
    stack = [text[open_index]]
    i = open_index + 1
    n = len(text)
    while i < n:
        skipped = skip_literal(text, i)
        if skipped != i:
            i = skipped
            continue
        ch = text[i]
        if ch in OPENERS:
            stack.append(ch)
        elif ch in CLOSERS:
            if stack[-1] != CLOSERS[ch]:
                return None
            stack.pop()
            if not stack:
                return i
        i += 1
    return None


def find_opener(text: str, start: int, opener: str = "{") -> int | None:
    """First ``opener`` at or after ``start`` outside literals."""
    i = start
    n = len(text)
    while i < n:
        skipped = skip_literal(text, i)
        if skipped != i:
            i = skipped
            continue
        if text[i] == opener:
            return i
        i += 1
    return None


def block_after(text: str, start: int, opener: str = "{") -> Span | None:
    """Span of the body (delimiters excluded) of the next ``opener`` block."""
    open_index = find_opener(text, start, opener)
    if open_index is None:
        return None
    close = find_closing(text, open_index)
    if close is None:
        return None
    return Span(open_index + 1, close)


def split_top_level(
    text: str,
    seps: str = ",",
    base: int = 0,
) -> list[Piece]:
    """Split ``text`` on separators that sit at bracket depth zero.

    Pieces are stripped; empty pieces are dropped. ``base`` is added to
    every offset so callers can pass a slice and keep absolute positions.
    """
    pieces: list[Piece] = []
    depth = 0
    seg_start = 0
    i = 0
    n = len(text)

    def _emit(end: int) -> None:
        raw = text[seg_start:end]
        stripped = raw.strip()
        if stripped:
            lead = len(raw) - len(raw.lstrip())
            pieces.append(Piece(stripped, base + seg_start + lead))

    while i < n:
        skipped = skip_literal(text, i)
        if skipped != i:
            i = skipped
            continue
        ch = text[i]
        if ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth = max(depth - 1, 0)
        elif depth == 0 and ch in seps:
            _emit(i)
            seg_start = i + 1
        i += 1
    _emit(n)
    return pieces


def _top_level_index(text: str, target: str) -> int:
    depth = 0
    i = 0
    n = len(text)
    while i < n:
        skipped = skip_literal(text, i)
        if skipped != i:
            i = skipped
            continue
        ch = text[i]
        if ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth -= 1
        elif depth == 0 and ch == target:
            return i
        i += 1
    return -1


def iter_entries(body: str, base: int = 0) -> Iterator[Entry]:
    """Yield the members of an object-literal body in source order."""
    for piece in split_top_level(body, ",", base):
        colon = _top_level_index(piece.text, ":")
        if colon == -1:
            key = piece.text.strip()
            if key.startswith("..."):
                continue
            if key.isidentifier():
                yield Entry(key, None, piece.offset)
            continue
        key = piece.text[:colon].strip().strip("'\"`")
        value = piece.text[colon + 1 :].strip()
        if key:
            yield Entry(key, value, piece.offset)


@dataclass(frozen=True)
class Decorator:
    name: str
    args: str
    start: int


@dataclass(frozen=True)
class Member:
    """One class member: its decorators, header and optional body."""

    start: int
    end: int
    decorators: tuple[Decorator, ...]
    header: str
    header_start: int
    body: Span | None

    def decorator(self, *names: str) -> Decorator | None:
        for deco in self.decorators:
            if deco.name in names:
                return deco
        return None


def _skip_space(text: str, i: int, end: int) -> int:
    while i < end:
        if text[i].isspace():
            i += 1
            continue
        if text.startswith("//", i) or text.startswith("/*", i):
            i = skip_literal(text, i)
            continue
        break
    return i


def _read_decorator(text: str, i: int, end: int) -> tuple[Decorator, int]:
    j = i + 1
    while j < end and (text[j].isalnum() or text[j] in "_$."):
        j += 1
    name = text[i + 1 : j]
    k = _skip_space(text, j, end)
    args = ""
    if k < end and text[k] == "(":
        close = find_closing(text, k)
        if close is not None and close < end:
            args = text[k + 1 : close]
            j = close + 1
    return Decorator(name, args, i), j


def decorators_in(text: str, start: int, end: int) -> list[Decorator]:
    """Decorators appearing in ``text[start:end]`` outside literals."""
    found = []
    i = start
    while i < end:
        skipped = skip_literal(text, i)
        if skipped != i:
            i = skipped
            continue
        if text[i] == "@" and i + 1 < end and text[i + 1].isalpha():
            deco, i = _read_decorator(text, i, end)
            found.append(deco)
            continue
        i += 1
    return found


def iter_members(text: str, start: int, end: int) -> Iterator[Member]:
    """Walk the members of a class body spanning ``text[start:end]``.

    A member runs from its first decorator to the end of its body
    (methods, arrow-function properties) or its terminating ``;``.
    """
    i = start
    while i < end:
        i = _skip_space(text, i, end)
        if i >= end:
            break
        member_start = i
        decorators = []
        while i < end and text[i] == "@":
            deco, i = _read_decorator(text, i, end)
            decorators.append(deco)
            i = _skip_space(text, i, end)

        header_start = i
        body: Span | None = None
        j = i
        while j < end:
            skipped = skip_literal(text, j)
            if skipped != j:
                j = skipped
                continue
            ch = text[j]
            if ch in "([":
                close = find_closing(text, j)
                j = (close if close is not None else end - 1) + 1
                continue
            if ch == "{":
                close = find_closing(text, j)
                if close is None:
                    j = end
                    break
                body = Span(j + 1, close)
                j = close + 1
                break
            if ch == ";":
                j += 1
                break
            if ch == "\n" and j > header_start:
                # property declarations without a trailing semicolon
                line = text[header_start:j].strip()
                nxt = _skip_space(text, j, end)
                continues = nxt < end and text[nxt] in "{.=:|&"
                if line and not continues and not line.endswith(
                    ("=", ",", "=>", "(", ":", "|", "&")
                ):
                    break
            j += 1
        header_end = body.start - 1 if body else j
        header = text[header_start:header_end].strip().rstrip(";")
        if j <= member_start:
            j = member_start + 1
        if header or decorators:
            yield Member(
                member_start,
                j,
                tuple(decorators),
                header,
                header_start,
                body,
            )
        i = j


def function_body(text: str, start: int) -> Span | None:
    """Body of the function whose declaration begins at ``start``.

    The parameter list is skipped as a whole, so destructured parameters
    (``({ body }, res) => {``) never pass for the body.
    """
    i = start
    n = len(text)
    while i < n:
        skipped = skip_literal(text, i)
        if skipped != i:
            i = skipped
            continue
        ch = text[i]
        if ch == "(":
            close = find_closing(text, i)
            if close is None:
                return None
            i = close + 1
            continue
        if ch == "{":
            close = find_closing(text, i)
            return Span(i + 1, close) if close is not None else None
        if ch == ";":
            return None
        i += 1
    return None


def call_arguments(text: str, open_paren: int) -> list[Piece]:
    """Top-level arguments of the call whose ``(`` is at ``open_paren``."""
    close = find_closing(text, open_paren)
    if close is None:
        return []
    return split_top_level(text[open_paren + 1 : close], ",", open_paren + 1)


def blank_comments(text: str) -> str:
    """Replace comments with spaces, keeping every offset stable.

    String and regex literals are kept as they are.
    """
    out = list(text)
    i = 0
    n = len(text)
    while i < n:
        end = skip_literal(text, i)
        if end == i:
            i += 1
            continue
        if text.startswith(("//", "/*"), i):
            for j in range(i, end):
                if out[j] != "\n":
                    out[j] = " "
        i = end
    return "".join(out)


def string_literal(token: str) -> str | None:
    """Value of a plain quoted literal, or None for anything dynamic."""
    token = token.strip()
    if len(token) < 2 or token[0] not in QUOTES or token[-1] != token[0]:
        return None
    inner = token[1:-1]
    if token[0] == "`" and "${" in inner:
        return None
    return inner
