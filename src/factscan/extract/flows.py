"""Business flows: ordered steps per service method."""

from __future__ import annotations

import re
from collections.abc import Callable

from factscan.extract.services import dependency_name, service_name_of
from factscan.facts import Entity
from factscan.rules import (
    BUSINESS_STEPS,
    DATABASE_STEPS,
    ERROR_STEPS,
    EXTERNAL_API_STEPS,
    NOTIFICATION_STEPS,
    VALIDATION_STEPS,
    StepRule,
)
from factscan.textscan import (
    Span,
    blank_comments,
    find_closing,
    function_body,
    iter_members,
)

EXCLUDED_METHODS = frozenset(
    {
        "constructor",
        "toString",
        "valueOf",
        "init",
        "setup",
        "configure",
        "destroy",
        "close",
    }
)
EXCLUDED_PREFIXES = ("get", "set", "_")

_CLASS = re.compile(r"\bclass\s+[A-Za-z_$][\w$]*[^{]*\{")
_METHOD_HEADER = re.compile(
    r"^(?:(?:public|private|protected|static|async|override)\s+)*\*?\s*"
    r"(?P<name>[A-Za-z_$][\w$]*)\s*(?:[=(<]|:\s*\()"
)
_ACCESSOR = re.compile(
    r"^(?:(?:public|private|protected|static)\s+)*[gs]et\s+\w"
)
_FUNCTION = re.compile(
    r"(?:^|[;\s])(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*"
    r"(?P<name>[A-Za-z_$][\w$]*)\s*\("
    r"|(?:const|let|var)\s+(?P<arrow>[A-Za-z_$][\w$]*)\s*=\s*(?:async\s+)?"
    r"(?:function\b|\([^)]*\)\s*=>|[A-Za-z_$][\w$]*\s*=>)",
    re.M,
)
_SERVICE_CALL = re.compile(
    r"(?:this\.)?(?P<service>\w*[Ss]ervice\w*)\.(?P<method>\w+)\s*\("
)
_NEW_SERVICE_CALL = re.compile(
    r"new\s+(?P<service>[A-Za-z0-9_$]+Service)\s*\([^)]*\)\s*\."
    r"(?P<method>\w+)\s*\("
)


def is_business_method(name: str) -> bool:
    return (
        name not in EXCLUDED_METHODS
        and not name.startswith(EXCLUDED_PREFIXES)
        and len(name) > 2
    )


def service_call_steps(body: str) -> list[str]:
    steps = []
    for pattern in (_SERVICE_CALL, _NEW_SERVICE_CALL):
        for m in pattern.finditer(body):
            service = dependency_name(m.group("service"))
            if service is not None:
                steps.append(f"Call {service}.{m.group('method')}()")
    return steps


def _rule_steps(rules: list[StepRule]) -> Callable[[str], list[str]]:
    def _steps(body: str) -> list[str]:
        return [step for rule in rules for step in rule.steps(body)]

    return _steps


# step categories in emission order
STEP_DETECTORS: tuple[Callable[[str], list[str]], ...] = (
    _rule_steps(VALIDATION_STEPS),
    service_call_steps,
    _rule_steps(DATABASE_STEPS),
    _rule_steps(EXTERNAL_API_STEPS),
    _rule_steps(BUSINESS_STEPS),
    _rule_steps(NOTIFICATION_STEPS),
    _rule_steps(ERROR_STEPS),
)


def flow_steps(body: str) -> list[str]:
    """Ordered, de-duplicated steps detected in one method body."""
    steps: list[str] = []
    for detect in STEP_DETECTORS:
        for step in detect(body):
            if step not in steps:
                steps.append(step)
    return steps


def methods_in(code: str) -> list[tuple[str, Span]]:
    """Named method and function bodies, class members first."""
    found: list[tuple[str, Span]] = []
    seen: set[str] = set()

    def _add(name: str, body: Span | None) -> None:
        if body is None or name in seen or not is_business_method(name):
            return
        seen.add(name)
        found.append((name, body))

    for cm in _CLASS.finditer(code):
        close = find_closing(code, cm.end() - 1)
        if close is None:
            continue
        for member in iter_members(code, cm.end(), close):
            if member.body is None or _ACCESSOR.match(member.header):
                continue
            m = _METHOD_HEADER.match(member.header)
            if m:
                _add(m.group("name"), member.body)

    for m in _FUNCTION.finditer(code):
        name = m.group("name") or m.group("arrow")
        start = m.start("name") if m.group("name") else m.start("arrow")
        _add(name, function_body(code, start))
    return found


class FlowExtractor:
    """One flow entity per service: ``{method: [steps]}``."""

    def extract(self, text: str, path: str = "") -> list[Entity]:
        service = service_name_of(text, path)
        if service is None:
            return []
        code = blank_comments(text)
        flows: dict[str, tuple[str, ...]] = {}
        for name, body in methods_in(code):
            steps = flow_steps(body.slice(code))
            if steps:
                flows[name] = tuple(steps)
        if not flows:
            return []
        return [
            Entity(
                kind="flow-step",
                canonical_name=service,
                source_file=path,
                attributes={"flows": flows},
            )
        ]
