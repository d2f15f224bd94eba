"""Prioritized rule tables.

Every "guess a category" decision is an ordered list of
``(predicate, category)`` rows evaluated once per subject. Precedence is
the row order, never the call order of unrelated detectors.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

S = TypeVar("S")

Result = str | Callable[[Any], str | None]


@dataclass(frozen=True)
class Rule(Generic[S]):
    """One row: when ``when(subject)`` is truthy, yield ``category``.

    ``category`` may be a callable receiving the truthy value (usually a
    regex match) to build a parameterized category such as ``Role: x``.
    """

    category: Result
    when: Callable[[S], Any]
    label: str = ""

    def apply(self, subject: S) -> str | None:
        hit = self.when(subject)
        if not hit:
            return None
        if callable(self.category):
            return self.category(hit)
        return self.category


class RuleTable(Generic[S]):
    """Ordered rule rows evaluated top to bottom."""

    def __init__(self, rules: Sequence[Rule[S]], name: str = "") -> None:
        self.rules = tuple(rules)
        self.name = name

    def __len__(self) -> int:
        return len(self.rules)

    def first(self, subject: S) -> str | None:
        for rule in self.rules:
            category = rule.apply(subject)
            if category is not None:
                return category
        return None

    def all(self, subject: S) -> list[str]:
        seen: list[str] = []
        for rule in self.rules:
            category = rule.apply(subject)
            if category is not None and category not in seen:
                seen.append(category)
        return seen


def always(_: object) -> bool:
    return True


def search(pattern: str, flags: int = 0) -> Callable[[str], Any]:
    compiled = re.compile(pattern, flags)
    return compiled.search


def contains_any(keywords: Iterable[str]) -> Callable[[str], bool]:
    words = tuple(k.lower() for k in keywords)

    def _test(text: str) -> bool:
        lowered = text.lower()
        return any(k in lowered for k in words)

    return _test


# ---------------------------------------------------------------------------
# service classification
# ---------------------------------------------------------------------------

BUSINESS_NAME_HINTS: tuple[str, ...] = (
    "payment",
    "user",
    "order",
    "farm",
    "livestock",
    "lead",
    "chat",
    "assessment",
)

UTILITY_NAME_HINTS: tuple[str, ...] = (
    "util",
    "helper",
    "common",
    "format",
    "validate",
    "parse",
    "convert",
    "crypto",
    "logger",
    "cache",
)

UTILITY_CONTENT_HINTS: tuple[str, ...] = ("format", "validate", "parse")


@dataclass(frozen=True)
class ServiceSubject:
    name: str
    filename: str
    content: str


def service_classification(default: str = "business") -> RuleTable:
    """Build the service table; its last row is the configurable default."""
    utility_names = contains_any(UTILITY_NAME_HINTS)
    business_names = contains_any(BUSINESS_NAME_HINTS)
    utility_content = contains_any(UTILITY_CONTENT_HINTS)
    return RuleTable(
        [
            Rule(
                "utility",
                lambda s: utility_names(s.name) or utility_names(s.filename),
                "utility name hint",
            ),
            Rule(
                "business",
                lambda s: business_names(s.name)
                or business_names(s.filename),
                "business name hint",
            ),
            Rule(
                "utility",
                lambda s: utility_content(s.content),
                "utility content hint",
            ),
            Rule(default, always, "default"),
        ],
        name="service-classification",
    )


# ---------------------------------------------------------------------------
# auth policies
# ---------------------------------------------------------------------------

PASSPORT_STRATEGIES: dict[str, str] = {
    "local": "Local Auth",
    "jwt": "JWT Required",
    "google": "Google OAuth",
    "facebook": "Facebook OAuth",
    "github": "GitHub OAuth",
    "twitter": "Twitter OAuth",
    "linkedin": "LinkedIn OAuth",
}

_STATELESS = re.compile(r"session\s*:\s*false")
_OPTIONAL_JWT = re.compile(r"credentialsRequired\s*:\s*false")


def passport_policy(strategy: str, options: str | None = None) -> str:
    policy = PASSPORT_STRATEGIES.get(strategy, f"Passport: {strategy}")
    if options and _STATELESS.search(options):
        policy += " (Stateless)"
    return policy


def _passport(m: re.Match) -> str:
    return passport_policy(m.group(1), m.group(2))


def _express_jwt(m: re.Match) -> str:
    if _OPTIONAL_JWT.search(m.group(0)):
        return "JWT Required (Optional)"
    return "JWT Required"


AUTH_MIDDLEWARE_RULES: RuleTable[str] = RuleTable(
    [
        Rule(
            _passport,
            search(
                r"passport\.authenticate\s*\(\s*['\"`]([\w-]+)['\"`]"
                r"\s*(?:,\s*(\{[^}]*\}))?"
            ),
            "passport strategy",
        ),
        Rule(
            _express_jwt,
            search(r"\b(?:expressJwt|expressjwt|jwt)\s*\(\s*\{[^}]*\}", re.S),
            "express-jwt",
        ),
        Rule(
            lambda m: f"Permission: {m.group(1)}",
            search(
                r"\b(?:requirePermission|permission|hasPermission|"
                r"checkPermission)\s*\(\s*['\"`]([^'\"`]+)['\"`]"
            ),
            "permission helper",
        ),
        Rule(
            lambda m: f"Role: {m.group(1)}",
            search(
                r"\b(?:requireRole|role|hasRole|checkRole)\s*\(\s*"
                r"\[?\s*['\"`]([^'\"`]+)['\"`]"
            ),
            "role helper",
        ),
        Rule("OwnerOnly", search(r"\bisOwner\b"), "owner check"),
        Rule(
            "AdminOnly",
            search(r"\b(?:isAdmin|adminAuth|adminOnly|requireAdmin)\b"),
            "admin check",
        ),
        Rule(
            "JWT Required",
            search(
                r"\b(?:jwtAuth|verifyJWT|checkJWT|requireJWT|"
                r"authenticateJWT)\b"
            ),
            "jwt middleware",
        ),
        Rule("Token Required", search(r"\bverifyToken\b"), "token check"),
        Rule(
            "Authorized",
            search(r"\b(?:authorize|isAuthorized)\b"),
            "authorization check",
        ),
        Rule("UserAuth", search(r"\buserAuth\b"), "user auth"),
        Rule(
            "Authenticated",
            search(
                r"\b(?:requireAuth|requireLogin|isAuthenticated|authenticate|"
                r"checkAuth|ensureAuthenticated|isLoggedIn)\b"
            ),
            "authentication check",
        ),
        Rule("Custom Auth", search(r"auth", re.I), "auth-like name"),
    ],
    name="auth-middleware",
)


def _auth_guard_strategy(m: re.Match) -> str:
    strategy = m.group(1)
    if strategy == "jwt":
        return "JWT Required"
    return f"Auth Strategy: {strategy}"


NEST_GUARD_RULES: RuleTable[str] = RuleTable(
    [
        Rule("JWT Required", search(r"\bJwtAuthGuard\b"), "jwt guard"),
        Rule("Local Auth", search(r"\bLocalAuthGuard\b"), "local guard"),
        Rule("AdminOnly", search(r"\bAdminGuard\b"), "admin guard"),
        Rule("Role-based", search(r"\bRolesGuard\b"), "roles guard"),
        Rule(
            "Permission-based",
            search(r"\bPermissionsGuard\b"),
            "permissions guard",
        ),
        Rule(
            _auth_guard_strategy,
            search(r"\bAuthGuard\s*\(\s*['\"`]([\w-]+)['\"`]"),
            "strategy guard",
        ),
        Rule("Authenticated", search(r"\bAuthGuard\b"), "auth guard"),
        Rule("Custom Guard", lambda text: bool(text.strip()), "any guard"),
    ],
    name="nest-guards",
)


# lower rank = more specific; used to summarize several middlewares
AUTH_SPECIFICITY: RuleTable[str] = RuleTable(
    [
        Rule("0", lambda p: p.startswith("Permission")),
        Rule("1", lambda p: p.startswith("Role")),
        Rule("2", lambda p: p in ("AdminOnly", "OwnerOnly")),
        Rule("4", lambda p: p == "Authenticated"),
        Rule("5", lambda p: p.startswith("Custom")),
        Rule("3", always),
    ],
    name="auth-specificity",
)


def auth_specificity(policy: str) -> int:
    return int(AUTH_SPECIFICITY.first(policy) or 3)


def most_specific(policies: Iterable[str]) -> str | None:
    """The most specific policy; ties keep the earliest."""
    best: str | None = None
    best_rank = 99
    for policy in policies:
        rank = auth_specificity(policy)
        if rank < best_rank:
            best, best_rank = policy, rank
    return best


# ---------------------------------------------------------------------------
# business flow steps
# ---------------------------------------------------------------------------

StepTemplate = str | Callable[[re.Match], str | None]


@dataclass(frozen=True)
class StepRule:
    """Every match of ``pattern`` in a method body yields one step."""

    step: StepTemplate
    pattern: re.Pattern

    def steps(self, body: str) -> list[str]:
        found = []
        for m in self.pattern.finditer(body):
            step = self.step(m) if callable(self.step) else self.step
            if step:
                found.append(step)
        return found


def step_rules(
    rows: Sequence[tuple[StepTemplate, str]], flags: int = 0
) -> list[StepRule]:
    return [StepRule(step, re.compile(p, flags)) for step, p in rows]


def _sql_step(m: re.Match) -> str:
    return f"Execute {m.group(1).lower()} query"


# service-call steps are built by the flows extractor (they need name
# canonicalization); these rows cover the remaining categories in order
VALIDATION_STEPS = step_rules(
    [
        (
            "Validate input data",
            r"\bvalidate\w*\s*\(|\bjoi\.validate|\.isValid\s*\(|"
            r"throw\s+new\s+\w*ValidationError",
        ),
        ("Check conditions", r"\bcheck\w*\s*\("),
        ("Verify data", r"\bverify\w*\s*\("),
    ]
)

DATABASE_STEPS = step_rules(
    [
        ("Save to database", r"\.save\s*\("),
        ("Create database record", r"\.create\s*\("),
        ("Update database record", r"\.update\w*\s*\("),
        ("Delete from database", r"\.delete\s*\((?!\s*['\"`])"),
        ("Query database", r"\.find\s*\("),
        ("Find database record", r"\.findOne\s*\("),
        ("Find record by ID", r"\.findById\s*\("),
        ("Insert into database", r"\.insert\w*\s*\("),
        ("Remove from database", r"\.remove\s*\("),
        ("Database aggregation", r"\.aggregate\s*\("),
        (_sql_step, r"\b(SELECT|INSERT|UPDATE|DELETE)\s+"),
    ]
)

EXTERNAL_API_STEPS = step_rules(
    [
        (
            "Call external API",
            r"\baxios\.\w+\s*\(|\bfetch\s*\(|\brequest\s*\(|"
            r"\.(?:get|post|put|delete)\s*\(\s*['\"`]",
        ),
    ]
)

BUSINESS_STEPS = step_rules(
    [
        ("Calculate", r"calculate\w*\s*\("),
        ("Process", r"\bprocess\w*\s*\("),
        ("Generate", r"generate\w*\s*\("),
        ("Transform data", r"transform\w*\s*\("),
        ("Format data", r"format\w*\s*\("),
        ("Parse data", r"parse\w*\s*\("),
        ("Encrypt data", r"encrypt\w*\s*\("),
        ("Decrypt data", r"decrypt\w*\s*\("),
        ("Hash data", r"hash\w*\s*\("),
        ("Compare data", r"compare\w*\s*\("),
        ("Process payment", r"charge|payment|refund|billing"),
    ],
    re.I,
)

NOTIFICATION_STEPS = step_rules(
    [
        (
            "Send notification",
            r"\b(?:send|notify|email|sms|alert|message)\w*\s*\(",
        ),
    ],
    re.I,
)

ERROR_STEPS = step_rules(
    [
        ("Handle errors", r"\btry\s*\{|\bcatch\s*\(|\bthrow\s+new\b"),
    ]
)


# ---------------------------------------------------------------------------
# utility domains
# ---------------------------------------------------------------------------

UTILITY_DOMAINS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Date/Time", ("date", "time", "moment", "format", "parse")),
    ("Validation", ("validate", "check", "verify", "sanitize")),
    ("Crypto/Security", ("crypto", "hash", "encrypt", "decrypt", "jwt")),
    ("Logging", ("log", "logger", "error", "debug")),
    ("Database", ("db", "sql", "query", "model")),
    ("API/HTTP", ("api", "http", "request", "response", "fetch")),
    ("Math/Calculation", ("math", "calc", "sum", "average")),
    ("Cache", ("cache", "redis")),
    ("File/IO", ("file", "read", "write", "upload", "download")),
    ("Auth", ("auth", "token", "permission")),
)


@dataclass(frozen=True)
class UtilitySubject:
    filename: str
    content: str


def _domain_rows() -> list[Rule[UtilitySubject]]:
    rows: list[Rule[UtilitySubject]] = []
    # file names are a stronger signal than content, so they go first
    for domain, keywords in UTILITY_DOMAINS:
        test = contains_any(keywords)
        rows.append(Rule(domain, lambda s, t=test: t(s.filename), "filename"))
    for domain, keywords in UTILITY_DOMAINS:
        test = contains_any(keywords)
        rows.append(Rule(domain, lambda s, t=test: t(s.content), "content"))
    rows.append(Rule("General", always, "default"))
    return rows


UTILITY_DOMAIN_RULES: RuleTable[UtilitySubject] = RuleTable(
    _domain_rows(), name="utility-domains"
)


# ---------------------------------------------------------------------------
# global patterns
# ---------------------------------------------------------------------------

DEPENDENCY_PATTERNS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Mongoose ODM", ("mongoose",)),
    ("Sequelize ORM", ("sequelize",)),
    ("Prisma ORM", ("prisma", "@prisma/client")),
    ("TypeORM", ("typeorm",)),
    ("Joi validation", ("joi",)),
    ("Zod validation", ("zod",)),
    ("Yup validation", ("yup",)),
    ("Celebrate validation", ("celebrate",)),
    ("JWT Authentication", ("jsonwebtoken",)),
    ("Passport.js Authentication", ("passport",)),
    ("Session-based Authentication", ("express-session",)),
    ("Jest Testing", ("jest",)),
    ("Mocha Testing", ("mocha",)),
    ("Vitest Testing", ("vitest",)),
    ("Redux State Management", ("redux", "@reduxjs/toolkit")),
    ("Zustand State Management", ("zustand",)),
    ("Axios HTTP Client", ("axios",)),
    ("Ky HTTP Client", ("ky",)),
    ("Winston Logging", ("winston",)),
    ("Pino Logging", ("pino",)),
    ("Redis Caching", ("redis", "ioredis")),
    ("Socket.IO", ("socket.io",)),
    ("GraphQL", ("graphql",)),
)

SOURCE_PATTERN_RULES: RuleTable[str] = RuleTable(
    [
        Rule("React Hooks", search(r"\buse(?:Effect|State)\b")),
        Rule(
            "Async/Await Pattern",
            lambda text: "async" in text and "await" in text,
        ),
        Rule("Middleware Pattern", search(r"middleware", re.I)),
        Rule(
            "Dependency Injection",
            lambda text: "dependency injection" in text or "inject" in text,
        ),
        Rule(
            "TypeScript Interfaces",
            lambda text: "interface " in text and "implements " in text,
        ),
    ],
    name="source-patterns",
)
