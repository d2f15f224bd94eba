"""Pydantic models for the summary document and its serialization."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from factscan.aggregate import FactGraph
from factscan.config import SCHEMA_VERSION
from factscan.dialects import render_fields
from factscan.git import GitMetadata
from factscan.stack import StackInfo

logger = structlog.get_logger(__name__)


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GitInfo(_Model):
    sha: str | None = None
    branch: str | None = None
    remote: str | None = None


class ServicesSection(_Model):
    business_services: list[str] = Field(
        default_factory=list, alias="businessServices"
    )
    utility_services: list[str] = Field(
        default_factory=list, alias="utilityServices"
    )


class RoutesSection(_Model):
    """Normalized route paths split by visibility."""

    public_routes: list[str] = Field(
        default_factory=list, alias="publicRoutes"
    )
    internal_routes: list[str] = Field(
        default_factory=list, alias="internalRoutes"
    )


class DomainFile(_Model):
    file: str
    functions: list[str]


class UtilityFileInfo(_Model):
    name: str
    domain: str
    functions: list[str]


class UtilsSection(_Model):
    by_domain: dict[str, list[DomainFile]] = Field(
        default_factory=dict, alias="byDomain"
    )
    files: list[UtilityFileInfo] = Field(default_factory=list)


class Frameworks(_Model):
    backend: str = "Unknown"
    frontend: str = "None detected"


class PayloadInfo(_Model):
    request: dict[str, str] = Field(default_factory=dict)
    response: dict[str, str] = Field(default_factory=dict)


class SummaryDocument(_Model):
    """The whole output document.

    ``generated_at`` is left out of the serialized form unless set, so two
    runs over the same tree produce identical bytes.
    """

    schema_version: str = Field(SCHEMA_VERSION, alias="schemaVersion")
    generated_at: str | None = Field(None, alias="generatedAt")
    git: GitInfo = Field(default_factory=GitInfo)
    modules: list[str] = Field(default_factory=list)
    services: ServicesSection = Field(default_factory=ServicesSection)
    api_routes: RoutesSection = Field(
        default_factory=RoutesSection, alias="apiRoutes"
    )
    db_models: list[str] = Field(default_factory=list, alias="dbModels")
    utils: UtilsSection = Field(default_factory=UtilsSection)
    frameworks: Frameworks = Field(default_factory=Frameworks)
    global_patterns: list[str] = Field(
        default_factory=list, alias="globalPatterns"
    )
    service_dependencies: dict[str, list[str]] = Field(
        default_factory=dict, alias="serviceDependencies"
    )
    schema_snapshots: dict[str, dict[str, str]] = Field(
        default_factory=dict, alias="schemaSnapshots"
    )
    api_payloads: dict[str, PayloadInfo] = Field(
        default_factory=dict, alias="apiPayloads"
    )
    auth_policies: dict[str, str] = Field(
        default_factory=dict, alias="authPolicies"
    )
    business_flows: dict[str, dict[str, list[str]]] = Field(
        default_factory=dict, alias="businessFlows"
    )

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True)
        if data.get("generatedAt") is None:
            data.pop("generatedAt", None)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"


def build_document(
    graph: FactGraph,
    *,
    git: GitMetadata | None = None,
    stack: StackInfo | None = None,
    modules: list[str] | None = None,
    limit: int | None = None,
    timestamp: bool = False,
) -> SummaryDocument:
    """Project a fact graph (plus collaborator metadata) onto the document."""
    git = git or GitMetadata()
    stack = stack or StackInfo()
    modules = sorted(set(modules or ()))
    patterns = sorted(set(stack.patterns))
    if limit is not None:
        modules = modules[:limit]
        patterns = patterns[:limit]

    by_domain: dict[str, list[DomainFile]] = {}
    for domain, files in sorted(graph.utilities_by_domain().items()):
        by_domain[domain] = [
            DomainFile(file=u.name, functions=list(u.functions))
            for u in files
        ]

    return SummaryDocument(
        generated_at=(
            datetime.now(timezone.utc).isoformat() if timestamp else None
        ),
        git=GitInfo(sha=git.sha, branch=git.branch, remote=git.remote),
        modules=modules,
        services=ServicesSection(
            business_services=list(graph.business_services),
            utility_services=list(graph.utility_services),
        ),
        api_routes=RoutesSection(
            public_routes=list(graph.public_routes),
            internal_routes=list(graph.internal_routes),
        ),
        db_models=list(graph.models),
        utils=UtilsSection(
            by_domain=by_domain,
            files=[
                UtilityFileInfo(
                    name=u.name, domain=u.domain, functions=list(u.functions)
                )
                for u in graph.utilities
            ],
        ),
        frameworks=Frameworks(backend=stack.backend, frontend=stack.frontend),
        global_patterns=patterns,
        service_dependencies={
            source: list(targets)
            for source, targets in graph.dependencies.items()
        },
        schema_snapshots={
            name: render_fields(fields)
            for name, fields in graph.schemas.items()
        },
        api_payloads={
            key: PayloadInfo(
                request=render_fields(request),
                response=render_fields(response),
            )
            for key, (request, response) in graph.payloads.items()
        },
        auth_policies=dict(graph.auth),
        business_flows={
            service: {method: list(steps) for method, steps in methods.items()}
            for service, methods in graph.flows.items()
        },
    )


def write_document(document: SummaryDocument, path: Path) -> Path:
    """Write the document; ``OSError`` propagates to the caller."""
    path = Path(path)
    path.write_text(document.to_json(), encoding="utf-8")
    logger.info("summary written", path=str(path))
    return path
