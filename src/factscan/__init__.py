from factscan.aggregate import (
    AssociationConflictError,
    Aggregator,
    FactGraph,
    aggregate,
)
from factscan.association import associate
from factscan.config import ScanConfig
from factscan.extract import FileScanner, extract
from factscan.facts import (
    AssociationRecord,
    ContextFragment,
    Entity,
    FileResult,
    RouteDescriptor,
    ServiceDependencyEdge,
)
from factscan.names import canonicalize
from factscan.output import SummaryDocument, build_document
from factscan.pipeline import run_scan, scan_targets

__version__ = "0.1.0"

__all__ = [
    "Aggregator",
    "AssociationConflictError",
    "AssociationRecord",
    "ContextFragment",
    "Entity",
    "FactGraph",
    "FileResult",
    "FileScanner",
    "RouteDescriptor",
    "ScanConfig",
    "ServiceDependencyEdge",
    "SummaryDocument",
    "__version__",
    "aggregate",
    "associate",
    "build_document",
    "canonicalize",
    "extract",
    "run_scan",
    "scan_targets",
]
