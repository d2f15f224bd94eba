from factscan.stack.frameworks import (
    StackInfo,
    detect_frameworks,
    detect_stack,
)
from factscan.stack.manifest import Manifest, RawDependency, parse_manifest

__all__ = [
    "Manifest",
    "RawDependency",
    "StackInfo",
    "detect_frameworks",
    "detect_stack",
    "parse_manifest",
]
