"""Workload instance and composition models."""

from kresolve.resources.base import WorkloadInstance
from kresolve.resources.composition import (
    Composition,
    FieldDeclaration,
    FieldPatch,
    PublishSpec,
    ResourceTemplate,
)

__all__ = [
    "Composition",
    "FieldDeclaration",
    "FieldPatch",
    "PublishSpec",
    "ResourceTemplate",
    "WorkloadInstance",
]
