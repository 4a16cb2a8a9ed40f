"""Resolution engine: values, references, patching and publishing."""

from kresolve.engine.engine import Reconciler
from kresolve.engine.errors import (
    ConfigAmbiguousError,
    ConfigError,
    ConfigNotFoundError,
    CrossNamespaceViolationError,
    LookupTimeoutError,
    MissingRequiredValueError,
    ReconcileCancelled,
    ReferenceKeyNotFoundError,
    ReferenceKindMismatchError,
    ReferenceSyntaxError,
    ReferenceTargetNotFoundError,
    ResolutionError,
    StoreError,
    StoreLockError,
    UnknownWorkloadKindError,
    UnpublishableValueError,
)
from kresolve.engine.references import (
    ConfigRef,
    ConnectionRef,
    LiteralValue,
    OutputRef,
    Pointer,
    SecretRef,
    parse_reference,
)
from kresolve.engine.registry import CompositionRegistry
from kresolve.engine.types import Condition, Phase, ReconcileResult
from kresolve.engine.values import deep_merge

__all__ = [
    "CompositionRegistry",
    "Condition",
    "ConfigAmbiguousError",
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigRef",
    "ConnectionRef",
    "CrossNamespaceViolationError",
    "LiteralValue",
    "LookupTimeoutError",
    "MissingRequiredValueError",
    "OutputRef",
    "Phase",
    "Pointer",
    "ReconcileCancelled",
    "ReconcileResult",
    "Reconciler",
    "ReferenceKeyNotFoundError",
    "ReferenceKindMismatchError",
    "ReferenceSyntaxError",
    "ReferenceTargetNotFoundError",
    "ResolutionError",
    "SecretRef",
    "StoreError",
    "StoreLockError",
    "UnknownWorkloadKindError",
    "UnpublishableValueError",
    "deep_merge",
    "parse_reference",
]
