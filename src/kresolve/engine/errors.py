"""Resolution error types.

Every error carries a stable ``code`` (surfaced as the condition reason) and a
``retryable`` flag. Nothing here retries; the flag only tells the external
scheduler whether waiting can help.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from kresolve.engine.types import Condition


class ResolutionError(Exception):
    """Base exception for resolution errors."""

    code: str = "ResolutionFailed"
    retryable: bool = True

    def target(self) -> dict[str, str]:
        """Identifiers of the object the error is about (for status conditions)."""
        return {}

    def available_keys(self) -> list[str] | None:
        return None

    def to_condition(self) -> Condition:
        from kresolve.engine.types import Condition

        return Condition(
            type="Ready",
            status="False",
            reason=self.code,
            message=str(self),
            target=self.target(),
            available_keys=self.available_keys(),
            retryable=self.retryable,
        )


class ConfigError(ResolutionError):
    """Raised for configuration loading / validation errors."""

    code = "ConfigInvalid"


class ConfigNotFoundError(ConfigError):
    """No cluster config matched the selector."""

    code = "ConfigNotFound"

    def __init__(self, selector: dict[str, str]) -> None:
        self.selector = dict(selector)
        super().__init__(f"No config matches selector {_format_selector(selector)}")

    def target(self) -> dict[str, str]:
        return {"selector": _format_selector(self.selector)}


class ConfigAmbiguousError(ConfigError):
    """More than one config matched a selector that allows at most one."""

    code = "ConfigAmbiguous"

    def __init__(self, selector: dict[str, str], names: list[str]) -> None:
        self.selector = dict(selector)
        self.names = names
        super().__init__(
            f"Selector {_format_selector(selector)} matched {len(names)} configs: "
            f"{', '.join(names)}"
        )

    def target(self) -> dict[str, str]:
        return {"selector": _format_selector(self.selector)}


class UnknownWorkloadKindError(ResolutionError):
    """Raised when no composition is registered for a workload kind."""

    code = "UnknownWorkloadKind"
    retryable = False

    def __init__(self, kind: str) -> None:
        super().__init__(f"Unknown workload kind: {kind}")
        self.kind = kind

    def target(self) -> dict[str, str]:
        return {"kind": self.kind}


class MissingRequiredValueError(ResolutionError):
    """No precedence level supplied a value for a required field."""

    code = "MissingRequiredValue"

    def __init__(self, field: str) -> None:
        super().__init__(f"No value for required field '{field}' at any precedence level")
        self.field = field

    def target(self) -> dict[str, str]:
        return {"field": self.field}


class ReferenceSyntaxError(ResolutionError):
    """A reference string has the right prefix but a malformed path."""

    code = "ReferenceSyntax"
    retryable = False

    def __init__(self, raw: str, reason: str) -> None:
        super().__init__(f"Malformed reference '{raw}': {reason}")
        self.raw = raw

    def target(self) -> dict[str, str]:
        return {"reference": self.raw}


class CrossNamespaceViolationError(ResolutionError):
    """An explicit namespace was used on a reference type that forbids it."""

    code = "CrossNamespaceViolation"
    retryable = False

    def __init__(self, ref_type: str, path: str) -> None:
        super().__init__(
            f"Cross-namespace references are only allowed for outputs/, "
            f"got {ref_type}/ reference '{path}'"
        )
        self.ref_type = ref_type
        self.path = path

    def target(self) -> dict[str, str]:
        return {"refType": self.ref_type, "path": self.path}


class ReferenceTargetNotFoundError(ResolutionError):
    """The referenced instance does not exist (yet)."""

    code = "ReferenceTargetNotFound"

    def __init__(self, instance: str, namespace: str) -> None:
        super().__init__(f"Referenced instance '{instance}' not found in namespace '{namespace}'")
        self.instance = instance
        self.namespace = namespace

    def target(self) -> dict[str, str]:
        return {"instance": self.instance, "namespace": self.namespace}


class ReferenceKeyNotFoundError(ResolutionError):
    """The referenced instance exists but does not expose the key."""

    code = "ReferenceKeyNotFound"

    def __init__(self, instance: str, key: str, available: list[str]) -> None:
        self.instance = instance
        self.key = key
        self.available = sorted(available)
        listing = ", ".join(self.available) if self.available else "<none>"
        super().__init__(
            f"Instance '{instance}' has no key '{key}' (available keys: {listing})"
        )

    def target(self) -> dict[str, str]:
        return {"instance": self.instance, "key": self.key}

    def available_keys(self) -> list[str]:
        return self.available


class ReferenceKindMismatchError(ResolutionError):
    """A secrets/ or configs/ reference points at an instance of the wrong kind."""

    code = "ReferenceKindMismatch"
    retryable = False

    def __init__(self, instance: str, expected: str, got: str) -> None:
        super().__init__(f"Instance '{instance}' is a {got}, expected a {expected}")
        self.instance = instance
        self.expected = expected
        self.got = got

    def target(self) -> dict[str, str]:
        return {"instance": self.instance, "kind": self.got}


class LookupTimeoutError(ResolutionError):
    """A blocking external query exceeded its time budget."""

    code = "LookupTimeout"

    def __init__(self, what: str, timeout: float) -> None:
        super().__init__(f"Timed out after {timeout:g}s waiting for {what}")
        self.what = what
        self.timeout = timeout

    def target(self) -> dict[str, str]:
        return {"lookup": self.what}


class UnpublishableValueError(ResolutionError):
    """A published key resolved to a pointer, which has no literal value."""

    code = "UnpublishableValue"
    retryable = False

    def __init__(self, key: str, field: str) -> None:
        super().__init__(
            f"Published key '{key}' reads field '{field}', which resolves to a "
            f"secret/config pointer and cannot be published as a value"
        )
        self.key = key
        self.field = field

    def target(self) -> dict[str, str]:
        return {"key": self.key, "field": self.field}


class ReconcileCancelled(ResolutionError):
    """Raised when a reconciliation is cancelled between stages."""

    code = "Cancelled"

    def __init__(self, stage: str) -> None:
        super().__init__(f"Reconciliation cancelled before {stage}")
        self.stage = stage


class StoreError(ResolutionError):
    """A stored record could not be read or written."""

    code = "StoreUnavailable"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Output store record {path} is unusable: {reason}")
        self.path = path

    def target(self) -> dict[str, str]:
        return {"path": self.path}


class StoreLockError(ResolutionError):
    """Raised when the output store lock cannot be acquired or released."""

    code = "StoreLocked"


def _format_selector(selector: dict[str, Any]) -> str:
    return ",".join(f"{k}={v}" for k, v in sorted(selector.items()))
