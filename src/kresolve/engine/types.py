"""Engine types (phases, status conditions, reconcile results)."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Phase(str, Enum):
    PENDING = "Pending"
    LOADING_CONFIG = "LoadingConfig"
    RESOLVING = "Resolving"
    PATCHING = "Patching"
    PUBLISHING = "Publishing"
    COMPLETE = "Complete"
    FAILED = "Failed"


class Condition(BaseModel):
    """Status condition attached to the reconciled instance."""

    type: str
    status: str
    reason: str
    message: str = ""
    target: dict[str, str] = Field(default_factory=dict)
    available_keys: list[str] | None = None
    retryable: bool = True
    last_transition_time: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ReconcileResult(BaseModel):
    """Outcome of a single reconciliation pass for one instance.

    On failure ``resources`` is empty: a pass never hands out a partial
    resource set.
    """

    instance: str
    namespace: str
    phase: Phase = Phase.PENDING
    failed_stage: Phase | None = None
    resources: list[dict[str, Any]] = Field(default_factory=list)
    rendered: bytes = b""
    published: bool = False
    conditions: list[Condition] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.phase == Phase.COMPLETE

    @property
    def error_code(self) -> str | None:
        if self.success:
            return None
        return next((c.reason for c in self.conditions if c.status == "False"), None)
