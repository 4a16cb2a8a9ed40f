"""Deterministic resource generation.

Stages, always in this order:

1. deep copy of the template skeleton
2. resolved field values written at each patch's ``to`` path
3. reference injection (literals inlined, pointers turned into
   ``secretKeyRef`` / ``configMapKeyRef`` style fields)
4. metadata: name, namespace, labels, annotations, owner reference

Output dicts are key-sorted recursively so that identical inputs always render
to identical bytes.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from kresolve.core.state import canonical_json, compute_digest
from kresolve.engine.references import LiteralValue, Pointer, is_reference
from kresolve.resources.paths import get_path, set_path

if TYPE_CHECKING:
    from collections.abc import Mapping

    from kresolve.engine.references import ResolvedReference
    from kresolve.engine.values import ResolvedField
    from kresolve.resources.base import WorkloadInstance
    from kresolve.resources.composition import Composition, ResourceTemplate

logger = logging.getLogger(__name__)

OWNER_API_VERSION = "kresolve.io/v1"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
INSTANCE_LABEL = "kresolve.io/instance"
KIND_LABEL = "kresolve.io/kind"
DIGEST_ANNOTATION = "kresolve.io/inputs-digest"

PointerRenderer = Callable[[Pointer], Any]


def pointer_field(pointer: Pointer) -> dict[str, Any]:
    """Provider-native reference field for a pointer."""
    if pointer.source == "secret":
        if pointer.key is None:
            return {"secretRef": {"name": pointer.resource_name}}
        return {"secretKeyRef": {"name": pointer.resource_name, "key": pointer.key}}
    if pointer.key is None:
        return {"configMapRef": {"name": pointer.resource_name}}
    return {"configMapKeyRef": {"name": pointer.resource_name, "key": pointer.key}}


def inject_references(
    value: Any,
    refs: Mapping[str, ResolvedReference],
    *,
    on_pointer: PointerRenderer = pointer_field,
) -> Any:
    """Replace every string leaf that is a resolved reference.

    Literals are inlined; pointers go through *on_pointer*.  Returns a new
    value, *value* is not mutated.
    """
    if isinstance(value, dict):
        return {k: inject_references(v, refs, on_pointer=on_pointer) for k, v in value.items()}
    if isinstance(value, list):
        return [inject_references(v, refs, on_pointer=on_pointer) for v in value]
    if not isinstance(value, str) or not is_reference(value):
        return value

    resolved = refs.get(value)
    if resolved is None:
        raise RuntimeError(f"Reference '{value}' reached the applier unresolved")
    match resolved:
        case LiteralValue():
            return copy.deepcopy(resolved.value)
        case Pointer():
            return on_pointer(resolved)
        case _:  # pragma: no cover
            raise TypeError(f"Unknown resolved reference: {resolved!r}")


def sort_keys(value: Any) -> Any:
    """Recursively rebuild dicts with sorted keys."""
    if isinstance(value, dict):
        return {k: sort_keys(value[k]) for k in sorted(value)}
    if isinstance(value, list):
        return [sort_keys(v) for v in value]
    return value


def _outermost(paths: list[str]) -> list[str]:
    unique = list(dict.fromkeys(paths))
    return [p for p in unique if not any(p.startswith(f"{q}.") for q in unique)]


def render(resources: list[dict[str, Any]]) -> bytes:
    """Canonical byte rendering of a resource set."""
    return canonical_json(resources).encode("utf-8")


class PatchApplier:
    """Turn resolved values and references into the instance's resource set."""

    def __init__(self, instance: WorkloadInstance, composition: Composition, *, manager: str):
        self._instance = instance
        self._composition = composition
        self._manager = manager

    def resource_name(self, template: ResourceTemplate) -> str:
        return f"{self._instance.name}-{template.name}"

    def apply(
        self,
        values: Mapping[str, ResolvedField],
        refs: Mapping[str, ResolvedReference],
    ) -> list[dict[str, Any]]:
        resources = [self._apply_one(t, values, refs) for t in self._composition.resources]
        logger.debug("Generated %d resource(s) for %s", len(resources), self._instance.address)
        return resources

    def _apply_one(
        self,
        template: ResourceTemplate,
        values: Mapping[str, ResolvedField],
        refs: Mapping[str, ResolvedReference],
    ) -> dict[str, Any]:
        # Stage 1: skeleton
        resource: dict[str, Any] = copy.deepcopy(template.base)
        resource["apiVersion"] = template.api_version
        resource["kind"] = template.kind

        # Stage 2: resolved values
        patched: list[str] = []
        for patch in template.patches:
            field = values.get(patch.field)
            if field is None:
                continue
            set_path(resource, patch.to, copy.deepcopy(field.value))
            patched.append(patch.to)

        # Stage 3: references, once per outermost patched path
        for path in _outermost(patched):
            set_path(resource, path, inject_references(get_path(resource, path), refs))

        # Stage 4: metadata
        self._apply_metadata(template, resource)
        return sort_keys(resource)

    def _apply_metadata(self, template: ResourceTemplate, resource: dict[str, Any]) -> None:
        instance = self._instance
        digest = compute_digest(resource)

        metadata = resource.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        metadata["name"] = self.resource_name(template)
        metadata["namespace"] = instance.namespace
        metadata["labels"] = {
            **(metadata.get("labels") or {}),
            **instance.labels,
            MANAGED_BY_LABEL: self._manager,
            INSTANCE_LABEL: instance.name,
            KIND_LABEL: instance.kind,
        }
        metadata["annotations"] = {
            **(metadata.get("annotations") or {}),
            DIGEST_ANNOTATION: digest,
        }
        owner: dict[str, Any] = {
            "apiVersion": OWNER_API_VERSION,
            "kind": instance.kind,
            "name": instance.name,
            "controller": True,
            "blockOwnerDeletion": True,
        }
        if instance.uid:
            owner["uid"] = instance.uid
        metadata["ownerReferences"] = [owner]
        resource["metadata"] = metadata
