"""Composition models: how one workload kind turns into generated resources."""

from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kresolve.resources.paths import split_path


def _check_path(v: str) -> str:
    split_path(v)
    return v


class FieldPatch(BaseModel):
    """Copy a resolved field value into a generated resource.

    ``field`` is the dotted path looked up in every precedence level (cluster
    defaults, instance spec, project overrides); ``to`` is the dotted path in
    the generated resource.  ``default`` is the composition-level default and
    ``None`` means "no default".
    """

    model_config = ConfigDict(extra="forbid")

    field: str
    to: str
    default: Any = None
    required: bool = False

    @field_validator("field", "to")
    @classmethod
    def validate_paths(cls, v: str) -> str:
        return _check_path(v)


class ResourceTemplate(BaseModel):
    """Base skeleton of one generated resource plus the patches applied to it."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
    api_version: str = "v1"
    kind: str
    base: dict[str, Any] = Field(default_factory=dict)
    patches: list[FieldPatch] = Field(default_factory=list)


class PublishSpec(BaseModel):
    """A resolved field the instance exposes to other instances.

    Sensitive values go to the connection secret, everything else to the
    literal outputs map.
    """

    model_config = ConfigDict(extra="forbid")

    key: str = Field(pattern=r"^[A-Za-z0-9_.-]+$")
    from_field: str
    sensitive: bool = False

    @field_validator("from_field")
    @classmethod
    def validate_from_field(cls, v: str) -> str:
        return _check_path(v)


class FieldDeclaration(BaseModel):
    """Merged view of every patch that reads the same field."""

    path: str
    default: Any = None
    required: bool = False


class Composition(BaseModel):
    """Everything needed to generate resources for one workload kind."""

    model_config = ConfigDict(extra="forbid")

    kind: str = Field(min_length=1)
    description: str = ""
    resources: list[ResourceTemplate] = Field(min_length=1)
    publish: list[PublishSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_consistency(self) -> Self:
        names = [t.name for t in self.resources]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate resource template name(s): {', '.join(duplicates)}")

        defaults: dict[str, Any] = {}
        for template in self.resources:
            for patch in template.patches:
                if patch.default is None:
                    continue
                if patch.field in defaults and defaults[patch.field] != patch.default:
                    raise ValueError(f"Conflicting defaults for field '{patch.field}'")
                defaults[patch.field] = patch.default

        declared = {p.field for t in self.resources for p in t.patches}
        keys: set[str] = set()
        for spec in self.publish:
            if spec.from_field not in declared:
                raise ValueError(
                    f"Published key '{spec.key}' reads undeclared field '{spec.from_field}'"
                )
            if spec.key in keys:
                raise ValueError(f"Duplicate published key '{spec.key}'")
            keys.add(spec.key)
        return self

    def fields(self) -> list[FieldDeclaration]:
        """Distinct declared fields, in first-declaration order."""
        merged: dict[str, FieldDeclaration] = {}
        for template in self.resources:
            for patch in template.patches:
                decl = merged.setdefault(patch.field, FieldDeclaration(path=patch.field))
                if patch.default is not None:
                    decl.default = patch.default
                decl.required = decl.required or patch.required
        return list(merged.values())
