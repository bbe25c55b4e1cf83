"""Field catalog: which fields of a record are decodable, and under what name."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from formbind.errors import FormTypeError
from formbind.types import (
    DEFAULT_TAG,
    CompositeTypeDefinition,
    FieldDefinition,
    RefTypeDefinition,
    TypeDefinition,
    TypeRegistry,
    default_registry,
    type_name,
)


@dataclass(frozen=True)
class FieldStep:
    """One attribute hop on the path from the record root to a field."""

    attribute: str
    type_def: TypeDefinition


@dataclass(frozen=True)
class Accessor:
    """Path from the record root to a decodable field.

    Every step but the last is an embedded record (possibly behind one
    ``Ref``); the last step is the field itself.
    """

    steps: tuple[FieldStep, ...]

    @property
    def attribute(self) -> str:
        return self.steps[-1].attribute

    @property
    def type_def(self) -> TypeDefinition:
        return self.steps[-1].type_def

    @property
    def path(self) -> str:
        return ".".join(step.attribute for step in self.steps)

    def resolve(self, record: Any) -> tuple[Any, str]:
        """Return ``(owner, attribute)`` of the field inside ``record``.

        Unset embedded records on the way are allocated and linked.
        """
        owner = record
        for step in self.steps[:-1]:
            current = getattr(owner, step.attribute)
            if isinstance(step.type_def, RefTypeDefinition):
                if current is None:
                    current = step.type_def.allocate()
                    set_field(owner, step.attribute, current)
                owner, attribute, composite = current, "value", step.type_def.target
                current = current.value
            else:
                attribute, composite = step.attribute, step.type_def
            if current is None:
                current = composite.zero()
                set_field(owner, attribute, current)
            owner = current
        return owner, self.attribute


@dataclass(frozen=True)
class FieldDescriptor:
    """External name bound to the accessor of one field."""

    name: str
    accessor: Accessor

    @property
    def type_def(self) -> TypeDefinition:
        return self.accessor.type_def


def set_field(owner: Any, attribute: str, value: Any) -> None:
    """Write ``value`` into ``owner.attribute``."""
    try:
        setattr(owner, attribute, value)
    except dataclasses.FrozenInstanceError as exc:
        raise FormTypeError(
            f"Cannot assign field '{attribute}' of frozen record '{type_name(type(owner))}'"
        ) from exc


def _embedded_composite(f: FieldDefinition) -> CompositeTypeDefinition | None:
    """Return the record to flatten for an embedded field, if any."""
    type_def = f.type_def
    if isinstance(type_def, RefTypeDefinition):
        type_def = type_def.target
    if isinstance(type_def, CompositeTypeDefinition):
        return type_def
    return None


def _on_path(
    inner: CompositeTypeDefinition,
    composite: CompositeTypeDefinition,
    prefix: tuple[FieldStep, ...],
) -> bool:
    if inner is composite:
        return True
    for s in prefix:
        target = s.type_def.target if isinstance(s.type_def, RefTypeDefinition) else s.type_def
        if target is inner:
            return True
    return False


def _collect(
    composite: CompositeTypeDefinition,
    tag: str,
    prefix: tuple[FieldStep, ...],
    out: list[FieldDescriptor],
) -> None:
    for f in composite.fields:
        name = f.tag(tag)
        step = FieldStep(attribute=f.name, type_def=f.type_def)

        if f.is_embedded and name is None:
            inner = _embedded_composite(f)
            # A record embedding itself through a Ref is not expanded again
            if inner is not None and not _on_path(inner, composite, prefix):
                _collect(inner, tag, prefix + (step,), out)
                continue

        if not name:
            continue
        out.append(FieldDescriptor(name=name, accessor=Accessor(steps=prefix + (step,))))


def build_catalog(
    record_type: Any,
    *,
    tag: str = DEFAULT_TAG,
    registry: TypeRegistry | None = None,
) -> list[FieldDescriptor]:
    """Build the ordered list of decodable fields of ``record_type``.

    Fields appear in declaration order. Untagged embedded records are
    expanded depth-first at their position. Fields without a tag, or with an
    empty one, are left out.

    Raises:
        FormTypeError: If ``record_type`` is not a dataclass.
    """
    if not (dataclasses.is_dataclass(record_type) and isinstance(record_type, type)):
        raise FormTypeError(f"Expected a dataclass type, got {record_type!r}")

    type_def = (registry or default_registry).describe(record_type)
    if not isinstance(type_def, CompositeTypeDefinition):
        # A dataclass with its own hook decodes as a single value
        raise FormTypeError(f"Type '{type_def.name}' is not a record type")

    catalog: list[FieldDescriptor] = []
    _collect(type_def, tag, (), catalog)
    return catalog


@lru_cache(maxsize=256)
def _cached_catalog(
    record_type: type, tag: str, registry: TypeRegistry
) -> tuple[FieldDescriptor, ...]:
    return tuple(build_catalog(record_type, tag=tag, registry=registry))


def cached_catalog(
    record_type: type,
    *,
    tag: str = DEFAULT_TAG,
    registry: TypeRegistry | None = None,
) -> tuple[FieldDescriptor, ...]:
    """Memoized ``build_catalog``, keyed by record type and tag."""
    return _cached_catalog(record_type, tag, registry or default_registry)
