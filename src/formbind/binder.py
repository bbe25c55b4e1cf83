"""Binding of one raw form value into one record field."""

from __future__ import annotations

import logging
import re
from typing import Any

from formbind.catalog import FieldDescriptor, set_field
from formbind.errors import ConversionError, FormError, UnsupportedFieldTypeError
from formbind.types import (
    UNMARSHAL_HOOK,
    PrimitiveType,
    PrimitiveTypeDefinition,
    RefTypeDefinition,
    TypeDefinition,
)

logger = logging.getLogger(__name__)

TRUE_LITERALS = frozenset({"true", "TRUE", "True", "1"})
FALSE_LITERALS = frozenset({"false", "FALSE", "False", "0"})

_INTEGER = re.compile(r"[+-]?[0-9]+")


def parse_bool(raw: str, strict: bool = False) -> bool:
    """Parse a boolean literal.

    Anything that is not a false literal is true unless ``strict`` is set,
    in which case unknown literals raise ``ValueError``.
    """
    if raw in FALSE_LITERALS:
        return False
    if raw in TRUE_LITERALS or not strict:
        return True
    raise ValueError(f"invalid boolean literal {raw!r}")


def parse_int(raw: str, primitive: PrimitiveType = PrimitiveType.INT) -> int:
    """Parse a base-10 signed integer that must fit the primitive's width."""
    if not _INTEGER.fullmatch(raw):
        raise ValueError(f"invalid base-10 integer {raw!r}")
    value = int(raw)
    low, high = primitive.bounds
    if not low <= value <= high:
        raise ValueError(f"{value} out of range for {primitive.value} [{low}, {high}]")
    return value


def walk_chain(
    owner: Any, attribute: str, type_def: TypeDefinition
) -> tuple[Any, str, TypeDefinition]:
    """Descend through ``Ref`` links, allocating the unset ones.

    Returns the owner and attribute of the writable base slot together with
    the base type. Existing links are reused.
    """
    while isinstance(type_def, RefTypeDefinition):
        link = getattr(owner, attribute)
        if link is None:
            link = type_def.allocate()
            set_field(owner, attribute, link)
        owner, attribute, type_def = link, "value", type_def.target
    return owner, attribute, type_def


def convert(
    name: str, type_def: TypeDefinition, current: Any, raw: str, strict_bool: bool = False
) -> Any:
    """Convert ``raw`` into a value of ``type_def``.

    ``current`` is the value presently in the slot; custom hooks act on it.
    Any exception a hook raises is reported as a ``ConversionError``.

    Raises:
        ConversionError: The raw text is not a valid value of the type.
        UnsupportedFieldTypeError: The type has no decoding strategy.
    """
    if type_def.is_custom:
        hook_type = type_def.resolve_base_type()
        target = current if current is not None else hook_type.zero()
        try:
            result = getattr(target, UNMARSHAL_HOOK)(raw)
        except FormError:
            raise
        except Exception as exc:
            raise ConversionError(name, raw, str(exc) or type(exc).__name__) from exc
        return target if result is None else result

    base = type_def.resolve_base_type()
    if not isinstance(base, PrimitiveTypeDefinition):
        raise UnsupportedFieldTypeError(name, type_def.name)

    try:
        if base.primitive is PrimitiveType.STRING:
            value: Any = raw
        elif base.primitive is PrimitiveType.BOOLEAN:
            value = parse_bool(raw, strict=strict_bool)
        else:
            value = parse_int(raw, base.primitive)
        return type_def.construct(value)
    except ValueError as exc:
        raise ConversionError(name, raw, str(exc)) from exc


def bind(record: Any, descriptor: FieldDescriptor, raw: str, *, strict_bool: bool = False) -> None:
    """Decode ``raw`` into the field ``descriptor`` points at inside ``record``."""
    base = descriptor.type_def
    while base.is_ref:
        base = base.target
    # Checked before any link is allocated so the record stays untouched
    if not (base.is_custom or base.is_primitive):
        raise UnsupportedFieldTypeError(descriptor.name, descriptor.type_def.name)

    owner, attribute = descriptor.accessor.resolve(record)
    owner, attribute, base = walk_chain(owner, attribute, descriptor.type_def)
    value = convert(descriptor.name, base, getattr(owner, attribute), raw, strict_bool=strict_bool)
    set_field(owner, attribute, value)
    logger.debug("Bound form value %r to %s", descriptor.name, descriptor.accessor.path)
