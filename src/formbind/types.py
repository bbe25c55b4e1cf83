"""Type definitions for the formbind library.

Python annotations are described once as a tree of ``TypeDefinition``
objects. The catalog builder and the binder only ever look at these
descriptions, never at raw annotations.
"""

from __future__ import annotations

import dataclasses
import threading
import types
import typing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, NewType, Protocol, TypeVar, runtime_checkable

from formbind.errors import FormTypeError

T = TypeVar("T")

# Metadata keys understood on dataclass fields
DEFAULT_TAG = "form"
EMBEDDED_KEY = "embedded"

# Name of the custom conversion hook
UNMARSHAL_HOOK = "unmarshal_form_field"


class PrimitiveType(Enum):
    """Built-in primitive kinds the binder converts without a hook."""

    STRING = "string"
    BOOLEAN = "boolean"
    INT = "int"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"

    @property
    def bits(self) -> int:
        """Return the width in bits for integer kinds."""
        widths = {
            PrimitiveType.INT: 64,  # plain int behaves like a 64-bit word
            PrimitiveType.INT8: 8,
            PrimitiveType.INT16: 16,
            PrimitiveType.INT32: 32,
            PrimitiveType.INT64: 64,
        }
        return widths[self]

    @property
    def bounds(self) -> tuple[int, int]:
        """Return the inclusive (min, max) range for integer kinds."""
        half = 1 << (self.bits - 1)
        return -half, half - 1


# Sized signed integers. Plain ``int`` fields use the 64-bit range.
Int8 = NewType("Int8", int)
Int16 = NewType("Int16", int)
Int32 = NewType("Int32", int)
Int64 = NewType("Int64", int)

SIZED_INTEGERS: dict[Any, PrimitiveType] = {
    Int8: PrimitiveType.INT8,
    Int16: PrimitiveType.INT16,
    Int32: PrimitiveType.INT32,
    Int64: PrimitiveType.INT64,
}


@dataclass
class Ref(Generic[T]):
    """Single-owner indirection to a value.

    ``Ref[Ref[int]]`` is a two-level chain. An unset link is ``None`` on the
    owning field (or on the outer ``Ref``).
    """

    value: Any = None


@runtime_checkable
class FieldUnmarshaler(Protocol):
    """Types that decode themselves from a raw form value.

    Mutable types update ``self`` and return ``None``. Immutable value types
    (``str`` or ``int`` subclasses) return the replacement value instead.
    Failures are signalled by raising ``ValueError``.
    """

    def unmarshal_form_field(self, raw: str) -> Any: ...


def form_field(name: str, *, tag: str = DEFAULT_TAG, **kwargs: Any) -> Any:
    """Declare a dataclass field bound to the external name ``name``.

    Remaining keyword arguments go to ``dataclasses.field``.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[tag] = name
    return field(metadata=metadata, **kwargs)


def embedded(record_type: type | None = None, **kwargs: Any) -> Any:
    """Declare an embedded record whose fields are promoted into the parent.

    With ``record_type`` given and no default, the field defaults to a fresh
    ``record_type()``.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[EMBEDDED_KEY] = True
    if record_type is not None and "default" not in kwargs and "default_factory" not in kwargs:
        kwargs["default_factory"] = record_type
    return field(metadata=metadata, **kwargs)


@dataclass(eq=False)
class TypeDefinition:
    """Base class for all type definitions."""

    name: str
    py_type: Any = field(default=None, repr=False)

    @property
    def is_primitive(self) -> bool:
        """Return whether this type is a primitive type."""
        return False

    @property
    def is_ref(self) -> bool:
        """Return whether this type is an indirection."""
        return False

    @property
    def is_composite(self) -> bool:
        """Return whether this type is a composite (dataclass) type."""
        return False

    @property
    def is_custom(self) -> bool:
        """Return whether this type decodes itself through the hook."""
        return False

    def resolve_base_type(self) -> TypeDefinition:
        """Resolve through aliases to get the underlying type."""
        return self

    def zero(self) -> Any:
        """Return a freshly allocated zero value of this type."""
        return None


@dataclass(eq=False)
class PrimitiveTypeDefinition(TypeDefinition):
    """Type definition wrapping a primitive kind."""

    primitive: PrimitiveType = PrimitiveType.STRING

    @property
    def is_primitive(self) -> bool:
        return True

    def construct(self, value: Any) -> Any:
        return value


@dataclass(eq=False)
class AliasTypeDefinition(TypeDefinition):
    """Named type: a ``NewType`` or a subclass of ``str``/``int``.

    A ``NewType`` over a hook type decodes through the hook of its base.
    """

    base_type: TypeDefinition | None = None

    @property
    def is_primitive(self) -> bool:
        return self.resolve_base_type().is_primitive

    @property
    def is_custom(self) -> bool:
        return self.resolve_base_type().is_custom

    def resolve_base_type(self) -> TypeDefinition:
        """Resolve through aliases to get the underlying type."""
        return self.base_type.resolve_base_type()

    def construct(self, value: Any) -> Any:
        """Convert an already parsed base value into the named type."""
        inner = self.base_type.construct(value)
        if isinstance(self.py_type, type):
            return self.py_type(inner)
        # NewType: calling it returns the argument unchanged
        return inner


@dataclass(eq=False)
class RefTypeDefinition(TypeDefinition):
    """Indirection ``Ref[target]``."""

    target: TypeDefinition | None = None

    @property
    def is_ref(self) -> bool:
        return True

    @property
    def depth(self) -> int:
        """Number of indirection levels before a non-ref type is reached."""
        levels = 0
        current: TypeDefinition = self
        while isinstance(current, RefTypeDefinition):
            levels += 1
            current = current.target
        return levels

    def allocate(self) -> Ref:
        """Allocate a new, unset link."""
        return Ref()


@dataclass(eq=False)
class FieldDefinition:
    """Definition of a field within a composite type."""

    name: str
    type_def: TypeDefinition
    metadata: typing.Mapping[str, Any] = field(default_factory=dict)

    def tag(self, key: str = DEFAULT_TAG) -> str | None:
        """Return the external name under ``key``, if any."""
        value = self.metadata.get(key)
        return value if isinstance(value, str) else None

    @property
    def is_embedded(self) -> bool:
        return bool(self.metadata.get(EMBEDDED_KEY))


@dataclass(eq=False)
class CompositeTypeDefinition(TypeDefinition):
    """Type definition for dataclass records."""

    fields: list[FieldDefinition] = field(default_factory=list)
    frozen: bool = False

    @property
    def is_composite(self) -> bool:
        return True

    def get_field(self, name: str) -> FieldDefinition | None:
        """Get a field by attribute name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def zero(self) -> Any:
        try:
            return self.py_type()
        except TypeError as exc:
            raise FormTypeError(
                f"Record type '{self.name}' cannot be instantiated without arguments"
            ) from exc


@dataclass(eq=False)
class CustomTypeDefinition(TypeDefinition):
    """Type exposing the ``unmarshal_form_field`` hook."""

    @property
    def is_custom(self) -> bool:
        return True

    def zero(self) -> Any:
        try:
            return self.py_type()
        except TypeError as exc:
            raise FormTypeError(
                f"Type '{self.name}' cannot be instantiated without arguments"
            ) from exc


@dataclass(eq=False)
class UnsupportedTypeDefinition(TypeDefinition):
    """Any type the binder has no strategy for (float, complex, unions...)."""


def _is_class(tp: Any) -> bool:
    # Parameterized generics such as list[str] pass isinstance(tp, type)
    return isinstance(tp, type) and typing.get_origin(tp) is None


def has_unmarshal_hook(tp: Any) -> bool:
    """Check if a class exposes the custom conversion hook."""
    return _is_class(tp) and issubclass(tp, FieldUnmarshaler)


def type_name(tp: Any) -> str:
    """Readable name for an annotation."""
    name = getattr(tp, "__qualname__", None) or getattr(tp, "__name__", None)
    return name if isinstance(name, str) else repr(tp)


def _strip_optional(tp: Any) -> Any:
    """Read ``X | None`` and ``Annotated[X, ...]`` as ``X``."""
    while True:
        origin = typing.get_origin(tp)
        if origin is typing.Annotated:
            tp = typing.get_args(tp)[0]
            continue
        if origin is typing.Union or isinstance(tp, types.UnionType):
            args = [a for a in typing.get_args(tp) if a is not type(None)]
            if len(args) == 1:
                tp = args[0]
                continue
        return tp


class TypeRegistry:
    """Memoized descriptions of Python annotations.

    Safe to share between threads. Records referring to themselves (through
    ``Ref``) resolve via stubs registered before their fields are described.
    """

    def __init__(self) -> None:
        self._types: dict[Any, TypeDefinition] = {}
        self._lock = threading.RLock()
        self._register_primitives()

    def _register_primitives(self) -> None:
        """Register the builtin primitive types."""
        self._types[str] = PrimitiveTypeDefinition(
            name="str", py_type=str, primitive=PrimitiveType.STRING
        )
        self._types[bool] = PrimitiveTypeDefinition(
            name="bool", py_type=bool, primitive=PrimitiveType.BOOLEAN
        )
        self._types[int] = PrimitiveTypeDefinition(
            name="int", py_type=int, primitive=PrimitiveType.INT
        )
        for sized, primitive in SIZED_INTEGERS.items():
            self._types[sized] = PrimitiveTypeDefinition(
                name=sized.__name__, py_type=sized, primitive=primitive
            )

    def get(self, tp: Any) -> TypeDefinition | None:
        """Get an already described annotation."""
        try:
            return self._types.get(tp)
        except TypeError:
            return None

    def describe(self, tp: Any) -> TypeDefinition:
        """Describe an annotation, memoizing the result."""
        with self._lock:
            existing = self.get(tp)
            if existing is not None:
                return existing
            type_def = self._describe(tp)
            try:
                self._types[tp] = type_def
            except TypeError:
                # Unhashable annotation (e.g. Annotated with dict metadata)
                pass
            return type_def

    def _describe(self, tp: Any) -> TypeDefinition:
        stripped = _strip_optional(tp)
        if stripped is not tp:
            return self.describe(stripped)

        if tp is Ref:
            # Unparameterized: nothing to allocate behind the link
            return UnsupportedTypeDefinition(name="Ref", py_type=tp)

        if typing.get_origin(tp) is Ref:
            args = typing.get_args(tp)
            return RefTypeDefinition(
                name=f"Ref[{type_name(args[0])}]", py_type=tp, target=self.describe(args[0])
            )

        # Hook first: it takes precedence even over str/int subclasses
        if has_unmarshal_hook(tp):
            return CustomTypeDefinition(name=type_name(tp), py_type=tp)

        supertype = getattr(tp, "__supertype__", None)
        if supertype is not None:
            return AliasTypeDefinition(
                name=type_name(tp), py_type=tp, base_type=self.describe(supertype)
            )

        if dataclasses.is_dataclass(tp) and _is_class(tp):
            return self._describe_composite(tp)

        if _is_class(tp) and tp is not bool:
            for base in (str, int):
                if issubclass(tp, base) and not issubclass(tp, bool):
                    return AliasTypeDefinition(
                        name=type_name(tp), py_type=tp, base_type=self.describe(base)
                    )

        return UnsupportedTypeDefinition(name=type_name(tp), py_type=tp)

    def _describe_composite(self, tp: type) -> CompositeTypeDefinition:
        """Describe a dataclass, registering a stub first for self-references."""
        stub = CompositeTypeDefinition(
            name=type_name(tp),
            py_type=tp,
            frozen=tp.__dataclass_params__.frozen,
        )
        self._types[tp] = stub

        try:
            hints = typing.get_type_hints(tp, include_extras=True)
            fields = [
                FieldDefinition(
                    name=f.name,
                    type_def=self.describe(hints.get(f.name, f.type)),
                    metadata=f.metadata,
                )
                for f in dataclasses.fields(tp)
            ]
        except NameError as exc:
            self._types.pop(tp, None)
            raise FormTypeError(
                f"Cannot resolve field annotations of '{stub.name}': {exc}"
            ) from exc
        except FormTypeError:
            self._types.pop(tp, None)
            raise

        # Mutate the existing stub in-place
        stub.fields = fields
        return stub

    def __contains__(self, tp: Any) -> bool:
        return self.get(tp) is not None


# Shared by every decoder that does not bring its own registry
default_registry = TypeRegistry()
