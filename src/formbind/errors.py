"""Exceptions raised while decoding form values into records."""

from __future__ import annotations

from typing import Any


class FormError(Exception):
    """Base class for every formbind error."""


class FormTypeError(FormError, TypeError):
    """The destination or one of its field types cannot be decoded into."""


class UnsupportedFieldTypeError(FormTypeError):
    """A value was supplied for a field whose type has no decoding strategy."""

    def __init__(self, name: str, field_type: Any) -> None:
        self.name = name
        self.field_type = field_type
        super().__init__(f"Field '{name}' has unsupported type '{field_type}'")


class ConversionError(FormError, ValueError):
    """A supplied raw value could not be converted to the field's type."""

    def __init__(self, name: str, raw: str, reason: str = "") -> None:
        self.name = name
        self.raw = raw
        self.reason = reason
        message = f"Cannot decode {raw!r} into field '{name}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SourceError(FormError, ValueError):
    """The parameter source could not produce a parameter set."""
