"""Decoding of a parameter set into a dataclass record."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, TypeVar

from formbind.binder import bind
from formbind.catalog import cached_catalog
from formbind.errors import FormError, FormTypeError
from formbind.sources import parameter_set
from formbind.types import DEFAULT_TAG, Ref, TypeRegistry, default_registry

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class Decoder:
    """Decoder settings.

    Attributes:
        tag: Field metadata key holding the external name.
        strict_bool: Reject boolean literals outside the known set instead of
            reading them as true.
        registry: Cache of type descriptions.
    """

    tag: str = DEFAULT_TAG
    strict_bool: bool = False
    registry: TypeRegistry = field(default=default_registry, repr=False)

    def unmarshal(self, source: Any, destination: Any) -> None:
        """Populate ``destination`` from the values in ``source``.

        Fields whose external name is absent are left as they are. The first
        failing field aborts the call; fields bound before it keep their new
        values.

        Args:
            source: Query string, mapping, or ``ParameterSource``.
            destination: A mutable dataclass instance.

        Raises:
            FormTypeError: The destination is not a mutable dataclass instance,
                or a supplied field has an unsupported type.
            SourceError: The source could not be read.
            ConversionError: A supplied value does not fit its field.
        """
        record_type = type(destination)
        if (
            not dataclasses.is_dataclass(destination)
            or isinstance(destination, (type, Ref))
        ):
            raise FormTypeError(
                f"Destination must be a dataclass instance, got {record_type.__name__}"
            )
        if record_type.__dataclass_params__.frozen:
            raise FormTypeError(f"Destination '{record_type.__qualname__}' is frozen")

        params = parameter_set(source)
        catalog = cached_catalog(record_type, tag=self.tag, registry=self.registry)

        bound: set[str] = set()
        for descriptor in catalog:
            raw = params.get(descriptor.name)
            if raw is None:
                continue
            if descriptor.name in bound:
                logger.debug(
                    "Skipping %s: form value %r already bound",
                    descriptor.accessor.path,
                    descriptor.name,
                )
                continue
            try:
                bind(destination, descriptor, raw, strict_bool=self.strict_bool)
            except FormError as exc:
                logger.debug(
                    "Decoding %s stopped at %r: %s", record_type.__qualname__, descriptor.name, exc
                )
                raise
            bound.add(descriptor.name)

        logger.debug(
            "Decoded %d of %d fields into %s", len(bound), len(catalog), record_type.__qualname__
        )

    def decode(self, source: Any, record_type: type[R]) -> R:
        """Create a zero-valued ``record_type`` and populate it from ``source``."""
        try:
            record = record_type()
        except TypeError as exc:
            raise FormTypeError(
                f"Record type '{getattr(record_type, '__qualname__', record_type)}' "
                "cannot be instantiated without arguments"
            ) from exc
        self.unmarshal(source, record)
        return record


def unmarshal(source: Any, destination: Any, **options: Any) -> None:
    """Populate ``destination`` from ``source`` with a ``Decoder(**options)``."""
    Decoder(**options).unmarshal(source, destination)


def decode(source: Any, record_type: type[R], **options: Any) -> R:
    """Build a ``record_type`` from ``source`` with a ``Decoder(**options)``."""
    return Decoder(**options).decode(source, record_type)
