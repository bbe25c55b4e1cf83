"""formbind - Decode URL-encoded form values into typed dataclass records."""

from formbind.catalog import Accessor, FieldDescriptor, build_catalog
from formbind.decoder import Decoder, decode, unmarshal
from formbind.errors import (
    ConversionError,
    FormError,
    FormTypeError,
    SourceError,
    UnsupportedFieldTypeError,
)
from formbind.sources import FormRequest, ParameterSource, QueryString, parameter_set
from formbind.types import (
    FieldUnmarshaler,
    Int8,
    Int16,
    Int32,
    Int64,
    Ref,
    TypeRegistry,
    embedded,
    form_field,
)

__all__ = [
    # Main API
    "Decoder",
    "unmarshal",
    "decode",
    # Declaring records
    "Ref",
    "form_field",
    "embedded",
    "FieldUnmarshaler",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    # Sources
    "ParameterSource",
    "QueryString",
    "FormRequest",
    "parameter_set",
    # Catalog
    "build_catalog",
    "FieldDescriptor",
    "Accessor",
    "TypeRegistry",
    # Errors
    "FormError",
    "FormTypeError",
    "UnsupportedFieldTypeError",
    "ConversionError",
    "SourceError",
]

__version__ = "0.1.0"
