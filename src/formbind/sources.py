"""Parameter sources: where the raw key/value pairs come from."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlsplit

from formbind.errors import SourceError
from formbind.parsing import QueryParser

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Methods whose body is read as form data
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

# Largest form body accepted (10 MiB)
MAX_FORM_SIZE = 10 << 20

# Shared by every call; the parse tables are built on first use
_query_parser = QueryParser()


@runtime_checkable
class ParameterSource(Protocol):
    """Anything that can produce a key to values mapping."""

    def parameters(self) -> Mapping[str, Sequence[str]]: ...


def parse_query(text: str) -> dict[str, list[str]]:
    """Parse a URL-encoded query string into key to values, in order."""
    values: dict[str, list[str]] = {}
    for key, value in _query_parser.parse(text):
        values.setdefault(key, []).append(value)
    return values


@dataclass
class QueryString:
    """A raw query string, e.g. ``a=4&b=true``."""

    text: str

    def parameters(self) -> dict[str, list[str]]:
        return parse_query(self.text)


@dataclass
class FormRequest:
    """An HTTP request carrying form values in its URL and possibly its body.

    For ``POST``, ``PUT`` and ``PATCH`` requests with a URL-encoded body the
    body values come before the URL query values of the same key.
    """

    method: str
    url: str
    body: bytes | str = b""
    content_type: str = ""
    max_body_size: int = MAX_FORM_SIZE

    @property
    def query(self) -> str:
        return urlsplit(self.url).query

    @property
    def media_type(self) -> str:
        return self.content_type.split(";", 1)[0].strip().lower()

    def _body_text(self) -> str:
        body = self.body
        if len(body) > self.max_body_size:
            raise SourceError(f"Form body exceeds {self.max_body_size} bytes")
        if isinstance(body, bytes):
            try:
                return body.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise SourceError(f"Form body is not valid UTF-8: {exc}") from exc
        return body

    def parameters(self) -> dict[str, list[str]]:
        values: dict[str, list[str]] = {}
        if self.method.upper() in BODY_METHODS and self.media_type == FORM_CONTENT_TYPE:
            for key, found in parse_query(self._body_text()).items():
                values.setdefault(key, []).extend(found)
        for key, found in parse_query(self.query).items():
            values.setdefault(key, []).extend(found)
        return values


def _first_values(values: Mapping[Any, Any]) -> dict[str, str]:
    params: dict[str, str] = {}
    for key, found in values.items():
        if not isinstance(key, str):
            raise SourceError(f"Parameter key {key!r} is not a string")
        if isinstance(found, str):
            params[key] = found
            continue
        if not isinstance(found, Sequence):
            raise SourceError(f"Parameter {key!r} has non-string value {found!r}")
        if not found:
            # No value to bind
            continue
        first = found[0]
        if not isinstance(first, str):
            raise SourceError(f"Parameter {key!r} has non-string value {first!r}")
        params[key] = first
    return params


def parameter_set(source: Any) -> dict[str, str]:
    """Produce the key to first value mapping consumed by the decoder.

    Accepts a ``ParameterSource``, a query string, or a mapping whose values
    are strings or sequences of strings.

    Raises:
        SourceError: If the source is malformed or of an unknown kind.
    """
    if isinstance(source, str):
        return _first_values(parse_query(source))
    if isinstance(source, Mapping):
        return _first_values(source)
    if isinstance(source, ParameterSource):
        return _first_values(source.parameters())
    raise SourceError(f"Cannot read parameters from {type(source).__name__}")
