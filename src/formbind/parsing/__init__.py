"""Parsing module for URL-encoded parameter text."""

from formbind.parsing.query_lexer import QueryLexer
from formbind.parsing.query_parser import QueryParser

__all__ = [
    "QueryLexer",
    "QueryParser",
]
