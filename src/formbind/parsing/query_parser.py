"""Parser for URL-encoded query strings."""

from __future__ import annotations

import threading
from typing import Any

import ply.yacc as yacc

from formbind.errors import SourceError
from formbind.parsing.query_lexer import QueryLexer


def _decode(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SourceError(f"Query string is not valid UTF-8: {exc.reason}") from exc


class QueryParser:
    """Parser turning query-string text into ordered ``(key, value)`` pairs.

    Pairs are separated by ``&``; key and value split at the first ``=``
    (later ``=`` belong to the value). A pair without ``=`` has an empty
    value and empty pairs are skipped.

    The parse tables are built once per instance; every call lexes with its
    own clone of the lexer, so one instance can be shared between threads.
    """

    tokens = QueryLexer.tokens

    def __init__(self) -> None:
        self.lexer = QueryLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore
        self._build_lock = threading.Lock()

    def p_query(self, p: yacc.YaccProduction) -> None:
        """query : pair_list"""
        p[0] = p[1]

    def p_pair_list_single(self, p: yacc.YaccProduction) -> None:
        """pair_list : pair"""
        if p[1] is not None:
            p[0] = [p[1]]
        else:
            p[0] = []

    def p_pair_list_multiple(self, p: yacc.YaccProduction) -> None:
        """pair_list : pair_list AMP pair"""
        p[0] = p[1]
        if p[3] is not None:
            p[0].append(p[3])

    def p_pair_empty(self, p: yacc.YaccProduction) -> None:
        """pair : empty"""
        p[0] = None

    def p_pair_key(self, p: yacc.YaccProduction) -> None:
        """pair : key"""
        p[0] = (_decode(p[1]), "")

    def p_pair_key_value(self, p: yacc.YaccProduction) -> None:
        """pair : key EQUALS value"""
        p[0] = (_decode(p[1]), _decode(p[3]))

    def p_pair_empty_key(self, p: yacc.YaccProduction) -> None:
        """pair : EQUALS value"""
        p[0] = ("", _decode(p[2]))

    def p_key_single(self, p: yacc.YaccProduction) -> None:
        """key : part"""
        p[0] = p[1]

    def p_key_multiple(self, p: yacc.YaccProduction) -> None:
        """key : key part"""
        p[0] = p[1] + p[2]

    def p_value_empty(self, p: yacc.YaccProduction) -> None:
        """value : empty"""
        p[0] = b""

    def p_value_multiple(self, p: yacc.YaccProduction) -> None:
        """value : value part
                 | value EQUALS"""
        p[0] = p[1] + p[2]

    def p_part(self, p: yacc.YaccProduction) -> None:
        """part : TEXT
                | ESCAPE
                | PLUS"""
        p[0] = p[1]

    def p_empty(self, p: yacc.YaccProduction) -> None:
        """empty :"""
        p[0] = None

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SourceError(f"Malformed query string at position {p.lexpos}")
        else:
            raise SourceError("Malformed query string at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="query", **kwargs)

    def parse(self, data: str) -> list[tuple[str, str]]:
        """Parse query text and return its pairs in order."""
        if not data:
            return []

        with self._build_lock:
            if self.parser is None:
                self.build(debug=False, write_tables=False)

        pairs = self.parser.parse(data, lexer=self.lexer.lexer.clone())
        if pairs is None:
            pairs = []
        return pairs
