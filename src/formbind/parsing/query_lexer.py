"""Lexer for URL-encoded query strings."""

import ply.lex as lex

from formbind.errors import SourceError


class QueryLexer:
    """Lexer for tokenizing ``application/x-www-form-urlencoded`` text.

    Token values are raw bytes so that consecutive escapes can be joined and
    decoded as UTF-8 by the parser.
    """

    tokens = [
        "AMP",
        "EQUALS",
        "ESCAPE",
        "PLUS",
        "TEXT",
    ]

    def __init__(self) -> None:
        self.lexer: lex.LexToken = None  # type: ignore

    def t_AMP(self, t: lex.LexToken) -> lex.LexToken:
        r"&"
        return t

    def t_EQUALS(self, t: lex.LexToken) -> lex.LexToken:
        r"="
        t.value = b"="
        return t

    def t_ESCAPE(self, t: lex.LexToken) -> lex.LexToken:
        r"%[0-9A-Fa-f]{2}"
        t.value = bytes([int(t.value[1:], 16)])
        return t

    def t_PLUS(self, t: lex.LexToken) -> lex.LexToken:
        r"\+"
        t.value = b" "
        return t

    def t_TEXT(self, t: lex.LexToken) -> lex.LexToken:
        r"[^&=%+;]+"
        t.value = t.value.encode("utf-8")
        return t

    def t_error(self, t: lex.LexToken) -> None:
        if t.value[0] == ";":
            raise SourceError(f"Invalid semicolon separator at position {t.lexpos}")
        raise SourceError(f"Invalid URL escape {t.value[:3]!r} at position {t.lexpos}")

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        tokens = []
        while True:
            tok = self.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens
