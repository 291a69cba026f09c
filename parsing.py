"""
crepl line tokenizer
Splits one REPL input line into a callee identifier and C-style literal tokens
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Optional

# Import pyparsing with error handling
try:
    from pyparsing import MatchFirst, ParserElement, Regex
except ImportError:
    raise ImportError("pyparsing library not found. Install with: pip install pyparsing")

from error_handling import TokenizeError


class TokenKind(Enum):
    IDENTIFIER = "identifier"
    INT_LITERAL = "int literal"
    LONG_LITERAL = "long literal"
    FLOAT_LITERAL = "float literal"
    DOUBLE_LITERAL = "double literal"
    CHAR_LITERAL = "char literal"
    STRING_LITERAL = "string literal"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Token:
    """One lexeme of an input line with its decoded payload"""
    kind: TokenKind
    raw: str
    value: Any
    start: int
    end: int

    @property
    def is_literal(self) -> bool:
        return self.kind not in (TokenKind.IDENTIFIER, TokenKind.UNKNOWN)

    def __str__(self) -> str:
        return f"{self.kind.name}({self.raw})"


class _Lexeme:
    """Classification attached by the grammar before decoding"""
    __slots__ = ("kind", "text")

    def __init__(self, kind: TokenKind, text: str):
        self.kind = kind
        self.text = text


# ============================================================================
# ESCAPE DECODING
# ============================================================================

SIMPLE_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "0": "\0", "a": "\a", "b": "\b",
    "f": "\f", "v": "\v", "\\": "\\", "'": "'", '"': '"', "?": "?",
}


def decode_c_escapes(body: str) -> str:
    """Decode C escape sequences in the body of a quoted literal"""
    out = []
    i = 0
    n = len(body)
    while i < n:
        ch = body[i]
        if ch != "\\" or i + 1 >= n:
            out.append(ch)
            i += 1
            continue

        nxt = body[i + 1]
        if nxt == "x":
            j = i + 2
            while j < n and body[j] in "0123456789abcdefABCDEF":
                j += 1
            if j == i + 2:
                raise TokenizeError("\\x used with no following hex digits")
            out.append(chr(int(body[i + 2:j], 16) & 0xFF))
            i = j
        elif nxt in "01234567":
            j = i + 1
            while j < n and j < i + 4 and body[j] in "01234567":
                j += 1
            out.append(chr(int(body[i + 1:j], 8) & 0xFF))
            i = j
        else:
            out.append(SIMPLE_ESCAPES.get(nxt, nxt))
            i += 2
    return "".join(out)


def decode_integer(text: str) -> int:
    body = text.rstrip("lL")
    negative = body.startswith("-")
    if negative:
        body = body[1:]
    if body[:2] in ("0x", "0X"):
        value = int(body[2:], 16)
    else:
        value = int(body, 10)
    return -value if negative else value


def decode_char(text: str) -> str:
    value = decode_c_escapes(text[1:-1])
    if len(value) != 1:
        raise TokenizeError("char literal must be single character", got=text)
    if ord(value) > 0xFF:
        raise TokenizeError("char literal must fit in a single byte", got=text)
    return value


DECODERS = {
    TokenKind.IDENTIFIER: lambda text: text,
    TokenKind.INT_LITERAL: decode_integer,
    TokenKind.LONG_LITERAL: decode_integer,
    TokenKind.FLOAT_LITERAL: lambda text: float(text.rstrip("fF")),
    TokenKind.DOUBLE_LITERAL: float,
    TokenKind.CHAR_LITERAL: decode_char,
    TokenKind.STRING_LITERAL: lambda text: decode_c_escapes(text[1:-1]),
    TokenKind.UNKNOWN: lambda text: text,
}


# ============================================================================
# GRAMMAR
# ============================================================================

# A numeric literal must not run straight into letters, digits or a dot
_NUMBER_END = r"(?![A-Za-z0-9_.])"
_FLOAT_BODY = r"-?(?:\d+\.\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|\d+[eE][+-]?\d+)"
_INT_BODY = r"-?(?:0[xX][0-9a-fA-F]+|\d+)"


def _classified(expr: ParserElement, kind: TokenKind) -> ParserElement:
    return expr.set_parse_action(lambda toks: _Lexeme(kind, toks[0])).set_name(kind.value)


def build_line_grammar() -> ParserElement:
    """Build the token grammar; alternatives are tried in order"""
    return MatchFirst([
        _classified(Regex(r'"(?:[^"\\]|\\.)*"'), TokenKind.STRING_LITERAL),
        _classified(Regex(r"'(?:[^'\\]|\\.)*'"), TokenKind.CHAR_LITERAL),
        _classified(Regex(_FLOAT_BODY + r"[fF]" + _NUMBER_END), TokenKind.FLOAT_LITERAL),
        _classified(Regex(_FLOAT_BODY + _NUMBER_END), TokenKind.DOUBLE_LITERAL),
        _classified(Regex(_INT_BODY + r"[lL]{1,2}" + _NUMBER_END), TokenKind.LONG_LITERAL),
        _classified(Regex(_INT_BODY + _NUMBER_END), TokenKind.INT_LITERAL),
        _classified(Regex(r"[A-Za-z_][A-Za-z0-9_]*"), TokenKind.IDENTIFIER),
        _classified(Regex(r"\S+"), TokenKind.UNKNOWN),
    ])


# ============================================================================
# TOKENIZER
# ============================================================================

class LineTokenizer:
    """Lazy tokenizer for a single REPL line"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = build_line_grammar()

    def tokenize(self, line: str) -> Iterator[Token]:
        """
        Yield the tokens of line one at a time

        The iterator cannot be restarted; tokenize the text again instead.
        Malformed character literals raise TokenizeError when reached.
        """
        text = line.strip()
        for toks, start, end in self.grammar.scan_string(text):
            lexeme = toks[0]
            token = Token(lexeme.kind, lexeme.text, DECODERS[lexeme.kind](lexeme.text), start, end)
            if self.debug:
                print(f"[debug] token {token} -> {token.value!r}")
            yield token

    def first_token(self, line: str) -> Optional[Token]:
        return next(self.tokenize(line), None)


def create_tokenizer(debug: bool = False) -> LineTokenizer:
    """Factory function returning a line tokenizer"""
    return LineTokenizer(debug=debug)


def create_debug_tokenizer() -> LineTokenizer:
    """Factory function returning a debug tokenizer"""
    return create_tokenizer(debug=True)


_default_tokenizer = LineTokenizer()


def tokenize_line(line: str) -> Iterator[Token]:
    """Tokenize one line with the shared tokenizer"""
    return _default_tokenizer.tokenize(line)
