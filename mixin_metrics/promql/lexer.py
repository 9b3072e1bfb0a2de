"""PromQL tokenizer.

Identifiers are lexed context-sensitively the way Prometheus does it: outside
of braces and brackets a name may contain colons (recording-rule names such as
``job:http_requests:rate5m``); inside ``{...}`` and ``[...]`` it may not, so
that the colon of a subquery range ``[5m:1m]`` stays a separate token.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from ..utils.exceptions import PromQLSyntaxError

__all__ = [
    "TokenKind",
    "Token",
    "tokenize",
    "parse_duration",
]


class TokenKind(str, Enum):
    IDENTIFIER = "identifier"
    NUMBER = "number"
    DURATION = "duration"
    STRING = "string"
    LEFT_PAREN = "("
    RIGHT_PAREN = ")"
    LEFT_BRACE = "{"
    RIGHT_BRACE = "}"
    LEFT_BRACKET = "["
    RIGHT_BRACKET = "]"
    COMMA = ","
    COLON = ":"
    AT = "@"
    ASSIGN = "="
    NEQ = "!="
    EQL_REGEX = "=~"
    NEQ_REGEX = "!~"
    EQLC = "=="
    LSS = "<"
    LTE = "<="
    GTR = ">"
    GTE = ">="
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    POW = "^"
    EOF = "end of input"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    pos: int
    value: str | None = None  # decoded content of STRING tokens

    def describe(self) -> str:
        if self.kind is TokenKind.EOF:
            return "end of input"
        if self.kind in (TokenKind.IDENTIFIER, TokenKind.NUMBER, TokenKind.DURATION, TokenKind.STRING):
            return f"{self.kind.value} {self.text!r}"
        return f'"{self.text}"'


_OPERATORS: list[tuple[str, TokenKind]] = [
    ("==", TokenKind.EQLC),
    ("!=", TokenKind.NEQ),
    ("=~", TokenKind.EQL_REGEX),
    ("!~", TokenKind.NEQ_REGEX),
    ("<=", TokenKind.LTE),
    (">=", TokenKind.GTE),
    ("=", TokenKind.ASSIGN),
    ("<", TokenKind.LSS),
    (">", TokenKind.GTR),
    ("+", TokenKind.ADD),
    ("-", TokenKind.SUB),
    ("*", TokenKind.MUL),
    ("/", TokenKind.DIV),
    ("%", TokenKind.MOD),
    ("^", TokenKind.POW),
    ("(", TokenKind.LEFT_PAREN),
    (")", TokenKind.RIGHT_PAREN),
    (",", TokenKind.COMMA),
    ("@", TokenKind.AT),
]

_DIGITS = "0123456789"
_DURATION_RE = re.compile(r"(?:\d+(?:ms|[smhdwy]))+(?![A-Za-z0-9_])")
_NUMBER_RE = re.compile(
    r"(?:0[xX][0-9a-fA-F]+|(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)(?![A-Za-z0-9_.])"
)
_METRIC_IDENT_RE = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")
_LABEL_IDENT_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
_DURATION_PART_RE = re.compile(r"(\d+)(ms|[smhdwy])")

_UNIT_MS = {
    "y": 365 * 24 * 60 * 60 * 1000,
    "w": 7 * 24 * 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
    "h": 60 * 60 * 1000,
    "m": 60 * 1000,
    "s": 1000,
    "ms": 1,
}
_UNIT_ORDER = ["y", "w", "d", "h", "m", "s", "ms"]

_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
    "'": "'",
    '"': '"',
}


def parse_duration(text: str, pos: int = 0, source: str | None = None) -> int:
    """Length of a duration literal in milliseconds.

    Units must appear at most once and in descending order (``1h30m`` is
    valid, ``30m1h`` is not).
    """
    total = 0
    last_rank = -1
    consumed = 0
    for m in _DURATION_PART_RE.finditer(text):
        if m.start() != consumed:
            break
        rank = _UNIT_ORDER.index(m.group(2))
        if rank <= last_rank:
            raise PromQLSyntaxError(f"not a valid duration string: {text!r}", source or text, pos)
        last_rank = rank
        total += int(m.group(1)) * _UNIT_MS[m.group(2)]
        consumed = m.end()
    if consumed != len(text) or not text:
        raise PromQLSyntaxError(f"not a valid duration string: {text!r}", source or text, pos)
    return total


def _read_string(text: str, start: int) -> tuple[str, int]:
    quote = text[start]
    i = start + 1
    n = len(text)
    if quote == "`":
        end = text.find("`", i)
        if end < 0:
            raise PromQLSyntaxError("unterminated raw string", text, start)
        return text[i:end], end + 1
    out: list[str] = []
    while i < n:
        c = text[i]
        if c == quote:
            return "".join(out), i + 1
        if c == "\n":
            break
        if c != "\\":
            out.append(c)
            i += 1
            continue
        if i + 1 >= n:
            break
        esc = text[i + 1]
        if esc in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[esc])
            i += 2
        elif esc in "xuU":
            width = {"x": 2, "u": 4, "U": 8}[esc]
            digits = text[i + 2:i + 2 + width]
            if len(digits) != width or not all(d in "0123456789abcdefABCDEF" for d in digits):
                raise PromQLSyntaxError(f"invalid escape sequence \\{esc}{digits}", text, i)
            code = int(digits, 16)
            if esc != "x" and (code > 0x10FFFF or 0xD800 <= code <= 0xDFFF):
                raise PromQLSyntaxError(f"invalid escape sequence \\{esc}{digits}", text, i)
            out.append(chr(code))
            i += 2 + width
        elif esc in "01234567":
            digits = text[i + 1:i + 4]
            if len(digits) != 3 or not all(d in "01234567" for d in digits):
                raise PromQLSyntaxError(f"invalid octal escape sequence \\{digits}", text, i)
            code = int(digits, 8)
            if code > 0xFF:
                raise PromQLSyntaxError(f"invalid octal escape sequence \\{digits}", text, i)
            out.append(chr(code))
            i += 4
        else:
            raise PromQLSyntaxError(f"unknown escape sequence \\{esc}", text, i)
    raise PromQLSyntaxError("unterminated quoted string", text, start)


def tokenize(text: str) -> list[Token]:
    """Split ``text`` into tokens, always terminated by an EOF token."""
    tokens: list[Token] = []
    pos = 0
    n = len(text)
    brace_depth = 0
    bracket_depth = 0
    while pos < n:
        ch = text[pos]
        if ch.isspace():
            pos += 1
            continue
        if ch == "#":
            end = text.find("\n", pos)
            pos = n if end < 0 else end + 1
            continue
        if ch in "\"'`":
            value, end = _read_string(text, pos)
            tokens.append(Token(TokenKind.STRING, text[pos:end], pos, value))
            pos = end
            continue
        if ch in _DIGITS or (ch == "." and pos + 1 < n and text[pos + 1] in _DIGITS):
            m = _DURATION_RE.match(text, pos)
            if m:
                tokens.append(Token(TokenKind.DURATION, m.group(0), pos))
                pos = m.end()
                continue
            m = _NUMBER_RE.match(text, pos)
            if m:
                tokens.append(Token(TokenKind.NUMBER, m.group(0), pos))
                pos = m.end()
                continue
            raise PromQLSyntaxError("bad number or duration syntax", text, pos)
        inside = brace_depth > 0 or bracket_depth > 0
        m = (_LABEL_IDENT_RE if inside else _METRIC_IDENT_RE).match(text, pos)
        if m:
            word = m.group(0)
            kind = TokenKind.IDENTIFIER
            if not inside and word.lower() in ("inf", "nan"):
                kind = TokenKind.NUMBER
            tokens.append(Token(kind, word, pos))
            pos = m.end()
            continue
        if ch == "{":
            brace_depth += 1
            tokens.append(Token(TokenKind.LEFT_BRACE, ch, pos))
            pos += 1
            continue
        if ch == "}":
            if brace_depth == 0:
                raise PromQLSyntaxError("unexpected right brace", text, pos)
            brace_depth -= 1
            tokens.append(Token(TokenKind.RIGHT_BRACE, ch, pos))
            pos += 1
            continue
        if ch == "[":
            bracket_depth += 1
            tokens.append(Token(TokenKind.LEFT_BRACKET, ch, pos))
            pos += 1
            continue
        if ch == "]":
            if bracket_depth == 0:
                raise PromQLSyntaxError("unexpected right bracket", text, pos)
            bracket_depth -= 1
            tokens.append(Token(TokenKind.RIGHT_BRACKET, ch, pos))
            pos += 1
            continue
        if ch == ":":
            tokens.append(Token(TokenKind.COLON, ch, pos))
            pos += 1
            continue
        for op_text, op_kind in _OPERATORS:
            if text.startswith(op_text, pos):
                tokens.append(Token(op_kind, op_text, pos))
                pos += len(op_text)
                break
        else:
            raise PromQLSyntaxError(f"unexpected character: {ch!r}", text, pos)
    if brace_depth:
        raise PromQLSyntaxError("unclosed left brace", text, n)
    if bracket_depth:
        raise PromQLSyntaxError("unclosed left bracket", text, n)
    tokens.append(Token(TokenKind.EOF, "", n))
    return tokens
