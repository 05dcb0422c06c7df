"""
Record description compiler used by the reference engine.

Understands a subset of SDDL: record definitions made of primitive
fixed-width fields and a single consume statement, e.g.::

    Row = {
      UInt64LE
      UInt8
    }
    : Row[_rem / 9]

The compiled form is a small JSON document behind a magic prefix; it is
opaque to everything outside the engine. Other engines bring their own
compiler behind CompressionEngine.build_graph.
"""

from __future__ import annotations
import json
import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from .base import EngineFault
from ..types.enums import ErrorCode

DESCRIPTION_MAGIC = b"FZLD"
DESCRIPTION_VERSION = 1
SOURCE_NAME = "[input]"

PRIMITIVE_WIDTHS: Dict[str, int] = {"Byte": 1, "Int8": 1, "UInt8": 1}
for _bits in (16, 32, 64):
    for _order in ("LE", "BE"):
        PRIMITIVE_WIDTHS[f"Int{_bits}{_order}"] = _bits // 8
        PRIMITIVE_WIDTHS[f"UInt{_bits}{_order}"] = _bits // 8
for _bits in (32, 64):
    for _order in ("LE", "BE"):
        PRIMITIVE_WIDTHS[f"Float{_bits}{_order}"] = _bits // 8

_TOKEN_RE = re.compile(
    r"(?P<comment>#[^\n]*)"
    r"|(?P<newline>\n)"
    r"|(?P<space>[ \t\r]+)"
    r"|(?P<ident>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<int>[0-9]+)"
    r"|(?P<punct>[=:{}\[\]/,])"
)


class Token(NamedTuple):
    kind: str
    text: str
    line: int
    column: int


def _fail(message: str, line: int, column: int) -> EngineFault:
    return EngineFault(ErrorCode.COMPILATION_FAILED, f"{SOURCE_NAME}:{line}:{column}: {message}")


def tokenize(source: str) -> Iterator[Token]:
    line, line_start, pos = 1, 0, 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise _fail(f"unexpected character {source[pos]!r}", line, pos - line_start + 1)
        kind = match.lastgroup
        if kind == "newline":
            line, line_start = line + 1, match.end()
        elif kind not in ("comment", "space"):
            yield Token(kind, match.group(), line, pos - line_start + 1)
        pos = match.end()


@dataclass(frozen=True)
class RecordLayout:
    fields: Tuple[Tuple[str, int], ...]
    divisor: Optional[int] = None
    fixed_count: Optional[int] = None

    @property
    def record_width(self) -> int:
        return sum(width for _, width in self.fields)

    @property
    def field_widths(self) -> List[int]:
        return [width for _, width in self.fields]

    def record_count(self, total_size: int) -> int:
        """Number of records the description consumes from ``total_size`` bytes."""
        count = total_size // self.divisor if self.divisor is not None else self.fixed_count
        consumed = count * self.record_width
        if consumed != total_size:
            raise EngineFault(
                ErrorCode.SRC_SIZE_TOO_SMALL if consumed > total_size else ErrorCode.GENERIC,
                f"description consumes {consumed} bytes but input holds {total_size}",
            )
        return count

    def to_bytes(self) -> bytes:
        document = {
            'version': DESCRIPTION_VERSION,
            'fields': [list(f) for f in self.fields],
            'divisor': self.divisor,
            'count': self.fixed_count,
        }
        return DESCRIPTION_MAGIC + json.dumps(document, separators=(",", ":")).encode()

    @classmethod
    def from_bytes(cls, blob: bytes) -> RecordLayout:
        if not blob.startswith(DESCRIPTION_MAGIC):
            raise EngineFault(ErrorCode.GRAPH_INVALID, "compiled description has an invalid header")
        try:
            document = json.loads(blob[len(DESCRIPTION_MAGIC):].decode())
            fields = tuple((str(name), int(width)) for name, width in document['fields'])
            divisor, count = document['divisor'], document['count']
            version = document['version']
        except (ValueError, KeyError, TypeError) as exc:
            raise EngineFault(ErrorCode.GRAPH_INVALID, f"compiled description is corrupt: {exc}") from exc

        if version != DESCRIPTION_VERSION:
            raise EngineFault(ErrorCode.GRAPH_INVALID, f"unsupported description version {version}")
        if not fields or any(width <= 0 for _, width in fields):
            raise EngineFault(ErrorCode.GRAPH_INVALID, "compiled description has no usable fields")
        if (divisor is None) == (count is None) or (divisor is not None and divisor <= 0):
            raise EngineFault(ErrorCode.GRAPH_INVALID, "compiled description has an invalid count")
        return cls(fields, divisor, count)


class _Parser:
    def __init__(self, source: str):
        self._tokens = list(tokenize(source))
        self._pos = 0
        self._records: Dict[str, Tuple[Tuple[str, int], ...]] = {}

    def _peek(self) -> Optional[Token]:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self, expected: str) -> Token:
        token = self._peek()
        if token is None:
            last = self._tokens[-1] if self._tokens else Token("eof", "", 1, 1)
            raise _fail(f"expected {expected} but reached end of input", last.line, last.column)
        self._pos += 1
        return token

    def _expect(self, text: str) -> Token:
        token = self._next(repr(text))
        if token.text != text:
            raise _fail(f"expected {text!r}, found {token.text!r}", token.line, token.column)
        return token

    def _resolve(self, token: Token) -> Tuple[Tuple[str, int], ...]:
        if token.kind != "ident":
            raise _fail(f"expected a type name, found {token.text!r}", token.line, token.column)
        if token.text in PRIMITIVE_WIDTHS:
            return ((token.text, PRIMITIVE_WIDTHS[token.text]),)
        if token.text in self._records:
            return self._records[token.text]
        raise _fail(f"unknown type {token.text!r}", token.line, token.column)

    def parse(self) -> RecordLayout:
        layout: Optional[RecordLayout] = None
        while self._peek() is not None:
            token = self._peek()
            if token.text == ":":
                if layout is not None:
                    raise _fail("only one consume statement is allowed", token.line, token.column)
                layout = self._consume_statement()
            elif token.kind == "ident":
                self._record_definition()
            else:
                raise _fail(f"unexpected {token.text!r}", token.line, token.column)

        if layout is None:
            raise _fail("description has no consume statement (': Type[count]')", 1, 1)
        return layout

    def _record_definition(self) -> None:
        name = self._next("a record name")
        if name.text in PRIMITIVE_WIDTHS or name.text in self._records:
            raise _fail(f"type {name.text!r} is already defined", name.line, name.column)
        self._expect("=")
        self._expect("{")
        fields: List[Tuple[str, int]] = []
        while True:
            token = self._next("a field type or '}'")
            if token.text == "}":
                break
            if token.text == ",":
                continue
            fields.extend(self._resolve(token))
        if not fields:
            raise _fail(f"record {name.text!r} has no fields", name.line, name.column)
        self._records[name.text] = tuple(fields)

    def _consume_statement(self) -> RecordLayout:
        self._expect(":")
        fields = self._resolve(self._next("a type name"))
        self._expect("[")
        token = self._next("a count")
        if token.kind == "int":
            count = int(token.text)
            self._expect("]")
            return RecordLayout(fields, fixed_count=count)
        if token.text != "_rem":
            raise _fail(f"expected an integer or '_rem', found {token.text!r}", token.line, token.column)
        self._expect("/")
        divisor_token = self._next("a divisor")
        if divisor_token.kind != "int" or int(divisor_token.text) == 0:
            raise _fail("divisor must be a positive integer", divisor_token.line, divisor_token.column)
        self._expect("]")
        return RecordLayout(fields, divisor=int(divisor_token.text))


def compile_source(source: str) -> bytes:
    """Compile description source text; raises EngineFault with a diagnostic."""
    return _Parser(source).parse().to_bytes()
