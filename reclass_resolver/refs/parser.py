"""Tokenizer for `${...}` parameter references.

Rules:
- `${path}` is a reference, references may nest: `${foo:${bar}}`.
- `\\${` is a literal `${`, `\\$[` is a literal `$[`.
- Inside a reference `\\}` is a literal `}`.
- `\\\\${` is a literal backslash followed by a real reference.
- Every other character, including a lone `$` or `}` outside a reference, is literal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from reclass_resolver.utils.errors import ReferenceSyntaxError

_REF_OPEN = "${"
_REF_CLOSE = "}"
_INV_OPEN = "$["
_ESCAPE = "\\"


@dataclass(frozen=True)
class Literal:
    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Ref:
    """A reference whose content is a sequence of literals and nested references."""

    tokens: tuple[Token, ...]

    def __str__(self) -> str:
        return _REF_OPEN + "".join(str(token) for token in self.tokens) + _REF_CLOSE


@dataclass(frozen=True)
class Combined:
    """Literals and references concatenated into one string value."""

    tokens: tuple[Token, ...]

    def __str__(self) -> str:
        return "".join(str(token) for token in self.tokens)


Token = Union[Literal, Ref, Combined]


def needs_parsing(text: str) -> bool:
    """Return True if `text` holds a reference or an escape the tokenizer rewrites."""

    return _REF_OPEN in text or _ESCAPE + _INV_OPEN in text


def parse_reference(text: str) -> Token:
    """Tokenize `text`.

    Returns a single Literal or Ref when the text is exactly one of them and a
    Combined token otherwise.
    """

    scanner = _Scanner(text)
    tokens = scanner.parse_items(inside_ref=False)
    if not tokens:
        return Literal("")
    if len(tokens) == 1:
        return tokens[0]
    return Combined(tuple(tokens))


class _Scanner:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def startswith(self, prefix: str, offset: int = 0) -> bool:
        return self.text.startswith(prefix, self.pos + offset)

    def parse_items(self, inside_ref: bool) -> list[Token]:
        tokens: list[Token] = []
        buffer: list[str] = []

        def flush() -> None:
            if buffer:
                tokens.append(Literal("".join(buffer)))
                buffer.clear()

        while self.pos < len(self.text):
            if self.startswith(_ESCAPE * 2) and (
                self.startswith(_REF_OPEN, 2) or (inside_ref and self.startswith(_REF_CLOSE, 2))
            ):
                buffer.append(_ESCAPE)
                self.pos += 2
            elif self.startswith(_ESCAPE + _REF_OPEN):
                buffer.append(_REF_OPEN)
                self.pos += 3
            elif self.startswith(_ESCAPE + _INV_OPEN):
                buffer.append(_INV_OPEN)
                self.pos += 3
            elif inside_ref and self.startswith(_ESCAPE + _REF_CLOSE):
                buffer.append(_REF_CLOSE)
                self.pos += 2
            elif self.startswith(_REF_OPEN):
                flush()
                tokens.append(self.parse_ref())
            elif inside_ref and self.startswith(_REF_CLOSE):
                break
            else:
                buffer.append(self.text[self.pos])
                self.pos += 1

        flush()
        return tokens

    def parse_ref(self) -> Ref:
        start = self.pos
        self.pos += len(_REF_OPEN)
        tokens = self.parse_items(inside_ref=True)
        if not self.startswith(_REF_CLOSE):
            raise ReferenceSyntaxError(
                f"Error parsing reference '{self.text}': "
                f"unterminated reference at position {start}"
            )
        if not tokens:
            raise ReferenceSyntaxError(
                f"Error parsing reference '{self.text}': empty reference at position {start}"
            )
        self.pos += len(_REF_CLOSE)
        return Ref(tuple(tokens))
