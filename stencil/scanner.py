"""Low-level scanning primitives shared by the template parsers.

Parsers take the full source and an offset and return ``(new_offset, value)``.
A recoverable mismatch raises :class:`Backtrack`; a committed error raises
:class:`Failure`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Optional, Tuple


class ParseError(Exception):
    """A template source could not be parsed."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class Backtrack(Exception):
    """The input did not match; another alternative may be tried."""

    def __init__(self, pos: int, message: Optional[str] = None) -> None:
        super().__init__(message if message is not None else f"no match at offset {pos}")
        self.pos = pos
        self.message = message


class Failure(Exception):
    """The input matched far enough that no other alternative may be tried."""

    def __init__(self, pos: int, message: Optional[str] = None) -> None:
        super().__init__(message if message is not None else f"parse failure at offset {pos}")
        self.pos = pos
        self.message = message


@dataclass(frozen=True)
class Syntax:
    """The delimiters that mark blocks, expressions and comments."""

    block_start: str = "{%"
    block_end: str = "%}"
    expr_start: str = "{{"
    expr_end: str = "}}"
    comment_start: str = "{#"
    comment_end: str = "#}"


@dataclass(frozen=True)
class Level:
    """Nesting depth, bounded to keep recursion in check."""

    depth: int = 0
    MAX_DEPTH: ClassVar[int] = 128

    def nest(self, pos: int) -> "Level":
        if self.depth >= self.MAX_DEPTH:
            raise Failure(pos)
        return Level(self.depth + 1)

    def leave(self) -> "Level":
        if self.depth == 0:
            raise ValueError("cannot leave the outermost level")
        return Level(self.depth - 1)


@dataclass
class State:
    """Mutable state carried through one parse."""

    syntax: Syntax = field(default_factory=Syntax)
    loop_depth: int = 0
    level: Level = field(default_factory=Level)

    def nest(self, pos: int) -> None:
        self.level = self.level.nest(pos)

    def leave(self) -> None:
        self.level = self.level.leave()

    def enter_loop(self) -> None:
        self.loop_depth += 1

    def leave_loop(self) -> None:
        self.loop_depth -= 1

    def is_in_loop(self) -> bool:
        return self.loop_depth > 0


def is_ws(c: str) -> bool:
    return c in (" ", "\t", "\r", "\n")


def skip_ws(src: str, pos: int) -> int:
    """Return the offset of the first non-whitespace character at or after ``pos``."""
    end = len(src)
    while pos < end and is_ws(src[pos]):
        pos += 1
    return pos


def expect(src: str, pos: int, literal: str) -> int:
    """Match ``literal`` at ``pos`` and return the offset after it."""
    if src.startswith(literal, pos):
        return pos + len(literal)
    raise Backtrack(pos)


Parser = Callable[[str, int], Tuple[int, Any]]


def skip_till(src: str, pos: int, end: Parser) -> Tuple[int, Tuple[int, Any]]:
    """Advance until ``end`` matches without consuming it.

    Returns the offset where ``end`` starts, together with the offset and value
    that ``end`` produced.
    """
    i = pos
    while True:
        try:
            j, value = end(src, i)
        except Backtrack:
            if i >= len(src):
                raise Backtrack(i) from None
            i += 1
            continue
        return i, (j, value)


_IDENTIFIER = re.compile(
    "[A-Za-z_\u0080-\U0010FFFF][0-9A-Za-z_\u0080-\U0010FFFF]*"
)


def identifier(src: str, pos: int) -> Tuple[int, str]:
    m = _IDENTIFIER.match(src, pos)
    if m is None:
        raise Backtrack(pos)
    return m.end(), m.group()


def keyword(src: str, pos: int, word: str) -> Tuple[int, str]:
    """Match an identifier equal to ``word``."""
    end, name = identifier(src, pos)
    if name != word:
        raise Backtrack(pos)
    return end, name


def bool_lit(src: str, pos: int) -> Tuple[int, str]:
    for word in ("false", "true"):
        try:
            return keyword(src, pos, word)
        except Backtrack:
            pass
    raise Backtrack(pos)


_INT_SUFFIX = r"(?:i8|i16|i32|i64|i128|isize|u8|u16|u32|u64|u128|usize)"
_FLOAT_SUFFIX = r"(?:f32|f64)"
_DEC = r"[0-9][0-9_]*"
_NUM_LIT = re.compile(
    r"-?(?:"
    rf"0(?:b_*[01][01_]*|o_*[0-7][0-7_]*|x_*[0-9a-fA-F][0-9a-fA-F_]*){_INT_SUFFIX}?"
    rf"|{_DEC}(?:{_INT_SUFFIX}|{_FLOAT_SUFFIX}"
    rf"|(?:\.{_DEC})?[eE][+-]?_*{_DEC}{_FLOAT_SUFFIX}?"
    rf"|\.{_DEC}{_FLOAT_SUFFIX}?)?"
    r")"
)


def num_lit(src: str, pos: int) -> Tuple[int, str]:
    """Match a numeric literal, including radix prefixes and type suffixes."""
    m = _NUM_LIT.match(src, pos)
    if m is None:
        raise Backtrack(pos)
    return m.end(), m.group()


def _quoted(src: str, pos: int, quote: str) -> Tuple[int, str]:
    if not src.startswith(quote, pos):
        raise Backtrack(pos)
    i = pos + 1
    end = len(src)
    while i < end:
        c = src[i]
        if c == quote:
            return i + 1, src[pos + 1 : i]
        if c == "\\":
            if i + 1 >= end:
                break
            i += 2
        else:
            i += 1
    raise Backtrack(min(i, end))


def str_lit(src: str, pos: int) -> Tuple[int, str]:
    """Match a double-quoted string; the value is its raw contents."""
    return _quoted(src, pos, '"')


def char_lit(src: str, pos: int) -> Tuple[int, str]:
    """Match a single-quoted character literal; the value is its raw contents."""
    return _quoted(src, pos, "'")


@dataclass(frozen=True)
class PathOrIdentifier:
    """Either a path of segments or a single plain identifier."""

    parts: Tuple[str, ...]
    is_path: bool

    @property
    def name(self) -> str:
        return self.parts[-1]


def path_or_identifier(src: str, pos: int) -> Tuple[int, PathOrIdentifier]:
    """Match ``a::b::c``, ``::a`` or a bare name.

    A bare name is a path when it contains an uppercase character.
    """
    i = skip_ws(src, pos)
    rooted = src.startswith("::", i)
    if rooted:
        i = skip_ws(src, i + 2)
    i, start = identifier(src, i)

    rest = []
    while True:
        j = skip_ws(src, i)
        if not src.startswith("::", j):
            break
        j = skip_ws(src, j + 2)
        try:
            j, segment = identifier(src, j)
        except Backtrack:
            break
        rest.append(segment)
        i = j

    if rooted:
        return i, PathOrIdentifier(("", start, *rest), True)
    if not rest and not any(c.isupper() for c in start):
        return i, PathOrIdentifier((start,), False)
    return i, PathOrIdentifier((start, *rest), True)