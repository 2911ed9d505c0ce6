"""Whitespace markers and the patterns used by ``let``, ``for`` and ``match``.

Parsers take the full source and an offset and return ``(new_offset, value)``.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional, TypeVar

from .scanner import (
    Backtrack,
    Failure,
    bool_lit,
    char_lit,
    expect,
    identifier,
    keyword,
    num_lit,
    path_or_identifier,
    skip_ws,
    str_lit,
)

_T = TypeVar("_T")


class Whitespace(Enum):
    """How whitespace next to a tag is treated."""

    PRESERVE = "+"
    SUPPRESS = "-"
    MINIMIZE = "~"


@dataclass(frozen=True)
class Ws:
    """Whitespace markers on the left and the right side of a tag."""

    left: Optional[Whitespace] = None
    right: Optional[Whitespace] = None


def parse_whitespace(src: str, pos: int) -> tuple[int, Whitespace]:
    """Match one of the markers ``+``, ``-`` or ``~``."""
    if pos < len(src):
        for marker in Whitespace:
            if src[pos] == marker.value:
                return pos + 1, marker
    raise Backtrack(pos)


def _freeze(obj: object, *names: str) -> None:
    for name in names:
        object.__setattr__(obj, name, tuple(getattr(obj, name)))


class Target:
    """Base class of all binding patterns."""

    __slots__ = ()


@dataclass(frozen=True)
class NameTarget(Target):
    name: str


@dataclass(frozen=True)
class TupleTarget(Target):
    """A tuple pattern, or a tuple-struct pattern when ``path`` is not empty."""

    path: tuple[str, ...]
    items: tuple[Target, ...]

    def __post_init__(self) -> None:
        _freeze(self, "path", "items")


@dataclass(frozen=True)
class StructTarget(Target):
    path: tuple[str, ...]
    fields: tuple[tuple[str, Target], ...]

    def __post_init__(self) -> None:
        _freeze(self, "path", "fields")


@dataclass(frozen=True)
class NumLitTarget(Target):
    value: str


@dataclass(frozen=True)
class StrLitTarget(Target):
    value: str


@dataclass(frozen=True)
class CharLitTarget(Target):
    value: str


@dataclass(frozen=True)
class BoolLitTarget(Target):
    value: str


@dataclass(frozen=True)
class PathTarget(Target):
    parts: tuple[str, ...]

    def __post_init__(self) -> None:
        _freeze(self, "parts")


@dataclass(frozen=True)
class OrChain(Target):
    """Alternatives separated by ``or``."""

    targets: tuple[Target, ...]

    def __post_init__(self) -> None:
        _freeze(self, "targets")


@contextmanager
def _committed() -> Iterator[None]:
    """Turn any mismatch inside the block into a hard failure."""
    try:
        yield
    except Backtrack as exc:
        raise Failure(exc.pos, exc.message) from None


def _ws_char(src: str, pos: int, literal: str) -> int:
    i = expect(src, skip_ws(src, pos), literal)
    return skip_ws(src, i)


def _opt_ws_char(src: str, pos: int, literal: str) -> tuple[int, bool]:
    try:
        return _ws_char(src, pos, literal), True
    except Backtrack:
        return pos, False


def _ws_keyword(src: str, pos: int, word: str) -> int:
    i, _ = keyword(src, skip_ws(src, pos), word)
    return skip_ws(src, i)


def _ws_tag(src: str, pos: int, literal: str) -> int:
    return _ws_char(src, pos, literal)


def _separated_list1(
    src: str, pos: int, item: Callable[[str, int], tuple[int, _T]]
) -> tuple[int, list[_T]]:
    """One or more items separated by commas; a dangling comma is left unconsumed."""
    pos, first = item(src, pos)
    items = [first]
    while True:
        try:
            j = _ws_char(src, pos, ",")
            j, value = item(src, j)
        except Backtrack:
            return pos, items
        items.append(value)
        pos = j


def parse_target(src: str, pos: int) -> tuple[int, Target]:
    """Parse one or more targets separated by ``or``."""
    pos, first = _parse_one(src, pos)
    targets = [first]
    while True:
        try:
            j = _ws_tag(src, pos, "or")
            j, target = _parse_one(src, j)
        except Backtrack:
            break
        targets.append(target)
        pos = j
    if len(targets) == 1:
        return pos, targets[0]
    return pos, OrChain(tuple(targets))


def _lit(src: str, pos: int) -> tuple[int, Target]:
    parsers = (
        (str_lit, StrLitTarget),
        (char_lit, CharLitTarget),
        (num_lit, NumLitTarget),
        (bool_lit, BoolLitTarget),
    )
    for parser, kind in parsers:
        try:
            j, value = parser(src, pos)
        except Backtrack:
            continue
        return j, kind(value)
    raise Backtrack(pos)


def _parse_one(src: str, pos: int) -> tuple[int, Target]:
    """Parse a single target; ``or`` is only allowed inside parentheses."""
    try:
        return _lit(src, pos)
    except Backtrack:
        pass

    i, is_tuple = _opt_ws_char(src, pos, "(")
    if is_tuple:
        return _parenthesised(src, i)

    try:
        j, found = path_or_identifier(src, pos)
    except Backtrack:
        found = None
    if found is not None and found.is_path:
        return _path_pattern(src, j, found.parts)

    end, name = identifier(src, pos)
    return end, _verify_name(pos, name)


def _parenthesised(src: str, i: int) -> tuple[int, Target]:
    i, is_empty = _opt_ws_char(src, i, ")")
    if is_empty:
        return i, TupleTarget((), ())

    i, first = parse_target(src, i)
    i, is_unused_paren = _opt_ws_char(src, i, ")")
    if is_unused_paren:
        return i, first

    targets = [first]
    with _committed():
        while True:
            try:
                j = _ws_char(src, i, ",")
                j, target = parse_target(src, j)
            except Backtrack:
                break
            targets.append(target)
            i = j
        i, _ = _opt_ws_char(src, i, ",")
        i = _ws_char(src, i, ")")
    return i, TupleTarget((), tuple(targets))


def _path_pattern(src: str, i: int, path: tuple[str, ...]) -> tuple[int, Target]:
    before_with = i
    try:
        i = _ws_keyword(src, i, "with")
    except Backtrack:
        pass

    i, is_unnamed = _opt_ws_char(src, i, "(")
    if is_unnamed:
        if src.startswith(")", i):
            return i + 1, TupleTarget(path, ())
        with _committed():
            i, targets = _separated_list1(src, i, parse_target)
        i, _ = _opt_ws_char(src, i, ",")
        with _committed():
            i = _ws_char(src, i, ")")
        return i, TupleTarget(path, tuple(targets))

    i, is_named = _opt_ws_char(src, i, "{")
    if is_named:
        if src.startswith("}", i):
            return i + 1, StructTarget(path, ())
        with _committed():
            i, fields = _separated_list1(src, i, _named)
        i, _ = _opt_ws_char(src, i, ",")
        with _committed():
            i = _ws_char(src, i, "}")
        return i, StructTarget(path, tuple(fields))

    return before_with, PathTarget(path)


def _named(src: str, pos: int) -> tuple[int, tuple[str, Target]]:
    i, name = identifier(src, pos)
    try:
        j = _ws_char(src, i, ":")
        j, target = parse_target(src, j)
    except Backtrack:
        return i, (name, _verify_name(pos, name))
    return j, (name, target)


def _verify_name(pos: int, name: str) -> Target:
    if name in ("self", "writer"):
        raise Failure(pos, f"Cannot use `{name}` as a name")
    return NameTarget(name)