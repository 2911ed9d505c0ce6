"""Parser for template expressions.

Every parser takes the full source, an offset and a nesting :class:`Level`,
and returns ``(new_offset, expression)``.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from .scanner import (
    Backtrack,
    Failure,
    Level,
    char_lit,
    expect,
    identifier,
    num_lit,
    path_or_identifier,
    skip_ws,
    str_lit,
)


def _freeze(obj: object, *names: str) -> None:
    for name in names:
        object.__setattr__(obj, name, tuple(getattr(obj, name)))


class Expr:
    """Base class of all expression nodes."""

    __slots__ = ()


@dataclass(frozen=True)
class BoolLit(Expr):
    value: str


@dataclass(frozen=True)
class NumLit(Expr):
    value: str


@dataclass(frozen=True)
class StrLit(Expr):
    value: str


@dataclass(frozen=True)
class CharLit(Expr):
    value: str


@dataclass(frozen=True)
class Var(Expr):
    name: str


@dataclass(frozen=True)
class Path(Expr):
    parts: tuple[str, ...]

    def __post_init__(self) -> None:
        _freeze(self, "parts")


@dataclass(frozen=True)
class Array(Expr):
    items: tuple[Expr, ...]

    def __post_init__(self) -> None:
        _freeze(self, "items")


@dataclass(frozen=True)
class Attr(Expr):
    obj: Expr
    attr: str


@dataclass(frozen=True)
class Index(Expr):
    obj: Expr
    index: Expr


@dataclass(frozen=True)
class Filter(Expr):
    name: str
    args: tuple[Expr, ...]

    def __post_init__(self) -> None:
        _freeze(self, "args")


@dataclass(frozen=True)
class NamedArgument(Expr):
    name: str
    value: Expr


@dataclass(frozen=True)
class Unary(Expr):
    op: str
    operand: Expr


@dataclass(frozen=True)
class BinOp(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Range(Expr):
    op: str
    left: Optional[Expr]
    right: Optional[Expr]


@dataclass(frozen=True)
class Group(Expr):
    inner: Expr


@dataclass(frozen=True)
class Tuple(Expr):
    items: tuple[Expr, ...]

    def __post_init__(self) -> None:
        _freeze(self, "items")


@dataclass(frozen=True)
class Call(Expr):
    callee: Expr
    args: tuple[Expr, ...]

    def __post_init__(self) -> None:
        _freeze(self, "args")


@dataclass(frozen=True)
class NativeMacro(Expr):
    """A call of a host-language macro; ``args`` is its raw argument text."""

    path: tuple[str, ...]
    args: str

    def __post_init__(self) -> None:
        _freeze(self, "path")


@dataclass(frozen=True)
class Try(Expr):
    inner: Expr


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


def _comma_separated(
    src: str, pos: int, item: Callable[[str, int], tuple[int, Expr]]
) -> tuple[int, list[Expr]]:
    """Zero or more items separated by bare commas; stops before a dangling comma."""
    items: list[Expr] = []
    try:
        pos, first = item(src, pos)
    except Backtrack:
        return pos, items
    items.append(first)
    while src.startswith(",", pos):
        try:
            j, value = item(src, pos + 1)
        except Backtrack:
            break
        items.append(value)
        pos = j
    return pos, items


def _ws_expr(level: Level) -> Callable[[str, int], tuple[int, Expr]]:
    def item(src: str, pos: int) -> tuple[int, Expr]:
        j, value = parse_expr(src, skip_ws(src, pos), level)
        return skip_ws(src, j), value

    return item


def parse_arguments(
    src: str, pos: int, level: Level, is_template_macro: bool
) -> tuple[int, tuple[Expr, ...]]:
    """Parse a parenthesised argument list.

    Named arguments (``name=value``) are accepted only for template macros and
    must come after all positional ones.
    """
    level = level.nest(pos)
    start = pos
    i = _ws_char(src, pos, "(")
    named: set[str] = set()

    def argument(s: str, p: int) -> tuple[int, Expr]:
        has_named = bool(named)
        p = skip_ws(s, p)
        try:
            j, value = _named_argument(s, p, level, named, start, is_template_macro)
        except Backtrack:
            j, value = parse_expr(s, p, level)
        if has_named and not isinstance(value, NamedArgument):
            raise Failure(start, "named arguments must always be passed last")
        return skip_ws(s, j), value

    with _committed():
        i, args = _comma_separated(src, i, argument)
        j = skip_ws(src, i)
        if src.startswith(",", j):
            i = skip_ws(src, j + 1)
        i = expect(src, i, ")")
    return i, tuple(args)


def _named_argument(
    src: str,
    pos: int,
    level: Level,
    named: set[str],
    start: int,
    is_template_macro: bool,
) -> tuple[int, Expr]:
    if not is_template_macro:
        raise Backtrack(pos)
    level = level.nest(pos)
    i, name = identifier(src, pos)
    i = _ws_char(src, i, "=")
    i, value = parse_expr(src, i, level)
    if name in named:
        raise Failure(start, f"named argument `{name}` was passed more than once")
    named.add(name)
    return i, NamedArgument(name, value)


def parse_expr(src: str, pos: int, level: Level) -> tuple[int, Expr]:
    """Parse one expression, including an optional range ``a..b`` / ``a..=b``."""
    level = level.nest(pos)
    try:
        return _range_right(src, pos, level, None)
    except Backtrack:
        pass
    pos, left = _binary(src, pos, level)
    try:
        return _range_right(src, pos, level, left)
    except Backtrack:
        return pos, left


def _range_right(
    src: str, pos: int, level: Level, left: Optional[Expr]
) -> tuple[int, Expr]:
    i = skip_ws(src, pos)
    if src.startswith("..=", i):
        op = "..="
    elif src.startswith("..", i):
        op = ".."
    else:
        raise Backtrack(i)
    i = skip_ws(src, i + len(op))
    try:
        j, right = _binary(src, i, level)
    except Backtrack:
        return i, Range(op, left, None)
    return j, Range(op, left, right)


# Binary operators, loosest binding first; within a layer, longer tokens first.
_BINARY_LAYERS: tuple[tuple[str, ...], ...] = (
    ("||",),
    ("&&",),
    ("==", "!=", ">=", ">", "<=", "<"),
    ("|",),
    ("^",),
    ("&",),
    (">>", "<<"),
    ("+", "-"),
    ("*", "/", "%"),
)


def _ws_operator(src: str, pos: int, ops: tuple[str, ...]) -> tuple[int, str]:
    i = skip_ws(src, pos)
    for op in ops:
        if src.startswith(op, i):
            return skip_ws(src, i + len(op)), op
    raise Backtrack(i)


def _binary(src: str, pos: int, level: Level, layer: int = 0) -> tuple[int, Expr]:
    if layer == len(_BINARY_LAYERS):
        return _filtered(src, pos, level)
    level = level.nest(pos)
    ops = _BINARY_LAYERS[layer]
    pos, left = _binary(src, pos, level, layer + 1)
    while True:
        try:
            j, op = _ws_operator(src, pos, ops)
            j, right = _binary(src, j, level, layer + 1)
        except Backtrack:
            return pos, left
        left = BinOp(op, left, right)
        pos = j


def _filtered(src: str, pos: int, level: Level) -> tuple[int, Expr]:
    level = level.nest(pos)
    pos, expr = _prefix(src, pos, level)
    while src.startswith("|", pos):
        try:
            j, name = identifier(src, skip_ws(src, pos + 1))
        except Backtrack:
            break
        j = skip_ws(src, j)
        try:
            j, args = parse_arguments(src, j, level, False)
        except Backtrack:
            args = ()
        expr = Filter(name, (expr, *args))
        pos = j
    return pos, expr


def _prefix(src: str, pos: int, level: Level) -> tuple[int, Expr]:
    level = level.nest(pos)
    ops: list[str] = []
    while True:
        i = skip_ws(src, pos)
        if i < len(src) and src[i] in "!-":
            ops.append(src[i])
            pos = skip_ws(src, i + 1)
        else:
            break
    pos, expr = _suffixed(src, pos, level)
    for op in reversed(ops):
        expr = Unary(op, expr)
    return pos, expr


def _single(src: str, pos: int, level: Level) -> tuple[int, Expr]:
    level = level.nest(pos)
    for literal, kind in ((num_lit, NumLit), (str_lit, StrLit), (char_lit, CharLit)):
        try:
            j, value = literal(src, pos)
        except Backtrack:
            continue
        return j, kind(value)
    try:
        return _path_var_bool(src, pos)
    except Backtrack:
        pass
    try:
        return _array(src, pos, level)
    except Backtrack:
        pass
    return _group(src, pos, level)


def _path_var_bool(src: str, pos: int) -> tuple[int, Expr]:
    i, found = path_or_identifier(src, pos)
    if found.is_path:
        return i, Path(found.parts)
    if found.name in ("true", "false"):
        return i, BoolLit(found.name)
    return i, Var(found.name)


def _group(src: str, pos: int, level: Level) -> tuple[int, Expr]:
    level = level.nest(pos)
    i = _ws_char(src, pos, "(")
    try:
        i, first = parse_expr(src, i, level)
    except Backtrack:
        return expect(src, i, ")"), Tuple(())

    i = skip_ws(src, i)
    if not src.startswith(",", i):
        return expect(src, i, ")"), Group(first)

    items = [first]
    while src.startswith(",", i):
        try:
            j, item = parse_expr(src, skip_ws(src, i + 1), level)
        except Backtrack:
            break
        items.append(item)
        i = skip_ws(src, j)
    i = skip_ws(src, i)
    if src.startswith(",", i):
        i = skip_ws(src, i + 1)
    return expect(src, i, ")"), Tuple(tuple(items))


def _array(src: str, pos: int, level: Level) -> tuple[int, Expr]:
    level = level.nest(pos)
    i = _ws_char(src, pos, "[")
    with _committed():
        i, items = _comma_separated(src, i, _ws_expr(level))
        i = expect(src, i, "]")
    return i, Array(tuple(items))


@dataclass(frozen=True)
class _Suffix:
    kind: str
    value: object = None


def _suffixed(src: str, pos: int, level: Level) -> tuple[int, Expr]:
    level = level.nest(pos)
    pos, expr = _single(src, pos, level)
    while True:
        try:
            j, suffix = _next_suffix(src, pos, level)
        except Backtrack:
            return pos, expr
        match suffix.kind:
            case "attr":
                expr = Attr(expr, suffix.value)
            case "index":
                expr = Index(expr, suffix.value)
            case "call":
                expr = Call(expr, suffix.value)
            case "try":
                expr = Try(expr)
            case "macro":
                if isinstance(expr, Path):
                    expr = NativeMacro(expr.parts, suffix.value)
                elif isinstance(expr, Var):
                    expr = NativeMacro((expr.name,), suffix.value)
                else:
                    raise Failure(pos)
        pos = j


def _next_suffix(src: str, pos: int, level: Level) -> tuple[int, _Suffix]:
    parsers = (_attr_suffix, _index_suffix, _call_suffix, _try_suffix, _macro_suffix)
    error = Backtrack(pos)
    for parse in parsers:
        try:
            return parse(src, pos, level)
        except Backtrack as exc:
            error = exc
    raise error


def _attr_suffix(src: str, pos: int, level: Level) -> tuple[int, _Suffix]:
    i = expect(src, skip_ws(src, pos), ".")
    if src.startswith(".", i):
        raise Backtrack(i)
    i = skip_ws(src, i)
    with _committed():
        try:
            j, name = num_lit(src, i)
        except Backtrack:
            j, name = identifier(src, i)
    return j, _Suffix("attr", name)


def _index_suffix(src: str, pos: int, level: Level) -> tuple[int, _Suffix]:
    level = level.nest(pos)
    i = _ws_char(src, pos, "[")
    with _committed():
        j, index = parse_expr(src, skip_ws(src, i), level)
        j = expect(src, skip_ws(src, j), "]")
    return j, _Suffix("index", index)


def _call_suffix(src: str, pos: int, level: Level) -> tuple[int, _Suffix]:
    level = level.nest(pos)
    j, args = parse_arguments(src, pos, level, False)
    return j, _Suffix("call", args)


def _try_suffix(src: str, pos: int, level: Level) -> tuple[int, _Suffix]:
    return expect(src, skip_ws(src, pos), "?"), _Suffix("try")


def _macro_suffix(src: str, pos: int, level: Level) -> tuple[int, _Suffix]:
    i = expect(src, skip_ws(src, pos), "!")
    i = expect(src, skip_ws(src, i), "(")
    with _committed():
        end = _nested_parenthesis(src, i)
        args = src[i:end]
        end = expect(src, end, ")")
    return end, _Suffix("macro", args)


def _nested_parenthesis(src: str, pos: int) -> int:
    """Find the unmatched ``)`` that closes a macro call, honouring string literals.

    Returns ``pos`` itself when no closing parenthesis is found at depth zero.
    """
    nested = 0
    last = pos
    in_str = False
    escaped = False
    for index, c in enumerate(src[pos:], start=pos):
        if c not in "()" or not in_str:
            if c == "(":
                nested += 1
            elif c == ")":
                if nested == 0:
                    last = index
                    break
                nested -= 1
            elif c == '"':
                if in_str:
                    if not escaped:
                        in_str = False
                else:
                    in_str = True
            elif c == "\\":
                escaped = not escaped
        if escaped and c != "\\":
            escaped = False
    if nested == 0:
        return last
    raise Backtrack(pos)