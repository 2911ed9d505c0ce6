"""Parser for template nodes: literal text, comments, expressions and block tags.

Parsers take the full source, an offset and the parse :class:`State`, and
return ``(new_offset, value)``.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from .expr import Expr, parse_arguments, parse_expr
from .scanner import (
    Backtrack,
    Failure,
    State,
    expect,
    identifier,
    keyword,
    skip_till,
    skip_ws,
    str_lit,
)
from .target import NameTarget, Target, Whitespace, Ws, parse_target, parse_whitespace


def _freeze(obj: object, *names: str) -> None:
    for name in names:
        object.__setattr__(obj, name, tuple(getattr(obj, name)))


class Node:
    """Base class of all template nodes."""

    __slots__ = ()


@dataclass(frozen=True)
class Lit(Node):
    """Literal text split into leading whitespace, value and trailing whitespace."""

    lws: str
    val: str
    rws: str


@dataclass(frozen=True)
class Comment(Node):
    """A comment; ``content`` holds the delimiter that opened it."""

    ws: Ws
    content: str


@dataclass(frozen=True)
class ExprNode(Node):
    ws: Ws
    expr: Expr


@dataclass(frozen=True)
class Call(Node):
    ws: Ws
    scope: Optional[str]
    name: str
    args: tuple[Expr, ...]

    def __post_init__(self) -> None:
        _freeze(self, "args")


@dataclass(frozen=True)
class Let(Node):
    ws: Ws
    var: Target
    val: Optional[Expr]


@dataclass(frozen=True)
class CondTest:
    target: Optional[Target]
    expr: Expr


@dataclass(frozen=True)
class Cond:
    ws: Ws
    cond: Optional[CondTest]
    nodes: tuple[Node, ...]

    def __post_init__(self) -> None:
        _freeze(self, "nodes")


@dataclass(frozen=True)
class If(Node):
    ws: Ws
    branches: tuple[Cond, ...]

    def __post_init__(self) -> None:
        _freeze(self, "branches")


@dataclass(frozen=True)
class When:
    ws: Ws
    target: Target
    nodes: tuple[Node, ...]

    def __post_init__(self) -> None:
        _freeze(self, "nodes")


@dataclass(frozen=True)
class Match(Node):
    ws1: Ws
    expr: Expr
    arms: tuple[When, ...]
    ws2: Ws

    def __post_init__(self) -> None:
        _freeze(self, "arms")


@dataclass(frozen=True)
class Loop(Node):
    ws1: Ws
    var: Target
    iter: Expr
    cond: Optional[Expr]
    body: tuple[Node, ...]
    ws2: Ws
    else_nodes: tuple[Node, ...]
    ws3: Ws

    def __post_init__(self) -> None:
        _freeze(self, "body", "else_nodes")


@dataclass(frozen=True)
class Extends(Node):
    path: str


@dataclass(frozen=True)
class BlockDef(Node):
    ws1: Ws
    name: str
    nodes: tuple[Node, ...]
    ws2: Ws

    def __post_init__(self) -> None:
        _freeze(self, "nodes")


@dataclass(frozen=True)
class Include(Node):
    ws: Ws
    path: str


@dataclass(frozen=True)
class Import(Node):
    ws: Ws
    path: str
    scope: str


@dataclass(frozen=True)
class Macro(Node):
    ws1: Ws
    name: str
    args: tuple[str, ...]
    nodes: tuple[Node, ...]
    ws2: Ws

    def __post_init__(self) -> None:
        _freeze(self, "args", "nodes")


@dataclass(frozen=True)
class Raw(Node):
    ws1: Ws
    lit: Lit
    ws2: Ws


@dataclass(frozen=True)
class Break(Node):
    ws: Ws


@dataclass(frozen=True)
class Continue(Node):
    ws: Ws


_WS = " \t\r\n"


def split_ws_parts(s: str) -> Lit:
    """Split text into leading whitespace, the trimmed value and trailing whitespace."""
    trimmed_start = s.lstrip(_WS)
    trimmed = trimmed_start.rstrip(_WS)
    return Lit(s[: len(s) - len(trimmed_start)], trimmed, trimmed_start[len(trimmed):])


@contextmanager
def _committed() -> Iterator[None]:
    """Turn any mismatch inside the block into a hard failure."""
    try:
        yield
    except Backtrack as exc:
        raise Failure(exc.pos, exc.message) from None


def _marker(src: str, pos: int) -> tuple[int, Optional[Whitespace]]:
    try:
        return parse_whitespace(src, pos)
    except Backtrack:
        return pos, None


def _ws_keyword(src: str, pos: int, word: str) -> int:
    i, _ = keyword(src, skip_ws(src, pos), word)
    return skip_ws(src, i)


def _ws_char(src: str, pos: int, literal: str) -> int:
    return skip_ws(src, expect(src, skip_ws(src, pos), literal))


def _ws_let_or_set(src: str, pos: int) -> int:
    try:
        return _ws_keyword(src, pos, "let")
    except Backtrack:
        return _ws_keyword(src, pos, "set")


def _ws_expr(src: str, pos: int, state: State) -> tuple[int, Expr]:
    i, value = parse_expr(src, skip_ws(src, pos), state.level)
    return skip_ws(src, i), value


def _ws_str(src: str, pos: int) -> tuple[int, str]:
    i, value = str_lit(src, skip_ws(src, pos))
    return skip_ws(src, i), value


def _ws_identifier(src: str, pos: int) -> tuple[int, str]:
    i, value = identifier(src, skip_ws(src, pos))
    return skip_ws(src, i), value


def parse_nodes(src: str, pos: int, state: State) -> tuple[int, list[Node]]:
    """Parse as many nodes as possible starting at ``pos``."""
    nodes: list[Node] = []
    while True:
        for alternative in _NODE_PARSERS:
            try:
                pos, node = alternative(src, pos, state)
                break
            except Backtrack:
                continue
        else:
            return pos, nodes
        nodes.append(node)


def _lit(src: str, pos: int, state: State) -> tuple[int, Node]:
    if pos >= len(src):
        raise Backtrack(pos)
    syn = state.syntax
    starts = (syn.block_start, syn.comment_start, syn.expr_start)

    def start(s: str, p: int) -> tuple[int, str]:
        for tag in starts:
            if s.startswith(tag, p):
                return p + len(tag), tag
        raise Backtrack(p)

    try:
        end, _ = skip_till(src, pos, start)
    except Backtrack:
        end = len(src)
    if end == pos:
        raise Backtrack(pos)
    return end, split_ws_parts(src[pos:end])


def _comment_body(src: str, i: int, state: State) -> tuple[int, str]:
    start_tag, end_tag = state.syntax.comment_start, state.syntax.comment_end
    level = 0
    while True:
        end = src.find(end_tag, i)
        if end < 0:
            raise Backtrack(i)
        start = src.find(start_tag, i)
        if 0 <= start < end:
            level += 1
            i = start + len(start_tag)
        elif level > 0:
            level -= 1
            i = end + len(end_tag)
        else:
            return end, src[i:end]


def _comment(src: str, pos: int, state: State) -> tuple[int, Node]:
    syn = state.syntax
    i = expect(src, pos, syn.comment_start)
    with _committed():
        i, pws = _marker(src, i)
        i, tail = _comment_body(src, i, state)
        i = expect(src, i, syn.comment_end)
    nws = next((m for m in Whitespace if tail.endswith(m.value)), None)
    return i, Comment(Ws(pws, nws), syn.comment_start)


def _expr_node(src: str, pos: int, state: State) -> tuple[int, Node]:
    syn = state.syntax
    i = expect(src, pos, syn.expr_start)
    with _committed():
        i, pws = _marker(src, i)
        i, value = _ws_expr(src, i, state)
        i, nws = _marker(src, i)
        i = expect(src, i, syn.expr_end)
    return i, ExprNode(Ws(pws, nws), value)


def _block(src: str, pos: int, state: State) -> tuple[int, Node]:
    state.nest(pos)
    try:
        i = expect(src, pos, state.syntax.block_start)
        for alternative in _BLOCK_PARSERS:
            try:
                j, node = alternative(src, i, state)
                break
            except Backtrack:
                continue
        else:
            raise Backtrack(i)
        with _committed():
            j = expect(src, j, state.syntax.block_end)
        return j, node
    finally:
        state.leave()


def _loop_control(word: str, kind: Callable[[Ws], Node]):
    def parse(src: str, pos: int, state: State) -> tuple[int, Node]:
        i, pws = _marker(src, pos)
        i = _ws_keyword(src, i, word)
        i, nws = _marker(src, i)
        if not state.is_in_loop():
            raise Failure(pos)
        return i, kind(Ws(pws, nws))

    return parse


def _call(src: str, pos: int, state: State) -> tuple[int, Node]:
    i, pws = _marker(src, pos)
    i = _ws_keyword(src, i, "call")
    with _committed():
        scope = None
        try:
            j, found = _ws_identifier(src, i)
            j = _ws_char(src, j, "::")
            scope, i = found, j
        except Backtrack:
            pass
        i, name = _ws_identifier(src, i)
        try:
            j, args = parse_arguments(src, skip_ws(src, i), state.level, True)
            i = skip_ws(src, j)
        except Backtrack:
            args = ()
        i, nws = _marker(src, i)
    return i, Call(Ws(pws, nws), scope, name, args)


def _let(src: str, pos: int, state: State) -> tuple[int, Node]:
    i, pws = _marker(src, pos)
    i = _ws_let_or_set(src, i)
    with _committed():
        i, var = parse_target(src, skip_ws(src, i))
        i = skip_ws(src, i)
        val = None
        try:
            j = _ws_char(src, i, "=")
            i, val = _ws_expr(src, j, state)
        except Backtrack:
            val = None
        i, nws = _marker(src, i)
    return i, Let(Ws(pws, nws), var, val)


def _cond_test(src: str, pos: int, state: State) -> tuple[int, CondTest]:
    i = _ws_keyword(src, pos, "if")
    with _committed():
        target = None
        try:
            j = _ws_let_or_set(src, i)
            j, found = parse_target(src, j)
            j = _ws_char(src, j, "=")
            target, i = found, j
        except Backtrack:
            pass
        i, value = _ws_expr(src, i, state)
    return i, CondTest(target, value)


def _cond(src: str, pos: int, state: State) -> tuple[int, Cond]:
    i = expect(src, pos, state.syntax.block_start)
    i, pws = _marker(src, i)
    i = skip_ws(src, i)
    try:
        j, _ = keyword(src, i, "else")
    except Backtrack:
        keyword(src, i, "elif")
        raise Failure(i, "unknown `elif` keyword; did you mean `else if`?") from None
    i = skip_ws(src, j)
    with _committed():
        try:
            i, cond = _cond_test(src, i, state)
        except Backtrack:
            cond = None
        i, nws = _marker(src, i)
        i = expect(src, i, state.syntax.block_end)
        i, nodes = parse_nodes(src, i, state)
    return i, Cond(Ws(pws, nws), cond, tuple(nodes))


def _if(src: str, pos: int, state: State) -> tuple[int, Node]:
    i, pws1 = _marker(src, pos)
    i, test = _cond_test(src, i, state)
    with _committed():
        i, nws1 = _marker(src, i)
        i = expect(src, i, state.syntax.block_end)
        i, nodes = parse_nodes(src, i, state)
        branches = [Cond(Ws(pws1, nws1), test, tuple(nodes))]
        while True:
            try:
                i, branch = _cond(src, i, state)
            except Backtrack:
                break
            branches.append(branch)
        i = expect(src, i, state.syntax.block_start)
        i, pws2 = _marker(src, i)
        i = _ws_keyword(src, i, "endif")
        i, nws2 = _marker(src, i)
    return i, If(Ws(pws2, nws2), tuple(branches))


def _loop(src: str, pos: int, state: State) -> tuple[int, Node]:
    syn = state.syntax
    i, pws1 = _marker(src, pos)
    i = _ws_keyword(src, i, "for")
    with _committed():
        i, var = parse_target(src, skip_ws(src, i))
        i = _ws_keyword(src, i, "in")
        i, iterable = _ws_expr(src, i, state)
        cond = None
        try:
            j = _ws_keyword(src, i, "if")
        except Backtrack:
            pass
        else:
            i, cond = _ws_expr(src, j, state)
        i, nws1 = _marker(src, i)
        i = expect(src, i, syn.block_end)
        state.enter_loop()
        try:
            i, body = parse_nodes(src, i, state)
        finally:
            state.leave_loop()
        i = expect(src, i, syn.block_start)
        i, pws2 = _marker(src, i)
        else_ws_left: Optional[Whitespace] = None
        else_ws_right: Optional[Whitespace] = None
        else_nodes: list[Node] = []
        try:
            j = _ws_keyword(src, i, "else")
        except Backtrack:
            pass
        else:
            j, else_ws_left = _marker(src, j)
            j = expect(src, j, syn.block_end)
            j, else_nodes = parse_nodes(src, j, state)
            j = expect(src, j, syn.block_start)
            i, else_ws_right = _marker(src, j)
        i = _ws_keyword(src, i, "endfor")
        i, nws2 = _marker(src, i)
    return i, Loop(
        Ws(pws1, nws1),
        var,
        iterable,
        cond,
        tuple(body),
        Ws(pws2, else_ws_left),
        tuple(else_nodes),
        Ws(else_ws_right, nws2),
    )


def _when(src: str, pos: int, state: State) -> tuple[int, When]:
    i = expect(src, pos, state.syntax.block_start)
    i, pws = _marker(src, i)
    i = _ws_keyword(src, i, "when")
    with _committed():
        i, target = parse_target(src, skip_ws(src, i))
        i = skip_ws(src, i)
        i, nws = _marker(src, i)
        i = expect(src, i, state.syntax.block_end)
        i, nodes = parse_nodes(src, i, state)
    return i, When(Ws(pws, nws), target, tuple(nodes))


def _else_arm(src: str, pos: int, state: State) -> tuple[int, When]:
    i = expect(src, pos, state.syntax.block_start)
    i, pws = _marker(src, i)
    i = _ws_keyword(src, i, "else")
    with _committed():
        i, nws = _marker(src, i)
        i = expect(src, i, state.syntax.block_end)
        i, nodes = parse_nodes(src, i, state)
    return i, When(Ws(pws, nws), NameTarget("_"), tuple(nodes))


def _match(src: str, pos: int, state: State) -> tuple[int, Node]:
    i, pws1 = _marker(src, pos)
    i = _ws_keyword(src, i, "match")
    with _committed():
        i, value = _ws_expr(src, i, state)
        i, nws1 = _marker(src, i)
        i = expect(src, i, state.syntax.block_end)
        i = skip_ws(src, i)
        while True:
            try:
                j, _ = _comment(src, i, state)
            except Backtrack:
                break
            i = skip_ws(src, j)
        arms: list[When] = []
        while True:
            try:
                i, arm = _when(src, i, state)
            except Backtrack:
                break
            arms.append(arm)
        if not arms:
            raise Backtrack(i)
        try:
            i, arm = _else_arm(src, i, state)
            arms.append(arm)
        except Backtrack:
            pass
        i = skip_ws(src, expect(src, skip_ws(src, i), state.syntax.block_start))
        i, pws2 = _marker(src, i)
        i = _ws_keyword(src, i, "endmatch")
        i, nws2 = _marker(src, i)
    return i, Match(Ws(pws1, nws1), value, tuple(arms), Ws(pws2, nws2))


def _extends(src: str, pos: int, state: State) -> tuple[int, Node]:
    i = _ws_keyword(src, pos, "extends")
    with _committed():
        i, path = _ws_str(src, i)
    return i, Extends(path)


def _include(src: str, pos: int, state: State) -> tuple[int, Node]:
    i, pws = _marker(src, pos)
    i = _ws_keyword(src, i, "include")
    with _committed():
        i, path = _ws_str(src, i)
        i, nws = _marker(src, i)
    return i, Include(Ws(pws, nws), path)


def _import(src: str, pos: int, state: State) -> tuple[int, Node]:
    i, pws = _marker(src, pos)
    i = _ws_keyword(src, i, "import")
    with _committed():
        i, path = _ws_str(src, i)
        i = _ws_keyword(src, i, "as")
        i, scope = _ws_identifier(src, i)
        i, nws = _marker(src, i)
    return i, Import(Ws(pws, nws), path, scope)


def _check_end_name(src: str, pos: int, name: str, kind: str) -> int:
    try:
        after, end_name = _ws_identifier(src, pos)
    except Backtrack:
        return pos
    if name == end_name:
        return after
    if not name and end_name:
        message = f"unexpected name `{end_name}` in `end{kind}` tag for unnamed `{kind}`"
    else:
        message = f"expected name `{name}` in `end{kind}` tag, found `{end_name}`"
    raise Failure(pos, message)


def _block_def(src: str, pos: int, state: State) -> tuple[int, Node]:
    i, pws1 = _marker(src, pos)
    i = _ws_keyword(src, i, "block")
    with _committed():
        i, name = _ws_identifier(src, i)
        i, nws1 = _marker(src, i)
        i = expect(src, i, state.syntax.block_end)
        i, nodes = parse_nodes(src, i, state)
        i = expect(src, i, state.syntax.block_start)
        i, pws2 = _marker(src, i)
        i = _ws_keyword(src, i, "endblock")
        i = _check_end_name(src, i, name, "block")
        i, nws2 = _marker(src, i)
    return i, BlockDef(Ws(pws1, nws1), name, tuple(nodes), Ws(pws2, nws2))


def _parameters(src: str, pos: int) -> tuple[int, list[str]]:
    i = _ws_char(src, pos, "(")
    names: list[str] = []
    try:
        i, first = _ws_identifier(src, i)
    except Backtrack:
        pass
    else:
        names.append(first)
        while src.startswith(",", i):
            try:
                i, name = _ws_identifier(src, i + 1)
            except Backtrack:
                break
            names.append(name)
    j = skip_ws(src, i)
    if src.startswith(",", j):
        i = skip_ws(src, j + 1)
    return expect(src, i, ")"), names


def _macro(src: str, pos: int, state: State) -> tuple[int, Node]:
    i, pws1 = _marker(src, pos)
    i = _ws_keyword(src, i, "macro")
    with _committed():
        i, name = _ws_identifier(src, i)
        params: list[str] = []
        try:
            j, params = _parameters(src, skip_ws(src, i))
            i = skip_ws(src, j)
        except Backtrack:
            params = []
        i, nws1 = _marker(src, i)
        i = expect(src, i, state.syntax.block_end)
        i, nodes = parse_nodes(src, i, state)
        i = expect(src, i, state.syntax.block_start)
        i, pws2 = _marker(src, i)
        i = _ws_keyword(src, i, "endmacro")
        i = _check_end_name(src, i, name, "macro")
        i, nws2 = _marker(src, i)
    if name == "super":
        raise Failure(i)
    return i, Macro(Ws(pws1, nws1), name, tuple(params), tuple(nodes), Ws(pws2, nws2))


def _raw(src: str, pos: int, state: State) -> tuple[int, Node]:
    syn = state.syntax
    i, pws1 = _marker(src, pos)
    i = _ws_keyword(src, i, "raw")

    def endraw(s: str, p: int) -> tuple[int, Ws]:
        j = expect(s, p, syn.block_start)
        j, left = _marker(s, j)
        j = _ws_keyword(s, j, "endraw")
        j, right = _marker(s, j)
        expect(s, j, syn.block_end)
        return j, Ws(left, right)

    with _committed():
        i, nws1 = _marker(src, i)
        i = expect(src, i, syn.block_end)
        end, (after, ws2) = skip_till(src, i, endraw)
    return after, Raw(Ws(pws1, nws1), split_ws_parts(src[i:end]), ws2)


_NODE_PARSERS = (_lit, _comment, _expr_node, _block)

_BLOCK_PARSERS = (
    _call,
    _let,
    _if,
    _loop,
    _match,
    _extends,
    _include,
    _import,
    _block_def,
    _macro,
    _raw,
    _loop_control("break", Break),
    _loop_control("continue", Continue),
)