"""Top-level template parsing: turns a whole source into a list of nodes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .node import Node, parse_nodes
from .scanner import Backtrack, Failure, ParseError, State, Syntax

_SNIPPET_CHARS = 40

_DEBUG_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\0": "\\0",
}


def _quote(text: str) -> str:
    """Quote text with escapes for quotes, backslashes and control characters."""
    parts = []
    for c in text:
        if c in _DEBUG_ESCAPES:
            parts.append(_DEBUG_ESCAPES[c])
        elif not c.isprintable() and c != " ":
            parts.append(f"\\u{{{ord(c):x}}}")
        else:
            parts.append(c)
    return '"' + "".join(parts) + '"'


def _location(before: str) -> tuple[int, int]:
    """Return the zero-based row and the column at the end of ``before``.

    A trailing line break does not start a new row.
    """
    lines = before.split("\n")
    if lines[-1] == "":
        lines.pop()
    if not lines:
        return 0, 0
    last = lines[-1]
    if last.endswith("\r"):
        last = last[:-1]
    return len(lines) - 1, len(last)


def _error(src: str, pos: int, message: Optional[str]) -> ParseError:
    pos = max(0, min(pos, len(src)))
    after = src[pos:]
    if len(after) > _SNIPPET_CHARS:
        snippet = _quote(after[:_SNIPPET_CHARS]) + "..."
    else:
        snippet = _quote(after)
    row, column = _location(src[:pos])
    prefix = f"{message}\n" if message else ""
    return ParseError(
        f"{prefix}problems parsing template source at row {row + 1}, "
        f"column {column} near:\n{snippet}"
    )


@dataclass(frozen=True)
class Ast:
    """The parsed nodes of one template source."""

    nodes: tuple[Node, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))

    @classmethod
    def from_str(cls, source: str, syntax: Optional[Syntax] = None) -> "Ast":
        """Parse ``source`` completely, raising :class:`ParseError` on failure."""
        state = State(syntax if syntax is not None else Syntax())
        try:
            pos, nodes = parse_nodes(source, 0, state)
        except (Backtrack, Failure) as exc:
            raise _error(source, exc.pos, exc.message) from None
        if pos != len(source):
            raise _error(source, pos, None)
        return cls(tuple(nodes))


def parse(source: str, syntax: Optional[Syntax] = None) -> Ast:
    """Parse a template source with the given delimiters (default ones if omitted)."""
    return Ast.from_str(source, syntax)