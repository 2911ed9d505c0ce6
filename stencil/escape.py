"""HTML and JSON escaping for rendered template values."""

from __future__ import annotations

import dataclasses
import io
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol


class _Writable(Protocol):
    def write(self, s: str) -> Any: ...


class Escaper(ABC):
    """Strategy that writes a string to an output in escaped form."""

    @abstractmethod
    def write_escaped(self, out: _Writable, string: str) -> None:
        """Write ``string`` to ``out`` with escaping applied."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


_HTML_TABLE = str.maketrans(
    {
        "<": "&lt;",
        ">": "&gt;",
        "&": "&amp;",
        '"': "&quot;",
        "'": "&#x27;",
    }
)


class Html(Escaper):
    """Escapes the characters that are significant in HTML."""

    def write_escaped(self, out: _Writable, string: str) -> None:
        out.write(string.translate(_HTML_TABLE))


class Text(Escaper):
    """Passes text through unchanged."""

    def write_escaped(self, out: _Writable, string: str) -> None:
        out.write(string)


class EscapeWriter:
    """A text sink that escapes everything written to it before passing it on."""

    def __init__(self, out: _Writable, escaper: Escaper) -> None:
        self.out = out
        self.escaper = escaper

    def write(self, s: str) -> int:
        self.escaper.write_escaped(self.out, s)
        return len(s)


class Escaped:
    """A string that is escaped lazily when converted with ``str()``."""

    def __init__(self, string: str, escaper: Escaper) -> None:
        self.string = string
        self.escaper = escaper

    def __str__(self) -> str:
        buf = io.StringIO()
        self.escaper.write_escaped(buf, self.string)
        return buf.getvalue()

    def __repr__(self) -> str:
        return f"Escaped({self.string!r}, {self.escaper!r})"


def escape(string: str, escaper: Escaper) -> Escaped:
    """Wrap ``string`` so that it renders escaped with ``escaper``."""
    return Escaped(string, escaper)


@dataclass(frozen=True)
class MarkupDisplay:
    """A value rendered either verbatim (safe) or through an escaper (unsafe)."""

    value: Any
    escaper: Escaper
    safe: bool = False

    @classmethod
    def new_unsafe(cls, value: Any, escaper: Escaper) -> "MarkupDisplay":
        return cls(value, escaper, safe=False)

    @classmethod
    def new_safe(cls, value: Any, escaper: Escaper) -> "MarkupDisplay":
        return cls(value, escaper, safe=True)

    def mark_safe(self) -> "MarkupDisplay":
        """Return a copy whose value will not be escaped."""
        return dataclasses.replace(self, safe=True)

    def __str__(self) -> str:
        text = str(self.value)
        if self.safe:
            return text
        buf = io.StringIO()
        EscapeWriter(buf, self.escaper).write(text)
        return buf.getvalue()


_JSON_PATTERN = re.compile(rb"[&'<>]")
_JSON_TABLE = {
    b"&": rb"\u0026",
    b"'": rb"\u0027",
    b"<": rb"\u003c",
    b">": rb"\u003e",
}


class JsonEscapeBuffer:
    """Byte sink that escapes chevrons, ampersands and apostrophes for JSON."""

    def __init__(self) -> None:
        self._buf = bytearray()
        self._pending: list[bytes] = []

    def write(self, data: bytes) -> int:
        self._pending.append(
            _JSON_PATTERN.sub(lambda m: _JSON_TABLE[m.group()], bytes(data))
        )
        return len(data)

    def flush(self) -> None:
        """Move escaped chunks written so far into the internal store."""
        if self._pending:
            self._buf += b"".join(self._pending)
            self._pending.clear()

    def finish(self) -> str:
        """Return everything written so far as text."""
        self.flush()
        return self._buf.decode("utf-8")