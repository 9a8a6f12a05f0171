"""Shallow lexical map of Gradle build scripts (Kotlin DSL and Groovy).

Splits a script into code, comment and string regions without parsing it.
Template expressions inside interpolating strings (``${...}`` and ``$name``)
count as code, since that is where ``$buildDir``-style references live.
"""

from __future__ import annotations

import bisect
import enum
import re
from dataclasses import dataclass

from gradlefix.core.errors import LexError


class RegionKind(enum.Enum):
    CODE = "code"
    COMMENT = "comment"
    STRING = "string"
    TEMPLATE = "template"
    MULTILINE_TEMPLATE = "multiline_template"


CODE_KINDS = frozenset({RegionKind.CODE, RegionKind.TEMPLATE, RegionKind.MULTILINE_TEMPLATE})

_IDENT_RE = re.compile(r"[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*")
_BLOCK_START_RE = re.compile(r"\b(doLast|doFirst)\s*(?:\([^)]*\)\s*)?\{")


@dataclass(frozen=True)
class Region:
    start: int
    end: int
    kind: RegionKind


@dataclass(frozen=True)
class Block:
    name: str
    start: int  # offset of the block keyword
    body_start: int  # offset just after the opening brace
    body_end: int  # offset of the closing brace


class LexicalMap:
    """Region lookup for one script."""

    def __init__(self, text: str, regions: list[Region]):
        self.text = text
        self.regions = regions
        self._starts = [r.start for r in regions]
        self._masked: str | None = None

    def kind_at(self, offset: int) -> RegionKind:
        idx = bisect.bisect_right(self._starts, offset) - 1
        if idx < 0:
            return RegionKind.CODE
        region = self.regions[idx]
        if offset >= region.end:
            return RegionKind.CODE
        return region.kind

    def is_code(self, offset: int) -> bool:
        return self.kind_at(offset) in CODE_KINDS

    def in_multiline_string(self, offset: int) -> bool:
        return self.kind_at(offset) is RegionKind.MULTILINE_TEMPLATE

    @property
    def masked(self) -> str:
        """The script with every comment and string character blanked out.

        Offsets and newlines are preserved, so positions map 1:1.
        """
        if self._masked is None:
            chars = list(self.text)
            for region in self.regions:
                if region.kind in CODE_KINDS:
                    continue
                for i in range(region.start, region.end):
                    if chars[i] != "\n":
                        chars[i] = " "
            self._masked = "".join(chars)
        return self._masked

    def depth_at(self, offset: int) -> int:
        """Brace nesting depth of code at ``offset``."""
        prefix = self.masked[:offset]
        return prefix.count("{") - prefix.count("}")

    def execution_blocks(self) -> list[Block]:
        """All doLast/doFirst bodies, brace-balanced over code only."""
        masked = self.masked
        blocks = []
        for match in _BLOCK_START_RE.finditer(masked):
            depth = 1
            i = match.end()
            while i < len(masked) and depth > 0:
                ch = masked[i]
                if ch == "{":
                    depth += 1
                elif ch == "}":
                    depth -= 1
                i += 1
            if depth == 0:
                blocks.append(Block(match.group(1), match.start(), match.end(), i - 1))
        return blocks


def lex(text: str) -> LexicalMap:
    """Build the lexical map for ``text``. Raises LexError on unterminated tokens."""
    return _Lexer(text).run()


class _Lexer:
    def __init__(self, text: str):
        self.text = text
        self.n = len(text)
        self.regions: list[Region] = []

    def run(self) -> LexicalMap:
        self._code(0, RegionKind.CODE, closing=False)
        return LexicalMap(self.text, self.regions)

    def _emit(self, start: int, end: int, kind: RegionKind) -> None:
        if end <= start:
            return
        if self.regions:
            last = self.regions[-1]
            if last.kind is kind and last.end == start:
                self.regions[-1] = Region(last.start, end, kind)
                return
        self.regions.append(Region(start, end, kind))

    def _code(self, i: int, kind: RegionKind, closing: bool) -> int:
        """Scan code from ``i``. With ``closing``, stop at the unmatched ``}``."""
        text, n = self.text, self.n
        depth = 0
        seg = i
        while i < n:
            ch = text[i]
            nxt = text[i + 1] if i + 1 < n else ""
            if ch == "/" and nxt == "/":
                self._emit(seg, i, kind)
                end = text.find("\n", i)
                end = n if end == -1 else end
                self._emit(i, end, RegionKind.COMMENT)
                i = seg = end
                continue
            if ch == "/" and nxt == "*":
                self._emit(seg, i, kind)
                end = text.find("*/", i + 2)
                if end == -1:
                    raise LexError(f"unterminated block comment at offset {i}")
                self._emit(i, end + 2, RegionKind.COMMENT)
                i = seg = end + 2
                continue
            if ch in "\"'":
                self._emit(seg, i, kind)
                i = seg = self._string(i)
                continue
            if closing:
                if ch == "{":
                    depth += 1
                elif ch == "}":
                    if depth == 0:
                        self._emit(seg, i, kind)
                        return i
                    depth -= 1
            i += 1

        if closing:
            raise LexError("unterminated template expression")
        self._emit(seg, n, kind)
        return n

    def _string(self, i: int) -> int:
        """Scan a string literal starting at ``i``; return the offset after it."""
        text, n = self.text, self.n
        quote = text[i]
        triple = text.startswith(quote * 3, i)
        delim = quote * 3 if triple else quote
        interpolating = quote == '"'
        template_kind = RegionKind.MULTILINE_TEMPLATE if triple else RegionKind.TEMPLATE

        j = i + len(delim)
        seg = i
        while True:
            if j >= n:
                raise LexError(f"unterminated string at offset {i}")
            ch = text[j]
            if ch == "\n" and not triple:
                raise LexError(f"unterminated string at offset {i}")
            if ch == "\\":
                j += 2
                continue
            if text.startswith(delim, j):
                self._emit(seg, j + len(delim), RegionKind.STRING)
                return j + len(delim)
            if interpolating and ch == "$":
                if j + 1 < n and text[j + 1] == "{":
                    self._emit(seg, j, RegionKind.STRING)
                    self._emit(j, j + 2, template_kind)
                    close = self._code(j + 2, template_kind, closing=True)
                    self._emit(close, close + 1, template_kind)
                    j = seg = close + 1
                    continue
                match = _IDENT_RE.match(text, j + 1)
                if match:
                    self._emit(seg, j, RegionKind.STRING)
                    self._emit(j, match.end(), template_kind)
                    j = seg = match.end()
                    continue
            j += 1
