"""Parser for text dumps of all goroutine stacks.

The parser favours speed and expects well-formed input.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from itertools import zip_longest

FRAMES_ELIDED = "...additional frames elided..."

_BLOCK_SEPARATOR = "\n\n"
_GOROUTINE_PREFIX = "goroutine "
_CREATED_BY_PREFIX = "created by "
_MAX_UINT64 = 2**64 - 1
_UNSIGNED = re.compile(r"[0-9]+")
_SIGNED = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class Frame:
    """One stack frame: the function line and the file/line line."""

    line1: str
    line2: str

    def unique_identifier(self) -> str:
        """Return the file, line and offset line, usable as a key."""
        return self.line2

    def func(self) -> str:
        """Return the function name without its arguments."""
        if self.line1.startswith(_CREATED_BY_PREFIX):
            rest = self.line1[len(_CREATED_BY_PREFIX):]
            return rest.partition(" ")[0]
        end = self.line1.rfind("(")
        return self.line1[:end] if end >= 0 else self.line1

    def file(self) -> tuple[str, int]:
        """Return the source path and line number (0 when absent)."""
        line = self.line2
        if line.startswith("\t"):
            line = line[1:]
        line = line.partition(" ")[0]
        path, sep, number = line.rpartition(":")
        if not sep:
            return line, 0
        return path, int(number) if _SIGNED.fullmatch(number) else 0


@dataclass(frozen=True)
class Trace:
    """A single stack block: a header line and the frame lines beneath it."""

    header: str
    data: str = ""

    def goid(self) -> int:
        """Return the goroutine ID from the header, or 0 if it has none."""
        if not self.header.startswith(_GOROUTINE_PREFIX):
            return 0
        number, sep, _ = self.header[len(_GOROUTINE_PREFIX):].partition(" ")
        if not sep or not _UNSIGNED.fullmatch(number):
            return 0
        value = int(number)
        return value if value <= _MAX_UINT64 else 0

    def unique_identifier(self) -> str:
        """Return the frame text, usable as a key."""
        return self.data

    def _lines(self) -> list[str]:
        return self.data.split("\n")

    def frame_count_upper_bound(self) -> int:
        """Return the most frames this trace can hold; elided lines lower it."""
        return len(self._lines()) // 2

    def frames(self) -> Iterator[Frame]:
        """Yield frames from the innermost call outward."""
        lines = iter([line for line in self._lines() if line != FRAMES_ELIDED])
        for line1, line2 in zip_longest(lines, lines, fillvalue=""):
            yield Frame(line1, line2)

    def frames_reversed(self) -> Iterator[Frame]:
        """Yield frames from the outermost call inward."""
        lines = reversed([line for line in self._lines() if line != FRAMES_ELIDED])
        for line2, line1 in zip(lines, lines):
            yield Frame(line1, line2)


@dataclass(frozen=True)
class TraceCollection:
    """The stack blocks of one dump."""

    blocks: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[Trace]:
        return (self.item(index) for index in range(len(self.blocks)))

    def item(self, index: int) -> Trace:
        """Return the trace at ``index``."""
        block = self.blocks[index]
        if index < 0:
            index += len(self.blocks)
        if index == 0:
            block = block.lstrip("\n")
        elif index == len(self.blocks) - 1:
            block = block.rstrip("\n")
        header, sep, data = block.partition("\n")
        if not sep:
            return Trace(header)
        return Trace(header, data)


def parse(data: str | bytes | None) -> TraceCollection:
    """Split a stack dump into its blocks."""
    if isinstance(data, (bytes, bytearray)):
        data = data.decode("utf-8", errors="replace")
    if not data:
        return TraceCollection()
    return TraceCollection(tuple(data.split(_BLOCK_SEPARATOR)))